"""taskwarden - Task assignment tracker with checklist-driven progress."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.attachment_router import router as attachment_router
from src.interface.error_handlers import register_error_handlers
from src.interface.task_router import router as task_router
from src.services.attachment_service import ensure_uploads_dir


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so startup logs are captured
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    ensure_uploads_dir()
    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="taskwarden",
    description="Task assignment tracker with checklist-driven progress and admin verification",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

register_error_handlers(app)

# Register routers
app.include_router(task_router)
app.include_router(attachment_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
