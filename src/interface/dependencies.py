"""Request dependencies for resolving the calling user."""

import logging

from fastapi import Header, HTTPException
from pydantic import ValidationError

from src.core.config import constants
from src.domain.user import Actor


logger = logging.getLogger(__name__)


async def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Build the caller identity from headers set by the upstream auth gateway.

    The gateway authenticates the user; these values are trusted as given.
    """
    if not x_user_id or not x_user_role:
        logger.warning("actor_headers_missing")
        raise HTTPException(status_code=constants.HTTP_UNAUTHORIZED, detail="User not authenticated")

    try:
        return Actor(id=x_user_id, role=x_user_role.lower())
    except ValidationError as err:
        logger.warning("actor_headers_invalid", extra={"role": x_user_role})
        raise HTTPException(status_code=constants.HTTP_UNAUTHORIZED, detail="User not authenticated") from err
