"""SQLite document store client with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)

# Columns holding JSON-encoded lists/objects
JSON_FIELDS = frozenset({"assigned_to", "checklist", "attachments"})


class DatabaseError(RuntimeError):
    """Store operation failed."""


class RecordNotFoundError(KeyError):
    """Requested record does not exist."""


class RevisionConflictError(DatabaseError):
    """Record was modified since it was loaded (stale revision)."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _encode_value(key: str, value: Any) -> Any:
    """Convert a Python value into something SQLite can store."""
    if isinstance(value, datetime):
        return value.isoformat()
    if key in JSON_FIELDS or isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _decode_record(record: dict[str, Any]) -> dict[str, Any]:
    """Decode JSON columns and stringify the primary key for Pydantic compatibility."""
    decoded = record.copy()
    for key, value in decoded.items():
        if key in JSON_FIELDS and isinstance(value, str):
            decoded[key] = json.loads(value)
        elif isinstance(value, int) and (key == "id" or key.endswith("_id")):
            decoded[key] = str(value)
    return decoded


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return "%" + value.replace("%", "\\%").replace("_", "\\_") + "%"

    if value.isascii() and value.isdecimal():
        return int(value)
    if value.isascii() and value.replace(".", "", 1).isdecimal():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _is_record_id(record_id: str) -> bool:
    """Row ids are plain ASCII digit strings; anything else cannot exist."""
    return record_id.isascii() and record_id.isdecimal()


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


COMPARISON_PATTERN = re.compile(r"""^(\w+)\s*(\?=|!=|>=|<=|=|>|<|~)\s*(['"])((?:\\.|(?!\3).)*)\3$""")


def unescape_value(raw_value: str, quote: str) -> str:
    """Undo sanitize_param escaping for a quoted filter value."""
    if quote == '"':
        try:
            return json.loads(f'"{raw_value}"')
        except json.JSONDecodeError as e:
            msg = f"Invalid escape sequence in filter value: {raw_value}"
            raise ValueError(msg) from e
    return re.sub(r"\\(.)", r"\1", raw_value)


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter.

    ``field ?= "value"`` matches records whose JSON list column contains value.
    Comparing against an empty string also matches NULL.
    """
    match = COMPARISON_PATTERN.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = unescape_value(match.group(4), match.group(3))

    if op == "?=":
        return f"EXISTS (SELECT 1 FROM json_each({field}) WHERE json_each.value = ?)", raw_value

    if raw_value == "" and op == "=":
        return f"({field} IS NULL OR {field} = ?)", raw_value
    if raw_value == "" and op == "!=":
        return f"({field} IS NOT NULL AND {field} != ?)", raw_value

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)
    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value

    return f"{field} {sql_op} ?", value


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params = []

    for raw_part in filter_query.split("&&"):
        part = raw_part.strip()
        if not part:
            continue
        cond, value = _parse_single_comparison(part)
        conditions.append(cond)
        params.append(value)

    return " AND ".join(conditions), params


def _parse_sort(sort: str) -> str:
    """Translate ``-field``/``+field``/``field DESC`` into a safe ORDER BY clause."""
    safe_sort = "id ASC"
    if not sort:
        return safe_sort

    sort = sort.strip()
    prefixed = re.match(r"^([+-])([A-Za-z_][A-Za-z0-9_]*)$", sort)
    if prefixed:
        direction = "DESC" if prefixed.group(1) == "-" else "ASC"
        return f"{prefixed.group(2)} {direction}, id {direction}"

    if re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort, re.IGNORECASE):
        return sort

    logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
    return safe_sort


_db_connections: dict[tuple[int, int, str], tuple[asyncio.AbstractEventLoop, aiosqlite.Connection]] = {}
_db_lock = asyncio.Lock()


async def _evict_closed_loops() -> None:
    """Drop cached connections whose event loop has been closed."""
    stale = [key for key, (loop, _) in _db_connections.items() if loop.is_closed()]
    for key in stale:
        _, conn = _db_connections.pop(key)
        try:
            await conn.close()
        except Exception as e:
            logger.warning("Error closing stale SQLite connection", extra={"error": str(e), "db_path": key[2]})
        logger.info("Evicted SQLite connection for closed event loop", extra={"db_path": key[2]})


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    cached = _db_connections.get(cache_key)
    if cached is not None and cached[0] is loop:
        return cached[1]

    # Create new connection with async lock to prevent races
    async with _db_lock:
        # Ids of closed loops may be reused by the running one
        await _evict_closed_loops()
        cached = _db_connections.get(cache_key)
        if cached is not None and cached[0] is loop:
            return cached[1]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = (loop, conn)

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            if cache_key in _db_connections:
                _, conn = _db_connections.pop(cache_key)
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = _now_iso()
        row = {"created": now, "updated": now, **data}
        columns = list(row.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_encode_value(key, row[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        record_id = cursor.lastrowid
        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except Exception as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            logger.error("Table not found", extra={"collection": collection})
            raise DatabaseError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    if not _is_record_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    columns = [description[0] for description in cursor.description]
    record = dict(zip(columns, row, strict=True))

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _decode_record(record)


async def update_record(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    expected_revision: int | None = None,
) -> dict[str, Any]:
    """Update a record by ID and return the updated record.

    When ``expected_revision`` is given the write only succeeds if the stored
    revision still matches, and the revision is incremented in the same
    statement. A mismatch raises RevisionConflictError.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    if not _is_record_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        row = {**data, "updated": _now_iso()}
        assignments = [f"{key} = ?" for key in row]
        values = [_encode_value(key, val) for key, val in row.items()]

        where_clause = "id = ?"
        values.append(int(record_id))
        if expected_revision is not None:
            assignments.append("revision = revision + 1")
            where_clause += " AND revision = ?"
            values.append(expected_revision)

        query = f"UPDATE {collection} SET {', '.join(assignments)} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        rowcount = cursor.rowcount
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if rowcount == 0:
        # Distinguish a vanished record from a stale revision
        current = await get_record(collection=collection, record_id=record_id)
        msg = (
            f"Stale revision for {collection}/{record_id}: "
            f"expected {expected_revision}, found {current.get('revision')}"
        )
        logger.warning(
            "update_record_conflict",
            extra={"collection": collection, "record_id": record_id, "expected_revision": expected_revision},
        )
        raise RevisionConflictError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    if not _is_record_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        await conn.commit()
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = _parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        columns = [description[0] for description in cursor.description]
        records = [_decode_record(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def count_records(*, collection: str, filter_query: str = "") -> int:
    """Count records matching the filter."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        query = f"SELECT COUNT(*) FROM {collection}"  # noqa: S608 - collection is validated
        if where_clause:
            query += f" WHERE {where_clause}"

        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
    except Exception as e:
        logger.error(
            "count_records_failed", extra={"collection": collection, "filter_query": filter_query, "error": str(e)}
        )
        msg = f"Failed to count records in {collection}: {e}"
        raise DatabaseError(msg) from e
