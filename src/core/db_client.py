"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when the record store is unreachable or rejects an operation."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


class UniqueConstraintError(DatabaseError):
    """Raised when a write collides with an existing value in a UNIQUE column."""


def _validate_identifier(name: str, kind: str = "collection") -> None:
    """Validate that an identifier contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        msg = f"Invalid {kind} name: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(val: Any) -> Any:
    """Serialize a Python value into something SQLite can bind."""
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, date):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | bool | None]:
    """Parse a single comparison expression into a SQL condition and parameter.

    Quoted values may contain backslash-escaped quotes and backslashes.
    """
    match = re.match(
        r"""^(\w+)\s*(!=|>=|<=|=|>|<)\s*(['"])((?:\\.|(?!\3)[^\\])*)\3$""",
        comparison,
        re.DOTALL,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    sql_op = _get_sql_operator(match.group(2))
    raw_value = re.sub(r"\\(.)", r"\1", match.group(4), flags=re.DOTALL)
    value = _parse_value(raw_value)

    return f"{field} {sql_op} ?", value


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query on && outside quoted values."""
    parts = []
    current = ""
    quote: str | None = None
    escaped = False

    for char in filter_query:
        current += char
        if escaped:
            escaped = False
        elif char == "\\" and quote:
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse filter syntax (`field = "value" && other != "x"`) into a SQL WHERE clause and parameters."""
    if not filter_query:
        return "", []

    conditions = []
    params = []

    for part in _split_and_conditions(filter_query):
        cond, value = _parse_single_comparison(part)
        conditions.append(cond)
        params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate `-field` / `+field` / `field` into an ORDER BY clause."""
    if not sort:
        return "id ASC"

    sort = sort.strip()
    direction = "DESC" if sort.startswith("-") else "ASC"
    field = sort.lstrip("+-")
    try:
        _validate_identifier(field, kind="sort field")
    except ValueError:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"

    # id breaks ties between rows written within the same millisecond
    return f"{field} {direction}, id {direction}"


_db_connections: dict[tuple[int, int, str, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()

# Readers use the "reader" connection and only ever see committed rows. Every
# write runs on the "writer" connection under a per-loop lock; a transaction
# holds that lock for its whole duration.
_READER = "reader"
_WRITER = "writer"
_write_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = weakref.WeakKeyDictionary()
_active_writer: ContextVar[aiosqlite.Connection | None] = ContextVar("_active_writer", default=None)


def _write_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _write_locks.get(loop)
    if lock is None:
        lock = _write_locks[loop] = asyncio.Lock()
    return lock


async def _cached_connection(*, db_path: str | None, role: str) -> aiosqlite.Connection:
    """Get or create the cached `role` connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path), role)

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "role": role, "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Connection for the current context.

    Inside a write or transaction this is the writer connection, so the
    caller sees its own uncommitted changes. Elsewhere it is the reader
    connection, which only sees committed data.
    """
    writer = _active_writer.get()
    if writer is not None and db_path is None:
        return writer
    return await _cached_connection(db_path=db_path, role=_READER)


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connections for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)

    async with _db_lock:
        for role in (_READER, _WRITER):
            conn = _db_connections.pop((thread_id, loop_id, str(path), role), None)
            if conn is None:
                continue
            try:
                await conn.close()
                logger.info("Closed SQLite connection", extra={"db_path": str(path), "role": role})
            except Exception as e:
                logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed writes as one unit: commit once on success, roll back everything on error.

    Nested use joins the outer transaction. Readers outside the transaction
    do not see its writes until it commits.
    """
    if _active_writer.get() is not None:
        yield
        return

    async with _write_lock():
        conn = await _cached_connection(db_path=None, role=_WRITER)
        token = _active_writer.set(conn)
        try:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                await conn.rollback()
                logger.warning("Transaction rolled back")
                raise
            await conn.commit()
        except aiosqlite.Error as e:
            msg = f"Transaction failed: {e}"
            raise DatabaseError(msg) from e
        finally:
            _active_writer.reset(token)


@asynccontextmanager
async def _write_scope() -> AsyncIterator[aiosqlite.Connection]:
    """Yield the writer connection for a single write, committing unless inside a transaction."""
    writer = _active_writer.get()
    if writer is not None:
        yield writer
        return

    async with _write_lock():
        conn = await _cached_connection(db_path=None, role=_WRITER)
        token = _active_writer.set(conn)
        try:
            try:
                yield conn
            except Exception:
                await conn.rollback()
                raise
            await conn.commit()
        finally:
            _active_writer.reset(token)


def _wrap_error(e: Exception, *, action: str, collection: str) -> DatabaseError:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    if isinstance(e, aiosqlite.IntegrityError) and "UNIQUE constraint failed" in str(e):
        logger.warning(f"{action}_conflict", extra={"collection": collection, "error": str(e)})
        return UniqueConstraintError(f"Duplicate value in {collection}: {e}")
    logger.error(f"{action}_failed", extra={"collection": collection, "error": str(e)})
    return DatabaseError(f"Failed to {action.replace('_', ' ')} in {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_identifier(collection)
    try:
        async with _write_scope() as conn:
            columns = list(data.keys())
            for column in columns:
                _validate_identifier(column, kind="column")
            columns_str = ", ".join(columns)
            placeholders_str = ", ".join("?" for _ in columns)
            values = [_to_db_value(data[key]) for key in columns]

            query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - identifiers are validated
            cursor = await conn.execute(query, values)
            record_id = cursor.lastrowid
            result = await get_record(collection=collection, record_id=str(record_id))
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        raise _wrap_error(e, action="create_record", collection=collection) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return result


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
        # Release the statement so the reader does not pin an old snapshot
        await cursor.close()
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except Exception as e:
        raise _wrap_error(e, action="get_record", collection=collection) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    record = dict(zip(columns, row, strict=True))

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _convert_record_ids(record)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_identifier(collection)
    payload = {**data, "updated": _utc_now()}
    try:
        async with _write_scope() as conn:
            for column in payload:
                _validate_identifier(column, kind="column")
            set_clause = ", ".join(f"{key} = ?" for key in payload)
            values = [_to_db_value(val) for val in payload.values()]
            values.append(int(record_id))

            query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - identifiers are validated
            cursor = await conn.execute(query, values)
            if cursor.rowcount == 0:
                msg = f"Record not found in {collection}: {record_id}"
                raise RecordNotFoundError(msg)
            result = await get_record(collection=collection, record_id=record_id)
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        raise _wrap_error(e, action="update_record", collection=collection) from e

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return result


async def upsert_record(*, collection: str, conflict_field: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a record, or update the columns in `data` of the row sharing `conflict_field`.

    Columns absent from `data` keep their stored values.
    """
    if conflict_field not in data:
        msg = f"Upsert payload must include the conflict field '{conflict_field}'"
        raise ValueError(msg)

    _validate_identifier(collection)
    _validate_identifier(conflict_field, kind="column")
    payload = {**data, "updated": _utc_now()}
    try:
        async with _write_scope() as conn:
            columns = list(payload.keys())
            for column in columns:
                _validate_identifier(column, kind="column")
            columns_str = ", ".join(columns)
            placeholders_str = ", ".join("?" for _ in columns)
            update_clause = ", ".join(f"{col} = excluded.{col}" for col in columns if col != conflict_field)
            values = [_to_db_value(payload[key]) for key in columns]

            query = (
                f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) "  # noqa: S608 - identifiers are validated
                f"ON CONFLICT({conflict_field}) DO UPDATE SET {update_clause}"
            )
            await conn.execute(query, values)
            result = await get_first_record(
                collection=collection,
                filter_query=f'{conflict_field} = "{sanitize_param(data[conflict_field])}"',
            )
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        raise _wrap_error(e, action="upsert_record", collection=collection) from e

    if result is None:
        msg = f"Upserted record vanished from {collection}"
        raise DatabaseError(msg)

    logger.info("Upserted record", extra={"collection": collection, "record_id": result["id"]})
    return result


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_identifier(collection)
    try:
        async with _write_scope() as conn:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            if cursor.rowcount == 0:
                msg = f"Record not found in {collection}: {record_id}"
                raise RecordNotFoundError(msg)
    except RecordNotFoundError:
        raise
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except Exception as e:
        raise _wrap_error(e, action="delete_record", collection=collection) from e

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
    _validate_identifier(collection)
    try:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except ValueError:
        raise
    except Exception as e:
        raise _wrap_error(e, action="list_records", collection=collection) from e

    columns = [description[0] for description in cursor.description]
    records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape backslashes and quotes so a value can be embedded in a quoted filter value."""
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("'", "\\'")
