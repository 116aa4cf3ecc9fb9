"""
auth/db.py -- Schema, engine factory and storage helpers shared by the auth stores.

Pattern: SQLAlchemy Core tables (no ORM). Each table has exactly one owning
component:
  users                     -> auth.store.UserStore
  sessions                  -> auth.sessions.SessionManager
  email_verification_codes  -> auth.verification.VerificationCodeService
No other module issues SQL against a table it does not own.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  There is no in-process locking. Email uniqueness is the UNIQUE constraint on
  users.email; code consumption is a single DELETE ... RETURNING statement.
  Both rely on per-statement atomicity of the database.

Time storage:
  sessions.expires_at is INTEGER unix seconds; email_verification_codes.expires_at
  is ISO 8601 UTC text. Both are converted to timezone-aware datetimes at the
  store boundary so callers never handle raw column values.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import StorageError

logger = logging.getLogger("buildkit.auth")

Clock = Callable[[], datetime]

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("email_verified", Boolean, nullable=False, server_default="0"),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("expires_at", Integer, nullable=False),  # unix seconds
    Column("user_id", String(32), nullable=False, index=True),
)

email_verification_codes = Table(
    "email_verification_codes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", Text),
    Column("user_id", String(32), unique=True),  # one outstanding code per user
    Column("code", Text),
    Column("expires_at", Text),  # ISO 8601 UTC
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_auth_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure all auth tables exist.

    create_all() only creates missing tables, so this is safe to call on
    every startup against an existing database.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> int:
    return int(value.timestamp())


def from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


# Date.prototype.toString() output, e.g. "Sun Aug 11 2024 10:57:29 GMT+0000 (Coordinated Universal Time)".
_JS_DATE_FORMAT = "%a %b %d %Y %H:%M:%S GMT%z"


def parse_datetime(value: str) -> datetime:
    """Parse a stored expiry: ISO 8601, or the JavaScript Date string format.

    Naive ISO values are taken as UTC. Raises ValueError for anything else.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        parsed = datetime.strptime(value.split(" (", 1)[0], _JS_DATE_FORMAT)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into StorageError.

    Usage:
        with storage_errors("create session"):
            with self.engine.connect() as conn:
                ...

    Domain errors raised inside the block (e.g. ConflictError) pass through
    untouched because they are not SQLAlchemyError subclasses.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s: %s", operation, exc)
        raise StorageError() from exc
