"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and orchestrator code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced by the UNIQUE constraint on users.email, not by
  a lookup before insert. Two concurrent signups for the same address both
  reach the INSERT; the database lets exactly one through and the other
  surfaces as ConflictError.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.db import storage_errors, users
from auth.errors import ConflictError
from auth.models import User
from auth.tokens import generate_user_id

logger = logging.getLogger("buildkit.auth")


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(create_auth_engine("sqlite:///auth.db"))
        user = store.create_user("a@example.com", hash_password("secret"))
        same = store.get_by_email("a@example.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, email: str, hashed_password: str, email_verified: bool = False) -> User:
        """Insert a new user with a freshly generated id and return it.

        Raises ConflictError if the email is already registered.
        """
        user = User(
            id=generate_user_id(),
            email=email,
            hashed_password=hashed_password,
            email_verified=email_verified,
        )
        with storage_errors("create user"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(
                        users.insert().values(
                            id=user.id,
                            email=user.email,
                            hashed_password=user.hashed_password,
                            email_verified=user.email_verified,
                        )
                    )
                    conn.commit()
            except IntegrityError as exc:
                logger.info("Signup rejected: email already registered")
                raise ConflictError("Email already in use") from exc
        return user

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with storage_errors("get user by email"):
            with self.engine.connect() as conn:
                row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with storage_errors("get user by id"):
            with self.engine.connect() as conn:
                row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def set_email_verified(self, user_id: str) -> None:
        """Mark the user's email as verified. Idempotent; unknown ids are a no-op."""
        with storage_errors("set email verified"):
            with self.engine.connect() as conn:
                conn.execute(users.update().where(users.c.id == user_id).values(email_verified=True))
                conn.commit()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        email_verified=bool(row.email_verified),
    )
