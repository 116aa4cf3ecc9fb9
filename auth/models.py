"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own the SQL;
the orchestrator in auth/service.py does the work. AuthContext and
AuthResult are the values that cross the boundary between route handlers
and the orchestrator.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    email is stored exactly as submitted -- no case folding -- and is unique
    across all users. hashed_password is the hex SHA-256 digest produced by
    auth.passwords.hash_password(); the plaintext is never persisted.
    """

    id: str
    email: str
    hashed_password: str
    email_verified: bool = False


@dataclass
class Session:
    """A server-side login session. id is the bearer token in the cookie.

    fresh is not persisted: it is True only on the result of create_session()
    or of a validate_session() call that renewed expires_at, and tells the
    caller to (re-)emit the session cookie.
    """

    id: str
    user_id: str
    expires_at: datetime
    fresh: bool = False


@dataclass
class EmailVerificationCode:
    user_id: str
    email: str
    code: str
    expires_at: datetime
    id: int | None = None


@dataclass(frozen=True)
class SessionCookie:
    """A Set-Cookie directive for the session cookie.

    Produced by SessionManager, applied to the HTTP response by the boundary
    layer. A blank cookie has value "" and max_age=0, which tells the browser
    to drop whatever session cookie it holds.
    """

    name: str
    value: str
    max_age: int
    expires: datetime | None = None
    path: str = "/"
    httponly: bool = True
    secure: bool = False
    samesite: str = "lax"

    @property
    def is_blank(self) -> bool:
        return self.value == ""


@dataclass(frozen=True)
class AuthContext:
    """The user and session resolved from the current request's cookie.

    Both are None for anonymous requests. Route handlers pass this to
    AuthService explicitly; nothing reads it from global state.
    """

    user: User | None = None
    session: Session | None = None


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an AuthService use case.

    cookie is the directive the boundary layer must apply, or None when the
    use case does not change the session cookie.
    """

    user: User | None = None
    session: Session | None = None
    cookie: SessionCookie | None = None
