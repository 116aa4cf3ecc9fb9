"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session middleware in api/main.py validates the session cookie once per
request and stores two values on request.state:

  auth            AuthContext(user, session) -- anonymous requests get an
                  empty AuthContext.
  session_cookie  The SessionCookie directive the response must carry, or
                  None. Route handlers replace it through set_session_cookie();
                  the middleware writes whatever is there after the handler
                  returns, so at most one session Set-Cookie leaves per request.

get_auth_context() is the soft variant (never raises).
require_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from web/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request/Response)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, Response

from auth.models import AuthContext, SessionCookie, User
from auth.service import AuthService


def get_auth_context(request: Request) -> AuthContext:
    """Return the AuthContext resolved by the session middleware."""
    return getattr(request.state, "auth", None) or AuthContext()


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def require_user(request: Request) -> User:
    """Require a signed-in user. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(require_user)): ...
    """
    user = get_auth_context(request).user
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def set_session_cookie(request: Request, cookie: SessionCookie | None) -> None:
    """Replace the pending session cookie directive for this request.

    None leaves the pending directive (from session validation) untouched.
    """
    if cookie is not None:
        request.state.session_cookie = cookie


def apply_session_cookie(response: Response, cookie: SessionCookie) -> None:
    """Write a SessionCookie directive to the response as a Set-Cookie header.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie sent on same-site navigations and top-level GETs,
        but not on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    """
    response.set_cookie(
        cookie.name,
        value=cookie.value,
        max_age=cookie.max_age,
        expires=cookie.expires,
        path=cookie.path,
        secure=cookie.secure,
        httponly=cookie.httponly,
        samesite=cookie.samesite,
    )
