"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/signup                     -- create account; sets session cookie
  POST /api/v1/auth/login                      -- password login; sets session cookie
  POST /api/v1/auth/logout                     -- ends session; clears cookie
  POST /api/v1/auth/email-verification         -- consume code; rotates session
  POST /api/v1/auth/email-verification/resend  -- issue a new code (requires auth)
  GET  /api/v1/auth/me                         -- current user info (requires auth)

Handlers are plain `def`: AuthService does blocking database I/O, so FastAPI
runs them in its thread pool. AuthError subclasses raised by the service are
turned into 400/500 envelopes by the handler in api/main.py.

Cookies: handlers never call response.set_cookie(). They hand the service's
SessionCookie directive to set_session_cookie() and the session middleware
writes it, which keeps the session cookie to one Set-Cookie per response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import AuthResponse, CredentialsRequest, MeResponse, MessageResponse, UserResponse, VerificationRequest
from auth.dependencies import get_auth_context, get_auth_service, require_user, set_session_cookie
from auth.models import AuthResult, User
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/signup:                     public
# - POST /api/v1/auth/login:                      public
# - POST /api/v1/auth/logout:                     public -- clearing a cookie needs no prior auth
# - POST /api/v1/auth/email-verification:         signed-in user checked by AuthService
# - POST /api/v1/auth/email-verification/resend:  signed-in user checked by AuthService
# - GET  /api/v1/auth/me:                         requires auth (require_user)
router = APIRouter()


def _auth_response(request: Request, result: AuthResult, status_code: int = 200) -> JSONResponse:
    set_session_cookie(request, result.cookie)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(result.user),
            session_expires_at=result.session.expires_at,
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
def signup(
    request: Request,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account, email a verification code and sign the new user in."""
    result = service.signup(body.email, body.password)
    return _auth_response(request, result, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    request: Request,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Unknown email and wrong password fail with different messages
    ("Invalid email" / "Invalid password").
    """
    result = service.login(body.email, body.password)
    return _auth_response(request, result)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """End the current session and clear the cookie."""
    result = service.logout(get_auth_context(request))
    set_session_cookie(request, result.cookie)
    return MessageResponse(message="Logged out.")


@router.post("/auth/email-verification", response_model=AuthResponse)
def verify_email(
    request: Request,
    body: VerificationRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Consume a verification code. On success all older sessions are revoked
    and the response carries the cookie of the replacement session."""
    result = service.verify_email(get_auth_context(request), body.code)
    return _auth_response(request, result)


@router.post("/auth/email-verification/resend", response_model=MessageResponse)
def resend_verification_code(request: Request, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Send a new verification code; the previous one stops working."""
    service.resend_verification_code(get_auth_context(request))
    return MessageResponse(message="Verification code sent.")


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, current_user: User = Depends(require_user)) -> MeResponse:
    """Return identity information for the currently signed-in user."""
    session = get_auth_context(request).session
    active = request.app.state.session_manager.get_user_sessions(current_user.id)
    return MeResponse(
        user=UserResponse.from_user(current_user),
        session_expires_at=session.expires_at,
        active_sessions=len(active),
    )
