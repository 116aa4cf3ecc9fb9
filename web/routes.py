"""
web/routes.py -- Form-post routes for browser clients.

These routes accept application/x-www-form-urlencoded submissions from plain
HTML forms. They share app.state with the API routes (same AuthService) but
answer with redirects and short plain-text errors instead of JSON. Page
rendering lives outside this service; GET / only reports who is signed in.

Routes:
  GET  /                            -- current user (or null) as JSON
  POST /signup                      -- email, password; redirect / on success
  POST /login                       -- email, password; redirect / on success
  POST /logout                      -- clear session, redirect /
  POST /email-verification          -- code; redirect / on success
  POST /email-verification/resend   -- new code for the signed-in user

Failures return HTTP 400 with the error's message as the body ("Invalid
email", "Invalid password", ...). Storage failures return 500 with a generic
body. Missing fields arrive as "" and are rejected by AuthService with the
same 400 path, so browsers never see a JSON validation envelope.
"""

import logging
from collections.abc import Callable

from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from auth.dependencies import get_auth_context, set_session_cookie
from auth.errors import AuthError, StorageError
from auth.models import AuthResult
from auth.service import AuthService

logger = logging.getLogger("buildkit.web")

router = APIRouter()


def _run(request: Request, use_case: Callable[[AuthService], AuthResult]) -> Response:
    """Run a use case and turn its outcome into a redirect or a plain-text error."""
    service: AuthService = request.app.state.auth_service
    try:
        result = use_case(service)
    except StorageError:
        logger.exception("Storage error on %s %s", request.method, request.url.path)
        return PlainTextResponse("Something went wrong", status_code=500)
    except AuthError as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    set_session_cookie(request, result.cookie)
    return RedirectResponse("/", status_code=302)


@router.get("/")
def home(request: Request) -> JSONResponse:
    """Report the signed-in user, if any. Pages are rendered elsewhere."""
    user = get_auth_context(request).user
    if user is None:
        return JSONResponse({"user": None})
    return JSONResponse({"user": {"id": user.id, "email": user.email, "email_verified": user.email_verified}})


@router.post("/signup")
def signup_post(request: Request, email: str = Form(""), password: str = Form("")) -> Response:
    """Handle the signup form."""
    return _run(request, lambda service: service.signup(email, password))


@router.post("/login")
def login_post(request: Request, email: str = Form(""), password: str = Form("")) -> Response:
    """Handle the login form."""
    return _run(request, lambda service: service.login(email, password))


@router.post("/logout")
def logout_post(request: Request) -> Response:
    """End the current session and redirect home."""
    return _run(request, lambda service: service.logout(get_auth_context(request)))


@router.post("/email-verification")
def verify_email_post(request: Request, code: str = Form("")) -> Response:
    """Handle the verification code form."""
    return _run(request, lambda service: service.verify_email(get_auth_context(request), code))


@router.post("/email-verification/resend")
def resend_code_post(request: Request) -> Response:
    """Send a fresh verification code to the signed-in user."""
    return _run(request, lambda service: service.resend_verification_code(get_auth_context(request)))
