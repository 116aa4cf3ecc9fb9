"""
api/main.py -- FastAPI application entry point for Buildkit auth.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests     -- one log line per request with status and latency
  2. session_cookies  -- validates the session cookie, stores AuthContext on
                         request.state, writes the final session Set-Cookie

Lifespan builds the database engine and every auth component into app.state
on startup, purges expired sessions, and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.db import create_auth_engine
from auth.dependencies import apply_session_cookie
from auth.errors import AuthError, StorageError
from auth.models import AuthContext
from auth.notifier import Notifier, build_notifier
from auth.service import AuthService
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.verification import VerificationCodeService
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("buildkit.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(
    app: FastAPI,
    settings: Settings,
    engine: Engine,
    notifier: Notifier | None = None,
    code_generator: Callable[[int], str] | None = None,
) -> None:
    """Construct the auth components for `engine` and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    graph: UserStore -> SessionManager -> VerificationCodeService -> AuthService.
    notifier and code_generator override the settings-derived defaults.
    """
    code_options = {"code_generator": code_generator} if code_generator is not None else {}
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.session_manager = SessionManager(
        engine,
        app.state.user_store,
        cookie_name=settings.session_cookie_name,
        expire_seconds=settings.session_expire_seconds,
        renew_threshold_seconds=settings.session_renew_threshold_seconds,
        secure_cookies=settings.secure_cookies,
    )
    app.state.verification_codes = VerificationCodeService(
        engine,
        code_length=settings.verification_code_length,
        expire_seconds=settings.verification_code_expire_seconds,
        **code_options,
    )
    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.session_manager,
        app.state.verification_codes,
        notifier or build_notifier(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("Buildkit auth starting up")
    engine = create_auth_engine(settings.database_url)
    build_components(app, settings, engine)
    purged = app.state.session_manager.delete_expired_sessions()
    logger.info("Auth initialized (cookie=%s, expired sessions purged=%d)", settings.session_cookie_name, purged)

    yield

    engine.dispose()
    logger.info("Buildkit auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Buildkit Auth API",
    description="Email/password accounts, cookie sessions and email verification codes.",
    version=API_VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Session middleware
#
# Runs before every route. A request without the cookie is anonymous and gets
# no Set-Cookie from here. A request with the cookie is validated:
#   - valid + fresh  -> cookie re-emitted with the renewed expiry
#   - valid + stale  -> no cookie written
#   - invalid        -> blank cookie clears the stale browser cookie
# Route handlers may replace the pending directive (login, logout, verify);
# only the last one is written, after the handler returns.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def session_cookies(request: Request, call_next):
    manager: SessionManager = request.app.state.session_manager
    session_id = request.cookies.get(manager.cookie_name)

    request.state.auth = AuthContext()
    request.state.session_cookie = None
    if session_id:
        try:
            session, user = await run_in_threadpool(manager.validate_session, session_id)
        except StorageError:
            logger.exception("Session validation failed on %s %s", request.method, request.url.path)
            return _error_response(500, "internal_error", "An unexpected error occurred.")
        request.state.auth = AuthContext(user=user, session=session)
        request.state.session_cookie = manager.cookie_for_validation(session)

    response = await call_next(request)

    cookie = getattr(request.state, "session_cookie", None)
    if cookie is not None:
        apply_session_cookie(response, cookie)
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered after session_cookies, so it wraps it and measures the full
# request including session validation.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
# Form router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map domain errors to 400 and storage errors to a generic 500.

    StorageError carries no internal detail in its message; the chained
    SQLAlchemy exception goes to the log only.
    """
    if isinstance(exc, StorageError):
        logger.error(
            "Storage error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc.__cause__ or exc,
        )
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already a structured dict, use it directly as the error field rather than
    stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database = "ok"
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})
