"""
tests/conftest.py -- Shared test fixtures for Buildkit auth tests.

This module provides:
  - FakeClock / RecordingNotifier: deterministic time and captured emails
  - engine, user_store, session_manager, code_service, auth_service: unit-level
    components over a private in-memory database
  - file_engine / run_concurrently: file-backed database and a thread barrier
    helper for race tests
  - client: TestClient over the real ASGI app (API + form routes) with a
    patched lifespan wiring isolated stores into app.state

Design: the TestClient fixture uses a named shared-memory SQLite URI (not
plain :memory:) because TestClient runs route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Each test gets its own name so state never leaks.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from asgi import app
from api.main import build_components
from auth.db import create_auth_engine
from auth.service import AuthService
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.verification import VerificationCodeService
from core.config import Settings

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 8, 11, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class SentEmail:
    recipient: str
    subject: str
    body: str


class RecordingNotifier:
    """Notifier that keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append(SentEmail(recipient, subject, body))


def fixed_code(code: str):
    """Code generator that always returns `code`, whatever length is requested."""
    return lambda length: code


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine():
    eng = create_auth_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """Engine over a SQLite file, so each thread gets its own connection."""
    eng = create_auth_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    yield eng
    eng.dispose()


def _run_concurrently(func, count: int = 8) -> list:
    """Call func() from `count` threads released together; return results or exceptions."""
    barrier = threading.Barrier(count)

    def worker():
        barrier.wait()
        try:
            return func()
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(worker) for _ in range(count)]
        return [f.result() for f in futures]


@pytest.fixture
def run_concurrently():
    return _run_concurrently


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def session_manager(engine, user_store, clock) -> SessionManager:
    return SessionManager(engine, user_store, expire_seconds=30 * 24 * 3600, clock=clock)


@pytest.fixture
def code_service(engine, clock) -> VerificationCodeService:
    return VerificationCodeService(engine, code_generator=fixed_code("1234"), clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def auth_service(user_store, session_manager, code_service, notifier) -> AuthService:
    return AuthService(user_store, session_manager, code_service, notifier)


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, db_url: str, notifier: RecordingNotifier):
    """Return an async context manager that replaces the real lifespan.

    Wires an isolated shared-memory database, the recording notifier and a
    fixed "1234" code generator into app.state.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        engine = create_auth_engine(db_url)
        build_components(app, settings, engine, notifier=notifier, code_generator=fixed_code("1234"))
        yield
        engine.dispose()

    return test_lifespan


@pytest.fixture
def client(notifier: RecordingNotifier) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the full app with follow_redirects=False.

    follow_redirects=False lets form-route tests assert on the 302 to "/"
    and on the Set-Cookie header of the redirect itself.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    settings = Settings(_env_file=None, database_url=db_url)
    app.router.lifespan_context = _patch_lifespan(settings, db_url, notifier)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client