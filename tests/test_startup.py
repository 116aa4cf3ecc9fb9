"""
tests/test_startup.py -- The real application lifespan.

Every other app test swaps in a patched lifespan; this one runs the one
uvicorn uses, against a file database, to check startup housekeeping.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy import select

from api.main import lifespan
from asgi import app
from auth.db import create_auth_engine, sessions, to_timestamp
from core.config import Settings


def test_startup_purges_expired_sessions(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'auth.db'}"
    now = datetime.now(timezone.utc)
    engine = create_auth_engine(db_url)
    with engine.connect() as conn:
        conn.execute(
            sessions.insert(),
            [
                {"id": "expired", "user_id": "u1", "expires_at": to_timestamp(now - timedelta(days=1))},
                {"id": "current", "user_id": "u1", "expires_at": to_timestamp(now + timedelta(days=1))},
            ],
        )
        conn.commit()

    monkeypatch.setattr("api.main.get_settings", lambda: Settings(_env_file=None, database_url=db_url))
    monkeypatch.setattr(app.router, "lifespan_context", lifespan)
    with TestClient(app) as client:
        assert client.get("/api/v1/health").json()["components"]["database"] == "ok"

    with engine.connect() as conn:
        remaining = [row.id for row in conn.execute(select(sessions.c.id))]
    engine.dispose()
    assert remaining == ["current"]
