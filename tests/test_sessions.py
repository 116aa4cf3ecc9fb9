"""Unit tests for auth/sessions.py -- session lifecycle and cookie directives.

Time is driven by FakeClock so expiry and renewal are tested without sleeping.
Default lifetime is 30 days with renewal once 15 days or less remain.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select

from auth.db import sessions as sessions_table
from auth.passwords import hash_password
from auth.sessions import SessionManager


def _session_rows(engine) -> list:
    with engine.connect() as conn:
        return conn.execute(select(sessions_table)).fetchall()


class TestCreateSession:
    def test_new_session_is_fresh_and_persisted(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        session = session_manager.create_session(user.id)
        assert session.fresh is True
        assert session.user_id == user.id
        assert session.expires_at == clock.now + timedelta(days=30)
        assert len(_session_rows(session_manager.engine)) == 1

    def test_many_sessions_per_user(self, session_manager: SessionManager, user_store):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        first = session_manager.create_session(user.id)
        second = session_manager.create_session(user.id)
        assert first.id != second.id
        assert len(session_manager.get_user_sessions(user.id)) == 2


class TestValidateSession:
    def test_valid_session_resolves_user(self, session_manager: SessionManager, user_store):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        session, resolved = session_manager.validate_session(created.id)
        assert session.id == created.id
        assert resolved == user

    def test_validation_right_after_creation_is_not_fresh(self, session_manager: SessionManager, user_store):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        session, _ = session_manager.validate_session(created.id)
        assert session.fresh is False
        assert session.expires_at == created.expires_at

    def test_unknown_or_empty_id_is_invalid(self, session_manager: SessionManager):
        assert session_manager.validate_session("nope") == (None, None)
        assert session_manager.validate_session("") == (None, None)
        assert session_manager.validate_session(None) == (None, None)

    def test_expired_session_is_invalid_and_purged(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        clock.advance(days=30)
        assert session_manager.validate_session(created.id) == (None, None)
        assert _session_rows(session_manager.engine) == []

    def test_session_near_expiry_is_renewed(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        clock.advance(days=16)
        session, _ = session_manager.validate_session(created.id)
        assert session.fresh is True
        assert session.expires_at == clock.now + timedelta(days=30)
        # The renewal was persisted: the next lookup sees the new expiry and is stale.
        again, _ = session_manager.validate_session(created.id)
        assert again.fresh is False
        assert again.expires_at == session.expires_at

    def test_session_with_plenty_of_time_left_is_not_renewed(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        clock.advance(days=14)
        session, _ = session_manager.validate_session(created.id)
        assert session.fresh is False
        assert session.expires_at == created.expires_at

    def test_threshold_equal_to_lifetime_renews_every_lookup(self, engine, user_store, clock):
        manager = SessionManager(engine, user_store, expire_seconds=3600, renew_threshold_seconds=3600, clock=clock)
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = manager.create_session(user.id)
        clock.advance(seconds=1)
        session, _ = manager.validate_session(created.id)
        assert session.fresh is True

    def test_orphaned_session_is_invalid_and_purged(self, session_manager: SessionManager):
        orphan = session_manager.create_session("ghostuser0000000")
        assert session_manager.validate_session(orphan.id) == (None, None)
        assert _session_rows(session_manager.engine) == []


class TestInvalidation:
    def test_invalidate_session(self, session_manager: SessionManager, user_store):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)
        session_manager.invalidate_session(created.id)
        assert session_manager.validate_session(created.id) == (None, None)

    def test_invalidate_session_is_idempotent(self, session_manager: SessionManager):
        session_manager.invalidate_session("never-existed")
        session_manager.invalidate_session("never-existed")

    def test_invalidate_user_sessions_only_touches_that_user(self, session_manager: SessionManager, user_store):
        alice = user_store.create_user("alice@x.com", hash_password("pw1"))
        bob = user_store.create_user("bob@x.com", hash_password("pw2"))
        a1 = session_manager.create_session(alice.id)
        a2 = session_manager.create_session(alice.id)
        b1 = session_manager.create_session(bob.id)

        assert session_manager.invalidate_user_sessions(alice.id) == 2

        assert session_manager.validate_session(a1.id) == (None, None)
        assert session_manager.validate_session(a2.id) == (None, None)
        assert session_manager.validate_session(b1.id)[1] == bob

    def test_delete_expired_sessions(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        old = session_manager.create_session(user.id)
        clock.advance(days=20)
        recent = session_manager.create_session(user.id)
        clock.advance(days=11)
        assert session_manager.delete_expired_sessions() == 1
        remaining = [row.id for row in _session_rows(session_manager.engine)]
        assert remaining == [recent.id]
        assert old.id not in remaining


class TestCookieDirectives:
    def test_session_cookie(self, session_manager: SessionManager, user_store):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        session = session_manager.create_session(user.id)
        cookie = session_manager.create_session_cookie(session)
        assert cookie.name == "auth_session"
        assert cookie.value == session.id
        assert cookie.max_age == 30 * 24 * 3600
        assert cookie.expires == session.expires_at
        assert cookie.httponly is True
        assert cookie.samesite == "lax"
        assert cookie.secure is False
        assert cookie.path == "/"

    def test_blank_cookie(self, session_manager: SessionManager):
        cookie = session_manager.create_blank_session_cookie()
        assert cookie.is_blank
        assert cookie.max_age == 0
        assert cookie.name == "auth_session"

    def test_secure_flag_follows_config(self, engine, user_store, clock):
        manager = SessionManager(engine, user_store, cookie_name="sid", secure_cookies=True, clock=clock)
        assert manager.create_blank_session_cookie().secure is True
        assert manager.create_blank_session_cookie().name == "sid"

    def test_policy_for_validation_outcomes(self, session_manager: SessionManager, user_store, clock):
        user = user_store.create_user("a@x.com", hash_password("pw1"))
        created = session_manager.create_session(user.id)

        stale, _ = session_manager.validate_session(created.id)
        assert session_manager.cookie_for_validation(stale) is None

        clock.advance(days=16)
        fresh, _ = session_manager.validate_session(created.id)
        cookie = session_manager.cookie_for_validation(fresh)
        assert cookie.value == created.id
        assert cookie.expires == fresh.expires_at

        blank = session_manager.cookie_for_validation(None)
        assert blank.is_blank
