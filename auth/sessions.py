"""
auth/sessions.py -- Database-backed login sessions and session cookie directives.

Session lifecycle:
  Created -> Valid (fresh) -> Valid (stale) -> Expired | Invalidated

  create_session()      new row, expires_at = now + lifetime, fresh=True
  validate_session()    absent -> invalid
                        expired -> row deleted, invalid
                        owner missing -> row deleted, invalid
                        within renew_threshold of expiry -> expires_at pushed to
                            now + lifetime, fresh=True
                        otherwise -> valid, fresh=False
  invalidate_session()  row deleted (idempotent)
  invalidate_user_sessions()  every row for the user deleted

Renewal is a read followed by an UPDATE outside a transaction. Two requests
racing on the same session may both renew it; both writes move expires_at
forward to roughly the same instant, so the race is harmless.

Cookies:
  The manager never touches HTTP objects. It returns SessionCookie directives
  and the boundary layer (api/main.py) writes at most one of them per
  response. cookie_for_validation() encodes the per-request policy: re-emit
  the cookie for fresh sessions, clear it when there is no valid session, and
  leave it alone otherwise.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.engine import Engine

from auth.db import Clock, from_timestamp, sessions, storage_errors, to_timestamp, utcnow
from auth.models import Session, SessionCookie, User
from auth.store import UserStore
from auth.tokens import generate_session_id

logger = logging.getLogger("buildkit.sessions")

DEFAULT_COOKIE_NAME = "auth_session"
DEFAULT_EXPIRE_SECONDS = 30 * 24 * 3600


class SessionManager:
    """Issues, validates, renews and revokes sessions stored in the sessions table.

    Args:
        engine:                  Engine holding the sessions table.
        user_store:              Used to resolve the owning user on validation.
        cookie_name:             Name of the session cookie.
        expire_seconds:          Session lifetime; renewal resets it in full.
        renew_threshold_seconds: Renew once remaining lifetime is at or below
                                 this. None means half of expire_seconds.
        secure_cookies:          Set the Secure attribute on emitted cookies.
        clock:                   Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        engine: Engine,
        user_store: UserStore,
        *,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        renew_threshold_seconds: int | None = None,
        secure_cookies: bool = False,
        clock: Clock = utcnow,
    ) -> None:
        self.engine = engine
        self.user_store = user_store
        self.cookie_name = cookie_name
        self.expires_in = timedelta(seconds=expire_seconds)
        if renew_threshold_seconds is None:
            renew_threshold_seconds = expire_seconds // 2
        self.renew_threshold = timedelta(seconds=renew_threshold_seconds)
        self.secure_cookies = secure_cookies
        self._clock = clock

    # ------------------------------------------------------------------
    # Session rows
    # ------------------------------------------------------------------

    def create_session(self, user_id: str) -> Session:
        """Persist a new session for user_id and return it marked fresh."""
        # Whole seconds, matching the INTEGER column, so the returned value
        # equals what a later validate_session() reads back.
        expires_at = from_timestamp(to_timestamp(self._clock() + self.expires_in))
        session = Session(id=generate_session_id(), user_id=user_id, expires_at=expires_at, fresh=True)
        with storage_errors("create session"):
            with self.engine.connect() as conn:
                conn.execute(
                    sessions.insert().values(
                        id=session.id,
                        user_id=session.user_id,
                        expires_at=to_timestamp(session.expires_at),
                    )
                )
                conn.commit()
        return session

    def validate_session(self, session_id: str | None) -> tuple[Session | None, User | None]:
        """Resolve a session id to (session, user), or (None, None) if it is not valid.

        Expired and orphaned rows are deleted on sight; they are never retried.
        """
        if not session_id:
            return None, None
        with storage_errors("read session"):
            with self.engine.connect() as conn:
                row = conn.execute(sessions.select().where(sessions.c.id == session_id)).fetchone()
        if row is None:
            return None, None

        session = Session(id=row.id, user_id=row.user_id, expires_at=from_timestamp(row.expires_at))
        now = self._clock()
        if now >= session.expires_at:
            self.invalidate_session(session.id)
            return None, None

        user = self.user_store.get_by_id(session.user_id)
        if user is None:
            logger.warning("Discarding session for missing user %s", session.user_id)
            self.invalidate_session(session.id)
            return None, None

        if session.expires_at - now <= self.renew_threshold:
            session.expires_at = from_timestamp(to_timestamp(now + self.expires_in))
            session.fresh = True
            with storage_errors("renew session"):
                with self.engine.connect() as conn:
                    conn.execute(
                        sessions.update()
                        .where(sessions.c.id == session.id)
                        .values(expires_at=to_timestamp(session.expires_at))
                    )
                    conn.commit()
        return session, user

    def invalidate_session(self, session_id: str) -> None:
        """Delete a single session. Unknown ids are a no-op."""
        with storage_errors("invalidate session"):
            with self.engine.connect() as conn:
                conn.execute(sessions.delete().where(sessions.c.id == session_id))
                conn.commit()

    def invalidate_user_sessions(self, user_id: str) -> int:
        """Delete every session owned by user_id. Returns the number removed."""
        with storage_errors("invalidate user sessions"):
            with self.engine.connect() as conn:
                result = conn.execute(sessions.delete().where(sessions.c.user_id == user_id))
                conn.commit()
        return result.rowcount

    def get_user_sessions(self, user_id: str) -> list[Session]:
        """Return the user's unexpired sessions, soonest expiry first."""
        now = to_timestamp(self._clock())
        with storage_errors("list user sessions"):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    sessions.select()
                    .where((sessions.c.user_id == user_id) & (sessions.c.expires_at > now))
                    .order_by(sessions.c.expires_at)
                ).fetchall()
        return [Session(id=r.id, user_id=r.user_id, expires_at=from_timestamp(r.expires_at)) for r in rows]

    def delete_expired_sessions(self) -> int:
        """Delete all sessions past their expiry. Returns the number removed."""
        now = to_timestamp(self._clock())
        with storage_errors("delete expired sessions"):
            with self.engine.connect() as conn:
                result = conn.execute(sessions.delete().where(sessions.c.expires_at <= now))
                conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Cookie directives
    # ------------------------------------------------------------------

    def create_session_cookie(self, session: Session) -> SessionCookie:
        """Directive that stores session.id in the browser until session.expires_at."""
        max_age = max(0, int((session.expires_at - self._clock()).total_seconds()))
        return SessionCookie(
            name=self.cookie_name,
            value=session.id,
            max_age=max_age,
            expires=session.expires_at,
            secure=self.secure_cookies,
        )

    def create_blank_session_cookie(self) -> SessionCookie:
        """Directive that clears any session cookie the browser holds."""
        return SessionCookie(name=self.cookie_name, value="", max_age=0, secure=self.secure_cookies)

    def cookie_for_validation(self, session: Session | None) -> SessionCookie | None:
        """Decide what the response must do with the cookie after validate_session().

        No valid session -> blank cookie. Fresh session -> re-emit it with the
        new expiry. Valid but stale -> None (the browser's cookie is current).
        """
        if session is None:
            return self.create_blank_session_cookie()
        if session.fresh:
            return self.create_session_cookie(session)
        return None
