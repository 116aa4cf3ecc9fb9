"""
auth/service.py -- Signup, login, logout and email verification use cases.

AuthService is the only place that combines the credential store, the session
manager, the verification code service and the notifier. Each use case runs
its steps in a fixed order and either returns an AuthResult or raises an
AuthError subclass; route handlers translate both into HTTP.

Step order per use case:
  signup        validate -> hash -> create user -> issue code -> notify
                -> create session -> session cookie
  login         validate -> find by email -> compare digest -> create session
                -> session cookie
  logout        invalidate current session (if any) -> blank cookie
  verify_email  require user -> consume code -> mark verified
                -> invalidate all of the user's sessions -> create session
                -> session cookie
  resend_code   require unverified user -> issue code -> notify

The request's resolved user and session arrive as an explicit AuthContext.
Nothing here reads request or global state.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import re

from auth.errors import AuthenticationError, ValidationError, VerificationError
from auth.models import AuthContext, AuthResult
from auth.notifier import Notifier
from auth.passwords import hash_password, verify_password
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.verification import VerificationCodeService

logger = logging.getLogger("buildkit.auth")

# Same shape the signup form accepts in the browser: no leading dot, no "..",
# a dotted domain ending in a TLD of two or more letters.
EMAIL_PATTERN = r"^(?!\.)(?!.*\.\.)([A-Za-z0-9_'+\-\.]*)[A-Za-z0-9_+\-]@([A-Za-z0-9][A-Za-z0-9\-]*\.)+[A-Za-z]{2,}$"
_EMAIL_RE = re.compile(EMAIL_PATTERN)

WELCOME_SUBJECT = "Welcome"
VERIFICATION_SUBJECT = "Your verification code"


def validate_email(email: str) -> str:
    if not isinstance(email, str) or not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def validate_password(password: str) -> str:
    if not isinstance(password, str) or len(password) < 1:
        raise ValidationError("Password is required")
    return password


class AuthService:
    """Orchestrates the authentication use cases.

    Usage:
        service = AuthService(users, sessions, codes, LogNotifier())
        result = service.signup("a@example.com", "pw1")
        apply(result.cookie)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionManager,
        codes: VerificationCodeService,
        notifier: Notifier,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.codes = codes
        self.notifier = notifier

    def signup(self, email: str, password: str) -> AuthResult:
        """Register a new, unverified user, send a verification code and sign them in.

        Raises ValidationError for malformed input and ConflictError if the
        email is taken. A failed email delivery does not undo the signup.
        """
        validate_email(email)
        validate_password(password)

        user = self.users.create_user(email, hash_password(password))
        logger.info("New user %s", user.id)

        code = self.codes.issue_code(user.id, user.email)
        self.notifier.send(user.email, WELCOME_SUBJECT, f"Your verification code is: {code}")

        session = self.sessions.create_session(user.id)
        return AuthResult(user=user, session=session, cookie=self.sessions.create_session_cookie(session))

    def login(self, email: str, password: str) -> AuthResult:
        """Sign in with email and password.

        Unknown email and wrong password raise AuthenticationError with
        different messages. No session is created on failure.
        """
        validate_email(email)
        validate_password(password)

        user = self.users.get_by_email(email)
        if user is None:
            logger.warning("Login failed: unknown email")
            raise AuthenticationError("Invalid email")
        if not verify_password(password, user.hashed_password):
            logger.warning("Login failed: wrong password for user %s", user.id)
            raise AuthenticationError("Invalid password")

        session = self.sessions.create_session(user.id)
        logger.info("User %s logged in", user.id)
        return AuthResult(user=user, session=session, cookie=self.sessions.create_session_cookie(session))

    def logout(self, context: AuthContext) -> AuthResult:
        """End the current session, if any, and clear the cookie either way."""
        if context.session is not None:
            self.sessions.invalidate_session(context.session.id)
            logger.info("Session ended for user %s", context.session.user_id)
        return AuthResult(cookie=self.sessions.create_blank_session_cookie())

    def verify_email(self, context: AuthContext, code: str) -> AuthResult:
        """Consume a verification code for the signed-in user.

        On success the user is marked verified, every existing session of the
        user is revoked and a single new session replaces them. On failure
        nothing changes (beyond the code being consumed, if it matched).
        """
        user = context.user
        if user is None:
            raise VerificationError("Invalid user")
        if not isinstance(code, str) or len(code) < 1:
            raise ValidationError("Code is required")

        if not self.codes.consume_code(user.id, user.email, code):
            raise VerificationError("Invalid or expired code")

        self.users.set_email_verified(user.id)
        revoked = self.sessions.invalidate_user_sessions(user.id)
        session = self.sessions.create_session(user.id)
        user.email_verified = True
        logger.info("Email verified for user %s (%d sessions revoked)", user.id, revoked)
        return AuthResult(user=user, session=session, cookie=self.sessions.create_session_cookie(session))

    def resend_verification_code(self, context: AuthContext) -> AuthResult:
        """Issue a new code for the signed-in, unverified user, superseding the old one."""
        user = context.user
        if user is None:
            raise VerificationError("Invalid user")
        if user.email_verified:
            raise VerificationError("Email already verified")

        code = self.codes.issue_code(user.id, user.email)
        self.notifier.send(user.email, VERIFICATION_SUBJECT, f"Your verification code is: {code}")
        return AuthResult(user=user, session=context.session)
