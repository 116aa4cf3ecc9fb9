"""
auth/verification.py -- Short-lived, single-use email verification codes.

A user has at most one outstanding code. issue_code() is a single upsert on
the UNIQUE user_id column, so requesting a new code supersedes the old one.
Concurrent issues for the same user never collide; the last write wins and
only its code is accepted.

consume_code() is a destructive read: one DELETE ... RETURNING statement
removes the row matching (user_id, code, email) and hands it back. Two
concurrent submissions of the same code cannot both succeed -- the second
DELETE finds nothing. The expiry check happens after the delete, so an
expired code is gone either way and the user has to request a new one.

Codes are stored in plaintext: they are only meaningful together with the
signed-in session of the user they were issued to, and live 15 minutes.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import timedelta

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

from auth.db import Clock, email_verification_codes, parse_datetime, storage_errors, utcnow
from auth.models import EmailVerificationCode
from auth.tokens import generate_numeric_code

logger = logging.getLogger("buildkit.verification")

DEFAULT_CODE_LENGTH = 4
DEFAULT_EXPIRE_SECONDS = 15 * 60


class VerificationCodeService:
    """Issues and consumes email verification codes.

    Args:
        engine:          Engine holding the email_verification_codes table.
        code_length:     Number of digits per code.
        expire_seconds:  Validity window measured from issuance.
        code_generator:  Callable(length) -> str. Defaults to a random digit string.
        clock:           Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        code_length: int = DEFAULT_CODE_LENGTH,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        code_generator: Callable[[int], str] = generate_numeric_code,
        clock: Clock = utcnow,
    ) -> None:
        self.engine = engine
        self.code_length = code_length
        self.expires_in = timedelta(seconds=expire_seconds)
        self._generate = code_generator
        self._clock = clock

    def issue_code(self, user_id: str, email: str) -> str:
        """Replace any outstanding code for user_id and return the new plaintext code."""
        record = EmailVerificationCode(
            user_id=user_id,
            email=email,
            code=self._generate(self.code_length),
            expires_at=self._clock() + self.expires_in,
        )
        table = email_verification_codes
        stmt = sqlite_insert(table).values(
            user_id=record.user_id,
            email=record.email,
            code=record.code,
            expires_at=record.expires_at.isoformat(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id],
            set_={"email": stmt.excluded.email, "code": stmt.excluded.code, "expires_at": stmt.excluded.expires_at},
        )
        with storage_errors("issue verification code"):
            with self.engine.connect() as conn:
                conn.execute(stmt)
                conn.commit()
        logger.info("Verification code issued for user %s", user_id)
        return record.code

    def consume_code(self, user_id: str, email: str, code: str) -> bool:
        """Delete the matching code row and return True if it existed and had not expired."""
        table = email_verification_codes
        with storage_errors("consume verification code"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    table.delete()
                    .where((table.c.user_id == user_id) & (table.c.code == code) & (table.c.email == email))
                    .returning(*table.c)
                ).fetchone()
                conn.commit()
        if row is None:
            logger.info("Verification failed for user %s: no matching code", user_id)
            return False
        try:
            record = _row_to_code(row)
        except ValueError:
            logger.warning("Verification failed for user %s: unreadable expiry %r", user_id, row.expires_at)
            return False
        if self._clock() >= record.expires_at:
            logger.info("Verification failed for user %s: code expired", user_id)
            return False
        return True


def _row_to_code(row) -> EmailVerificationCode:
    return EmailVerificationCode(
        id=row.id,
        user_id=row.user_id,
        email=row.email,
        code=row.code,
        expires_at=parse_datetime(row.expires_at),
    )
