"""
auth/passwords.py -- Password digest and verification.

Passwords are stored as the lowercase hex SHA-256 of their UTF-8 bytes. The
digest is deterministic and unsalted so that existing rows in the users table
keep verifying; switching to a salted or slow hash would change the stored
format and needs a migration plan (see DESIGN.md, open questions).

verify_password() recomputes the digest and compares with
hmac.compare_digest so the comparison time does not depend on how many
leading characters match.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_password(plain: str) -> str:
    """Return the hex SHA-256 digest of the plaintext password."""
    return hashlib.sha256(plain.encode("utf-8")).hexdigest()


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password hashes to the stored digest."""
    if not hashed:
        return False
    return hmac.compare_digest(hash_password(plain), hashed)
