"""
auth/tokens.py -- Random identifiers and verification codes.

  Identifiers: secrets.token_bytes() encoded as unpadded lowercase base32.
       10 bytes of entropy give the 16-character user ids; 25 bytes give the
       40-character session ids used as bearer tokens in the cookie. Entropy
       sizes are multiples of 5 bytes so base32 needs no padding.

  Verification codes: short strings drawn uniformly from a digit alphabet
       with secrets.choice(). Codes are not secret enough to be bearer tokens
       on their own -- they are only accepted together with the session of the
       user they were issued to.

Layer rule: stdlib only.
"""

from __future__ import annotations

import base64
import secrets
import string

USER_ID_ENTROPY_BYTES = 10
SESSION_ID_ENTROPY_BYTES = 25


def generate_id(entropy_bytes: int) -> str:
    """Return a random lowercase base32 identifier carrying entropy_bytes of randomness."""
    raw = secrets.token_bytes(entropy_bytes)
    return base64.b32encode(raw).decode("ascii").rstrip("=").lower()


def generate_user_id() -> str:
    return generate_id(USER_ID_ENTROPY_BYTES)


def generate_session_id() -> str:
    return generate_id(SESSION_ID_ENTROPY_BYTES)


def generate_numeric_code(length: int) -> str:
    """Return a string of `length` random decimal digits (leading zeros allowed)."""
    return "".join(secrets.choice(string.digits) for _ in range(length))
