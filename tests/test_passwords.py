"""Unit tests for auth/passwords.py and auth/tokens.py."""

from __future__ import annotations

import hashlib
import re

import pytest

from auth.passwords import hash_password, verify_password
from auth.tokens import generate_numeric_code, generate_session_id, generate_user_id


class TestPasswordDigest:
    def test_digest_is_hex_sha256(self):
        assert hash_password("pw1") == hashlib.sha256(b"pw1").hexdigest()

    def test_digest_is_deterministic(self):
        assert hash_password("correct horse") == hash_password("correct horse")

    def test_digest_never_contains_plaintext(self):
        assert "hunter2" not in hash_password("hunter2")

    @pytest.mark.parametrize("password", ["pw1", "", "ünïcødé", " spaced ", "x" * 500])
    def test_verify_accepts_own_digest(self, password):
        assert verify_password(password, hash_password(password)) is True

    @pytest.mark.parametrize("other", ["pw2", "PW1", "pw1 ", ""])
    def test_verify_rejects_other_plaintext(self, other):
        assert verify_password(other, hash_password("pw1")) is False

    def test_verify_rejects_missing_digest(self):
        assert verify_password("pw1", None) is False
        assert verify_password("pw1", "") is False


class TestIdentifiers:
    def test_user_id_shape(self):
        user_id = generate_user_id()
        assert re.fullmatch(r"[a-z2-7]{16}", user_id)

    def test_session_id_shape(self):
        session_id = generate_session_id()
        assert re.fullmatch(r"[a-z2-7]{40}", session_id)

    def test_ids_are_unique(self):
        assert len({generate_session_id() for _ in range(200)}) == 200

    @pytest.mark.parametrize("length", [1, 4, 8])
    def test_numeric_code_shape(self, length):
        code = generate_numeric_code(length)
        assert len(code) == length
        assert code.isdigit()
