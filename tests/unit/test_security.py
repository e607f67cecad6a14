"""Tests for tokens, secret encryption, TOTP and backup codes."""

import base64
import time
from datetime import timedelta
from uuid import uuid4

import pyotp
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.careteam.core.exceptions import ConfigurationError
from src.careteam.core.security import (
    InvalidAccessTokenError,
    create_access_token,
    decode_token,
    decrypt_secret,
    encrypt_secret,
    generate_backup_codes,
    generate_invitation_token,
    generate_totp_secret,
    hash_backup_code,
    hash_token,
    principal_from_token,
    qr_code_data_url,
    verify_totp,
)

pytestmark = pytest.mark.unit

KEY = "unit-test-encryption-key-0123456789abcdef"


class TestInvitationTokens:
    def test_tokens_are_unique_and_url_safe(self):
        tokens = {generate_invitation_token() for _ in range(50)}

        assert len(tokens) == 50
        for token in tokens:
            assert len(token) >= 43
            assert all(c.isalnum() or c in "-_" for c in token)

    def test_hash_is_sha256_hex(self):
        digest = hash_token("abc")

        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        assert hash_token("abc") == digest
        assert hash_token("abd") != digest


class TestAccessTokens:
    def test_round_trip_claims(self):
        user_id = uuid4()

        payload = decode_token(create_access_token(user_id, "alice@example.com"))

        assert payload is not None
        assert payload["sub"] == str(user_id)
        assert payload["email"] == "alice@example.com"
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        token = create_access_token(uuid4(), "a@example.com", expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_garbage_rejected(self):
        assert decode_token("not-a-jwt") is None

    def test_principal_from_token(self):
        user_id = uuid4()

        principal = principal_from_token(create_access_token(user_id, "alice@example.com"))

        assert principal.user_id == user_id
        assert principal.email == "alice@example.com"

    def test_non_uuid_subject_rejected(self):
        with pytest.raises(InvalidAccessTokenError, match="subject"):
            principal_from_token(create_access_token("user-42", "a@example.com"))

    def test_expired_token_has_generic_message(self):
        token = create_access_token(uuid4(), "a@example.com", expires_delta=timedelta(seconds=-1))

        with pytest.raises(InvalidAccessTokenError, match="Invalid or expired token"):
            principal_from_token(token)


class TestSecretEncryption:
    @given(plaintext=st.text(min_size=1, max_size=64))
    @settings(max_examples=50)
    def test_decrypt_inverts_encrypt(self, plaintext: str):
        assert decrypt_secret(encrypt_secret(plaintext, KEY), KEY) == plaintext

    def test_fresh_iv_per_call(self):
        first = encrypt_secret("JBSWY3DPEHPK3PXP", KEY)
        second = encrypt_secret("JBSWY3DPEHPK3PXP", KEY)

        assert first != second
        iv_b64, _ = first.split(":", 1)
        assert len(base64.b64decode(iv_b64)) == 16

    def test_wrong_key_rejected(self):
        token = encrypt_secret("JBSWY3DPEHPK3PXP", KEY)

        with pytest.raises(ConfigurationError):
            decrypt_secret(token, "a-completely-different-key-0123456789")

    @pytest.mark.parametrize("token", ["", "no-separator", "!!!:???", "AAAA:AAAA"])
    def test_malformed_rejected(self, token: str):
        with pytest.raises(ConfigurationError):
            decrypt_secret(token, KEY)


class TestTOTP:
    def test_secret_and_provisioning_uri(self):
        totp = generate_totp_secret(label="Care Team (alice@example.com)", issuer="Care Team")

        assert len(totp.base32) >= 16
        assert totp.provisioning_uri.startswith("otpauth://totp/")
        assert "issuer=Care%20Team" in totp.provisioning_uri
        assert f"secret={totp.base32}" in totp.provisioning_uri

    def test_current_code_verifies(self):
        secret = pyotp.random_base32()

        assert verify_totp(secret, pyotp.TOTP(secret).now(), window=2)

    def test_tolerates_spaces(self):
        secret = pyotp.random_base32()
        code = pyotp.TOTP(secret).now()

        assert verify_totp(secret, f" {code[:3]} {code[3:]} ", window=2)

    def test_drift_within_window_accepted(self):
        secret = pyotp.random_base32()
        totp = pyotp.TOTP(secret)
        previous = totp.at(_now() - 60)

        assert verify_totp(secret, previous, window=2)

    def test_drift_outside_window_rejected(self):
        secret = pyotp.random_base32()
        totp = pyotp.TOTP(secret)
        accepted = {totp.at(_now() + offset * 30) for offset in range(-2, 3)}
        stale = next(
            code
            for code in (totp.at(_now() - step * 30) for step in range(5, 20))
            if code not in accepted
        )

        assert not verify_totp(secret, stale, window=2)

    @pytest.mark.parametrize("code", ["", "abcdef", "12345a"])
    def test_non_numeric_rejected(self, code: str):
        assert not verify_totp(pyotp.random_base32(), code, window=2)


class TestBackupCodes:
    def test_generates_distinct_hex_codes(self):
        codes = generate_backup_codes(10)

        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            assert len(code) == 8
            assert code == code.upper()
            int(code, 16)

    def test_hash_normalizes_input(self):
        assert hash_backup_code("ab12-cd34") == hash_backup_code("AB12CD34")
        assert hash_backup_code(" AB12 CD34 ") == hash_backup_code("AB12CD34")
        assert hash_backup_code("AB12CD34") != hash_backup_code("AB12CD35")


def test_qr_code_is_svg_data_url():
    url = qr_code_data_url("otpauth://totp/Care%20Team:alice?secret=JBSWY3DPEHPK3PXP")

    assert url.startswith("data:image/svg+xml;base64,")
    svg = base64.b64decode(url.split(",", 1)[1])
    assert b"<svg" in svg


def _now() -> int:
    return int(time.time())
