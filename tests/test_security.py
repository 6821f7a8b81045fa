from datetime import datetime, timezone

import pytest
from jose import jwt

from app.core.exceptions import InvalidTokenException, ValidationException
from app.core.security import (
    hash_password, sanitize_input, validate_email, validate_password_strength, verify_password,
)
from app.core.tokens import BOOK_ACCESS_TOKEN, SESSION_TOKEN, decode_token, encode_token, peek_token_type

from conftest import STRONG_PASSWORD, FakeClock

NOW = datetime(2025, 3, 10, tzinfo=timezone.utc)


def test_password_hash_round_trip():
    stored = hash_password("hunter22")
    assert stored.startswith("$pbkdf2-sha256$29000$")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)


def test_same_password_hashes_differently():
    assert hash_password("hunter22") != hash_password("hunter22")


def test_short_password_rejected():
    with pytest.raises(ValidationException):
        hash_password("abc")


def test_verify_fails_closed_on_garbage_hash():
    assert not verify_password("hunter22", "not-a-hash")
    assert not verify_password("", "$pbkdf2-sha256$29000$abc$def")


def test_password_strength_lists_every_problem():
    result = validate_password_strength("abc")
    assert not result.valid
    assert len(result.errors) >= 4
    assert validate_password_strength(STRONG_PASSWORD).valid


def test_email_normalized():
    assert validate_email("  Ana@X.com ") == "ana@x.com"
    with pytest.raises(ValidationException):
        validate_email("not-an-email")


def test_sanitize_strips_markup():
    assert sanitize_input("<script>hi</script>") == "scripthi/script"
    assert "javascript:" not in sanitize_input("javascript:alert(1)")


def test_token_type_is_enforced():
    token = encode_token({"sub": "u1", "typ": BOOK_ACCESS_TOKEN, "iat": int(NOW.timestamp())})
    assert peek_token_type(token) == BOOK_ACCESS_TOKEN
    assert decode_token(token, BOOK_ACCESS_TOKEN, NOW)["sub"] == "u1"
    with pytest.raises(InvalidTokenException):
        decode_token(token, SESSION_TOKEN, NOW)


def test_token_expiry_uses_given_clock():
    clock = FakeClock(NOW)
    exp = int(clock().timestamp()) + 60
    token = encode_token({"sub": "u1", "typ": SESSION_TOKEN, "iat": int(clock().timestamp()), "exp": exp})

    decode_token(token, SESSION_TOKEN, clock())
    clock.advance(seconds=61)
    with pytest.raises(InvalidTokenException):
        decode_token(token, SESSION_TOKEN, clock())


def test_foreign_signature_rejected():
    forged = jwt.encode({"sub": "u1", "typ": SESSION_TOKEN}, "some-other-secret", algorithm="HS256")
    with pytest.raises(InvalidTokenException):
        decode_token(forged, SESSION_TOKEN, NOW)
    assert peek_token_type("garbage") is None
