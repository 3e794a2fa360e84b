"""Tests for password hashing, OTP generation and input checks."""

from gainz.core.security import (
    generate_otp,
    hash_password,
    is_valid_email,
    normalize_email,
    password_policy_error,
    token_fingerprint,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("Password123!", rounds=4)
    assert hashed != "Password123!"
    assert hashed.startswith("$2")
    assert verify_password("Password123!", hashed)
    assert not verify_password("password123!", hashed)


def test_hash_is_salted():
    assert hash_password("same", rounds=4) != hash_password("same", rounds=4)


def test_verify_password_with_malformed_hash_is_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_generate_otp_is_six_digits():
    for _ in range(50):
        otp = generate_otp()
        assert len(otp) == 6
        assert otp.isdigit()


def test_token_fingerprint_is_stable_sha256():
    assert token_fingerprint("abc") == token_fingerprint("abc")
    assert len(token_fingerprint("abc")) == 64
    assert token_fingerprint("abc") != token_fingerprint("abd")


def test_normalize_email():
    assert normalize_email("  A@X.Com ") == "a@x.com"
    assert normalize_email(None) == ""


def test_is_valid_email():
    assert is_valid_email("a@x.com")
    assert not is_valid_email("a@x")
    assert not is_valid_email("no-at-sign.com")


def test_password_policy():
    assert password_policy_error("Password123!") is None
    assert "8 characters" in password_policy_error("Pa1!")
    assert "uppercase" in password_policy_error("password123!")
    assert "lowercase" in password_policy_error("PASSWORD123!")
    assert "number" in password_policy_error("Password!!!")
    assert "special" in password_policy_error("Password123")
