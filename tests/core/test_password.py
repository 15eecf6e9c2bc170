import pytest

from app.core.password import PasswordPolicyError, hash_password, validate_password_strength, verify_password


def test_hash_and_verify_password():
    hashed = hash_password("Secret123")

    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


def test_verify_password_rejects_empty_input():
    hashed = hash_password("Secret123")

    assert not verify_password("", hashed)
    assert not verify_password("Secret123", None)


def test_hash_password_rejects_empty():
    with pytest.raises(ValueError):
        hash_password("")


def test_passwords_longer_than_bcrypt_limit_are_truncated():
    long_password = "A1" + "x" * 100
    hashed = hash_password(long_password)

    assert verify_password(long_password[:72] + "different tail", hashed)


@pytest.mark.parametrize(
    "password",
    ["Short1", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"],
)
def test_validate_password_strength_rejects_weak(password):
    with pytest.raises(PasswordPolicyError):
        validate_password_strength(password)


def test_validate_password_strength_accepts_strong():
    validate_password_strength("Str0ngPass")
