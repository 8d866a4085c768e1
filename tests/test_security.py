import jwt
import pytest

from pos.security import PasswordHasher, PasswordMismatchError, TokenManager


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def test_hash_and_verify(hasher):
    hashed = hasher.hash("secret1")
    _, scheme, rounds, _ = hashed.split("$")
    assert scheme == "2b"
    assert rounds == "04"
    assert len(hashed) == 60
    hasher.verify(hashed, "secret1")


def test_same_password_gets_different_salts(hasher):
    assert hasher.hash("secret1") != hasher.hash("secret1")


def test_verify_mismatch(hasher):
    with pytest.raises(PasswordMismatchError):
        hasher.verify(hasher.hash("secret1"), "secret2")


def test_verify_rejects_unknown_format(hasher):
    with pytest.raises(ValueError) as excinfo:
        hasher.verify("plaintext", "secret1")
    assert not isinstance(excinfo.value, PasswordMismatchError)


def test_empty_password_cannot_be_hashed(hasher):
    with pytest.raises(ValueError):
        hasher.hash("")


def test_tokens_carry_user_and_type():
    tokens = TokenManager(secret="s3cret", access_ttl=60, refresh_ttl=120)
    access = tokens.create_access_token(5)
    refresh = tokens.create_refresh_token(5)

    assert tokens.validate(access) == 5
    assert tokens.validate(refresh, "refresh") == 5
    with pytest.raises(jwt.InvalidTokenError):
        tokens.validate(refresh)
    with pytest.raises(jwt.InvalidTokenError):
        tokens.validate(access, "refresh")


def test_tokens_are_unique_per_issue():
    tokens = TokenManager(secret="s3cret")
    assert tokens.create_access_token(1) != tokens.create_access_token(1)


def test_expired_and_foreign_tokens():
    expired = TokenManager(secret="s3cret", access_ttl=-10).create_access_token(1)
    with pytest.raises(jwt.ExpiredSignatureError):
        TokenManager(secret="s3cret").validate(expired)

    foreign = TokenManager(secret="other").create_access_token(1)
    with pytest.raises(jwt.InvalidSignatureError):
        TokenManager(secret="s3cret").validate(foreign)
