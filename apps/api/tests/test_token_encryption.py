"""
Fernet token encryption for stored Strava tokens.
"""
import pytest
from cryptography.fernet import Fernet

from core.config import settings
from services.token_encryption import TokenEncryption


@pytest.fixture
def cipher():
    return TokenEncryption(Fernet.generate_key().decode())


def test_encrypted_value_is_not_plaintext(cipher):
    encrypted = cipher.encrypt("strava-access-token")
    assert encrypted != "strava-access-token"
    assert cipher.decrypt(encrypted) == "strava-access-token"


def test_empty_values_pass_through_as_none(cipher):
    assert cipher.encrypt("") is None
    assert cipher.decrypt("") is None
    assert cipher.decrypt(None) is None


def test_foreign_key_reads_as_missing(cipher):
    other = TokenEncryption(Fernet.generate_key().decode())
    assert other.decrypt(cipher.encrypt("strava-access-token")) is None


def test_invalid_key_is_rejected():
    with pytest.raises(ValueError):
        TokenEncryption("not-a-fernet-key")


def test_production_requires_key(monkeypatch):
    monkeypatch.setattr(settings, "TOKEN_ENCRYPTION_KEY", None)
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")

    with pytest.raises(RuntimeError):
        TokenEncryption()


def test_development_generates_throwaway_key(monkeypatch):
    monkeypatch.setattr(settings, "TOKEN_ENCRYPTION_KEY", None)
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")

    cipher = TokenEncryption()
    assert cipher.decrypt(cipher.encrypt("x")) == "x"
