"""Tests for settings validation"""
import pytest
from pydantic import ValidationError

from tokenguard.config import Settings


def test_equal_signing_secrets_are_rejected():
    with pytest.raises(ValidationError, match="must differ"):
        Settings(JWT_ACCESS_SECRET="shared", JWT_REFRESH_SECRET="shared")


def test_empty_signing_secret_is_rejected():
    with pytest.raises(ValidationError):
        Settings(JWT_ACCESS_SECRET="", JWT_REFRESH_SECRET="refresh")


def test_reaper_batches_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(REAPER_BATCH_SIZE=0)


def test_defaults():
    settings = Settings(JWT_ACCESS_SECRET="a", JWT_REFRESH_SECRET="b")

    assert settings.JWT_ACCESS_EXPIRE_SECONDS == 86400
    assert settings.JWT_REFRESH_EXPIRE_SECONDS == 604800
    assert settings.REAPER_INTERVAL_SECONDS == 3600
    assert settings.SESSION_LIST_LIMIT == 50
    assert settings.REFRESH_COOKIE_NAME == "refreshToken"


def test_cors_origins_list():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test")

    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
