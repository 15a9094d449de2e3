"""
Tests for PRQ_* settings loading and startup validation.
"""

import pytest

from prq.settings import Settings, clear_settings_cache, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_defaults_are_local():
    settings = Settings()

    assert settings.env == "local"
    assert settings.message_ttl_seconds == 7.0
    assert settings.backend_url.startswith("http://localhost")


def test_values_come_from_prefixed_env(monkeypatch):
    monkeypatch.setenv("PRQ_REVIEWER_EMAIL", "ms.lee@school.example")
    monkeypatch.setenv("PRQ_REQUEST_TIMEOUT_SECONDS", "5")

    settings = get_settings()

    assert settings.reviewer_email == "ms.lee@school.example"
    assert settings.request_timeout_seconds == 5.0
    assert get_settings() is settings


def test_prod_collects_every_error():
    with pytest.raises(ValueError) as excinfo:
        Settings(env="prod", backend_url="http://localhost:8080/invoke", debug=True)

    message = str(excinfo.value)
    assert "must not point to localhost" in message
    assert "must use https in prod" in message
    assert "PRQ_DEBUG must be false in prod" in message


def test_non_positive_durations_rejected():
    with pytest.raises(ValueError, match="PRQ_MESSAGE_TTL_SECONDS must be positive"):
        Settings(message_ttl_seconds=0)


def test_valid_prod_settings():
    settings = Settings(env="prod", backend_url="https://api.school.example/invoke")

    assert settings.debug is False
