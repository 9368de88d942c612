"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from kitchen.core.config import Settings


def test_defaults_match_session_contract():
    settings = Settings()
    assert settings.AUTH_COOKIE_NAMES == ["auth_token", "token", "auth"]
    assert settings.TOKEN_EXPIRE_DAYS == 7
    assert settings.token_lifetime.total_seconds() == 7 * 24 * 3600
    assert settings.COOKIE_SAMESITE == "lax"
    assert (settings.MIGRATIONS_DIR / "0001_create_users.sql").is_file()


def test_cookie_names_read_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("AUTH_COOKIE_NAMES", "kitchen_session, auth_token")
    monkeypatch.setenv("CORS_ORIGINS", "https://kitchen.example.com")
    settings = Settings()
    assert settings.AUTH_COOKIE_NAMES == ["kitchen_session", "auth_token"]
    assert settings.CORS_ORIGINS == ["https://kitchen.example.com"]


def test_cookie_name_list_must_not_be_empty():
    with pytest.raises(ValidationError):
        Settings(AUTH_COOKIE_NAMES="")


def test_cross_site_cookies_force_secure():
    settings = Settings(COOKIE_SAMESITE="none", COOKIE_SECURE=False)
    assert settings.COOKIE_SECURE is True


def test_unknown_samesite_policy_rejected():
    with pytest.raises(ValidationError):
        Settings(COOKIE_SAMESITE="sometimes")
