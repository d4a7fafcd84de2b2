"""Tests for configuration validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Settings, constants


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(pocketbase_admin_email="admin@example.com")

    result = settings.require_credential("pocketbase_admin_email", "PocketBase admin email")

    assert result == "admin@example.com"


def test_require_credential_with_empty_string_raises_error() -> None:
    """Test require_credential raises ValueError when credential is empty."""
    settings = Settings(pocketbase_admin_email="")

    with pytest.raises(ValueError, match="PocketBase admin email credential not configured"):
        settings.require_credential("pocketbase_admin_email", "PocketBase admin email")


def test_require_credential_error_message_includes_field_name() -> None:
    """Test error message includes the environment variable name."""
    settings = Settings(logfire_token=None)

    with pytest.raises(ValueError, match="LOGFIRE_TOKEN"):
        settings.require_credential("logfire_token", "Logfire")


def test_bonus_minutes_per_point_must_be_positive() -> None:
    """Test a zero overtime block is rejected."""
    with pytest.raises(ValidationError, match="bonus_minutes_per_point"):
        Settings(bonus_minutes_per_point=0)


def test_points_settings_read_from_environment(monkeypatch) -> None:
    """Test points rules can be configured through the environment."""
    monkeypatch.setenv("BONUS_MINUTES_PER_POINT", "10")
    monkeypatch.setenv("DEFAULT_REQUIRE_CHILD_VERIFICATION", "false")

    settings = Settings()

    assert settings.bonus_minutes_per_point == 10
    assert settings.default_require_child_verification is False


def test_constants() -> None:
    assert constants.DAYS_PER_WEEK == 7
    assert constants.MEMBER_HEADER == "X-Member-Id"
