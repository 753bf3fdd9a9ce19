"""Tests for environment-driven settings."""

import pytest

from storefront.core import Settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("HOST", "PORT", "ENVIRONMENT", "MANUAL_SIG_HANDLE", "EXIT_ON_UNCAUGHT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.host == "localhost"
    assert settings.port == 3002
    assert settings.environment == "development"
    assert settings.manual_sig_handle is False
    assert settings.exit_on_uncaught is False
    assert settings.is_production is False


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("MANUAL_SIG_HANDLE", "true")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.port == 8080
    assert settings.is_production is True
    assert settings.manual_sig_handle is True


def test_empty_variables_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOST", "")
    monkeypatch.setenv("PORT", "")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.host == "localhost"
    assert settings.port == 3002
