"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from app.core.config import AppSettings, LogSettings


def test_defaults() -> None:
    cfg = AppSettings()

    assert cfg.port == 8080
    assert cfg.qr_size == 512
    assert cfg.default_ttl == "1_week"
    assert cfg.rate_limit_per_minute == 60


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("APP_RATE_LIMIT_PER_MINUTE", "10")
    monkeypatch.setenv("APP_DEFAULT_TTL", "never")
    monkeypatch.setenv("LOG_FORMAT", "plain")

    assert AppSettings().rate_limit_per_minute == 10
    assert AppSettings().default_ttl == "never"
    assert LogSettings().format == "plain"


def test_unknown_default_ttl_is_rejected() -> None:
    with pytest.raises(ValidationError):
        AppSettings(default_ttl="2_weeks")


@pytest.mark.parametrize("size", [32, 8192])
def test_qr_size_bounds(size: int) -> None:
    with pytest.raises(ValidationError):
        AppSettings(qr_size=size)


def test_blank_secret_means_open_gate() -> None:
    assert AppSettings(admin_secret="   ").admin_secret is None
