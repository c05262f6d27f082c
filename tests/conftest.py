"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any app import so the global settings
never point at a real database or require an admin secret.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_CLEANUP_INTERVAL_MINUTES", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import AppSettings, LogSettings, Settings


class FakeClock:
    """Mutable UTC clock for deterministic expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Build Settings backed by a fresh SQLite file under tmp_path."""

    def _make(**overrides) -> Settings:
        app_kwargs = {
            "database_url": f"sqlite:///{tmp_path / 'links.db'}",
            "base_url": "http://s.test",
            "cleanup_interval_minutes": 0,
            "qr_size": 256,
        }
        app_kwargs.update(overrides)
        return Settings(
            app=AppSettings(**app_kwargs),
            log=LogSettings(level="WARNING"),
        )

    return _make


@pytest.fixture
def app(make_settings, clock) -> FastAPI:
    return create_app(make_settings(), clock=clock)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client with the lifespan (store, limiter, sweeper) running."""
    with TestClient(app) as test_client:
        yield test_client
