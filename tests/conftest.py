"""Test configuration and fixtures for the users CRUD service."""
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_application


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "users.db"


@pytest.fixture
def settings_factory(db_path: Path) -> Callable[..., Settings]:
    """Build isolated settings pointing at a temporary SQLite file."""

    def make_settings(**overrides) -> Settings:
        values = {
            "database_url": f"sqlite+aiosqlite:///{db_path}",
            "create_schema": True,
            "guard_acquire_timeout": 5.0,
            "log_level": "WARNING",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return make_settings


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture(name="client")
def client_fixture(settings: Settings):
    """Create a test client with the lifespan running."""
    with TestClient(create_application(settings)) as client:
        yield client


@pytest.fixture
def ana() -> dict:
    return {
        "id": 1,
        "first_name": "Ana",
        "last_name": "Lopez",
        "email": "a@x.com",
    }
