"""Shared fixtures: every test gets its own SQLite file."""

import pytest
from fastapi.testclient import TestClient

from todolist.main import create_app
from todolist.settings import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_path=str(tmp_path / "todos.db"),
        pool_max_size=4,
        pool_timeout=0.5,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """TestClient with the app lifespan (pool + schema) running."""
    with TestClient(app) as c:
        yield c
