"""Shared pytest fixtures and configuration."""

import os
import pytest
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LOG_FORMAT", "text")

from src.models.user import Role  # noqa: E402
from src.utils.config import AppConfig  # noqa: E402
from tests.utils.factories import make_user  # noqa: E402
from tests.utils.fakes import InMemoryStore  # noqa: E402


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def users(store):
    """Seeded users: owner, assignee, outsider and admin."""
    seeded = {
        "owner": make_user(name="Olive Owner"),
        "assignee": make_user(name="Arun Assignee"),
        "outsider": make_user(name="Oscar Outsider"),
        "admin": make_user(role=Role.ADMIN, name="Ada Admin"),
        "admin2": make_user(role=Role.ADMIN, name="Bea Admin"),
    }
    for user in seeded.values():
        store.seed(AppConfig.USERS_TABLE, user.to_row() | {"password_hash": user.password_hash})
    return seeded


@pytest.fixture
def principals(users):
    """Principals for the seeded users."""
    return {key: user.to_principal() for key, user in users.items()}


@pytest.fixture
def seed_task(store):
    """Insert a task model into the store."""
    def _seed(task):
        store.seed(AppConfig.TASKS_TABLE, task.to_row())
        return task
    return _seed


@pytest.fixture
def seed_query(store):
    """Insert a query model into the store."""
    def _seed(query):
        store.seed(AppConfig.QUERIES_TABLE, query.to_row())
        return query
    return _seed


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time
