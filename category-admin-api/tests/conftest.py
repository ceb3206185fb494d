"""Shared pytest fixtures for all tests."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Settings require Supabase credentials; app.main reads them at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

from fastapi.testclient import TestClient  # noqa: E402

from app.config import Settings  # noqa: E402
from app.dependencies import get_category_service  # noqa: E402
from app.models.category import Category  # noqa: E402
from app.repositories.memory import InMemoryCategoryRepository  # noqa: E402
from app.services.categories import CategoryService  # noqa: E402

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def make_category():
    """Factory for Category records.

    Each call gets a ``created_at`` one minute later than the previous one
    unless given explicitly.

    Returns:
        Callable building a Category from id, name and optional fields.
    """
    counter = {"n": 0}

    def _make(category_id, name, parent_id=None, **fields):
        counter["n"] += 1
        created = fields.pop("created_at", BASE_TIME + timedelta(minutes=counter["n"]))
        data = {
            "id": str(category_id),
            "name": name,
            "slug": fields.pop("slug", name.lower().replace(" ", "-")),
            "parent_id": str(parent_id) if parent_id is not None else None,
            "created_at": created,
            "updated_at": created,
        }
        data.update(fields)
        return Category(**data)

    return _make


@pytest.fixture
def sample_categories(make_category):
    """Root -> Child -> Grandchild chain."""
    return [
        make_category(1, "Root"),
        make_category(2, "Child", parent_id=1),
        make_category(3, "Grandchild", parent_id=2),
    ]


@pytest.fixture
def repository(sample_categories):
    """In-memory repository seeded with the sample chain and two resources."""
    return InMemoryCategoryRepository(
        sample_categories,
        resources={"r1": "2", "r2": "3"},
    )


@pytest.fixture
def service(repository):
    """Category service over the seeded repository."""
    return CategoryService(repository)


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing logs at a temporary directory."""
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-anon-key",
        repository_backend="memory",
        repository_timeout=0.5,
        log_level="DEBUG",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def client(service):
    """TestClient with the category service swapped for the seeded one."""
    from app.main import app

    app.dependency_overrides[get_category_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
