"""
Global pytest configuration and fixtures for the Clipboard Cloud API test suite.
"""

import os
from typing import Generator
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables before the settings object is created
TEST_JWT_SECRET = "test-secret-key-for-testing-only-32-chars"
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["ENVIRONMENT"] = "test"

from fastapi.testclient import TestClient  # noqa: E402

from cbcloud.core.database import get_db  # noqa: E402
from cbcloud.core.realtime import RoomHub, get_hub  # noqa: E402
from cbcloud.main import app  # noqa: E402
from tests.fixtures.records import *  # noqa: F403, F401, E402
from tests.helpers.fake_prisma import FakePrisma  # noqa: E402

DELEGATE_METHODS = (
    "find_unique",
    "find_first",
    "find_many",
    "count",
    "create",
    "update",
    "update_many",
    "delete",
)


@pytest.fixture
def test_jwt_secret() -> str:
    """JWT secret for generating test tokens."""
    return TEST_JWT_SECRET


@pytest.fixture
def mock_prisma() -> Mock:
    """
    Mock Prisma client for unit tests that don't need a database.
    """
    mock_db = Mock()
    for delegate in ("user", "product", "clipboardentry", "familygroup"):
        for method in DELEGATE_METHODS:
            setattr(getattr(mock_db, delegate), method, AsyncMock())
    return mock_db


@pytest.fixture
def fake_db() -> FakePrisma:
    """In-memory Prisma stand-in shared by every request in a test."""
    return FakePrisma()


@pytest.fixture
def hub() -> RoomHub:
    return RoomHub()


@pytest.fixture
def client(fake_db: FakePrisma, hub: RoomHub) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the in-memory database and a fresh hub."""
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_hub] = lambda: hub
    yield TestClient(app)
    app.dependency_overrides.clear()
