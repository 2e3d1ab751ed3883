"""Pytest configuration and fixtures for HaloSync tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from halosync.config import reset_config
from halosync.db.models import Base
from halosync.psa.client import PSAClient
from halosync.security.cipher import CredentialCipher, reset_cipher

TEST_KEY = "0123456789abcdef" * 4


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Point every test at an in-memory database and a fixed encryption key."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_KEY)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    reset_config()
    reset_cipher()
    yield
    reset_config()
    reset_cipher()


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(TEST_KEY)


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def user_id() -> str:
    return "user-1"


@pytest.fixture
def psa_client():
    """API client double whose get/post/delete are AsyncMocks."""
    client = MagicMock(spec=PSAClient)
    client.get = AsyncMock(return_value=[])
    client.post = AsyncMock(return_value=[])
    client.delete = AsyncMock(return_value=None)
    client.close = AsyncMock()
    return client
