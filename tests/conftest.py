"""
Pytest configuration and fixtures for test isolation.

This module provides an in-memory database per test plus fixtures that
reset process-wide state (environment, logging) between tests.
"""

import logging
import os
import sys
from collections.abc import Generator

import pytest
import pytest_asyncio

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fixtures import TestDataFixture
from utils.repositories import ProviderLinkRepository, ServerSettingsRepository
from utils.sqlalchemy_db import (
    create_engine,
    create_session_maker,
    create_tables,
    make_session_factory,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def reset_environment() -> Generator[None, None, None]:
    """
    Reset environment variables between tests.
    """
    original_env = dict(os.environ)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """
    Reset logging configuration between tests.
    """
    original_level = logging.getLogger().level
    original_handlers = logging.getLogger().handlers[:]

    yield

    logging.getLogger().setLevel(original_level)
    logging.getLogger().handlers = original_handlers


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with every table created."""
    engine = create_engine(TEST_DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return make_session_factory(create_session_maker(engine))


@pytest_asyncio.fixture
async def link_repository(session_factory):
    return ProviderLinkRepository(session_factory)


@pytest_asyncio.fixture
async def settings_repository(session_factory):
    return ServerSettingsRepository(session_factory, ["twitter", "google", "ethereum"])


@pytest.fixture
def failing_session_factory():
    """A session factory whose every session fails, as during a database outage."""

    async def get_db_session():
        raise ConnectionError("database unavailable")

    return get_db_session


@pytest_asyncio.fixture
async def test_data(session_factory):
    return TestDataFixture(session_factory)
