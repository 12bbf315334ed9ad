import logging
import os
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"


class FrozenClock:
    """Callable clock for injecting a controllable "now"."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Patch the LLM client so no test reaches a real provider."""
    with patch("sportstracker.services.tip_service.litellm") as mock_litellm:
        mock_litellm.acompletion = AsyncMock(
            return_value=Mock(
                choices=[Mock(message=Mock(content="Keep moving, team!"))]
            )
        )
        yield {"litellm": mock_litellm}


@pytest.fixture
def clock():
    """Tuesday 19 March 2024, 10:00 (week id 2024-03-18)."""
    return FrozenClock(datetime(2024, 3, 19, 10, 0))


@pytest.fixture
async def async_engine():
    """Create an in-memory async SQLite engine with all tables."""
    from sportstracker.models.base import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def kv_store(session_factory):
    from sportstracker.infrastructure.repositories import SqlAlchemyKeyValueStore

    return SqlAlchemyKeyValueStore(session_factory)


@pytest.fixture
async def data_service(kv_store, clock):
    from sportstracker.services.data_service import DataService

    service = DataService(kv_store, clock=clock)
    await service.initialize()
    return service
