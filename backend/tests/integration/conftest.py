# tests/integration/conftest.py
"""Integration test fixtures - real SQLAlchemy repositories on in-memory SQLite (aiosqlite)"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from supportwidget.database import Base
from supportwidget import models  # noqa: F401  (registers tables)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
