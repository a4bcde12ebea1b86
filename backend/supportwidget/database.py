"""Database connection and session management."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from supportwidget.config import settings

# Convert postgresql:// to postgresql+asyncpg://
database_url = settings.DATABASE_URL.replace(
    "postgresql://", "postgresql+asyncpg://"
)


def engine_options_for(url: str) -> dict:
    """Pool and driver settings; server reads are bounded by STORAGE_TIMEOUT_SECONDS."""
    options = {
        "echo": settings.LOG_LEVEL == "DEBUG",
        "pool_pre_ping": True,
    }
    if not url.startswith("sqlite"):
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_timeout=settings.STORAGE_TIMEOUT_SECONDS,
            # asyncpg: connect timeout and per-statement timeout
            connect_args={
                "timeout": settings.STORAGE_TIMEOUT_SECONDS,
                "command_timeout": settings.STORAGE_TIMEOUT_SECONDS,
            },
        )
    return options


# Create async engine
engine = create_async_engine(database_url, **engine_options_for(database_url))

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

# Base class for models
Base = declarative_base()


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables():
    """Create all tables registered on Base (idempotent)."""
    # Import models so they register on Base.metadata
    from supportwidget import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
