"""Database connection and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from unified_billing.services.config import get_settings

DATABASE_URL = get_settings().database_url

# In-memory SQLite needs a single shared connection
if DATABASE_URL.startswith("sqlite") and ":memory:" in DATABASE_URL:
    async_engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=get_settings().database_echo,
    )
else:
    async_engine = create_async_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        echo=get_settings().database_echo,
    )

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


__all__ = [
    "async_engine",
    "AsyncSessionLocal",
]
