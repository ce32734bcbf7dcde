from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)
from shared.config import settings


def _normalize_url(url: str) -> str:
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        # asyncpg takes ssl as a connect arg, not a query param
        url = url.split("?sslmode=")[0]
    elif url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def make_engine(url: str | None = None) -> AsyncEngine:
    db_url = _normalize_url(url or settings.DATABASE_URL)
    kwargs = {"echo": settings.LOG_LEVEL == "DEBUG"}
    if not db_url.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=10)
    return create_async_engine(db_url, **kwargs)


def make_sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


engine = make_engine()
async_session = make_sessionmaker(engine)
