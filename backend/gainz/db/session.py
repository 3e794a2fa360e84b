from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gainz.config import settings
from gainz.core.errors import AppError
from gainz.db.base import Base


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # in-memory SQLite must share one connection across sessions
        return {"poolclass": StaticPool} if ":memory:" in url else {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    import gainz.models  # noqa: F401 - register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Commit on success, roll back on error.

    An ``AppError`` raised with ``commit=True`` keeps the writes flushed
    before it (a revoked token's row deletion) and still propagates.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except AppError as e:
            if e.commit:
                await session.commit()
            else:
                await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with session_scope() as session:
        yield session
