from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from core.config import settings
from core.logger import logger

T = TypeVar("T")

TRANSACTION_ATTEMPTS = 3


def make_engine(url: str) -> AsyncEngine:
    options = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        # PostgreSQL driver for async operations is asyncpg
        options.update(
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return create_async_engine(url, **options)


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = make_engine(settings.DATABASE_URL)
AsyncSessionLocal = make_sessionmaker(engine)


def for_update(stmt):
    """Lock the selected rows until commit and refresh any copies already in the session."""
    return stmt.with_for_update().execution_options(populate_existing=True)


async def init_models(bind: AsyncEngine = None):
    """Create all tables directly (local runs and tests; production uses alembic)."""
    from models import base, quiz, share, attempt, game, limits  # noqa: F401 - register tables

    async with (bind or engine).begin() as conn:
        await conn.run_sync(base.Base.metadata.create_all)


async def run_transaction(db: AsyncSession, work: Callable[[], Awaitable[T]], attempts: int = TRANSACTION_ATTEMPTS) -> T:
    """
    Run ``work`` as one atomic unit and commit it.

    ``work`` reads the rows it changes with SELECT ... FOR UPDATE, so the lock is
    held until commit. Two callers creating the same row collide on its primary key,
    and two callers updating a versioned row from the same read collide on its
    version counter (backends without row locks, such as SQLite). Either way the
    loser is rolled back and the unit re-run, where it now sees the winner's row.
    Any other exception rolls back and propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except (IntegrityError, StaleDataError) as e:
            await db.rollback()
            if attempt == attempts:
                logger.error("Transaction failed after retries", attempts=attempts, error=str(e))
                raise
            logger.info("Transaction conflict, retrying", attempt=attempt)
        except BaseException:
            await db.rollback()
            raise


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
