"""ProcureFlow: async SQLAlchemy session and engine."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from procureflow.config import get_settings

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine. SQLite does not take pool sizing arguments."""
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=echo,
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency: yield async DB session.
    Endpoints commit explicitly; anything left uncommitted is rolled back.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
