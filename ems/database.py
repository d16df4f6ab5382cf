"""Async SQLAlchemy engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ems.config import settings

# Async engine for FastAPI and the job runner
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.ENVIRONMENT == "development",
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

# Async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency: yield an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency: session factory for batch jobs that open one
    transaction per employee."""
    return async_session_factory


def insert_ignore(db: AsyncSession, model: type[Base], conflict_cols: list[str], **values):
    """Build ``INSERT ... ON CONFLICT (cols) DO NOTHING RETURNING cols``.

    Returns a row only when this statement inserted it, so concurrent
    claimers of the same key see exactly one winner.
    """
    if db.get_bind().dialect.name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        from sqlalchemy.dialects.postgresql import insert
    return (
        insert(model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_cols)
        .returning(*[getattr(model, c) for c in conflict_cols])
    )
