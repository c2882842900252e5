"""Database configuration and async SQLAlchemy setup."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base

from creator_ledger.config import settings
from creator_ledger.exceptions import (
    ConcurrencyConflictError,
    LedgerError,
    TransactionFailureError,
)

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    future=True,
    pool_pre_ping=True,
    pool_recycle=1800,
)

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    future=True,
)

# Base class for models
Base = declarative_base()


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one all-or-nothing transaction on *db*.

    Commits when the block exits cleanly and rolls back on any exception.
    Driver-level lock/serialization errors are re-raised as
    ConcurrencyConflictError so callers can retry; other database errors
    become TransactionFailureError.
    """
    try:
        yield db
        await db.commit()
    except LedgerError:
        await db.rollback()
        raise
    except OperationalError as e:
        await db.rollback()
        logger.warning(f"Transaction conflict, rolled back: {e.orig}")
        raise ConcurrencyConflictError(
            "The ledger is busy with a concurrent update, please retry"
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Transaction failed, rolled back: {e}")
        raise TransactionFailureError("Ledger transaction failed and was rolled back") from e
    except BaseException:
        await db.rollback()
        raise


def dialect_insert(db: AsyncSession, model):
    """
    Return an INSERT construct supporting ON CONFLICT for the session's backend.

    Used for insert-or-add counters so concurrent writers never lose updates.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")
