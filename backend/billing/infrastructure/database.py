"""Database Session Manager: async connection pool, atomic runs, and health checks.

Invariants:
    - Implements SessionBackend (open / run_atomically / end) for TransactionManager
    - run_atomically commits on normal return and rolls back on any exception
    - SQLAlchemy exceptions surfacing from a transaction are mapped to classified
      errors (core/errors.py); everything else propagates unchanged
    - Connection pool uses pool_pre_ping for stale connection detection

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
      (no global import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - SQLite URLs (tests, local runs) skip pool sizing arguments
"""

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import AsyncGenerator, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from billing.core.errors import ConflictError, DatabaseError
from billing.infrastructure.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


def map_sqlalchemy_error(e: SQLAlchemyError) -> Exception:
    """Classified replacement for a SQLAlchemy failure; the raw text is only logged."""
    if isinstance(e, IntegrityError):
        logger.error(f"DB integrity error: {e}")
        return ConflictError("Duplicate field value")
    if isinstance(e, OperationalError):
        logger.error(f"DB operational error: {e}")
        return DatabaseError("Connection or operational error", "execute")
    if isinstance(e, DBAPIError):
        logger.error(f"DB driver error: {e}")
        return DatabaseError("Database driver error", "query")
    logger.error(f"SQLAlchemy error: {e}")
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Manages async database sessions with pooling, atomic runs, and health checks."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    # --- SessionBackend ----------------------------------------------

    async def open(self) -> AsyncSession:
        return self._session_factory()

    async def run_atomically(
        self,
        session: AsyncSession,
        body: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run body inside session.begin(): commit on return, rollback on raise."""
        try:
            async with session.begin():
                return await body(session)
        except SQLAlchemyError as e:
            raise map_sqlalchemy_error(e) from e

    async def end(self, session: AsyncSession) -> None:
        await session.close()

    # --- Plain sessions ----------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception (reads, health checks)."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise map_sqlalchemy_error(e) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singletons (initialized on startup)
db_manager: DatabaseSessionManager | None = None
transaction_manager: TransactionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager, transaction_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    transaction_manager = TransactionManager(db_manager)
    return db_manager


def get_transaction_manager() -> TransactionManager:
    """FastAPI dependency for the process transaction manager."""
    if not transaction_manager:
        raise RuntimeError("Database not initialized")
    return transaction_manager
