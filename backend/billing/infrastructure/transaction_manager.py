"""Transaction Manager: runs units of work atomically against a SessionBackend.

Invariants:
    - Exactly one session per execute_single/execute_batch call, released exactly once
    - Release runs on every exit path: success, business failure, commit failure, cancellation
    - A release failure never masks an earlier failure (logged, original propagates)
    - Batch units run sequentially in input order; results returned in input order
    - Any failure aborts the whole transaction and is re-raised unchanged
    - No retries here: contention retry belongs to the backend's atomic primitive

Design Decisions:
    - Backend injected through the constructor: tests drive the manager with a fake
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from billing.core.transaction_protocols import SessionBackend, UnitOfWork

logger = logging.getLogger(__name__)


class TransactionManager:
    """Session lifecycle manager: open, run atomically, always release."""

    def __init__(self, backend: SessionBackend):
        self._backend = backend

    async def execute_single(self, unit_of_work: UnitOfWork) -> Any:
        """Run one unit of work in its own transaction and return its result."""
        async with self._lease() as session:
            result = await self._backend.run_atomically(session, unit_of_work)
        logger.debug("Transaction committed")
        return result

    async def execute_batch(self, units_of_work: Sequence[UnitOfWork]) -> list[Any]:
        """Run units sequentially in one shared transaction; all commit or none do."""
        units = list(units_of_work)

        async def run_in_order(session: Any) -> list[Any]:
            results = []
            for unit in units:
                results.append(await unit(session))
            return results

        async with self._lease() as session:
            results = await self._backend.run_atomically(session, run_in_order)
        logger.debug(
            "Batch transaction committed", extra={"batch_size": len(units)},
        )
        return results

    @asynccontextmanager
    async def _lease(self) -> AsyncIterator[Any]:
        session = await self._backend.open()
        failed = False
        try:
            yield session
        except BaseException as e:
            failed = True
            logger.warning(f"Transaction aborted: {type(e).__name__}: {e}")
            raise
        finally:
            await self._release(session, failed)

    async def _release(self, session: Any, failed: bool) -> None:
        try:
            await self._backend.end(session)
        except Exception:
            if not failed:
                raise
            # The earlier failure is what the caller sees.
            logger.error(
                "Session release failed after aborted transaction",
                exc_info=True,
            )
