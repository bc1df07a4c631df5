"""Transaction Protocols: contracts between the transaction framework and its storage backend.

Invariants:
    - The framework never imports a concrete backend; it sees only SessionBackend
    - A session handle is opaque to the framework (TypeVar, never inspected)

Design Decisions:
    - Protocol over ABC: structural subtyping, so tests pass plain fakes
      and infrastructure/database.py satisfies it without inheritance
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeVar

S = TypeVar("S")
T = TypeVar("T")

# One atomic step: receives the session, returns a result or raises.
UnitOfWork = Callable[[S], Awaitable[T]]


class SessionBackend(Protocol[S]):
    """Contract for the transactional store the manager drives."""

    async def open(self) -> S: ...

    async def run_atomically(
        self, session: S, body: Callable[[S], Awaitable[T]],
    ) -> T: ...

    async def end(self, session: S) -> None: ...


class TransactionRunner(Protocol):
    """Anything able to run units of work atomically (TransactionManager, test fakes)."""

    async def execute_single(self, unit_of_work: UnitOfWork) -> Any: ...

    async def execute_batch(
        self, units_of_work: Sequence[UnitOfWork],
    ) -> list[Any]: ...
