"""Transactional Combinators: wrap async business operations with a session and uniform errors.

Invariants:
    - transactional() returns the target's result unchanged and re-raises its failure unchanged
    - A session already carried in the options (trailing or `options=` keyword) is reused;
      no second session is opened
    - The caller's options mapping is never mutated (amended arguments are copies)
    - classify_errors() never double-wraps: domain errors pass through with identity preserved
    - Unclassified failures become OperationFailedError("<default>: <message>"), cause chained

Design Decisions:
    - Plain higher-order functions usable as decorators; no metaclass or descriptor magic
    - Stack classify_errors *inside* transactional so classified errors still abort:

          @transactional()
          @classify_errors("Failed to purchase plan")
          async def purchase_plan(self, user_id, plan_id, options=None): ...
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from billing.core.errors import is_domain_error, to_domain_error
from billing.core.session_options import amend_arguments, carried_session
from billing.core.transaction_protocols import TransactionRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")
AsyncOperation = Callable[..., Awaitable[T]]

DEFAULT_ERROR_MESSAGE = "Operation failed"


def _resolve_manager(
    manager: TransactionRunner | None, args: tuple, operation: str,
) -> TransactionRunner:
    if manager is not None:
        return manager
    receiver_manager = getattr(args[0], "transaction_manager", None) if args else None
    if receiver_manager is None:
        raise TypeError(
            f"{operation} is transactional but no transaction manager was given "
            "and its receiver has no transaction_manager",
        )
    return receiver_manager


def transactional(
    manager: TransactionRunner | None = None,
) -> Callable[[AsyncOperation], AsyncOperation]:
    """Run the decorated operation inside TransactionManager.execute_single.

    Without an explicit manager, the receiver's ``transaction_manager``
    attribute is used (services are constructed with one).
    """
    def decorator(func: AsyncOperation) -> AsyncOperation:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if carried_session(args, kwargs) is not None:
                return await func(*args, **kwargs)

            runner = _resolve_manager(manager, args, func.__qualname__)

            async def unit_of_work(session: Any) -> Any:
                call_args, call_kwargs = amend_arguments(args, kwargs, session)
                return await func(*call_args, **call_kwargs)

            return await runner.execute_single(unit_of_work)

        return wrapper
    return decorator


def classify_errors(
    default_message: str = DEFAULT_ERROR_MESSAGE,
) -> Callable[[AsyncOperation], AsyncOperation]:
    """Normalize every unclassified failure of the decorated operation."""
    def decorator(func: AsyncOperation) -> AsyncOperation:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if is_domain_error(e):
                    raise
                logger.error(
                    f"{default_message}: unclassified {type(e).__name__}",
                    exc_info=True,
                    extra={"operation": func.__qualname__},
                )
                raise to_domain_error(e, default_message, func.__qualname__) from e

        return wrapper
    return decorator


async def try_catch(
    operation: Callable[[], Awaitable[T]],
    error_message: str = DEFAULT_ERROR_MESSAGE,
) -> T:
    """Await operation() once with the same classification as classify_errors."""
    try:
        return await operation()
    except Exception as e:
        if is_domain_error(e):
            raise
        logger.error(f"{error_message}: unclassified {type(e).__name__}", exc_info=True)
        raise to_domain_error(e, error_message) from e
