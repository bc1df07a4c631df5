"""Transactional Combinators: session injection, nesting, and error classification.

Tests cover:
    - transactional() argument amendment (copy policy) and receiver preservation
    - Reuse of a carried session without opening a second one
    - The `options=` keyword form (filled, reused, nested)
    - Manager resolution from the receiver
    - classify_errors() pass-through, wrapping, and fallback message
    - Composition: classified errors still abort the transaction
    - try_catch() function form
"""

import pytest

from billing.core.errors import (
    ConflictError, ErrorSeverity, OperationFailedError, is_domain_error,
)
from billing.infrastructure.transaction_manager import TransactionManager
from billing.infrastructure.transactional import (
    classify_errors, transactional, try_catch,
)
from tests.fake_backend import FakeBackend


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def manager(backend):
    return TransactionManager(backend)


# --- transactional ---------------------------------------------------

async def test_trailing_mapping_gets_session_added(manager, backend):
    calls = []

    @transactional(manager)
    async def operation(*args):
        calls.append(args)
        return "ok"

    options = {"name": "x"}
    assert await operation(42, options) == "ok"

    (args,) = calls
    assert args == (42, {"name": "x", "session": backend.sessions[0]})
    assert options == {"name": "x"}


async def test_options_appended_when_last_argument_is_not_a_mapping(manager, backend):
    calls = []

    @transactional(manager)
    async def operation(value, options=None):
        calls.append((value, options))

    await operation(42)

    assert calls == [(42, {"session": backend.sessions[0]})]


async def test_carried_session_is_reused_without_opening_another(manager, backend):
    outer = object()
    calls = []

    @transactional(manager)
    async def operation(value, options):
        calls.append(options["session"])

    await operation(42, {"name": "x", "session": outer})

    assert calls == [outer]
    assert backend.events == []


async def test_keyword_arguments_pass_through(manager):
    @transactional(manager)
    async def operation(value, options=None, *, flag=False):
        return value, flag, options["session"] is not None

    assert await operation(1, flag=True) == (1, True, True)


async def test_result_and_failure_pass_through_unchanged(manager, backend):
    failure = ValueError("no")

    @transactional(manager)
    async def failing(options=None):
        options["session"].write("k", "v")
        raise failure

    with pytest.raises(ValueError) as exc_info:
        await failing()
    assert exc_info.value is failure
    assert not is_domain_error(exc_info.value)
    assert backend.store == {}
    assert backend.count("abort") == 1
    assert backend.count("end") == 1


async def test_manager_resolved_from_receiver(backend):
    class Service:
        def __init__(self, transaction_manager):
            self.transaction_manager = transaction_manager

        @transactional()
        async def rename(self, name, options=None):
            options["session"].write("name", name)
            return self

    service = Service(TransactionManager(backend))
    assert await service.rename("gold") is service
    assert backend.store == {"name": "gold"}


async def test_missing_manager_is_a_type_error():
    @transactional()
    async def orphan(options=None):
        return None

    with pytest.raises(TypeError, match="no transaction manager"):
        await orphan()


async def test_nested_transactional_calls_share_the_outer_session(backend):
    class Service:
        def __init__(self, transaction_manager):
            self.transaction_manager = transaction_manager

        @transactional()
        async def outer(self, options=None):
            options["session"].write("outer", 1)
            return await self.inner(options)

        @transactional()
        async def inner(self, options=None):
            options["session"].write("inner", 2)
            return options["session"]

    service = Service(TransactionManager(backend))
    session = await service.outer()

    assert session is backend.sessions[0]
    assert backend.count("open") == 1
    assert backend.store == {"outer": 1, "inner": 2}


async def test_options_keyword_gets_session_without_positional_append(manager, backend):
    calls = []

    @transactional(manager)
    async def operation(value, options=None, *, flag=False):
        calls.append((value, options, flag))

    options = {"name": "x"}
    await operation(42, options=options, flag=True)

    assert calls == [(42, {"name": "x", "session": backend.sessions[0]}, True)]
    assert options == {"name": "x"}


async def test_session_in_options_keyword_is_reused(manager, backend):
    outer = object()
    calls = []

    @transactional(manager)
    async def operation(value, options=None):
        calls.append(options["session"])

    await operation(42, options={"session": outer})

    assert calls == [outer]
    assert backend.events == []


async def test_nested_call_with_options_keyword_joins_outer_session(backend):
    class Service:
        def __init__(self, transaction_manager):
            self.transaction_manager = transaction_manager

        @transactional()
        async def outer(self, options=None):
            options["session"].write("outer", 1)
            return await self.inner(options=options)

        @transactional()
        async def inner(self, options=None):
            options["session"].write("inner", 2)
            return options["session"]

    service = Service(TransactionManager(backend))
    session = await service.outer()

    assert session is backend.sessions[0]
    assert backend.count("open") == 1
    assert backend.store == {"outer": 1, "inner": 2}


async def test_wrapper_keeps_function_metadata(manager):
    @transactional(manager)
    async def purchase_plan(options=None):
        """Buy it."""

    assert purchase_plan.__name__ == "purchase_plan"
    assert purchase_plan.__doc__ == "Buy it."


# --- classify_errors -------------------------------------------------

async def test_classify_success_returns_result():
    @classify_errors("Operation failed")
    async def ok():
        return {"id": 1}

    assert await ok() == {"id": 1}


async def test_classified_error_passes_through_identical():
    original = ConflictError("Plan already exists")

    @classify_errors("Operation failed")
    async def conflicting():
        raise original

    with pytest.raises(ConflictError) as exc_info:
        await conflicting()
    assert exc_info.value is original
    assert exc_info.value.message == "Plan already exists"
    assert exc_info.value.http_status == 409


async def test_raw_failure_wrapped_with_default_message():
    raw = OSError("disk full")

    @classify_errors("Operation failed")
    async def writing():
        raise raw

    with pytest.raises(OperationFailedError) as exc_info:
        await writing()
    assert exc_info.value.message == "Operation failed: disk full"
    assert exc_info.value.severity is ErrorSeverity.CRITICAL
    assert exc_info.value.http_status == 500
    assert exc_info.value.__cause__ is raw


async def test_raw_failure_without_message_uses_unknown_error():
    @classify_errors("Failed to create plan")
    async def silent():
        raise RuntimeError()

    with pytest.raises(OperationFailedError, match="^Failed to create plan: Unknown error$"):
        await silent()


async def test_default_message_is_operation_failed():
    @classify_errors()
    async def boom():
        raise KeyError

    with pytest.raises(OperationFailedError, match="^Operation failed: Unknown error$"):
        await boom()


async def test_classified_error_inside_transaction_still_aborts(manager, backend):
    @transactional(manager)
    @classify_errors("Failed to purchase plan")
    async def purchase(options=None):
        options["session"].write("subscription", "gold")
        raise RuntimeError("gateway down")

    with pytest.raises(OperationFailedError, match="Failed to purchase plan: gateway down"):
        await purchase()
    assert backend.store == {}
    assert backend.count("abort") == 1
    assert backend.count("end") == 1


# --- try_catch -------------------------------------------------------

async def test_try_catch_returns_value():
    async def fetch():
        return 7

    assert await try_catch(fetch, "Failed to fetch") == 7


async def test_try_catch_wraps_raw_failures():
    async def fetch():
        raise ValueError("bad row")

    with pytest.raises(OperationFailedError, match="^Failed to fetch: bad row$"):
        await try_catch(fetch, "Failed to fetch")


async def test_try_catch_passes_domain_errors():
    original = ConflictError("dup")

    async def fetch():
        raise original

    with pytest.raises(ConflictError) as exc_info:
        await try_catch(fetch)
    assert exc_info.value is original
