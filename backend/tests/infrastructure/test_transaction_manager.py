"""Transaction Manager: lifecycle, atomicity, ordering, and release guarantees.

Tests cover:
    - execute_single commit/abort paths, each releasing the session exactly once
    - Release failures never masking an earlier failure
    - execute_batch ordering, shared session, and all-or-nothing atomicity
    - Independent invocations owning independent sessions
"""

import asyncio

import pytest

from billing.infrastructure.transaction_manager import TransactionManager
from tests.fake_backend import FakeBackend


class DiskFull(Exception):
    pass


async def test_single_returns_result_and_commits():
    backend = FakeBackend()
    manager = TransactionManager(backend)

    async def unit(session):
        session.write("plan", "gold")
        return "done"

    assert await manager.execute_single(unit) == "done"
    assert backend.store == {"plan": "gold"}
    assert backend.events == [("open", 1), ("commit", 1), ("end", 1)]


async def test_single_failure_is_reraised_unchanged_and_nothing_persists():
    backend = FakeBackend()
    manager = TransactionManager(backend)
    failure = DiskFull("disk full")

    async def unit(session):
        session.write("plan", "gold")
        raise failure

    with pytest.raises(DiskFull) as exc_info:
        await manager.execute_single(unit)

    assert exc_info.value is failure
    assert backend.store == {}
    assert backend.events == [("open", 1), ("abort", 1), ("end", 1)]


async def test_commit_failure_still_releases_once():
    backend = FakeBackend(fail_commit=RuntimeError("write conflict"))
    manager = TransactionManager(backend)

    async def unit(session):
        session.write("plan", "gold")

    with pytest.raises(RuntimeError, match="write conflict"):
        await manager.execute_single(unit)

    assert backend.store == {}
    assert backend.count("end") == 1


async def test_release_failure_after_success_propagates():
    backend = FakeBackend(fail_end=RuntimeError("socket closed"))
    manager = TransactionManager(backend)

    async def unit(session):
        return 1

    with pytest.raises(RuntimeError, match="socket closed"):
        await manager.execute_single(unit)
    assert backend.count("commit") == 1
    assert backend.count("end") == 1


async def test_release_failure_does_not_mask_business_failure():
    backend = FakeBackend(fail_end=RuntimeError("socket closed"))
    manager = TransactionManager(backend)

    async def unit(session):
        raise DiskFull("disk full")

    with pytest.raises(DiskFull, match="disk full"):
        await manager.execute_single(unit)
    assert backend.count("end") == 1


async def test_release_failure_does_not_mask_commit_failure():
    backend = FakeBackend(
        fail_commit=RuntimeError("write conflict"),
        fail_end=OSError("socket closed"),
    )
    manager = TransactionManager(backend)

    async def unit(session):
        return None

    with pytest.raises(RuntimeError, match="write conflict"):
        await manager.execute_single(unit)
    assert backend.count("end") == 1


async def test_open_failure_propagates_without_release():
    backend = FakeBackend(fail_open=ConnectionError("no primary"))
    manager = TransactionManager(backend)

    async def unit(session):
        raise AssertionError("must not run")

    with pytest.raises(ConnectionError, match="no primary"):
        await manager.execute_single(unit)
    assert backend.events == []


async def test_cancellation_aborts_and_releases():
    backend = FakeBackend()
    manager = TransactionManager(backend)

    async def unit(session):
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await manager.execute_single(unit)
    assert backend.events == [("open", 1), ("abort", 1), ("end", 1)]


async def test_batch_returns_results_in_input_order():
    backend = FakeBackend()
    manager = TransactionManager(backend)

    def unit(value, delay):
        async def run(session):
            await asyncio.sleep(delay)
            session.write(value, True)
            return value
        return run

    results = await manager.execute_batch(
        [unit("a", 0.02), unit("b", 0), unit("c", 0.01)],
    )

    assert results == ["a", "b", "c"]
    assert backend.store == {"a": True, "b": True, "c": True}
    assert backend.events == [("open", 1), ("commit", 1), ("end", 1)]


async def test_batch_units_share_one_session_and_never_overlap():
    backend = FakeBackend()
    manager = TransactionManager(backend)
    trace = []
    seen_sessions = []

    def unit(name):
        async def run(session):
            seen_sessions.append(session)
            trace.append(f"start {name}")
            await asyncio.sleep(0)
            trace.append(f"end {name}")
        return run

    await manager.execute_batch([unit("1"), unit("2"), unit("3")])

    assert trace == [
        "start 1", "end 1", "start 2", "end 2", "start 3", "end 3",
    ]
    assert len(set(map(id, seen_sessions))) == 1


async def test_batch_failure_in_second_unit_aborts_everything():
    backend = FakeBackend()
    manager = TransactionManager(backend)
    ran = []

    async def first(session):
        ran.append("first")
        session.write("first", 1)
        return 1

    async def second(session):
        ran.append("second")
        raise DiskFull("second failed")

    async def third(session):
        ran.append("third")
        session.write("third", 3)
        return 3

    with pytest.raises(DiskFull, match="second failed"):
        await manager.execute_batch([first, second, third])

    assert ran == ["first", "second"]
    assert "first" not in backend.store
    assert backend.store == {}
    assert backend.count("end") == 1
    assert backend.count("commit") == 0


async def test_empty_batch_returns_empty_list():
    backend = FakeBackend()
    manager = TransactionManager(backend)
    assert await manager.execute_batch([]) == []
    assert backend.count("end") == 1


async def test_concurrent_invocations_get_independent_sessions():
    backend = FakeBackend()
    manager = TransactionManager(backend)

    async def unit(session):
        await asyncio.sleep(0)
        return session

    first, second = await asyncio.gather(
        manager.execute_single(unit), manager.execute_single(unit),
    )

    assert first is not second
    assert backend.count("open") == 2
    assert backend.count("end") == 2
