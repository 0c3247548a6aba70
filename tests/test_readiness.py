from __future__ import annotations

import asyncio
from typing import List, Tuple

import pytest

from core import ConsumerState, ReadinessPing
from sync import ConsumerLifetime, ReadinessStateMachine
from utils.exceptions import ConsumerStateError, FetchError


READY = ReadinessPing(ready=True)
NOT_READY = ReadinessPing(ready=False)


class ControlledFetch:
    """Each call parks on a future the test resolves."""

    def __init__(self) -> None:
        self.futures: List[asyncio.Future] = []

    @property
    def calls(self) -> int:
        return len(self.futures)

    async def __call__(self) -> str:
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return await future


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _machine(fetch: ControlledFetch, applied: List[str], **kwargs) -> Tuple[ReadinessStateMachine, ConsumerLifetime]:
    lifetime = ConsumerLifetime("test")
    machine = ReadinessStateMachine(fetch, applied.append, lifetime, label="test", **kwargs)
    return machine, lifetime


@pytest.mark.asyncio
async def test_not_ready_then_ready_fires_exactly_one_fetch() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    machine, _ = _machine(fetch, applied)

    machine.start()
    machine.handle(NOT_READY)
    machine.handle(READY)
    await _settle()
    fetch.futures[0].set_result("v1")
    await _settle()

    assert fetch.calls == 1
    assert applied == ["v1"]
    assert machine.state == ConsumerState.READY


@pytest.mark.asyncio
async def test_duplicate_ready_pings_fire_exactly_one_fetch() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    machine, _ = _machine(fetch, applied)

    machine.start()
    machine.handle(READY)
    machine.handle(READY)
    await _settle()
    fetch.futures[0].set_result("v1")
    await _settle()
    machine.handle(READY)
    await _settle()

    assert fetch.calls == 1
    assert machine.fetch_count == 1
    assert machine.state == ConsumerState.READY


@pytest.mark.asyncio
async def test_invalidation_rearms_the_fetch_guard() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    machine, _ = _machine(fetch, applied)

    machine.start()
    machine.handle(READY)
    await _settle()
    fetch.futures[0].set_result("v1")
    await _settle()

    machine.handle(NOT_READY)
    assert machine.state == ConsumerState.AWAITING_READY
    assert applied == ["v1"]

    machine.handle(READY)
    await _settle()
    fetch.futures[1].set_result("v2")
    await _settle()

    assert applied == ["v1", "v2"]
    assert machine.state == ConsumerState.READY


@pytest.mark.asyncio
async def test_pings_before_start_are_ignored() -> None:
    fetch = ControlledFetch()
    machine, _ = _machine(fetch, [])

    machine.handle(READY)
    await _settle()

    assert machine.state == ConsumerState.IDLE
    assert fetch.calls == 0

    machine.start()
    with pytest.raises(ConsumerStateError):
        machine.start()


@pytest.mark.asyncio
async def test_stale_fetch_is_discarded_and_queued_fetch_runs_after_it() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    machine, _ = _machine(fetch, applied)

    machine.start()
    machine.handle(READY)
    await _settle()
    machine.handle(NOT_READY)
    machine.handle(READY)
    await _settle()

    # the stale request is still running, so the new one waits for it
    assert fetch.calls == 1
    assert machine.state == ConsumerState.FETCHING

    fetch.futures[0].set_result("stale")
    await _settle()
    assert fetch.calls == 2
    assert applied == []

    fetch.futures[1].set_result("fresh")
    await _settle()
    assert applied == ["fresh"]
    assert machine.state == ConsumerState.READY


@pytest.mark.asyncio
async def test_fetch_failure_enters_error_and_next_ready_retries() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    failures: List[Exception] = []
    machine, _ = _machine(fetch, applied, on_failure=failures.append)

    machine.start()
    machine.handle(READY)
    await _settle()
    fetch.futures[0].set_exception(FetchError("Failed to load PDF"))
    await _settle()

    assert machine.state == ConsumerState.ERROR
    assert machine.error == "Failed to load PDF"
    assert len(failures) == 1

    machine.handle(READY)
    await _settle()
    fetch.futures[1].set_result("v2")
    await _settle()

    assert machine.state == ConsumerState.READY
    assert machine.error is None
    assert applied == ["v2"]


@pytest.mark.asyncio
async def test_apply_failure_is_reported_like_a_fetch_failure() -> None:
    fetch = ControlledFetch()
    failures: List[Exception] = []

    def apply(value: str) -> None:
        raise ValueError("corrupt payload")

    lifetime = ConsumerLifetime("test")
    machine = ReadinessStateMachine(fetch, apply, lifetime, on_failure=failures.append)

    machine.start()
    machine.handle(READY)
    await _settle()
    fetch.futures[0].set_result("v1")
    await _settle()

    assert machine.state == ConsumerState.ERROR
    assert isinstance(failures[0], ValueError)


@pytest.mark.asyncio
async def test_results_after_teardown_are_discarded() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    transitions: List[Tuple[ConsumerState, ConsumerState]] = []
    machine, lifetime = _machine(fetch, applied, on_transition=lambda old, new: transitions.append((old, new)))

    machine.start()
    machine.handle(READY)
    await _settle()
    lifetime.cancel()
    fetch.futures[0].set_result("late")
    await _settle()
    machine.handle(READY)

    assert applied == []
    assert machine.state == ConsumerState.FETCHING
    assert transitions == [
        (ConsumerState.IDLE, ConsumerState.AWAITING_READY),
        (ConsumerState.AWAITING_READY, ConsumerState.FETCHING),
    ]
    assert lifetime.pending_tasks == 0


@pytest.mark.asyncio
async def test_forced_failure_drops_the_in_flight_result() -> None:
    fetch = ControlledFetch()
    applied: List[str] = []
    machine, _ = _machine(fetch, applied)

    machine.start()
    machine.handle(READY)
    await _settle()
    machine.fail(RuntimeError("push channel closed by server"))
    fetch.futures[0].set_result("v1")
    await _settle()

    assert applied == []
    assert machine.state == ConsumerState.ERROR
    assert machine.error == "push channel closed by server"
