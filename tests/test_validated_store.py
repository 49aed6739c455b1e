from __future__ import annotations

import asyncio
import gc
import logging
from typing import Any

import pytest

from pystorage.config import StorageConfig
from pystorage.exceptions import StorageKeyError, StorageSchedulingError
from pystorage.models.outcome import SetStatus, ValidationOutcome
from pystorage.state.policy import CommitPolicy
from pystorage.state.store import ValidatedStore


def _gated_validator(gates: dict[Any, asyncio.Event]):
    async def validator(key: str, previous: Any, new: Any) -> bool:
        await gates[new].wait()
        return True

    return validator


def test_construct_empty() -> None:
    assert len(ValidatedStore()) == 0
    assert len(ValidatedStore({})) == 0
    assert ValidatedStore().snapshot() == {}


def test_unguarded_get_returns_raw_mutator() -> None:
    store = ValidatedStore({"name": "ada", "age": 36})

    value, setter = store.get("name")
    assert value == "ada"
    setter("grace")

    assert store.get("name").value == "grace"
    assert store.snapshot() == {"name": "grace", "age": 36}


def test_absent_key() -> None:
    store = ValidatedStore({"a": 1})

    assert store.get("b") is None
    assert not store.has("b")
    assert "b" not in store
    result = store.set("b", 2)
    assert result.status == SetStatus.ABSENT
    assert store.keys() == ["a"]
    with pytest.raises(StorageKeyError):
        store.require("b")


def test_synchronous_approval_commits_immediately() -> None:
    store = ValidatedStore({"count": 0}, lambda key, prev, new: True)

    result = store.get("count").setter(3)

    assert result.status == SetStatus.COMMITTED
    assert result.accepted
    assert store.get("count").value == 3


def test_synchronous_rejection_keeps_previous_value() -> None:
    store = ValidatedStore({"count": 0}, lambda key, prev, new: False)

    result = store.set("count", 3)

    assert result.status == SetStatus.REJECTED
    assert result.settled is None
    assert store.get("count").value == 0


def test_validator_receives_value_at_call_time() -> None:
    seen: list[tuple[str, Any, Any]] = []

    def validator(key: str, prev: Any, new: Any) -> bool:
        seen.append((key, prev, new))
        return True

    store = ValidatedStore({"count": 0}, validator)
    _, stale_setter = store.get("count")
    store.set("count", 1)
    stale_setter(2)

    assert seen == [("count", 0, 1), ("count", 1, 2)]


def test_validator_may_return_tagged_outcome() -> None:
    store = ValidatedStore(
        {"a": 1, "b": 1},
        lambda key, prev, new: ValidationOutcome.approved() if key == "a" else ValidationOutcome.rejected(),
    )

    store.set("a", 2)
    store.set("b", 2)

    assert store.snapshot() == {"a": 2, "b": 1}


def test_rejections_logged_when_enabled(caplog: pytest.LogCaptureFixture) -> None:
    store = ValidatedStore(
        {"count": 0},
        lambda key, prev, new: False,
        config=StorageConfig(log_rejections=True),
    )

    with caplog.at_level(logging.DEBUG, logger="pystorage.state.store"):
        store.set("count", -1)

    assert "rejected" in caplog.text


def test_deferred_validation_without_loop_raises() -> None:
    async def validator(key: str, prev: Any, new: Any) -> bool:
        return True

    store = ValidatedStore({"count": 0}, validator)

    with pytest.raises(StorageSchedulingError):
        store.set("count", 1)
    assert store.get("count").value == 0


@pytest.mark.asyncio
async def test_deferred_approval_commits_after_resolution() -> None:
    gate = asyncio.Event()

    async def validator(key: str, prev: Any, new: Any) -> bool:
        await gate.wait()
        return True

    store = ValidatedStore({"count": 0}, validator)

    result = store.get("count").setter(5)
    assert result.status == SetStatus.PENDING
    await asyncio.sleep(0)
    assert store.get("count").value == 0
    assert store.pending_count("count") == 1

    gate.set()
    assert await result.wait() == SetStatus.COMMITTED
    assert store.get("count").value == 5
    assert store.pending_count() == 0


@pytest.mark.asyncio
async def test_deferred_resolution_commits_whatever_it_resolves_to() -> None:
    async def validator(key: str, prev: Any, new: Any) -> bool:
        return False

    store = ValidatedStore({"count": 0}, validator)

    result = store.set("count", 7)
    assert await result.settled == SetStatus.COMMITTED
    assert store.get("count").value == 7


@pytest.mark.asyncio
async def test_deferred_failure_is_logged_and_dropped(caplog: pytest.LogCaptureFixture) -> None:
    async def validator(key: str, prev: Any, new: Any) -> bool:
        raise RuntimeError("confirmation service down")

    store = ValidatedStore({"count": 0}, validator)

    with caplog.at_level(logging.WARNING, logger="pystorage.state.store"):
        result = store.set("count", 9)
        assert await result.wait() == SetStatus.FAILED

    assert store.get("count").value == 0
    assert "confirmation service down" in caplog.text


@pytest.mark.asyncio
async def test_cancelled_deferred_validation_is_dropped() -> None:
    loop = asyncio.get_running_loop()
    confirmation: asyncio.Future[bool] = loop.create_future()
    store = ValidatedStore({"count": 0}, lambda key, prev, new: confirmation)

    result = store.set("count", 4)
    confirmation.cancel()

    assert await result.wait() == SetStatus.FAILED
    assert store.get("count").value == 0


@pytest.mark.asyncio
async def test_concurrent_writes_last_resolved_wins() -> None:
    gates = {"A": asyncio.Event(), "B": asyncio.Event()}
    store = ValidatedStore({"k": None}, _gated_validator(gates))

    first = store.set("k", "A")
    second = store.set("k", "B")
    assert store.pending_count("k") == 2

    gates["B"].set()
    assert await second.wait() == SetStatus.COMMITTED
    assert store.get("k").value == "B"

    gates["A"].set()
    assert await first.wait() == SetStatus.COMMITTED
    assert store.get("k").value == "A"


@pytest.mark.asyncio
async def test_concurrent_writes_latest_issued_drops_stale_commit() -> None:
    gates = {"A": asyncio.Event(), "B": asyncio.Event()}
    store = ValidatedStore(
        {"k": None},
        _gated_validator(gates),
        config=StorageConfig(commit_policy=CommitPolicy.LATEST_ISSUED),
    )

    first = store.set("k", "A")
    second = store.set("k", "B")

    gates["B"].set()
    assert await second.wait() == SetStatus.COMMITTED
    gates["A"].set()
    assert await first.wait() == SetStatus.STALE
    assert store.get("k").value == "B"


@pytest.mark.asyncio
async def test_drain_waits_for_all_in_flight_validations() -> None:
    async def validator(key: str, prev: Any, new: Any) -> bool:
        await asyncio.sleep(0.01 * new)
        return True

    store = ValidatedStore({"a": 0, "b": 0}, validator)
    store.set("a", 2)
    store.set("b", 1)

    await store.drain()

    assert store.snapshot() == {"a": 2, "b": 1}
    assert store.pending_count() == 0


def test_non_str_keys_rejected() -> None:
    with pytest.raises(TypeError):
        ValidatedStore({1: "one"}, lambda key, prev, new: True)


@pytest.mark.parametrize("answer", [1, 2, "yes", None, [True]])
def test_only_immediate_true_approves(answer: Any) -> None:
    store = ValidatedStore({"count": 0}, lambda key, prev, new: answer)

    result = store.set("count", 1)

    assert result.status == SetStatus.REJECTED
    assert store.get("count").value == 0


@pytest.mark.asyncio
async def test_timed_out_wait_does_not_break_drain() -> None:
    gate = asyncio.Event()

    async def validator(key: str, prev: Any, new: Any) -> bool:
        await gate.wait()
        return True

    store = ValidatedStore({"count": 0}, validator)
    result = store.set("count", 3)

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(result.wait(), 0.01)
    assert not result.settled.cancelled()

    gate.set()
    await store.drain()

    assert store.get("count").value == 3
    assert await result.wait() == SetStatus.COMMITTED


@pytest.mark.asyncio
async def test_in_flight_validation_survives_garbage_collection() -> None:
    async def validator(key: str, prev: Any, new: Any) -> bool:
        # Only this frame references the future.
        await asyncio.get_running_loop().create_future()
        return True

    store = ValidatedStore({"count": 0}, validator)
    result = store.set("count", 1)
    await asyncio.sleep(0)

    gc.collect()
    await asyncio.sleep(0)

    assert store.pending_count("count") == 1
    assert not result.settled.done()

    for task in list(store._in_flight["count"]):  # noqa: SLF001
        task.cancel()
    await store.drain()

    assert await result.wait() == SetStatus.FAILED
    assert store.pending_count() == 0
