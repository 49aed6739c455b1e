"""Validated in-memory key/value store.

This is the only component allowed to commit a value to an entry's cell.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from pystorage.cell import Cell, CellFactory, ReactiveCell
from pystorage.config import StorageConfig
from pystorage.exceptions import StorageKeyError, StorageSchedulingError
from pystorage.models.outcome import (
    CellPair,
    OutcomeKind,
    SetResult,
    SetStatus,
    ValidationOutcome,
    Validator,
)
from pystorage.state.policy import should_commit

_logger = logging.getLogger(__name__)


class ValidatedStore:
    """Fixed set of named cells with an optional mutation gate.

    Entries are created once from ``records`` and never removed.  When a
    ``validator`` is bound, setters handed out by :meth:`get` run it before
    touching the cell; without one they are the cells' own mutators.
    """

    def __init__(
        self,
        records: Mapping[str, Any] | None = None,
        validator: Validator | None = None,
        *,
        config: StorageConfig | None = None,
        cell_factory: CellFactory = ReactiveCell,
    ) -> None:
        self._config = config or StorageConfig()
        self._validator = validator
        self._cells: dict[str, Cell] = {}
        # Per-key sequence of the last issued and last committed guarded set.
        self._issued: dict[str, int] = {}
        self._committed: dict[str, int] = {}
        # Strong references to running validation tasks, per key.
        self._in_flight: dict[str, set[asyncio.Future[Any]]] = {}

        if records:
            for key, value in records.items():
                if not isinstance(key, str):
                    raise TypeError(f"store keys must be str, got {key!r}")
                self._cells[key] = cell_factory(value)

    @property
    def validator(self) -> Validator | None:
        return self._validator

    @property
    def config(self) -> StorageConfig:
        return self._config

    def has(self, key: str) -> bool:
        return key in self._cells

    def keys(self) -> list[str]:
        return list(self._cells)

    def get(self, key: str) -> CellPair | None:
        """Return ``(value, setter)`` for *key*, or ``None`` if it has no entry.

        With a validator bound the setter is guarded: it reads the previous
        value when called, not when :meth:`get` was called, and returns a
        :class:`SetResult`.
        """
        cell = self._cells.get(key)
        if cell is None:
            return None
        if self._validator is None:
            return CellPair(cell.value, cell.mutator)
        return CellPair(cell.value, functools.partial(self._guarded_set, key))

    def require(self, key: str) -> CellPair:
        """Like :meth:`get` but raise :class:`StorageKeyError` for unknown keys."""
        pair = self.get(key)
        if pair is None:
            raise StorageKeyError(key)
        return pair

    def set(self, key: str, value: Any) -> SetResult:
        """Run *value* through the gated path without fetching a pair first."""
        cell = self._cells.get(key)
        if cell is None:
            return SetResult(key=key, status=SetStatus.ABSENT, value=value)
        if self._validator is None:
            cell.mutator(value)
            return SetResult(key=key, status=SetStatus.COMMITTED, value=value)
        return self._guarded_set(key, value)

    def snapshot(self) -> dict[str, Any]:
        """Current value of every entry."""
        return {key: cell.value for key, cell in self._cells.items()}

    def pending_count(self, key: str | None = None) -> int:
        """Number of deferred validations still in flight (for *key*, or overall)."""
        if key is not None:
            return len(self._in_flight.get(key, ()))
        return sum(len(tasks) for tasks in self._in_flight.values())

    async def drain(self) -> None:
        """Wait until every in-flight deferred validation has settled."""
        while True:
            tasks = {task for tasks in self._in_flight.values() for task in tasks}
            if not tasks:
                return
            # asyncio.wait neither cancels the tasks nor raises their errors.
            await asyncio.wait(tasks)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._cells))

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        guarded = "guarded" if self._validator is not None else "unguarded"
        return f"<ValidatedStore {guarded} keys={self.keys()!r}>"

    # ------------------------------------------------------------------
    # Gated mutation
    # ------------------------------------------------------------------

    def _guarded_set(self, key: str, new_value: Any) -> SetResult:
        assert self._validator is not None  # noqa: S101
        cell = self._cells[key]
        previous_value = cell.value
        sequence = self._issued.get(key, 0) + 1
        self._issued[key] = sequence

        outcome = ValidationOutcome.from_result(self._validator(key, previous_value, new_value))

        if outcome.kind == OutcomeKind.APPROVED:
            self._commit(key, new_value, sequence)
            return SetResult(key=key, status=SetStatus.COMMITTED, value=new_value)

        if outcome.kind == OutcomeKind.REJECTED:
            if self._config.log_rejections:
                _logger.debug("Validator rejected %r for key %r", new_value, key)
            return SetResult(key=key, status=SetStatus.REJECTED, value=new_value)

        assert outcome.awaitable is not None  # noqa: S101
        settled = self._schedule(key, new_value, sequence, outcome.awaitable)
        return SetResult(key=key, status=SetStatus.PENDING, value=new_value, settled=settled)

    def _schedule(
        self,
        key: str,
        new_value: Any,
        sequence: int,
        awaitable: Any,
    ) -> asyncio.Future[SetStatus]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise StorageSchedulingError(
                f"deferred validation for key {key!r} needs a running event loop"
            ) from exc

        task = asyncio.ensure_future(awaitable)
        settled: asyncio.Future[SetStatus] = loop.create_future()
        self._in_flight.setdefault(key, set()).add(task)
        task.add_done_callback(
            functools.partial(self._settle, key, new_value, sequence, settled)
        )
        return settled

    def _settle(
        self,
        key: str,
        new_value: Any,
        sequence: int,
        settled: asyncio.Future[SetStatus],
        task: asyncio.Future[Any],
    ) -> None:
        if task.cancelled():
            _logger.warning("Deferred validation for key %r was cancelled; %r dropped", key, new_value)
            status = SetStatus.FAILED
        elif (error := task.exception()) is not None:
            _logger.warning(
                "Deferred validation for key %r failed; %r dropped",
                key,
                new_value,
                exc_info=error,
            )
            status = SetStatus.FAILED
        elif should_commit(
            policy=self._config.commit_policy,
            issued_sequence=sequence,
            committed_sequence=self._committed.get(key),
        ):
            self._commit(key, new_value, sequence)
            status = SetStatus.COMMITTED
        else:
            _logger.debug("Stale validation for key %r (sequence %d) dropped", key, sequence)
            status = SetStatus.STALE

        in_flight = self._in_flight.get(key)
        if in_flight is not None:
            in_flight.discard(task)
            if not in_flight:
                del self._in_flight[key]
        if not settled.done():
            settled.set_result(status)

    def _commit(self, key: str, new_value: Any, sequence: int) -> None:
        self._cells[key].mutator(new_value)
        # Never move the committed sequence backwards.
        self._committed[key] = max(self._committed.get(key, 0), sequence)
