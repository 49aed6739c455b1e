"""Dual-mode access over a :class:`ValidatedStore`.

:class:`Storage` lets callers use the explicit accessor
(``storage.get("count")``) or plain attribute and item syntax
(``storage.count``, ``storage["count"] = 5``) over the same entries.
Every write goes through the pair setter, so validation is whatever the
underlying store does; the facade adds none of its own.

Attribute accessors are generated once, at construction time, on a
per-instance subclass.  Keys that are not identifiers, are keywords,
start with an underscore, or collide with a facade member stay reachable
through ``read``/``write`` and item access.
"""

from __future__ import annotations

import keyword
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from pystorage.cell import CellFactory, ReactiveCell
from pystorage.config import StorageConfig
from pystorage.models.outcome import CellPair, SetResult, Validator
from pystorage.state.store import ValidatedStore

_logger = logging.getLogger(__name__)


def _is_store_member(name: str) -> bool:
    return not name.startswith("_") and hasattr(ValidatedStore, name)


def _key_property(key: str) -> property:
    def _read(self: Storage) -> CellPair | None:
        return self._store.get(key)

    def _write(self: Storage, value: Any) -> None:
        self.write(key, value)

    return property(_read, _write, doc=f"(value, setter) pair for {key!r}.")


class Storage:
    """Facade over a :class:`ValidatedStore`."""

    __slots__ = ("_store",)

    def __new__(cls, store: ValidatedStore) -> Storage:
        accessors: dict[str, Any] = {"__slots__": ()}
        for key in store.keys():
            if not key.isidentifier() or keyword.iskeyword(key) or key.startswith("_"):
                continue
            if hasattr(cls, key) or _is_store_member(key):
                continue
            accessors[key] = _key_property(key)
        if len(accessors) > 1:
            cls = type(cls.__name__, (cls,), accessors)
        return object.__new__(cls)

    def __init__(self, store: ValidatedStore) -> None:
        self._store = store

    @property
    def store(self) -> ValidatedStore:
        return self._store

    def get(self, key: str) -> CellPair | None:
        return self._store.get(key)

    def has(self, key: str) -> bool:
        return self._store.has(key)

    def keys(self) -> list[str]:
        return self._store.keys()

    @property
    def validator(self) -> Validator | None:
        return self._store.validator

    @property
    def config(self) -> StorageConfig:
        return self._store.config

    def require(self, key: str) -> CellPair:
        return self._store.require(key)

    def set(self, key: str, value: Any) -> SetResult:
        return self._store.set(key, value)

    def pending_count(self, key: str | None = None) -> int:
        return self._store.pending_count(key)

    async def drain(self) -> None:
        await self._store.drain()

    def snapshot(self) -> dict[str, Any]:
        return self._store.snapshot()

    def read(self, name: str) -> Any:
        """Resolve *name* the way attribute access on the store would.

        Store members (``get``, ``has``, ``keys``...) come back bound to the
        store, unless the member is ``None`` (``validator`` on an unguarded
        store).  Otherwise the ``(value, setter)`` pair of the entry, or
        ``None`` when there is no such entry.
        """
        if _is_store_member(name):
            member = getattr(self._store, name)
            if member is not None:
                return member
        return self._store.get(name)

    def write(self, key: str, value: Any) -> bool:
        """Call the entry's setter with *value*; ``False`` if there is no entry.

        ``True`` only says the setter was invoked.  A validator may still
        reject or defer the mutation.
        """
        pair = self._store.get(key)
        if pair is None:
            _logger.debug("Ignoring write to unknown key %r", key)
            return False
        pair.setter(value)
        return True

    def __getitem__(self, name: str) -> Any:
        return self.read(name)

    def __setitem__(self, key: str, value: Any) -> None:
        self.write(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __iter__(self) -> Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"<Storage {self._store.snapshot()!r}>"


def create_storage(
    records: Mapping[str, Any] | None = None,
    validator: Validator | None = None,
    *,
    config: StorageConfig | None = None,
    cell_factory: CellFactory | None = None,
) -> Storage:
    """Create a store from *records* and wrap it in a :class:`Storage` facade.

    Parameters
    ----------
    records : Mapping[str, Any] or None
        Initial entries; one cell is created per key.  ``None`` gives an
        empty store.
    validator : Validator or None
        ``validator(key, previous_value, new_value)`` gating every write.
    config : StorageConfig or None
        Commit policy and logging options.
    cell_factory : CellFactory or None
        Builds the cell for each initial value.  Defaults to
        :class:`~pystorage.cell.ReactiveCell`.

    Returns
    -------
    Storage
        Facade over the new store.
    """
    store = ValidatedStore(
        records,
        validator,
        config=config,
        cell_factory=cell_factory or ReactiveCell,
    )
    return Storage(store)
