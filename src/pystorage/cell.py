"""Single-value holder used for every store entry."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cell(Protocol):
    """What the store needs from a value holder.

    Any platform primitive exposing the current ``value`` and a
    ``mutator(new_value)`` that replaces it can back a store entry.
    """

    @property
    def value(self) -> Any: ...

    def mutator(self, new_value: Any) -> None: ...


CellFactory = Callable[[Any], Cell]


class ReactiveCell:
    """Default cell: holds one value and replaces it on ``mutator``."""

    __slots__ = ("_value",)

    def __init__(self, value: Any = None) -> None:
        self._value = value

    @property
    def value(self) -> Any:
        return self._value

    def mutator(self, new_value: Any) -> None:
        self._value = new_value

    def __repr__(self) -> str:
        return f"ReactiveCell({self._value!r})"
