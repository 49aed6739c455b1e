"""Validation outcomes and mutation results.

A validator may answer immediately (truthy/falsy), hand back an
awaitable, or return a :class:`ValidationOutcome` directly.
:meth:`ValidationOutcome.from_result` folds all three into one tagged
value so the store never inspects raw validator results twice.

Every gated mutation reports a :class:`SetResult`.  Deferred mutations
report ``PENDING`` immediately and resolve ``settled`` to the final
status once the validation finishes.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class OutcomeKind(StrEnum):
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Tagged validator answer.

    ``awaitable`` is set only for ``PENDING``.  A pending outcome commits
    on any successful resolution, whatever the awaited value is, and
    drops the mutation when the awaitable raises or is cancelled.
    """

    kind: OutcomeKind
    awaitable: Awaitable[Any] | None = None

    @classmethod
    def approved(cls) -> ValidationOutcome:
        return cls(OutcomeKind.APPROVED)

    @classmethod
    def rejected(cls) -> ValidationOutcome:
        return cls(OutcomeKind.REJECTED)

    @classmethod
    def pending(cls, awaitable: Awaitable[Any]) -> ValidationOutcome:
        return cls(OutcomeKind.PENDING, awaitable)

    @classmethod
    def from_result(cls, result: Any) -> ValidationOutcome:
        """Normalise a raw validator return value."""
        if isinstance(result, ValidationOutcome):
            return result
        if inspect.isawaitable(result):
            return cls.pending(result)
        return cls.approved() if result is True else cls.rejected()


Validator = Callable[[str, Any, Any], Any]
"""``validator(key, previous_value, new_value)`` -> bool, awaitable or :class:`ValidationOutcome`.

Only an immediate ``True`` approves; any other immediate value (``1``,
``"yes"``, ``None``) rejects.
"""


class CellPair(NamedTuple):
    """Current value of an entry and the setter that mutates it."""

    value: Any
    setter: Callable[[Any], Any]


class SetStatus(StrEnum):
    COMMITTED = "committed"
    REJECTED = "rejected"
    PENDING = "pending"
    FAILED = "failed"
    STALE = "stale"
    ABSENT = "absent"


class SetResult(BaseModel):
    """What happened to a single gated mutation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    status: SetStatus
    value: Any = None
    settled: asyncio.Future | None = Field(
        default=None,
        description="Resolves to the final SetStatus of a PENDING mutation.",
    )

    @field_validator("settled")
    @classmethod
    def _only_for_pending(cls, value: asyncio.Future | None, info: ValidationInfo) -> asyncio.Future | None:
        if value is not None and info.data.get("status") != SetStatus.PENDING:
            raise ValueError("settled is only carried by pending results")
        return value

    @property
    def accepted(self) -> bool:
        """True when the value was committed synchronously."""
        return self.status == SetStatus.COMMITTED

    async def wait(self) -> SetStatus:
        """Final status; awaits ``settled`` for pending mutations."""
        if self.settled is None:
            return self.status
        # Shielded so a caller timing out does not cancel the shared future.
        return await asyncio.shield(self.settled)
