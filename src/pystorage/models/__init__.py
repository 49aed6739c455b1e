"""Result and outcome types exchanged between validators, the store and callers."""

from pystorage.models.outcome import (
    CellPair,
    OutcomeKind,
    SetResult,
    SetStatus,
    ValidationOutcome,
    Validator,
)

__all__ = [
    "CellPair",
    "OutcomeKind",
    "SetResult",
    "SetStatus",
    "ValidationOutcome",
    "Validator",
]
