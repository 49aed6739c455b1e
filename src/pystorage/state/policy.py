"""Commit policy for deferred validations.

Deferred validations on the same key are never serialized against each
other. The policy decides what happens when they settle out of order.
"""

from __future__ import annotations

from enum import StrEnum


class CommitPolicy(StrEnum):
    LAST_RESOLVED = "last_resolved"
    LATEST_ISSUED = "latest_issued"


def should_commit(
    *,
    policy: CommitPolicy,
    issued_sequence: int,
    committed_sequence: int | None,
) -> bool:
    """Decide whether a settled validation may write its value.

    Policy:
    - ``LAST_RESOLVED``: always commit; resolution order decides the final value.
    - ``LATEST_ISSUED``: commit unless a later-issued call already committed.
    """
    if policy == CommitPolicy.LAST_RESOLVED:
        return True
    if committed_sequence is None:
        return True
    return issued_sequence > committed_sequence
