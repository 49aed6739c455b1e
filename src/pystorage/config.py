"""Store configuration for pystorage."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pystorage.exceptions import StorageConfigError
from pystorage.state.policy import CommitPolicy


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StorageConfig:
    """Store configuration.

    Parameters
    ----------
    commit_policy : CommitPolicy
        How deferred validations racing on the same key are committed.
        ``LAST_RESOLVED`` lets whichever validation settles last win;
        ``LATEST_ISSUED`` drops commits older than the last committed
        call for that key.
    log_rejections : bool
        Log synchronous validator rejections at debug level.
    """

    commit_policy: CommitPolicy = CommitPolicy.LAST_RESOLVED
    log_rejections: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> StorageConfig:
        """Create configuration from environment variables.

        Reads ``PYSTORAGE_COMMIT_POLICY`` and ``PYSTORAGE_LOG_REJECTIONS``.
        Explicit keyword arguments override environment values.

        Raises
        ------
        StorageConfigError
            If ``PYSTORAGE_COMMIT_POLICY`` names no known policy.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        policy_env = env.get("PYSTORAGE_COMMIT_POLICY")
        if policy_env is not None and "commit_policy" not in overrides:
            try:
                config_kwargs["commit_policy"] = CommitPolicy(policy_env.strip().lower())
            except ValueError as exc:
                raise StorageConfigError(f"unknown commit policy {policy_env!r}") from exc

        if "log_rejections" not in overrides:
            config_kwargs["log_rejections"] = _env_bool(env.get("PYSTORAGE_LOG_REJECTIONS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
