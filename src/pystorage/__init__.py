"""pystorage - Validated key/value storage with a transparent access facade."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pystorage")
except PackageNotFoundError:
    __version__ = "0+local"
from pystorage.cell import Cell, CellFactory, ReactiveCell
from pystorage.config import StorageConfig
from pystorage.exceptions import (
    StorageConfigError,
    StorageError,
    StorageKeyError,
    StorageSchedulingError,
)
from pystorage.facade import Storage, create_storage
from pystorage.models import (
    CellPair,
    OutcomeKind,
    SetResult,
    SetStatus,
    ValidationOutcome,
    Validator,
)
from pystorage.state.policy import CommitPolicy
from pystorage.state.store import ValidatedStore

__all__ = [
    "__version__",
    "Cell",
    "CellFactory",
    "CellPair",
    "CommitPolicy",
    "OutcomeKind",
    "ReactiveCell",
    "SetResult",
    "SetStatus",
    "Storage",
    "StorageConfig",
    "StorageConfigError",
    "StorageError",
    "StorageKeyError",
    "StorageSchedulingError",
    "ValidatedStore",
    "ValidationOutcome",
    "Validator",
    "create_storage",
]
