"""
DupScout — duplicate file finder with a parallel hashing pool.

Core features:
- Two verification modes: quick-then-full and full-only; every group is confirmed by SHA-256
- Five fingerprint strategies: full, streaming, quick, sampling, smart
- Smart selection: records with a unique size are never hashed
- Bounded worker pool: batches run in waves of at most N processes
- SQLite inventory with image (Pillow) and music (mutagen) metadata extraction
"""

from importlib.metadata import PackageNotFoundError, version as _version

try:
    __version__ = _version("dupscout")
except PackageNotFoundError:
    __version__ = "0.0.0"

# Public API
from dupscout.commands import (
    DetectionCommand, HashUpdateCommand, InventoryCommand, MetadataExtractionCommand,
    RepositoryDuplicatesCommand
)
from dupscout.core import (
    DetectionParams, DuplicateGroup, FileRecord, HashStrategy, VerificationMode, wasted_space
)
from dupscout.pool import PoolConfig, WorkerPoolCoordinator
from dupscout.services import SqliteRepository
from dupscout.utils.convert_utils import ConvertUtils

__all__ = [
    "DetectionCommand",
    "InventoryCommand",
    "HashUpdateCommand",
    "MetadataExtractionCommand",
    "RepositoryDuplicatesCommand",
    "DetectionParams",
    "DuplicateGroup",
    "FileRecord",
    "HashStrategy",
    "VerificationMode",
    "wasted_space",
    "PoolConfig",
    "WorkerPoolCoordinator",
    "SqliteRepository",
    "ConvertUtils",
    "__version__",
]
