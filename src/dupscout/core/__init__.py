"""
Core detection engine — scanner, hasher, grouper, stages and smart selection.

- FileScannerImpl: recursive directory inventory with size/extension filters
- HasherImpl: FULL / QUICK / STREAMING / SAMPLING / SMART fingerprints
- FileGrouperImpl: size and fingerprint grouping that drops unreadable files
- DeduplicatorImpl: size → (quick hash) → full hash verification
- SmartSelection: skips records whose size is unique in the corpus

No presentation code lives here; progress is reported through callbacks.
"""

from .errors import ItemIOError, WorkerFailure, RepositoryError
from .models import (
    FileRecord, Bucket, DuplicateGroup, HashStrategy, VerificationMode,
    DetectionParams, DetectionStats, SelectionStats, wasted_space)
from .hasher import HasherImpl, HashParams, Sha256AlgorithmImpl, XXHashAlgorithmImpl
from .grouper import FileGrouperImpl
from .deduplicator import DeduplicatorImpl
from .selection import SmartSelection
from .scanner import FileScannerImpl

__all__ = [
    "ItemIOError",
    "WorkerFailure",
    "RepositoryError",
    "FileRecord",
    "Bucket",
    "DuplicateGroup",
    "HashStrategy",
    "VerificationMode",
    "DetectionParams",
    "DetectionStats",
    "SelectionStats",
    "wasted_space",
    "HasherImpl",
    "HashParams",
    "Sha256AlgorithmImpl",
    "XXHashAlgorithmImpl",
    "FileGrouperImpl",
    "DeduplicatorImpl",
    "SmartSelection",
    "FileScannerImpl",
]
