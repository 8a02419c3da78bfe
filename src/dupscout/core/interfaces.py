"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Core interfaces (Protocols) used throughout dupscout.

Key Components:
---------------
- HashAlgorithm: incremental digest factory (SHA-256, xxHash, ...).
- Hasher: fingerprints files under a HashStrategy.
- FileScanner: inventory source returning FileRecords.
- FileGrouper: buckets records by size or fingerprint.
- Repository: the storage contract consumed by commands and worker tasks.
- WorkTask: an expensive per-item operation run inside a worker process.
"""

from typing import Protocol, List, Dict, Optional, Callable, Any

from dupscout.core.models import FileRecord, HashStrategy, DuplicateGroup, SelectionStats


class Digest(Protocol):
    def update(self, data: bytes) -> None: ...
    def hexdigest(self) -> str: ...


class HashAlgorithm(Protocol):
    """
    Interface for digest algorithms.

    Lets the hasher plug SHA-256 for exact fingerprints and xxHash for the
    cheap probabilistic ones without touching strategy code.
    """
    name: str

    def new(self) -> Digest:
        """Returns a fresh incremental digest object."""
        ...


class Hasher(Protocol):
    """Interface for fingerprinting files."""
    def fingerprint(self, path: str, strategy: HashStrategy, params: Optional[Any] = None) -> str: ...
    def compute_quick_hash(self, record: FileRecord) -> str: ...
    def compute_full_hash(self, record: FileRecord) -> str: ...


class FileScanner(Protocol):
    def scan(
        self,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[FileRecord]:
        """
        Walk the configured root and return one record per regular file.
        Must be restartable: every call walks the tree again.
        """
        ...


class FileGrouper(Protocol):
    def group_by_size(self, files: List[FileRecord]) -> Dict[int, List[FileRecord]]: ...
    def group_by_quick_hash(self, files: List[FileRecord]) -> Dict[str, List[FileRecord]]: ...
    def group_by_full_hash(self, files: List[FileRecord]) -> Dict[str, List[FileRecord]]: ...


class Repository(Protocol):
    """
    Storage contract. Every failure surfaces as RepositoryError.
    """
    def records_without_hash(
        self,
        min_size: int = 0,
        max_size: int = 0,
        limit: Optional[int] = None,
        smart: bool = True
    ) -> List[FileRecord]: ...

    def smart_hash_stats(self, min_size: int = 0, max_size: int = 0) -> SelectionStats: ...

    def update_hash(
        self,
        file_id: int,
        full_hash: Optional[str],
        quick_hash: Optional[str],
        strategy: Optional[HashStrategy] = None
    ) -> None: ...

    def duplicate_candidates_by_size(self, min_size: int = 0) -> Dict[int, List[FileRecord]]: ...

    def store_duplicate_group(self, group: DuplicateGroup) -> None: ...


class WorkTask(Protocol):
    """
    An expensive operation applied to one item at a time inside a worker.

    open/close bracket the batch and own any per-worker resources, such as a
    storage connection. process returns None on success or a skip reason,
    and raises OSError (ItemIOError) or ValueError for a failed item.
    """
    def open(self) -> None: ...
    def process(self, item: Any) -> Optional[str]: ...
    def close(self) -> None: ...
    def label(self, item: Any) -> str: ...
