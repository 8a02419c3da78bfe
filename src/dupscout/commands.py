"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

commands.py
Command orchestrators: the single place where business workflows are wired
together. Used by the CLI; no printing happens here.
"""

import logging
from typing import Any, Callable, List, Optional, Tuple

from dupscout.core.deduplicator import DeduplicatorImpl
from dupscout.core.hasher import HashParams
from dupscout.core.models import (
    DetectionParams, DetectionStats, DuplicateGroup, FileRecord, HashStrategy,
    SelectionStats, VerificationMode
)
from dupscout.core.scanner import FileScannerImpl
from dupscout.core.selection import SmartSelection
from dupscout.pool.coordinator import WorkerPoolCoordinator
from dupscout.pool.messages import RunResult
from dupscout.pool.scheduler import PoolConfig
from dupscout.pool.tasks import METADATA_TASKS, HashTask
from dupscout.services.repository import SqliteRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, Optional[int]], None]
EventCallback = Callable[[Any], None]


def _scanner_for(params: DetectionParams) -> FileScannerImpl:
    return FileScannerImpl(
        root_dir=params.root_dir,
        min_size=params.min_size_bytes,
        max_size=params.max_size_bytes,
        extensions=params.extensions,
        excluded_dirs=params.excluded_dirs,
    )


class DetectionCommand:
    """
    Scan a directory and verify duplicates in memory:
    1. Scan root_dir with the size/extension filters
    2. Drop records whose size is unique (smart selection)
    3. Size → (quick hash) → full hash verification

    Usage:
        params = DetectionParams.from_human_readable("~/Downloads", min_size_str="1MB")
        groups, stats = DetectionCommand().execute(params, progress_callback=printer)
    """

    def __init__(self):
        self.files: List[FileRecord] = []
        self.selection: Optional[SelectionStats] = None

    def execute(
        self,
        params: DetectionParams,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[List[DuplicateGroup], DetectionStats]:
        """
        Raises:
            RuntimeError: root directory missing or unreadable
        """
        self.files = _scanner_for(params).scan(progress_callback=progress_callback)
        candidates, self.selection = SmartSelection().select(self.files)

        return DeduplicatorImpl().find_duplicates(
            candidates,
            min_size=params.min_size_bytes,
            mode=params.mode,
            progress_callback=progress_callback,
        )


class InventoryCommand:
    """
    Scan a directory and store its records as one scan session.

    Usage:
        with SqliteRepository("dupscout.db") as repo:
            scan_id, stored = InventoryCommand(repo).execute(params)
    """

    def __init__(self, repository: SqliteRepository):
        self.repository = repository

    def execute(
        self,
        params: DetectionParams,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[int, int]:
        """Returns (scan_id, number of records stored)."""
        scan_id = self.repository.create_scan(params.root_dir)
        files = _scanner_for(params).scan(progress_callback=progress_callback)
        stored = self.repository.store_files(files, scan_id=scan_id)
        self.repository.complete_scan(scan_id, stored, sum(f.size for f in files))
        logger.info("Scan %d stored %d records from %s", scan_id, stored, params.root_dir)
        return scan_id, stored


class HashUpdateCommand:
    """
    Fingerprint stored records that have no hash yet, through the worker pool.

    Smart selection happens in the repository query: the whole table of
    unhashed records is compared, not only the first `limit` rows.

    Usage:
        command = HashUpdateCommand(repo, "dupscout.db", PoolConfig(worker_count=8))
        print(command.preview(min_size=1024).percent_skipped)
        result = command.execute(HashStrategy.SMART, min_size=1024, limit=5000)
    """

    def __init__(
        self,
        repository: SqliteRepository,
        db_path: str,
        pool_config: Optional[PoolConfig] = None,
        hash_params: Optional[HashParams] = None
    ):
        self.repository = repository
        self.db_path = db_path
        self.pool_config = pool_config or PoolConfig()
        self.hash_params = hash_params or HashParams()

    def preview(self, min_size: int = 0, max_size: int = 0, smart: bool = True) -> SelectionStats:
        """Selection statistics without hashing anything."""
        stats = self.repository.smart_hash_stats(min_size, max_size)
        if smart:
            return stats
        return SelectionStats(
            total_eligible=stats.total_eligible,
            candidates_kept=stats.total_eligible,
            candidates_skipped=0,
        )

    def execute(
        self,
        strategy: HashStrategy = HashStrategy.SMART,
        min_size: int = 0,
        max_size: int = 0,
        limit: Optional[int] = None,
        smart: bool = True,
        event_callback: Optional[EventCallback] = None
    ) -> RunResult:
        """
        Raises:
            RepositoryError: storage failure in the coordinator or a worker
        """
        records = self.repository.records_without_hash(
            min_size=min_size, max_size=max_size, limit=limit, smart=smart
        )
        if not records:
            logger.info("No records need hashing")
            return RunResult()

        logger.info("Hashing %d records with %s strategy", len(records), strategy.value)
        task = HashTask(db_path=self.db_path, strategy=strategy, params=self.hash_params)
        return WorkerPoolCoordinator(self.pool_config).run(records, task, event_callback)


class MetadataExtractionCommand:
    """
    Extract media metadata for stored records through the worker pool.

    Only records with an extension of the chosen kind are loaded; with
    skip_existing, records that already have metadata are left out of the
    query too, so `limit` always counts records that need work.

    Usage:
        command = MetadataExtractionCommand(repo, "dupscout.db", kind="music")
        result = command.execute(skip_existing=True, limit=500)
    """

    def __init__(
        self,
        repository: SqliteRepository,
        db_path: str,
        pool_config: Optional[PoolConfig] = None,
        kind: str = "image"
    ):
        if kind not in METADATA_TASKS:
            raise ValueError(f"Unknown metadata kind: {kind} (expected one of {', '.join(METADATA_TASKS)})")
        self.repository = repository
        self.db_path = db_path
        self.pool_config = pool_config or PoolConfig()
        self.task_class = METADATA_TASKS[kind]

    def pending_count(self, skip_existing: bool = True) -> int:
        return self.repository.media_record_count(
            self.task_class.extensions, missing_from=self.task_class.kind if skip_existing else None
        )

    def execute(
        self,
        skip_existing: bool = True,
        limit: Optional[int] = None,
        event_callback: Optional[EventCallback] = None
    ) -> RunResult:
        records = self.repository.media_records(
            self.task_class.extensions,
            limit=limit,
            missing_from=self.task_class.kind if skip_existing else None,
        )
        if not records:
            logger.info("No %s records need metadata", self.task_class.kind)
            return RunResult()

        logger.info("Extracting %s metadata of %d records", self.task_class.kind, len(records))
        task = self.task_class(db_path=self.db_path, skip_existing=skip_existing)
        return WorkerPoolCoordinator(self.pool_config).run(records, task, event_callback)


class RepositoryDuplicatesCommand:
    """
    Verify the repository's size buckets against file content and store the
    confirmed groups. Previously stored groups are replaced.
    """

    def __init__(self, repository: SqliteRepository):
        self.repository = repository

    def execute(
        self,
        min_size: int = 0,
        mode: VerificationMode = VerificationMode.QUICK_THEN_FULL,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[List[DuplicateGroup], DetectionStats]:
        buckets = self.repository.duplicate_candidates_by_size(min_size)
        candidates = [record for records in buckets.values() for record in records]
        logger.info("Verifying %d candidates in %d size buckets", len(candidates), len(buckets))

        groups, stats = DeduplicatorImpl().find_duplicates(
            candidates, min_size=min_size, mode=mode, progress_callback=progress_callback
        )

        self.repository.clear_duplicate_groups()
        for group in groups:
            self.repository.store_duplicate_group(group)
        return groups, stats
