"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

deduplicator.py
Two-phase duplicate verification over an inventory of FileRecords.
Supports two modes:
    - quick-then-full: size → quick hash → full hash
    - full-only:       size → full hash
"""
import time
from typing import Callable, List, Optional, Tuple

from dupscout.core.errors import ItemIOError
from dupscout.core.grouper import FileGrouperImpl
from dupscout.core.interfaces import Hasher
from dupscout.core.models import (
    Bucket, DetectionStats, DuplicateGroup, FileRecord, Stage, VerificationMode
)
from dupscout.core.stages import FullHashStage, QuickHashStage, SizeStageImpl


class DeduplicatorImpl:
    """
    Runs the detection pipeline and collects statistics.
    Only FullHashStage emits groups, so every result is confirmed by an exact hash.
    """
    def __init__(self, hasher: Optional[Hasher] = None):
        self.hasher = hasher

    def find_duplicates(
        self,
        files: List[FileRecord],
        min_size: int = 0,
        mode: VerificationMode = VerificationMode.QUICK_THEN_FULL,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> Tuple[List[DuplicateGroup], DetectionStats]:
        """
        Args:
            files: inventory records to analyze
            min_size: records smaller than this are ignored
            mode: verification mode
            progress_callback: (stage, current, total) per processed bucket
        Returns:
            Tuple[List[DuplicateGroup], DetectionStats]
        """
        stats = DetectionStats()
        total_start_time = time.time()

        def count_io_error(record: FileRecord, error: ItemIOError) -> None:
            stats.io_errors += 1

        grouper = FileGrouperImpl(self.hasher, on_io_error=count_io_error)

        size_stage = SizeStageImpl(grouper, min_size=min_size)
        start_time = time.time()
        buckets = size_stage.process(files, progress_callback=progress_callback)
        self._update_stats(stats, Stage.SIZE.value, time.time() - start_time, buckets, [])

        confirmed: List[DuplicateGroup] = []
        for stage_name, stage in self._build_pipeline(mode, grouper):
            start_time = time.time()
            buckets = stage.process(buckets, confirmed, progress_callback=progress_callback)
            self._update_stats(stats, stage_name, time.time() - start_time, buckets, confirmed)

        confirmed.sort(key=lambda g: (-g.size, g.files[0].path))
        stats.total_time = time.time() - total_start_time
        return confirmed, stats

    @staticmethod
    def _build_pipeline(mode: VerificationMode, grouper: FileGrouperImpl):
        pipeline = []
        if mode == VerificationMode.QUICK_THEN_FULL:
            pipeline.append((Stage.QUICK.value, QuickHashStage(grouper)))
        pipeline.append((Stage.FULL.value, FullHashStage(grouper)))
        return pipeline

    @staticmethod
    def _update_stats(
        stats: DetectionStats,
        stage: str,
        duration: float,
        buckets: List[Bucket],
        confirmed: List[DuplicateGroup]
    ):
        total_files = sum(len(b.files) for b in buckets) + sum(g.count for g in confirmed)
        stats.update_stage(
            stage_name=stage,
            groups_found=len(buckets) + len(confirmed),
            files_processed=total_files,
            duration=duration
        )
