"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
Pipeline stages of the duplicate detection engine.

STAGES
------
SizeStageImpl   : drops files below min_size and buckets the rest by exact size
QuickHashStage  : splits buckets by quick (first + last chunk) fingerprint
FullHashStage   : splits buckets by exact content fingerprint and emits
                  DuplicateGroups; the only stage allowed to confirm duplicates

STAGE CONTRACTS
---------------
Each hash stage implements process(buckets, confirmed, progress_callback):
  • Accepts candidate buckets from the previous stage
  • Returns refined buckets for the next stage
  • Appends confirmed duplicates to the shared list (FullHashStage only)
  • Reports progress via callback (stage name, processed count, total count)

A bucket never shrinks below two members on the way out: singletons produced
by a split or by an unreadable file are dropped, since they cannot be
duplicates.
"""

from typing import List, Optional, Callable

from dupscout.core.grouper import FileGrouperImpl
from dupscout.core.models import FileRecord, Bucket, DuplicateGroup, Stage

ProgressCallback = Callable[[str, int, object], None]


class SizeStageImpl:
    def __init__(self, grouper: FileGrouperImpl, min_size: int = 0):
        self.grouper = grouper
        self.min_size = min_size

    def process(
            self,
            files: List[FileRecord],
            progress_callback: Optional[ProgressCallback] = None
    ) -> List[Bucket]:
        """
        Returns buckets of 2+ files with identical size, all at least min_size.
        Equal size is necessary for duplication, not sufficient.
        """
        eligible = [f for f in files if f.size >= self.min_size]
        size_groups = self.grouper.group_by_size(eligible)
        buckets = [Bucket(size=size, files=group) for size, group in size_groups.items()]

        if progress_callback:
            total_files = len(files)
            progress_callback(Stage.SIZE.value, total_files, total_files)

        return buckets


class QuickHashStage:
    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def process(
            self,
            buckets: List[Bucket],
            confirmed_duplicates: List[DuplicateGroup],
            progress_callback: Optional[ProgressCallback] = None
    ) -> List[Bucket]:
        """
        Splits each bucket by quick hash. Never confirms anything: equal quick
        hashes only mean the files are worth a full read.
        """
        refined = []
        total_files = sum(len(b.files) for b in buckets)
        processed_files = 0

        for bucket in buckets:
            hash_groups = self.grouper.group_by_quick_hash(bucket.files)
            refined.extend(Bucket(size=bucket.size, files=files) for files in hash_groups.values())

            processed_files += len(bucket.files)
            if progress_callback:
                progress_callback(Stage.QUICK.value, processed_files, total_files)

        return refined


class FullHashStage:
    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def process(
            self,
            buckets: List[Bucket],
            confirmed_duplicates: List[DuplicateGroup],
            progress_callback: Optional[ProgressCallback] = None
    ) -> List[Bucket]:
        """
        Confirms duplicates by exact content hash. Nothing is left for later stages.
        """
        total_files = sum(len(b.files) for b in buckets)
        processed_files = 0

        for bucket in buckets:
            hash_groups = self.grouper.group_by_full_hash(bucket.files)
            for content_hash, files in hash_groups.items():
                confirmed_duplicates.append(
                    DuplicateGroup(hash=content_hash, size=bucket.size, files=files)
                )

            processed_files += len(bucket.files)
            if progress_callback:
                progress_callback(Stage.FULL.value, processed_files, total_files)

        return []
