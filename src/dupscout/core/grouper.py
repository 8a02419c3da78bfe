"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Groups FileRecords by size or fingerprint using an injected Hasher.
Records whose fingerprint cannot be computed are dropped from their group
and reported through on_io_error.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from dupscout.core.errors import ItemIOError
from dupscout.core.hasher import HasherImpl
from dupscout.core.interfaces import FileGrouper, Hasher
from dupscout.core.models import FileRecord

logger = logging.getLogger(__name__)


class FileGrouperImpl(FileGrouper):
    """
    Buckets records by a computed key and keeps only buckets of 2+ records.
    """

    def __init__(
        self,
        hasher: Optional[Hasher] = None,
        on_io_error: Optional[Callable[[FileRecord, ItemIOError], None]] = None
    ):
        self.hasher = hasher or HasherImpl()
        self.on_io_error = on_io_error

    def group_by_size(self, files: List[FileRecord]) -> Dict[int, List[FileRecord]]:
        """Groups files by their exact size."""
        return self._group_by(files, lambda f: f.size)

    def group_by_quick_hash(self, files: List[FileRecord]) -> Dict[str, List[FileRecord]]:
        """Groups files by quick (first + last chunk) fingerprint."""
        return self._group_by(files, self.hasher.compute_quick_hash)

    def group_by_full_hash(self, files: List[FileRecord]) -> Dict[str, List[FileRecord]]:
        """Groups files by exact content fingerprint."""
        return self._group_by(files, self.hasher.compute_full_hash)

    def _group_by(
        self,
        files: List[FileRecord],
        key_func: Callable[[FileRecord], Any]
    ) -> Dict[Any, List[FileRecord]]:
        """
        Groups files by any computed key. Input order is kept inside each group.
        Unreadable files are skipped; other exceptions propagate.
        """
        groups = defaultdict(list)
        skipped_files = 0
        for file in files:
            try:
                key = key_func(file)
            except ItemIOError as e:
                logger.warning("Skipping %s: %s", file.path, e.reason)
                skipped_files += 1
                if self.on_io_error:
                    self.on_io_error(file, e)
                continue
            groups[key].append(file)

        if skipped_files > 0:
            logger.warning("Skipped %d files due to read errors", skipped_files)

        return {key: group for key, group in groups.items() if len(group) >= 2}
