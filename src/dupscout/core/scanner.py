"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Inventory source: walks a directory tree and returns one FileRecord per
regular file, with size and timestamps.
Features:
- os.walk traversal with directory pruning (excluded / unreadable dirs)
- Size and extension filters
- Symlinks and zero-byte files are skipped
- Restartable: every scan() walks the tree again, nothing is cached
"""

import logging
import os
import stat
import time
from pathlib import Path
from typing import Callable, List, Optional

from dupscout.core.interfaces import FileScanner
from dupscout.core.models import FileRecord

logger = logging.getLogger(__name__)


class FileScannerImpl(FileScanner):
    """
    Attributes:
        root_dir: Root directory to scan
        min_size: Minimum file size in bytes (optional)
        max_size: Maximum file size in bytes (optional)
        extensions: Allowed file extensions (e.g., [".txt", ".jpg"]); empty means all
        excluded_dirs: Directories not to descend into
    """

    progress_interval = 5000

    def __init__(
        self,
        root_dir: str,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        extensions: Optional[List[str]] = None,
        excluded_dirs: Optional[List[str]] = None
    ):
        self.root_dir = root_dir
        self.min_size = min_size
        self.max_size = max_size
        self.extensions = [ext.lower() for ext in extensions] if extensions else []
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def scan(
        self,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[FileRecord]:
        """
        Returns the filtered records found under root_dir.

        Raises:
            RuntimeError: root_dir is missing or not a directory
        """
        logger.debug("Scanning %s (min_size=%s, max_size=%s, extensions=%s)",
                     self.root_dir, self.min_size, self.max_size, self.extensions)

        root_path = Path(self.root_dir)
        if not root_path.exists():
            raise RuntimeError(f"Directory does not exist: {self.root_dir}")
        if not root_path.is_dir():
            raise RuntimeError(f"Not a directory: {self.root_dir}")

        found_files = []
        processed_files = 0
        start_time = time.time()

        for root, dirs, files in os.walk(str(root_path), onerror=self._on_walk_error):
            dirs[:] = [d for d in dirs if self._prefilter_dirs(Path(root) / d)]

            for filename in files:
                record = self._process_file(Path(root) / filename)
                if record:
                    found_files.append(record)
                processed_files += 1

                if progress_callback and processed_files % self.progress_interval == 0:
                    progress_callback('scanning', processed_files, None)

        if progress_callback:
            progress_callback('scanning', processed_files, None)

        logger.debug("Scan of %s finished in %.2fs: %d of %d files accepted",
                     self.root_dir, time.time() - start_time, len(found_files), processed_files)
        return found_files

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.warning("Could not read directory %s: %s", error.filename, error.strerror)

    def _prefilter_dirs(self, path: Path) -> bool:
        """Skip symlinked, excluded and inaccessible directories."""
        try:
            if path.is_symlink():
                return False
            if self.excluded_dirs and self._is_excluded_directory(path):
                logger.debug("Skipping excluded directory: %s", path)
                return False
            return os.access(path, os.R_OK | os.X_OK)
        except OSError:
            logger.debug("Skipping inaccessible directory: %s", path)
            return False

    def _is_excluded_directory(self, path: Path) -> bool:
        path_str = str(path.resolve(strict=False))
        for excluded_dir in self.excluded_dirs:
            if path_str == excluded_dir or path_str.startswith(excluded_dir + os.sep):
                return True
        return False

    def _process_file(self, path: Path) -> Optional[FileRecord]:
        """Returns a FileRecord if the path is a regular file passing all filters."""
        try:
            if path.is_symlink():
                logger.debug("Skipping symbolic link: %s", path)
                return None
            stat_result = path.stat()
        except OSError as e:
            logger.warning("Could not access %s: %s", path, e)
            return None

        if not stat.S_ISREG(stat_result.st_mode):
            logger.debug("Skipping non-regular file: %s", path)
            return None

        size = stat_result.st_size
        if size == 0:
            logger.debug("Skipping zero-byte file: %s", path)
            return None

        if not self._size_passes(size):
            return None

        if not self._extension_passes(path):
            return None

        return FileRecord(
            path=str(path),
            size=size,
            mtime=stat_result.st_mtime,
            atime=stat_result.st_atime,
            ctime=stat_result.st_ctime,
        )

    def _size_passes(self, size: int) -> bool:
        if self.min_size is not None and size < self.min_size:
            return False
        if self.max_size is not None and size > self.max_size:
            return False
        return True

    def _extension_passes(self, path: Path) -> bool:
        if not self.extensions:
            return True
        return path.suffix.lower() in self.extensions
