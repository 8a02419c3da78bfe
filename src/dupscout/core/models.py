"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models for inventory records, duplicate groups and detection parameters.
"""

import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Union, Callable

from dupscout.utils.convert_utils import ConvertUtils

logger = logging.getLogger(__name__)


# =============================
# Enums
# =============================

class HashStrategy(Enum):
    """
    Fingerprinting strategy. FULL and STREAMING are exact; QUICK and SAMPLING
    are probabilistic prefilters; SMART picks one of them by file size.
    """
    FULL = "full"
    QUICK = "quick"
    STREAMING = "streaming"
    SAMPLING = "sampling"
    SMART = "smart"

    @property
    def is_exact(self) -> bool:
        """True if equal fingerprints prove equal content."""
        return self in (HashStrategy.FULL, HashStrategy.STREAMING)

    @property
    def description(self) -> str:
        mapping = {
            HashStrategy.FULL: "Whole-file SHA-256 (exact)",
            HashStrategy.QUICK: "First + last chunk (fast, probabilistic)",
            HashStrategy.STREAMING: "Whole-file SHA-256 read in blocks (exact, low memory)",
            HashStrategy.SAMPLING: "Evenly spaced windows + size (probabilistic)",
            HashStrategy.SMART: "Full for small files, sampling/quick for large ones",
        }
        return mapping[self]

    def __repr__(self) -> str:
        return self.value


class VerificationMode(Enum):
    """How same-size candidates are confirmed."""
    QUICK_THEN_FULL = "quick-then-full"
    FULL_ONLY = "full-only"

    @property
    def description(self) -> str:
        mapping = {
            VerificationMode.QUICK_THEN_FULL: "Size → Quick Hash → Full Hash",
            VerificationMode.FULL_ONLY: "Size → Full Hash",
        }
        return mapping[self]

    def __repr__(self) -> str:
        return self.value


class Stage(str, Enum):
    SIZE = "Size grouping"
    QUICK = "Quick Hash"
    FULL = "Full Hash"


# ======================
#  Core Data Models
# ======================

@dataclass
class FileRecord:
    """
    One file of the inventory: path, size and timestamps.
    Fingerprints are attached by the hasher only.
    """
    path: str
    size: int  # in bytes
    mtime: float = 0.0
    atime: float = 0.0
    ctime: float = 0.0
    content_hash: Optional[str] = None
    quick_hash: Optional[str] = None
    id: Optional[int] = None  # repository row id, if stored
    name: Optional[str] = None
    extension: Optional[str] = None

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"File size cannot be negative: {self.path}")

        if self.name is None:
            self.name = os.path.basename(self.path)

        if self.extension is None:
            _, ext = os.path.splitext(self.name)
            self.extension = ext.lower()

    def __repr__(self):
        return f"<FileRecord path={self.path}, size={self.size}>"


@dataclass
class Bucket:
    """
    Candidate records sharing one size (and, after a prefilter, one quick hash).
    Lives only for the duration of a detection pass.
    """
    size: int
    files: List[FileRecord]

    def __repr__(self):
        return f"<Bucket size={self.size}, count={len(self.files)}>"


@dataclass
class DuplicateGroup:
    """
    A confirmed set of files sharing size and full-content hash.
    """
    hash: str
    size: int
    files: List[FileRecord]

    @property
    def count(self) -> int:
        return len(self.files)

    @property
    def wasted_space(self) -> int:
        """Bytes taken by the redundant copies."""
        return max(self.count - 1, 0) * self.size

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]

    def __repr__(self):
        return f"<DuplicateGroup size={self.size}, count={self.count}>"


def wasted_space(groups: List[DuplicateGroup]) -> int:
    """Total bytes that could be reclaimed across all groups."""
    return sum(group.wasted_space for group in groups)


@dataclass(frozen=True)
class SelectionStats:
    """Outcome of the smart selection policy."""
    total_eligible: int
    candidates_kept: int
    candidates_skipped: int

    @property
    def percent_skipped(self) -> float:
        if self.total_eligible == 0:
            return 0.0
        return round(self.candidates_skipped * 100.0 / self.total_eligible, 2)


class DetectionStats:
    """
    Statistics collected while detecting duplicates.
    """
    def __init__(self):
        self.total_time: float = 0.0
        self.io_errors: int = 0
        self.stage_stats: Dict[str, Dict[str, Union[int, float]]] = {}
        self._listeners: List[Callable[[str, Dict], None]] = []

    def add_listener(self, listener: Callable[[str, Dict], None]):
        """Adds a listener to receive updates when stats are updated."""
        self._listeners.append(listener)

    def update_stage(
            self,
            stage_name: str,
            groups_found: int,
            files_processed: int,
            duration: float
    ) -> None:
        if stage_name not in self.stage_stats:
            self.stage_stats[stage_name] = {
                "groups": 0,
                "files": 0,
                "time": 0.0
            }
        self.stage_stats[stage_name]["groups"] += groups_found
        self.stage_stats[stage_name]["files"] += files_processed
        self.stage_stats[stage_name]["time"] += duration

        for listener in self._listeners:
            try:
                listener(stage_name, self.stage_stats[stage_name])
            except Exception:
                logger.exception("Error in stats listener for stage %s", stage_name)

    def print_summary(self) -> str:
        lines = [
            "Detection Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s",
            f"Unreadable files dropped: {self.io_errors}\n",
            "Stage: GROUPS / FILES / TIME"
        ]

        for stage, data in self.stage_stats.items():
            lines.append(f"{stage}: {data['groups']} / {data['files']} / {data['time']:.3f}s")

        return "\n".join(lines)


@dataclass
class DetectionParams:
    """Parameters for a directory-based duplicate search, validated on creation."""
    root_dir: str
    min_size_bytes: int = 0
    max_size_bytes: Optional[int] = None
    extensions: List[str] = field(default_factory=list)
    excluded_dirs: List[str] = field(default_factory=list)
    mode: VerificationMode = VerificationMode.QUICK_THEN_FULL

    def __post_init__(self):
        if not self.root_dir:
            raise ValueError("Root directory cannot be empty")

        if self.min_size_bytes < 0:
            raise ValueError("Minimum size cannot be negative")

        if self.max_size_bytes is not None and self.max_size_bytes < self.min_size_bytes:
            raise ValueError("Maximum size cannot be less than minimum size")

        normalized = []
        for ext in self.extensions:
            ext = ext.strip().lower()
            if ext and not ext.startswith('.'):
                ext = f".{ext}"
            if ext:
                normalized.append(ext)
        self.extensions = normalized

    @staticmethod
    def from_human_readable(
            root_dir: str,
            min_size_str: str = "0",
            max_size_str: Optional[str] = None,
            extensions_str: str = "",
            excluded_dirs: Optional[List[str]] = None,
            mode: VerificationMode = VerificationMode.QUICK_THEN_FULL,
    ) -> 'DetectionParams':
        """Build params from strings such as '500KB' and '.jpg,.png'."""
        min_size = ConvertUtils.human_to_bytes(min_size_str)
        max_size = ConvertUtils.human_to_bytes(max_size_str) if max_size_str else None

        ext_list = [
            ext.strip() for ext in extensions_str.split(",") if ext.strip()
        ] if extensions_str else []

        return DetectionParams(
            root_dir=root_dir,
            min_size_bytes=min_size,
            max_size_bytes=max_size,
            extensions=ext_list,
            excluded_dirs=excluded_dirs or [],
            mode=mode,
        )
