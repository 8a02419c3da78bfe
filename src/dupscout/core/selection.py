"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/selection.py
Smart selection: only records whose size collides with another record in the
corpus are worth fingerprinting. A record with a corpus-unique size cannot
have a duplicate.
"""

import logging
from collections import Counter
from typing import Iterable, List, Optional, Tuple

from dupscout.core.models import FileRecord, SelectionStats

logger = logging.getLogger(__name__)


class SmartSelection:
    """
    enabled=False forces exhaustive fingerprinting, which is needed when the
    inventory was ingested piecemeal and cross-batch sizes were never compared.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def select(
        self,
        candidates: List[FileRecord],
        corpus: Optional[Iterable[FileRecord]] = None
    ) -> Tuple[List[FileRecord], SelectionStats]:
        """
        Args:
            candidates: records lacking a fingerprint
            corpus: every record sizes are compared against; defaults to candidates.
                    Candidates are expected to be part of it.
        Returns:
            (kept records in input order, SelectionStats)
        """
        if not self.enabled:
            stats = SelectionStats(
                total_eligible=len(candidates),
                candidates_kept=len(candidates),
                candidates_skipped=0,
            )
            return list(candidates), stats

        size_counts = Counter(r.size for r in (candidates if corpus is None else corpus))
        kept = [r for r in candidates if size_counts[r.size] >= 2]

        stats = SelectionStats(
            total_eligible=len(candidates),
            candidates_kept=len(kept),
            candidates_skipped=len(candidates) - len(kept),
        )
        logger.info(
            "Smart selection kept %d of %d records (%.2f%% skipped)",
            stats.candidates_kept, stats.total_eligible, stats.percent_skipped
        )
        return kept, stats
