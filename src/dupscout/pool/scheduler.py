"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

pool/scheduler.py
Partitions an ordered item sequence into bounded batches and groups the
batches into waves of at most worker_count.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence


class BatchState(Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.COMPLETED, BatchState.FAILED)


_TRANSITIONS = {
    BatchState.PENDING: {BatchState.DISPATCHED},
    BatchState.DISPATCHED: {BatchState.COMPLETED, BatchState.FAILED},
    BatchState.COMPLETED: set(),
    BatchState.FAILED: set(),
}


@dataclass
class BatchJob:
    """A bounded slice of work items, owned by exactly one worker once dispatched."""
    batch_index: int
    items: List[Any]
    state: BatchState = BatchState.PENDING

    def __len__(self) -> int:
        return len(self.items)

    def mark_dispatched(self) -> None:
        self._move_to(BatchState.DISPATCHED)

    def mark_completed(self) -> None:
        self._move_to(BatchState.COMPLETED)

    def mark_failed(self) -> None:
        self._move_to(BatchState.FAILED)

    def _move_to(self, new_state: BatchState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Batch {self.batch_index}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def __repr__(self):
        return f"<BatchJob index={self.batch_index}, items={len(self.items)}, state={self.state.value}>"


@dataclass(frozen=True)
class PoolConfig:
    """
    worker_count caps concurrently open resources regardless of item count.
    batch_timeout is the wall-clock limit for one batch in seconds (None waits forever).
    """
    worker_count: int = 4
    batch_size: int = 50
    batch_timeout: Optional[float] = 600.0
    start_method: str = "spawn"
    poll_interval: float = 0.1
    skip_rate_warning: float = 0.10
    error_rate_warning: float = 0.05

    def __post_init__(self):
        if self.worker_count < 1:
            raise ValueError("Worker count must be at least 1")
        if self.batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        if self.batch_timeout is not None and self.batch_timeout <= 0:
            raise ValueError("Batch timeout must be positive or None")
        if self.poll_interval <= 0:
            raise ValueError("Poll interval must be positive")


class BatchScheduler:
    def __init__(self, config: PoolConfig):
        self.config = config

    def partition(self, items: Sequence[Any]) -> List[BatchJob]:
        """ceil(N / B) ordered batches; only the last may be short."""
        size = self.config.batch_size
        return [
            BatchJob(batch_index=index, items=list(items[start:start + size]))
            for index, start in enumerate(range(0, len(items), size))
        ]

    def waves(self, batches: List[BatchJob]) -> List[List[BatchJob]]:
        """Consecutive groups of at most worker_count batches."""
        width = self.config.worker_count
        return [batches[i:i + width] for i in range(0, len(batches), width)]

    def wave_count(self, item_count: int) -> int:
        batch_count = math.ceil(item_count / self.config.batch_size)
        return math.ceil(batch_count / self.config.worker_count)
