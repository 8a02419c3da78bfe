"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

pool/messages.py
Messages exchanged between worker processes and the coordinator, plus the
per-batch and per-run result types.

Worker → coordinator (one direction only):
    Progress  : cumulative counts within one batch
    Complete  : terminal, carries the batch WorkResult
    Failure   : terminal, sent by the worker or synthesized by the coordinator

Coordinator → presentation layer (event_callback):
    the three messages above plus WaveStarted / WaveFinished
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class ItemDetail:
    item: str
    message: str


@dataclass(frozen=True)
class WorkResult:
    """Outcome of one batch. Immutable once emitted."""
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    skip_details: Tuple[ItemDetail, ...] = ()
    error_details: Tuple[ItemDetail, ...] = ()


@dataclass(frozen=True)
class Progress:
    batch_index: int
    items_processed: int
    current_item: str
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass(frozen=True)
class Complete:
    batch_index: int
    result: WorkResult


@dataclass(frozen=True)
class Failure:
    batch_index: int
    error: str
    exitcode: Optional[int] = None
    fatal: bool = False  # storage failure: the run stops after this wave
    batch_size: Optional[int] = None


WorkerMessage = Union[Progress, Complete, Failure]


@dataclass(frozen=True)
class WaveStarted:
    wave_index: int
    total_waves: int
    batch_indices: Tuple[int, ...]


@dataclass(frozen=True)
class WaveFinished:
    wave_index: int
    total_waves: int
    processed: int


@dataclass
class RunResult:
    """Run-level aggregate, mutated only by the coordinator."""
    total_items: int = 0
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    skip_details: List[ItemDetail] = field(default_factory=list)
    error_details: List[ItemDetail] = field(default_factory=list)
    batches_completed: int = 0
    batches_failed: int = 0
    waves: int = 0
    warnings: List[str] = field(default_factory=list)

    def merge(self, result: WorkResult) -> None:
        self.processed += result.processed
        self.succeeded += result.succeeded
        self.skipped += result.skipped
        self.failed += result.failed
        self.skip_details.extend(result.skip_details)
        self.error_details.extend(result.error_details)

    @property
    def skip_rate(self) -> float:
        return self.skipped / self.processed if self.processed else 0.0

    @property
    def error_rate(self) -> float:
        return self.failed / self.processed if self.processed else 0.0
