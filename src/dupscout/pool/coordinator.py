"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

pool/coordinator.py
Runs a WorkTask over many items in waves of at most worker_count processes.

SCHEDULING
----------
Items are split into batches of batch_size; batches are grouped into waves.
Each batch of a wave runs in its own process from a multiprocessing context
("spawn" by default). The coordinator blocks until every batch of the wave is
resolved before it starts the next wave, so at most worker_count processes
(and their file handles and storage connections) exist at any time.

RESOLUTION
----------
A batch resolves exactly once, as completed (Complete message) or failed:
  • the worker reported Failure
  • the process exited without reporting Complete (crash, non-zero exit)
  • the wave ran longer than batch_timeout; the process is terminated
Items of a failed batch that no Progress message accounted for are counted
as failed. Failed batches are never retried and never stop the run, except
fatal (storage) failures, which raise RepositoryError once the wave is over.

All aggregation happens here, synchronously, as messages arrive.
"""

import logging
import multiprocessing
import queue as queue_module
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from dupscout.core.errors import RepositoryError
from dupscout.core.interfaces import WorkTask
from dupscout.pool.messages import (
    Complete, Failure, ItemDetail, Progress, RunResult, WaveFinished, WaveStarted,
    WorkerMessage, WorkResult
)
from dupscout.pool.scheduler import BatchJob, BatchScheduler, PoolConfig
from dupscout.pool.worker import run_batch

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


@dataclass
class _BatchSlot:
    batch: BatchJob
    process: Any
    last_progress: Optional[Progress] = None

    @property
    def items_accounted(self) -> int:
        return self.last_progress.items_processed if self.last_progress else 0


class WorkerPoolCoordinator:
    def __init__(self, config: Optional[PoolConfig] = None):
        self.config = config or PoolConfig()
        self.scheduler = BatchScheduler(self.config)
        self._ctx = multiprocessing.get_context(self.config.start_method)
        self.live_processed = 0

    def run(
        self,
        items: Sequence[Any],
        task: WorkTask,
        event_callback: Optional[EventCallback] = None
    ) -> RunResult:
        """
        Applies task to every item exactly once.

        Raises:
            RepositoryError: a worker hit a storage failure (after its wave finished)
        """
        batches = self.scheduler.partition(items)
        waves = self.scheduler.waves(batches)
        result = RunResult(total_items=len(items), waves=len(waves))
        self.live_processed = 0

        logger.info(
            "Processing %d items in %d batches of up to %d (%d workers, %d waves)",
            len(items), len(batches), self.config.batch_size, self.config.worker_count, len(waves)
        )

        for wave_index, wave in enumerate(waves):
            self._emit(event_callback, WaveStarted(
                wave_index=wave_index,
                total_waves=len(waves),
                batch_indices=tuple(b.batch_index for b in wave),
            ))

            fatal_errors = self._run_wave(wave, task, result, event_callback)

            self._emit(event_callback, WaveFinished(
                wave_index=wave_index,
                total_waves=len(waves),
                processed=self.live_processed,
            ))
            logger.info("Wave %d/%d finished: %d/%d items processed",
                        wave_index + 1, len(waves), self.live_processed, len(items))

            if fatal_errors:
                raise RepositoryError(f"Storage failure in worker: {fatal_errors[0]}")

        self._add_advisory_warnings(result)
        return result

    # =============================
    # Wave execution
    # =============================

    def _run_wave(
        self,
        wave: List[BatchJob],
        task: WorkTask,
        result: RunResult,
        event_callback: Optional[EventCallback]
    ) -> List[str]:
        messages = self._ctx.Queue()
        slots: Dict[int, _BatchSlot] = {}
        fatal_errors: List[str] = []

        for batch in wave:
            process = self._ctx.Process(
                target=run_batch,
                args=(batch, task, messages),
                name=f"dupscout-batch-{batch.batch_index}",
                daemon=True,
            )
            batch.mark_dispatched()
            process.start()
            slots[batch.batch_index] = _BatchSlot(batch=batch, process=process)

        pending = set(slots)
        started = time.monotonic()

        def handle(message: WorkerMessage) -> None:
            self._handle_message(message, slots, pending, result, fatal_errors, event_callback)

        try:
            while pending:
                try:
                    handle(messages.get(timeout=self.config.poll_interval))
                except queue_module.Empty:
                    pass

                self._reap_exited(slots, pending, messages, handle)

                timeout = self.config.batch_timeout
                if pending and timeout is not None and time.monotonic() - started > timeout:
                    self._terminate_stuck(slots, pending, handle, timeout)
        finally:
            # Left pending only when the loop raised; nobody reads their pipe any more
            for index in pending:
                slots[index].process.terminate()
            for slot in slots.values():
                slot.process.join()
            messages.close()
            messages.join_thread()

        return fatal_errors

    def _handle_message(
        self,
        message: WorkerMessage,
        slots: Dict[int, _BatchSlot],
        pending: set,
        result: RunResult,
        fatal_errors: List[str],
        event_callback: Optional[EventCallback]
    ) -> None:
        if message.batch_index not in pending:
            logger.debug("Ignoring message for resolved batch %d", message.batch_index)
            return
        slot = slots[message.batch_index]

        match message:
            case Progress(items_processed=items_processed):
                self.live_processed += items_processed - slot.items_accounted
                slot.last_progress = message

            case Complete(result=work):
                self.live_processed += work.processed - slot.items_accounted
                slot.batch.mark_completed()
                result.merge(work)
                result.batches_completed += 1
                pending.discard(message.batch_index)

            case Failure(error=error, exitcode=exitcode, fatal=fatal):
                self._fail_batch(slot, error, result)
                pending.discard(message.batch_index)
                if fatal:
                    fatal_errors.append(error)
                logger.error("Batch %d failed (exit code %s): %s",
                             message.batch_index, exitcode, error)

            case _:
                raise TypeError(f"Unknown worker message: {message!r}")

        self._emit(event_callback, message)

    def _fail_batch(self, slot: _BatchSlot, error: str, result: RunResult) -> None:
        """Counts everything the worker did not account for as failed."""
        batch = slot.batch
        last = slot.last_progress
        unaccounted = len(batch) - slot.items_accounted
        self.live_processed += unaccounted

        batch.mark_failed()
        result.batches_failed += 1
        result.merge(WorkResult(
            processed=len(batch),
            succeeded=last.succeeded if last else 0,
            skipped=last.skipped if last else 0,
            failed=(last.failed if last else 0) + unaccounted,
            error_details=(ItemDetail(f"batch {batch.batch_index}", error),),
        ))

    def _reap_exited(self, slots, pending, messages, handle) -> None:
        """Resolves batches whose process exited without a terminal message."""
        for index in list(pending):
            process = slots[index].process
            if process.is_alive():
                continue
            # Messages written before exit are still in the pipe
            self._drain(messages, handle)
            if index in pending:
                handle(Failure(
                    batch_index=index,
                    error=f"Worker exited with code {process.exitcode} before completing its batch",
                    exitcode=process.exitcode,
                    batch_size=len(slots[index].batch),
                ))

    def _terminate_stuck(self, slots, pending, handle, timeout: float) -> None:
        # The queue is not drained here: a worker killed mid-put can leave a
        # partial message behind. Last Progress seen is what gets accounted.
        for index in list(pending):
            slots[index].process.terminate()
        for index in list(pending):
            slots[index].process.join()
        for index in list(pending):
            handle(Failure(
                batch_index=index,
                error=f"Batch timed out after {timeout:.1f}s; worker terminated",
                exitcode=slots[index].process.exitcode,
                batch_size=len(slots[index].batch),
            ))

    @staticmethod
    def _drain(messages, handle) -> None:
        while True:
            try:
                message = messages.get_nowait()
            except queue_module.Empty:
                return
            handle(message)

    # =============================
    # Reporting
    # =============================

    def _add_advisory_warnings(self, result: RunResult) -> None:
        if result.skip_rate > self.config.skip_rate_warning:
            result.warnings.append(
                f"High skip rate ({result.skip_rate * 100:.1f}%). "
                f"Check file accessibility or format support."
            )
        if result.error_rate > self.config.error_rate_warning:
            result.warnings.append(
                f"High error rate ({result.error_rate * 100:.1f}%). Review error details."
            )
        for warning in result.warnings:
            logger.warning(warning)

    @staticmethod
    def _emit(event_callback: Optional[EventCallback], event: Any) -> None:
        if event_callback:
            event_callback(event)
