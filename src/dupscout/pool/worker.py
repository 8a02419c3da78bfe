"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

pool/worker.py
Worker process entry point. Runs one task over one batch and reports through
the message queue only: Progress after every item, then Complete or Failure.

Per-item errors (OSError, ValueError) are counted and recorded; they never end
the batch. A task that cannot be set up fails the whole batch (WorkerFailure).
A RepositoryError ends the batch and is reported as fatal. Anything else
crashes the process, which the coordinator detects from the exit code.
"""

from typing import Any, List

from dupscout.core.errors import RepositoryError, WorkerFailure
from dupscout.core.interfaces import WorkTask
from dupscout.pool.messages import Complete, Failure, ItemDetail, Progress, WorkResult
from dupscout.pool.scheduler import BatchJob


def run_batch(batch: BatchJob, task: WorkTask, queue: Any) -> None:
    """Entry point executed inside a worker process."""
    succeeded = skipped = failed = 0
    skip_details: List[ItemDetail] = []
    error_details: List[ItemDetail] = []

    try:
        try:
            task.open()
        except (OSError, ValueError) as e:
            raise WorkerFailure(f"Task setup failed: {e}") from e
        try:
            for position, item in enumerate(batch.items, 1):
                label = task.label(item)
                try:
                    skip_reason = task.process(item)
                except (OSError, ValueError) as e:
                    failed += 1
                    error_details.append(ItemDetail(label, str(e)))
                else:
                    if skip_reason is None:
                        succeeded += 1
                    else:
                        skipped += 1
                        skip_details.append(ItemDetail(label, skip_reason))

                queue.put(Progress(
                    batch_index=batch.batch_index,
                    items_processed=position,
                    current_item=label,
                    succeeded=succeeded,
                    skipped=skipped,
                    failed=failed,
                ))
        finally:
            task.close()
    except RepositoryError as e:
        queue.put(Failure(batch_index=batch.batch_index, error=str(e), fatal=True, batch_size=len(batch)))
        return
    except WorkerFailure as e:
        queue.put(Failure(batch_index=batch.batch_index, error=str(e), batch_size=len(batch)))
        return

    queue.put(Complete(
        batch_index=batch.batch_index,
        result=WorkResult(
            processed=len(batch.items),
            succeeded=succeeded,
            skipped=skipped,
            failed=failed,
            skip_details=tuple(skip_details),
            error_details=tuple(error_details),
        ),
    ))
