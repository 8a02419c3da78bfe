from .coordinator import WorkerPoolCoordinator
from .messages import (
    Complete, Failure, ItemDetail, Progress, RunResult, WaveFinished, WaveStarted, WorkResult
)
from .scheduler import BatchJob, BatchScheduler, BatchState, PoolConfig
from .tasks import METADATA_TASKS, HashTask, ImageMetadataTask, MusicMetadataTask

__all__ = [
    'WorkerPoolCoordinator',
    'PoolConfig',
    'BatchScheduler',
    'BatchJob',
    'BatchState',
    'Progress',
    'Complete',
    'Failure',
    'ItemDetail',
    'WorkResult',
    'RunResult',
    'WaveStarted',
    'WaveFinished',
    'HashTask',
    'ImageMetadataTask',
    'MusicMetadataTask',
    'METADATA_TASKS',
]
