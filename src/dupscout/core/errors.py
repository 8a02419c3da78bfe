"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/errors.py
Error taxonomy shared by the detection engine and the worker pool.

ItemIOError     : one file could not be read; the item is dropped, the run goes on
WorkerFailure   : a whole batch could not be processed by its worker
RepositoryError : storage failure; fatal for the run, never retried
"""


class ItemIOError(IOError):
    """A single file was unreadable or vanished while being read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason

    def __reduce__(self):
        return self.__class__, (self.path, self.reason)


class WorkerFailure(RuntimeError):
    """A batch could not be completed by its worker process."""


class RepositoryError(RuntimeError):
    """Storage read/write failed."""
