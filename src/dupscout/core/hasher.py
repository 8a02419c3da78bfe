"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/hasher.py
Hash strategy module: fingerprints one file under a selectable HashStrategy.

Strategies are dispatched through a single function table keyed by the
HashStrategy enum. Exact strategies (FULL, STREAMING) use SHA-256 and produce
identical output; probabilistic ones (QUICK, SAMPLING) use xxHash and are only
ever prefilters. SMART is a size-based policy over the other four.

Any OSError raised while opening or reading a file is converted into
ItemIOError so callers can drop the single item and carry on.
"""

import hashlib
import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Optional

import xxhash

from dupscout.core.errors import ItemIOError
from dupscout.core.interfaces import Digest, HashAlgorithm, Hasher
from dupscout.core.models import FileRecord, HashStrategy


@dataclass(frozen=True)
class HashParams:
    quick_chunk_size: int = 8192
    sample_count: int = 10
    sample_size: int = 8192
    stream_block_size: int = 1024 * 1024
    full_read_limit: int = 64 * 1024 * 1024  # above this, FULL streams
    smart_full_threshold: int = 1024 * 1024
    smart_sampling_threshold: int = 100 * 1024 * 1024

    def __post_init__(self):
        for name in ("quick_chunk_size", "sample_count", "sample_size", "stream_block_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.smart_sampling_threshold < self.smart_full_threshold:
            raise ValueError("smart_sampling_threshold cannot be below smart_full_threshold")


# Use the same way to plug in any other digest
class Sha256AlgorithmImpl(HashAlgorithm):
    name = "sha256"

    def new(self) -> Digest:
        return hashlib.sha256()


class XXHashAlgorithmImpl(HashAlgorithm):
    name = "xxh3_128"

    def new(self) -> Digest:
        return xxhash.xxh3_128()


StrategyFunc = Callable[[BinaryIO, int, HashParams, str], str]


class HasherImpl(Hasher):
    """
    Computes fingerprints for files.

    exact_algorithm backs FULL/STREAMING, fast_algorithm backs QUICK/SAMPLING.
    """

    def __init__(
        self,
        exact_algorithm: Optional[HashAlgorithm] = None,
        fast_algorithm: Optional[HashAlgorithm] = None,
        params: Optional[HashParams] = None,
    ):
        self.exact_algorithm = exact_algorithm or Sha256AlgorithmImpl()
        self.fast_algorithm = fast_algorithm or XXHashAlgorithmImpl()
        self.params = params or HashParams()
        self._strategies: Dict[HashStrategy, StrategyFunc] = {
            HashStrategy.FULL: self._full,
            HashStrategy.QUICK: self._quick,
            HashStrategy.STREAMING: self._streaming,
            HashStrategy.SAMPLING: self._sampling,
            HashStrategy.SMART: self._smart,
        }

    def fingerprint(
        self,
        path: str,
        strategy: HashStrategy,
        params: Optional[HashParams] = None
    ) -> str:
        """
        Returns the hex fingerprint of the file at path.

        Raises:
            ItemIOError: the file is unreadable, vanished, or changed size mid-read.
        """
        params = params or self.params
        try:
            with open(path, 'rb') as f:
                size = os.fstat(f.fileno()).st_size
                return self._strategies[strategy](f, size, params, path)
        except ItemIOError:
            raise
        except OSError as e:
            raise ItemIOError(path, e.strerror or str(e)) from e

    def compute_quick_hash(self, record: FileRecord) -> str:
        """Quick fingerprint of a record, attached to record.quick_hash."""
        if record.quick_hash is None:
            record.quick_hash = self.fingerprint(record.path, HashStrategy.QUICK)
        return record.quick_hash

    def compute_full_hash(self, record: FileRecord) -> str:
        """
        Exact fingerprint of a record, attached to record.content_hash.
        """
        if record.content_hash is None:
            record.content_hash = self.fingerprint(record.path, HashStrategy.FULL)
        return record.content_hash

    @staticmethod
    def resolve_smart(size: int, params: HashParams) -> HashStrategy:
        """The concrete strategy SMART delegates to for a file of this size."""
        if size <= params.smart_full_threshold:
            return HashStrategy.FULL
        if size <= params.smart_sampling_threshold:
            return HashStrategy.SAMPLING
        return HashStrategy.QUICK

    # =============================
    # Strategy implementations
    # =============================

    def _full(self, f: BinaryIO, size: int, params: HashParams, path: str) -> str:
        # Digest is identical to STREAMING
        if size > params.full_read_limit:
            return self._streaming(f, size, params, path)
        data = f.read()
        if len(data) != size:
            raise ItemIOError(path, f"size changed while reading ({size} -> {len(data)} bytes)")
        digest = self.exact_algorithm.new()
        digest.update(data)
        return digest.hexdigest()

    def _streaming(self, f: BinaryIO, size: int, params: HashParams, path: str) -> str:
        digest = self.exact_algorithm.new()
        total = 0
        while True:
            block = f.read(params.stream_block_size)
            if not block:
                break
            digest.update(block)
            total += len(block)
        if total != size:
            raise ItemIOError(path, f"size changed while reading ({size} -> {total} bytes)")
        return digest.hexdigest()

    def _quick(self, f: BinaryIO, size: int, params: HashParams, path: str) -> str:
        chunk = params.quick_chunk_size
        digest = self.fast_algorithm.new()
        head = f.read(chunk)
        if len(head) != min(chunk, size):
            raise ItemIOError(path, "short read at start of file")
        digest.update(head)
        if size > chunk:
            f.seek(size - chunk)
            tail = f.read(chunk)
            if len(tail) != chunk:
                raise ItemIOError(path, "short read at end of file")
            digest.update(tail)
        return digest.hexdigest()

    def _sampling(self, f: BinaryIO, size: int, params: HashParams, path: str) -> str:
        window = min(params.sample_size, size)
        digest = self.fast_algorithm.new()
        # Size discriminator: equal windows in files of different sizes never collide
        digest.update(str(size).encode("ascii"))
        if window == 0:
            return digest.hexdigest()
        for i in range(params.sample_count):
            position = (size * i) // params.sample_count
            position = max(0, min(position, size - window))
            f.seek(position)
            data = f.read(window)
            if len(data) != window:
                raise ItemIOError(path, f"short read at offset {position}")
            digest.update(data)
        return digest.hexdigest()

    def _smart(self, f: BinaryIO, size: int, params: HashParams, path: str) -> str:
        strategy = self.resolve_smart(size, params)
        return self._strategies[strategy](f, size, params, path)
