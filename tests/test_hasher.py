"""
Unit tests for HasherImpl.
Covers every strategy, the exact/probabilistic split and per-item IO errors.
"""
import hashlib

import pytest

from dupscout.core import HasherImpl, HashParams, HashStrategy, ItemIOError, FileRecord


@pytest.fixture
def hasher():
    return HasherImpl()


class TestExactStrategies:
    def test_full_is_sha256_of_content(self, temp_dir, hasher):
        path = temp_dir / "a.bin"
        path.write_bytes(b"hello world")

        assert hasher.fingerprint(str(path), HashStrategy.FULL) == hashlib.sha256(b"hello world").hexdigest()

    def test_streaming_matches_full(self, temp_dir):
        """Streaming reads in small blocks but must produce the same digest."""
        path = temp_dir / "big.bin"
        path.write_bytes(bytes(range(256)) * 100)
        hasher = HasherImpl(params=HashParams(stream_block_size=1000))

        full = hasher.fingerprint(str(path), HashStrategy.FULL)
        streaming = hasher.fingerprint(str(path), HashStrategy.STREAMING)

        assert full == streaming

    def test_full_streams_above_read_limit(self, temp_dir, monkeypatch):
        """FULL on a file above full_read_limit reads in blocks, same SHA-256."""
        content = bytes(range(256)) * 40
        path = temp_dir / "large.bin"
        path.write_bytes(content)
        hasher = HasherImpl(params=HashParams(full_read_limit=1024, stream_block_size=512))

        streamed = []
        original = hasher._streaming

        def spy(f, size, params, path_):
            streamed.append(size)
            return original(f, size, params, path_)

        monkeypatch.setattr(hasher, "_streaming", spy)

        assert hasher.fingerprint(str(path), HashStrategy.FULL) == hashlib.sha256(content).hexdigest()
        assert streamed == [len(content)]

    def test_full_below_read_limit_reads_at_once(self, temp_dir, monkeypatch):
        path = temp_dir / "small.bin"
        path.write_bytes(b"tiny")
        hasher = HasherImpl(params=HashParams(full_read_limit=1024))
        monkeypatch.setattr(hasher, "_streaming", lambda *args: pytest.fail("streamed a small file"))

        assert hasher.fingerprint(str(path), HashStrategy.FULL) == hashlib.sha256(b"tiny").hexdigest()

    def test_different_content_same_size_differs(self, temp_dir, hasher):
        a = temp_dir / "a.bin"
        b = temp_dir / "b.bin"
        a.write_bytes(b"X" * 500 + b"1" + b"X" * 500)
        b.write_bytes(b"X" * 500 + b"2" + b"X" * 500)

        assert hasher.fingerprint(str(a), HashStrategy.FULL) != hasher.fingerprint(str(b), HashStrategy.FULL)


class TestQuickStrategy:
    def test_quick_ignores_middle_of_file(self, temp_dir):
        """Quick hash only sees the first and last chunk: a middle change goes unnoticed."""
        params = HashParams(quick_chunk_size=16)
        hasher = HasherImpl(params=params)
        a = temp_dir / "a.bin"
        b = temp_dir / "b.bin"
        a.write_bytes(b"H" * 16 + b"middle-one" + b"T" * 16)
        b.write_bytes(b"H" * 16 + b"middle-two" + b"T" * 16)

        assert hasher.fingerprint(str(a), HashStrategy.QUICK) == hasher.fingerprint(str(b), HashStrategy.QUICK)
        assert hasher.fingerprint(str(a), HashStrategy.FULL) != hasher.fingerprint(str(b), HashStrategy.FULL)

    def test_quick_detects_tail_change(self, temp_dir):
        hasher = HasherImpl(params=HashParams(quick_chunk_size=16))
        a = temp_dir / "a.bin"
        b = temp_dir / "b.bin"
        a.write_bytes(b"H" * 100 + b"end1")
        b.write_bytes(b"H" * 100 + b"end2")

        assert hasher.fingerprint(str(a), HashStrategy.QUICK) != hasher.fingerprint(str(b), HashStrategy.QUICK)

    def test_quick_small_file(self, temp_dir, hasher):
        """Files shorter than one chunk are hashed whole."""
        path = temp_dir / "tiny.bin"
        path.write_bytes(b"abc")

        assert hasher.fingerprint(str(path), HashStrategy.QUICK)


class TestSamplingStrategy:
    def test_size_discriminator(self, temp_dir):
        """Same sampled bytes, different sizes: fingerprints must differ."""
        hasher = HasherImpl(params=HashParams(sample_count=2, sample_size=4))
        a = temp_dir / "a.bin"
        b = temp_dir / "b.bin"
        a.write_bytes(b"Z" * 100)
        b.write_bytes(b"Z" * 101)

        assert hasher.fingerprint(str(a), HashStrategy.SAMPLING) != hasher.fingerprint(str(b), HashStrategy.SAMPLING)

    def test_windows_clamped_for_small_files(self, temp_dir):
        """Windows larger than the file are clamped; no short read error."""
        hasher = HasherImpl(params=HashParams(sample_count=10, sample_size=8192))
        path = temp_dir / "small.bin"
        path.write_bytes(b"0123456789")

        assert hasher.fingerprint(str(path), HashStrategy.SAMPLING)

    def test_deterministic(self, temp_dir, hasher):
        path = temp_dir / "data.bin"
        path.write_bytes(bytes(range(256)) * 400)

        assert hasher.fingerprint(str(path), HashStrategy.SAMPLING) == \
            hasher.fingerprint(str(path), HashStrategy.SAMPLING)


class TestSmartStrategy:
    @pytest.mark.parametrize("size,expected", [
        (100, HashStrategy.FULL),
        (1024 * 1024, HashStrategy.FULL),
        (1024 * 1024 + 1, HashStrategy.SAMPLING),
        (100 * 1024 * 1024, HashStrategy.SAMPLING),
        (100 * 1024 * 1024 + 1, HashStrategy.QUICK),
    ])
    def test_resolve_smart_thresholds(self, size, expected):
        assert HasherImpl.resolve_smart(size, HashParams()) is expected

    def test_small_file_delegates_to_full(self, temp_dir, hasher):
        path = temp_dir / "small.txt"
        path.write_bytes(b"content" * 10)

        assert hasher.fingerprint(str(path), HashStrategy.SMART) == \
            hasher.fingerprint(str(path), HashStrategy.FULL)

    def test_medium_file_delegates_to_sampling(self, temp_dir):
        params = HashParams(smart_full_threshold=10, smart_sampling_threshold=1000)
        hasher = HasherImpl(params=params)
        path = temp_dir / "medium.bin"
        path.write_bytes(b"m" * 500)

        assert hasher.fingerprint(str(path), HashStrategy.SMART) == \
            hasher.fingerprint(str(path), HashStrategy.SAMPLING)


class TestErrors:
    def test_missing_file_raises_item_io_error(self, temp_dir, hasher):
        missing = temp_dir / "gone.bin"

        with pytest.raises(ItemIOError) as exc_info:
            hasher.fingerprint(str(missing), HashStrategy.FULL)

        assert exc_info.value.path == str(missing)

    def test_item_io_error_is_ioerror(self):
        """Callers that only know about IOError still catch it."""
        assert issubclass(ItemIOError, IOError)

    def test_invalid_params_rejected(self):
        with pytest.raises(ValueError):
            HashParams(quick_chunk_size=0)
        with pytest.raises(ValueError):
            HashParams(smart_full_threshold=10, smart_sampling_threshold=5)


class TestRecordHashes:
    def test_full_hash_cached_on_record(self, temp_dir, hasher):
        path = temp_dir / "r.bin"
        path.write_bytes(b"record")
        record = FileRecord(path=str(path), size=6)

        first = hasher.compute_full_hash(record)
        path.write_bytes(b"other!")

        assert record.content_hash == first
        assert hasher.compute_full_hash(record) == first

    def test_quick_hash_attached(self, temp_dir, hasher):
        path = temp_dir / "r.bin"
        path.write_bytes(b"record")
        record = FileRecord(path=str(path), size=6)

        assert hasher.compute_quick_hash(record) == record.quick_hash
