"""
Tests for FileScannerImpl: filters, exclusions and special files.
"""
import os
import sys

import pytest

from dupscout.core import FileScannerImpl


def names(records):
    return sorted(os.path.basename(r.path) for r in records)


class TestFileScanner:
    def test_finds_files_recursively_and_skips_empty(self, temp_dir, test_files):
        records = FileScannerImpl(str(temp_dir)).scan()

        assert "dup_in_subdir.txt" in names(records)
        assert "empty.txt" not in names(records)
        assert len(records) == len(test_files) - 1

    def test_records_carry_timestamps(self, temp_dir, test_files):
        record = next(r for r in FileScannerImpl(str(temp_dir)).scan() if r.path.endswith("unique1.txt"))

        assert record.size == 1500
        assert record.mtime > 0
        assert record.extension == ".txt"

    def test_size_filters(self, temp_dir, test_files):
        records = FileScannerImpl(str(temp_dir), min_size=1500, max_size=2048).scan()

        assert names(records) == ["dup2_a.txt", "dup2_b.txt", "unique1.txt"]

    def test_extension_filter(self, temp_dir, test_files):
        records = FileScannerImpl(str(temp_dir), extensions=[".TMP"]).scan()

        assert names(records) == ["ignore.tmp"]

    def test_excluded_dirs(self, temp_dir, test_files):
        records = FileScannerImpl(str(temp_dir), excluded_dirs=[str(temp_dir / "subdir")]).scan()

        assert "dup_in_subdir.txt" not in names(records)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinks_skipped(self, temp_dir, test_files):
        (temp_dir / "link.txt").symlink_to(test_files["dup1_a"])
        (temp_dir / "linkdir").symlink_to(temp_dir / "subdir")

        records = FileScannerImpl(str(temp_dir)).scan()

        assert "link.txt" not in names(records)
        assert names(records).count("dup_in_subdir.txt") == 1

    def test_progress_reported_at_end(self, temp_dir, test_files):
        calls = []

        FileScannerImpl(str(temp_dir)).scan(progress_callback=lambda *args: calls.append(args))

        assert calls[-1] == ("scanning", len(test_files), None)

    def test_missing_root_raises(self, temp_dir):
        with pytest.raises(RuntimeError):
            FileScannerImpl(str(temp_dir / "nope")).scan()

    def test_file_as_root_raises(self, test_files):
        with pytest.raises(RuntimeError):
            FileScannerImpl(str(test_files["unique1"])).scan()
