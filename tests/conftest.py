"""
Shared fixtures for dupscout tests.
Creates isolated temporary directories with controlled test files.
"""
import sys
import tempfile
import wave
from pathlib import Path
from typing import Dict

import pytest
from PIL import Image

from dupscout.core.models import FileRecord
from dupscout.services.repository import SqliteRepository

# Worker pool tests fork instead of spawn where the platform allows it
FORK_AVAILABLE = sys.platform != "win32"


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_files(temp_dir) -> Dict[str, Path]:
    """
    Creates controlled test files for detection scenarios:
    - 3 identical files of 1KB (one of them in a subdirectory)
    - 2 identical files of 2KB
    - 2 unique files
    - 1 empty file (filtered by scanner)
    - 1 file with .tmp extension
    """
    files = {}

    content_a = b"A" * 1024
    files["dup1_a"] = temp_dir / "dup1_a.txt"
    files["dup1_b"] = temp_dir / "dup1_b.txt"
    files["dup1_a"].write_bytes(content_a)
    files["dup1_b"].write_bytes(content_a)

    content_b = b"B" * 2048
    files["dup2_a"] = temp_dir / "dup2_a.txt"
    files["dup2_b"] = temp_dir / "dup2_b.txt"
    files["dup2_a"].write_bytes(content_b)
    files["dup2_b"].write_bytes(content_b)

    files["unique1"] = temp_dir / "unique1.txt"
    files["unique1"].write_bytes(b"C" * 1500)
    files["unique2"] = temp_dir / "unique2.txt"
    files["unique2"].write_bytes(b"D" * 2500)

    files["empty"] = temp_dir / "empty.txt"
    files["empty"].write_bytes(b"")

    files["filtered"] = temp_dir / "ignore.tmp"
    files["filtered"].write_bytes(b"E" * 1024)

    subdir = temp_dir / "subdir"
    subdir.mkdir()
    files["sub_dup"] = subdir / "dup_in_subdir.txt"
    files["sub_dup"].write_bytes(content_a)

    return files


def make_record(path: Path) -> FileRecord:
    """FileRecord for an existing file, as the scanner would build it."""
    stat_result = path.stat()
    return FileRecord(
        path=str(path),
        size=stat_result.st_size,
        mtime=stat_result.st_mtime,
        atime=stat_result.st_atime,
        ctime=stat_result.st_ctime,
    )


def write_png(path: Path, size=(4, 3)) -> Path:
    Image.new("RGB", size, color="blue").save(path, "PNG")
    return path


def write_wav(path: Path, seconds: int = 1, rate: int = 8000) -> Path:
    """Mono 16-bit PCM silence."""
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * rate * seconds)
    return path


@pytest.fixture
def db_path(tmp_path) -> str:
    """Lives outside temp_dir so scans of temp_dir never see the database."""
    return str(tmp_path / "inventory.db")


@pytest.fixture
def repository(db_path):
    with SqliteRepository(db_path) as repo:
        yield repo
