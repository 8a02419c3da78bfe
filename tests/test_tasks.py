"""
Tests for the worker tasks, called in-process.
"""
import hashlib
import pickle

import pytest
from PIL import Image

from dupscout.core import HashStrategy
from dupscout.pool.tasks import (
    AUDIO_EXTENSIONS, METADATA_TASKS, HashTask, ImageMetadataTask, MusicMetadataTask,
    read_image_metadata, read_music_metadata
)
from conftest import make_record, write_wav


@pytest.fixture
def stored(repository, test_files):
    """Stores every non-empty test file; returns records by name."""
    repository.store_files([make_record(p) for p in test_files.values() if p.stat().st_size > 0])
    by_path = {r.path: r for r in repository.records()}
    return {name: by_path[str(path)] for name, path in test_files.items() if str(path) in by_path}


def run_task(task, record):
    task.open()
    try:
        return task.process(record)
    finally:
        task.close()


class TestHashTask:
    def test_task_is_picklable_before_open(self, db_path):
        task = HashTask(db_path=db_path, strategy=HashStrategy.FULL)

        assert pickle.loads(pickle.dumps(task)) == task

    def test_stores_full_and_quick_hash(self, db_path, repository, stored, test_files):
        record = stored["dup1_a"]

        assert run_task(HashTask(db_path=db_path, strategy=HashStrategy.FULL), record) is None

        row = repository.stored_hash(record.id)
        assert row["hash"] == hashlib.sha256(test_files["dup1_a"].read_bytes()).hexdigest()
        assert row["quick_hash"]
        assert row["hash_strategy"] == "full"

    def test_smart_stores_resolved_strategy(self, db_path, repository, stored):
        record = stored["unique1"]

        run_task(HashTask(db_path=db_path), record)

        assert repository.stored_hash(record.id)["hash_strategy"] == "full"

    def test_quick_strategy_reuses_hash(self, db_path, repository, stored):
        record = stored["dup2_a"]

        run_task(HashTask(db_path=db_path, strategy=HashStrategy.QUICK), record)

        row = repository.stored_hash(record.id)
        assert row["hash"] == row["quick_hash"]

    def test_missing_file_skipped(self, db_path, stored, test_files):
        test_files["unique2"].unlink()

        assert run_task(HashTask(db_path=db_path), stored["unique2"]) == "file not found"


class TestImageMetadataTask:
    @pytest.fixture
    def photo(self, temp_dir, repository):
        path = temp_dir / "photo.jpg"
        exif = Image.Exif()
        exif[0x010F] = "Canon"
        exif[0x0110] = "EOS 5D"
        exif[0x0132] = "2024:01:02 03:04:05"
        Image.new("RGB", (4, 3), color="red").save(path, "JPEG", exif=exif)
        repository.store_files([make_record(path)])
        return repository.records()[-1]

    def test_reads_dimensions_and_exif(self, photo):
        metadata = read_image_metadata(photo.path)

        assert (metadata["width"], metadata["height"]) == (4, 3)
        assert metadata["format"] == "JPEG"
        assert metadata["camera_make"] == "Canon"
        assert metadata["camera_model"] == "EOS 5D"
        assert metadata["date_taken"] == "2024:01:02 03:04:05"

    def test_stores_metadata(self, db_path, repository, photo):
        assert run_task(ImageMetadataTask(db_path=db_path), photo) is None

        assert repository.image_metadata(photo.id)["camera_make"] == "Canon"

    def test_skip_existing(self, db_path, photo):
        run_task(ImageMetadataTask(db_path=db_path), photo)

        assert run_task(ImageMetadataTask(db_path=db_path, skip_existing=True), photo) == "metadata already stored"
        assert run_task(ImageMetadataTask(db_path=db_path, skip_existing=False), photo) is None

    def test_non_image_skipped(self, db_path, stored):
        reason = run_task(ImageMetadataTask(db_path=db_path), stored["dup1_a"])

        assert reason.startswith("not an image")

    def test_corrupt_image_is_item_error(self, temp_dir):
        broken = temp_dir / "broken.png"
        broken.write_bytes(b"definitely not a png")

        with pytest.raises(OSError):
            read_image_metadata(str(broken))


class TestMusicMetadataTask:
    @pytest.fixture
    def recording(self, temp_dir, repository):
        path = write_wav(temp_dir / "take.wav", seconds=2, rate=8000)
        repository.store_files([make_record(path)])
        return repository.records()[-1]

    def test_reads_stream_properties(self, recording):
        metadata = read_music_metadata(recording.path)

        assert metadata["duration"] == 2.0
        assert metadata["sample_rate"] == 8000
        assert metadata["channels"] == 1
        assert metadata["title"] is None

    def test_stores_metadata(self, db_path, repository, recording):
        assert run_task(MusicMetadataTask(db_path=db_path), recording) is None

        assert repository.music_metadata(recording.id)["sample_rate"] == 8000
        assert run_task(MusicMetadataTask(db_path=db_path), recording) == "metadata already stored"

    def test_non_audio_skipped(self, db_path, stored):
        reason = run_task(MusicMetadataTask(db_path=db_path), stored["dup1_a"])

        assert reason.startswith("not an audio file")

    def test_corrupt_audio_is_item_error(self, temp_dir):
        broken = temp_dir / "broken.flac"
        broken.write_bytes(b"definitely not audio")

        with pytest.raises(OSError):
            read_music_metadata(str(broken))

    def test_registry_by_kind(self):
        assert METADATA_TASKS["image"] is ImageMetadataTask
        assert METADATA_TASKS["music"] is MusicMetadataTask
        assert MusicMetadataTask.extensions == AUDIO_EXTENSIONS
