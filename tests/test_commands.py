"""
Workflow tests for the command orchestrators.
"""
import pytest

from dupscout.commands import (
    DetectionCommand, HashUpdateCommand, InventoryCommand, MetadataExtractionCommand,
    RepositoryDuplicatesCommand
)
from dupscout.core import DetectionParams, HashStrategy, VerificationMode
from dupscout.pool import PoolConfig
from conftest import FORK_AVAILABLE, make_record, write_png, write_wav

needs_fork = pytest.mark.skipif(not FORK_AVAILABLE, reason="fork start method not available")


def fork_pool():
    return PoolConfig(worker_count=2, batch_size=2, start_method="fork", poll_interval=0.02)


class TestDetectionCommand:
    def test_finds_both_groups(self, temp_dir, test_files):
        command = DetectionCommand()

        groups, stats = command.execute(DetectionParams(root_dir=str(temp_dir)))

        assert [(g.size, g.count) for g in groups] == [(2048, 2), (1024, 3)]
        assert len(command.files) == 8
        # unique1, unique2 have unique sizes
        assert command.selection.candidates_skipped == 2

    def test_respects_filters(self, temp_dir, test_files):
        params = DetectionParams(
            root_dir=str(temp_dir),
            extensions=["txt"],
            excluded_dirs=[str(temp_dir / "subdir")],
            mode=VerificationMode.FULL_ONLY,
        )

        groups, _ = DetectionCommand().execute(params)

        assert [(g.size, g.count) for g in groups] == [(2048, 2), (1024, 2)]


class TestInventoryCommand:
    def test_scan_is_stored(self, temp_dir, test_files, repository):
        scan_root = temp_dir / "subdir"

        scan_id, stored = InventoryCommand(repository).execute(DetectionParams(root_dir=str(scan_root)))

        assert scan_id >= 1
        assert stored == 1
        assert repository.file_count() == 1


@needs_fork
class TestPoolCommands:
    @pytest.fixture
    def inventory(self, temp_dir, test_files, repository):
        data_dir = temp_dir / "data"
        data_dir.mkdir()
        for name, path in test_files.items():
            if path.stat().st_size:
                (data_dir / f"{name}{path.suffix}").write_bytes(path.read_bytes())
        InventoryCommand(repository).execute(DetectionParams(root_dir=str(data_dir)))
        return data_dir

    def test_hash_update_with_smart_selection(self, inventory, repository, db_path):
        command = HashUpdateCommand(repository, db_path, fork_pool())

        preview = command.preview()
        result = command.execute(strategy=HashStrategy.FULL)

        # 1024 B x4 (three copies + ignore.tmp), 2048 B x2; 1500 and 2500 are unique
        assert preview.candidates_kept == 6
        assert result.succeeded == 6
        assert repository.smart_hash_stats().total_eligible == 2

    def test_hash_update_exhaustive_and_limit(self, inventory, repository, db_path):
        command = HashUpdateCommand(repository, db_path, fork_pool())

        assert command.preview(smart=False).candidates_skipped == 0
        result = command.execute(smart=False, limit=3)

        assert result.succeeded == 3
        assert len(repository.records_without_hash(smart=False)) == 5

    def test_nothing_to_hash(self, repository, db_path):
        result = HashUpdateCommand(repository, db_path, fork_pool()).execute()

        assert result.processed == 0


@needs_fork
class TestMetadataExtractionCommand:
    @pytest.fixture
    def mixed_inventory(self, temp_dir, repository):
        """20 text files stored before two images and one recording."""
        paths = []
        for i in range(20):
            path = temp_dir / f"notes_{i:02d}.txt"
            path.write_bytes(b"n" * (i + 1))
            paths.append(path)
        paths.append(write_png(temp_dir / "a.png"))
        paths.append(write_png(temp_dir / "B.PNG", size=(8, 6)))
        paths.append(write_wav(temp_dir / "take.wav"))
        repository.store_files([make_record(p) for p in paths])
        return paths

    def test_limit_counts_only_images(self, mixed_inventory, repository, db_path):
        result = MetadataExtractionCommand(repository, db_path, fork_pool()).execute(limit=2)

        assert (result.processed, result.succeeded, result.skipped) == (2, 2, 0)
        assert result.warnings == []

    def test_non_images_do_not_raise_skip_rate(self, mixed_inventory, repository, db_path):
        command = MetadataExtractionCommand(repository, db_path, fork_pool())

        assert command.pending_count() == 2
        result = command.execute()

        assert result.succeeded == 2
        assert result.skipped == 0
        assert result.warnings == []

    def test_skip_existing_filters_before_limit(self, mixed_inventory, repository, db_path):
        command = MetadataExtractionCommand(repository, db_path, fork_pool())
        command.execute(limit=1)

        assert command.pending_count(skip_existing=True) == 1
        result = command.execute(skip_existing=True, limit=1)

        assert result.succeeded == 1
        assert command.pending_count(skip_existing=True) == 0
        assert command.pending_count(skip_existing=False) == 2

    def test_music_kind(self, mixed_inventory, repository, db_path):
        result = MetadataExtractionCommand(repository, db_path, fork_pool(), kind="music").execute()

        assert result.succeeded == 1
        record = repository.media_records([".wav"])[0]
        assert repository.music_metadata(record.id)["sample_rate"] == 8000

    def test_unknown_kind(self, repository, db_path):
        with pytest.raises(ValueError, match="Unknown metadata kind"):
            MetadataExtractionCommand(repository, db_path, kind="video")


class TestRepositoryDuplicatesCommand:
    def test_verifies_and_stores_groups(self, temp_dir, test_files, repository):
        InventoryCommand(repository).execute(DetectionParams(root_dir=str(temp_dir)))

        groups, _ = RepositoryDuplicatesCommand(repository).execute()

        assert [(g.size, g.count) for g in groups] == [(2048, 2), (1024, 3)]
        summary = repository.duplicate_group_summary()
        assert summary == {"groups": 2, "files": 5, "wasted_space": 2048 + 2 * 1024}

    def test_rerun_replaces_groups(self, temp_dir, test_files, repository):
        InventoryCommand(repository).execute(DetectionParams(root_dir=str(temp_dir)))
        command = RepositoryDuplicatesCommand(repository)

        command.execute()
        command.execute()

        assert repository.duplicate_group_summary()["groups"] == 2
