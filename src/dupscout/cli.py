#!/usr/bin/env python3
"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

DupScout CLI — duplicate detection and bulk file processing from the console.

Commands:
    find              scan a directory and print verified duplicate groups
    scan              scan a directory into the inventory database
    update-hashes     fingerprint stored records through the worker pool
    extract-metadata  read image or music metadata of stored records through the worker pool
    duplicates        verify stored size buckets and store duplicate groups
"""
from __future__ import annotations
import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

# === EARLY DEPENDENCY VALIDATION ===
_MISSING_DEPS = []
try:
    import xxhash  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("xxhash")

try:
    import PIL  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("Pillow")

try:
    import mutagen  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("mutagen")

if _MISSING_DEPS:
    print("❌ Missing required dependencies:", file=sys.stderr)
    print(f"   pip install {' '.join(_MISSING_DEPS)}", file=sys.stderr)
    sys.exit(1)

# === NORMAL IMPORTS (after validation) ===
from dupscout.aliases import (
    EPILOG_TEXT, HASH_METHOD_ALIASES, HASH_METHOD_CHOICES, HASH_METHOD_HELP_TEXT,
    MODE_ALIASES, MODE_CHOICES, MODE_HELP_TEXT
)
from dupscout.commands import (
    DetectionCommand, HashUpdateCommand, InventoryCommand, MetadataExtractionCommand,
    RepositoryDuplicatesCommand
)
from dupscout.core.errors import RepositoryError
from dupscout.core.models import DetectionParams, DetectionStats, DuplicateGroup, SelectionStats, wasted_space
from dupscout.pool.messages import Complete, Failure, Progress, RunResult, WaveFinished, WaveStarted
from dupscout.pool.scheduler import PoolConfig
from dupscout.pool.tasks import METADATA_TASKS
from dupscout.services.repository import SqliteRepository
from dupscout.utils.convert_utils import ConvertUtils

LOG_FORMAT = "%(levelname)-8s | %(name)-25s | %(message)s"
DEFAULT_DB = "dupscout.db"
DB_ENV_VAR = "DUPSCOUT_DB"


class PoolEventPrinter:
    """Renders worker pool events on stderr. Keeps its own per-batch counters."""

    def __init__(self, total: int, label: str, enabled: bool = True):
        self.total = total
        self.label = label
        self.enabled = enabled
        self._per_batch: Dict[int, int] = {}

    @property
    def processed(self) -> int:
        return sum(self._per_batch.values())

    def __call__(self, event: Any) -> None:
        match event:
            case WaveStarted(wave_index=index, total_waves=total, batch_indices=batches):
                self._write(f"\n  Wave {index + 1}/{total}: {len(batches)} batches\n")
            case Progress(batch_index=batch, items_processed=count):
                self._per_batch[batch] = count
                self._progress()
            case Complete(batch_index=batch, result=result):
                self._per_batch[batch] = result.processed
                self._progress()
            case Failure(batch_index=batch, error=error, batch_size=size):
                self._write(f"\n  ⚠️  Batch {batch} failed: {error}\n")
                if size is not None:
                    # the coordinator counts the rest of the batch as failed
                    self._per_batch[batch] = size
                    self._progress()
            case WaveFinished():
                self._progress()

    def _progress(self) -> None:
        percent = ConvertUtils.percent(self.processed, self.total)
        self._write(f"\r  [{self.label}] {self.processed}/{self.total} ({percent:.1f}%)")

    def _write(self, text: str) -> None:
        if self.enabled:
            sys.stderr.write(text)
            sys.stderr.flush()


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False

        # Windows consoles otherwise fail on the emoji markers
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding='utf-8')

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--verbose", "-v", action="store_true", help="Show progress and statistics")
        common.add_argument("--quiet", "-q", action="store_true", help="Suppress non-essential output")

        size_filters = argparse.ArgumentParser(add_help=False)
        size_filters.add_argument(
            "--min-size", "-m", default="0", type=str, metavar='',
            help="Minimum file size (e.g., 500KB, 1MB). Default: 0"
        )
        size_filters.add_argument(
            "--max-size", "-M", default=None, type=str, metavar='',
            help="Maximum file size (e.g., 10MB, 1GB). Default: no limit"
        )

        scan_filters = argparse.ArgumentParser(add_help=False)
        scan_filters.add_argument("directory", type=str, help="Directory to scan")
        scan_filters.add_argument(
            "--extensions", "-x", nargs="+", default=[], type=str, metavar='',
            help="File extensions (space separated) to include (e.g., .jpg .png)"
        )
        scan_filters.add_argument(
            "--excluded-dirs", "-e", nargs="+", default=[], type=str, metavar='',
            dest="excluded_dirs", help="Excluded directories (space separated)"
        )

        pool_options = argparse.ArgumentParser(add_help=False)
        pool_options.add_argument("--limit", type=int, default=None, help="Process at most this many records")
        pool_options.add_argument("--threads", "-t", type=int, default=4, help="Worker processes per wave. Default: 4")
        pool_options.add_argument("--batch-size", "-b", type=int, default=50, help="Records per batch. Default: 50")
        pool_options.add_argument(
            "--timeout", type=float, default=600.0,
            help="Seconds before a batch is terminated and counted as failed. Default: 600"
        )

        parser = argparse.ArgumentParser(
            prog="dupscout",
            description="DupScout — duplicate file finder with a parallel hashing pool",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )
        parser.add_argument(
            "--db", default=None, type=str,
            help=f"Inventory database path. Default: ${DB_ENV_VAR} or ./{DEFAULT_DB}"
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        find_parser = subparsers.add_parser(
            "find", parents=[common, scan_filters, size_filters],
            formatter_class=argparse.RawTextHelpFormatter,
            help="Scan a directory and print verified duplicate groups"
        )
        find_parser.add_argument("--mode", choices=MODE_CHOICES, default="quick", help=MODE_HELP_TEXT)

        subparsers.add_parser(
            "scan", parents=[common, scan_filters, size_filters],
            help="Scan a directory and store the inventory"
        )

        hash_parser = subparsers.add_parser(
            "update-hashes", parents=[common, size_filters, pool_options],
            formatter_class=argparse.RawTextHelpFormatter,
            help="Fingerprint stored records that have no hash"
        )
        hash_parser.add_argument(
            "--hash-method", choices=HASH_METHOD_CHOICES, default="smart", help=HASH_METHOD_HELP_TEXT
        )
        hash_parser.add_argument(
            "--no-smart", dest="smart", action="store_false",
            help="Hash every eligible record, even those with a unique size"
        )
        hash_parser.add_argument(
            "--stats", action="store_true", help="Only show what smart selection would skip"
        )

        meta_parser = subparsers.add_parser(
            "extract-metadata", parents=[common, pool_options],
            help="Extract image or music metadata of stored records"
        )
        meta_parser.add_argument(
            "--type", dest="media_type", choices=sorted(METADATA_TASKS), default="image",
            help="Media kind to extract. Default: image"
        )
        meta_parser.add_argument(
            "--skip-existing", action="store_true", help="Skip records that already have metadata"
        )

        dup_parser = subparsers.add_parser(
            "duplicates", parents=[common],
            formatter_class=argparse.RawTextHelpFormatter,
            help="Verify stored size buckets and store duplicate groups"
        )
        dup_parser.add_argument("--min-size", "-m", default="0", type=str, metavar='',
                                help="Minimum file size (e.g., 500KB). Default: 0")
        dup_parser.add_argument("--mode", choices=MODE_CHOICES, default="quick", help=MODE_HELP_TEXT)

        return parser.parse_args(args)

    # =============================
    # Argument conversion
    # =============================

    @staticmethod
    def resolve_db_path(args: argparse.Namespace) -> str:
        return args.db or os.environ.get(DB_ENV_VAR) or DEFAULT_DB

    def parse_size(self, value: Optional[str], option: str) -> Optional[int]:
        if value is None:
            return None
        try:
            return ConvertUtils.human_to_bytes(value)
        except ValueError as e:
            self.error_exit(f"Invalid {option} format: {e}")

    def create_params(self, args: argparse.Namespace) -> DetectionParams:
        """Create DetectionParams from CLI arguments."""
        root_path = Path(args.directory).expanduser().resolve()
        if not root_path.exists():
            self.error_exit(f"Directory not found: {args.directory}")
        if not root_path.is_dir():
            self.error_exit(f"Path is not a directory: {args.directory}")

        for excl_dir in args.excluded_dirs:
            if not Path(excl_dir).expanduser().is_dir():
                self.warning(f"Excluded directory not found: {excl_dir}")

        try:
            return DetectionParams(
                root_dir=str(root_path),
                min_size_bytes=self.parse_size(args.min_size, "--min-size"),
                max_size_bytes=self.parse_size(args.max_size, "--max-size"),
                extensions=args.extensions,
                excluded_dirs=[str(Path(d).expanduser().resolve()) for d in args.excluded_dirs],
                mode=MODE_ALIASES[getattr(args, "mode", "quick")],
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

    def create_pool_config(self, args: argparse.Namespace) -> PoolConfig:
        try:
            return PoolConfig(
                worker_count=args.threads,
                batch_size=args.batch_size,
                batch_timeout=args.timeout,
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

    def progress_callback(self, stage: str, current: int, total: Optional[int]) -> None:
        """Detection progress on stderr (verbose only)."""
        if not self.verbose:
            return

        if total and total > 0:
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{stage}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{stage}] {current} files processed...")
        sys.stderr.flush()

    # =============================
    # Commands
    # =============================

    def cmd_find(self, args: argparse.Namespace) -> None:
        params = self.create_params(args)
        if not self.quiet:
            print(f"Scanning directory: {params.root_dir}")

        command = DetectionCommand()
        groups, stats = command.execute(
            params, progress_callback=self.progress_callback if self.verbose else None
        )

        if self.verbose:
            sys.stderr.write("\n")
            self.output_selection(command.selection)
            self.output_detection_stats(stats)
        self.output_groups(groups)

    def cmd_scan(self, args: argparse.Namespace, repository: SqliteRepository) -> None:
        params = self.create_params(args)
        if not self.quiet:
            print(f"Scanning directory: {params.root_dir}")

        scan_id, stored = InventoryCommand(repository).execute(
            params, progress_callback=self.progress_callback if self.verbose else None
        )
        if not self.quiet:
            print(f"\n✅ Scan {scan_id}: stored {stored} files ({repository.file_count()} in database)")

    def cmd_update_hashes(self, args: argparse.Namespace, repository: SqliteRepository, db_path: str) -> None:
        min_size = self.parse_size(args.min_size, "--min-size")
        max_size = self.parse_size(args.max_size, "--max-size") or 0
        command = HashUpdateCommand(repository, db_path, self.create_pool_config(args))

        selection = command.preview(min_size, max_size, smart=args.smart)
        if args.stats:
            self.output_selection(selection, force=True)
            return
        if self.verbose:
            self.output_selection(selection)

        strategy = HASH_METHOD_ALIASES[args.hash_method]
        total = selection.candidates_kept if not args.limit else min(args.limit, selection.candidates_kept)
        printer = PoolEventPrinter(total, "hashing", enabled=not self.quiet)
        result = command.execute(
            strategy=strategy,
            min_size=min_size,
            max_size=max_size,
            limit=args.limit,
            smart=args.smart,
            event_callback=printer,
        )
        self.output_run_result(result, "Hashed")

    def cmd_extract_metadata(self, args: argparse.Namespace, repository: SqliteRepository, db_path: str) -> None:
        command = MetadataExtractionCommand(
            repository, db_path, self.create_pool_config(args), kind=args.media_type
        )
        total = command.pending_count(skip_existing=args.skip_existing)
        if args.limit:
            total = min(total, args.limit)
        printer = PoolEventPrinter(total, "metadata", enabled=not self.quiet)
        result = command.execute(skip_existing=args.skip_existing, limit=args.limit, event_callback=printer)
        self.output_run_result(result, "Extracted")

    def cmd_duplicates(self, args: argparse.Namespace, repository: SqliteRepository) -> None:
        min_size = self.parse_size(args.min_size, "--min-size")
        groups, stats = RepositoryDuplicatesCommand(repository).execute(
            min_size=min_size,
            mode=MODE_ALIASES[args.mode],
            progress_callback=self.progress_callback if self.verbose else None,
        )
        if self.verbose:
            sys.stderr.write("\n")
            self.output_detection_stats(stats)
        self.output_groups(groups)

    # =============================
    # Output
    # =============================

    def output_groups(self, groups: List[DuplicateGroup]) -> None:
        if self.quiet:
            return

        if not groups:
            print("No duplicate groups found.")
            return

        total_files = sum(g.count for g in groups)
        print(f"\nFound {len(groups)} duplicate groups ({total_files} files)")

        for idx, group in enumerate(groups, 1):
            size_str = ConvertUtils.bytes_to_human(group.size)
            print(f"\n📁 Group {idx} | Size: {size_str} | Files: {group.count}")
            for file in group.files:
                print(f"   {file.path}")

        print(f"\nTotal wasted space: {ConvertUtils.bytes_to_human(wasted_space(groups))}")

    @staticmethod
    def output_detection_stats(stats: DetectionStats) -> None:
        print("\n" + stats.print_summary())

    def output_selection(self, selection: Optional[SelectionStats], force: bool = False) -> None:
        if selection is None or (self.quiet and not force):
            return
        print("Smart selection:")
        print(f"  Eligible records : {selection.total_eligible}")
        print(f"  To be hashed     : {selection.candidates_kept}")
        print(f"  Skipped (unique) : {selection.candidates_skipped} ({selection.percent_skipped:.2f}%)")

    def output_run_result(self, result: RunResult, verb: str) -> None:
        if not self.quiet:
            sys.stderr.write("\n")
            print(f"\n{verb} {result.succeeded}/{result.total_items} items "
                  f"(skipped: {result.skipped}, failed: {result.failed}, "
                  f"failed batches: {result.batches_failed}, waves: {result.waves})")

            if self.verbose:
                for detail in result.skip_details[:5]:
                    print(f"  • skipped {detail.item}: {detail.message}")
                if len(result.skip_details) > 5:
                    print(f"  ...and {len(result.skip_details) - 5} more skipped")

            for detail in result.error_details[:5]:
                print(f"  • {detail.item}: {detail.message}")
            if len(result.error_details) > 5:
                print(f"  ...and {len(result.error_details) - 5} more errors")

        for warning in result.warnings:
            self.warning(warning)

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv=None) -> None:
        """Main entry point."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet

        logging.basicConfig(
            level=logging.INFO if self.verbose else logging.ERROR,
            format=LOG_FORMAT
        )

        try:
            if args.command == "find":
                self.cmd_find(args)
            else:
                self.run_with_repository(args)
        except RepositoryError as e:
            self.error_exit(f"Storage failure: {e}")
        except RuntimeError as e:
            self.error_exit(str(e))

        elapsed = time.time() - self.start_time
        if self.verbose:
            print(f"\n✅ Completed in {elapsed:.2f} seconds")

    def run_with_repository(self, args: argparse.Namespace) -> None:
        db_path = self.resolve_db_path(args)
        with SqliteRepository(db_path) as repository:
            if args.command == "scan":
                self.cmd_scan(args, repository)
            elif args.command == "update-hashes":
                self.cmd_update_hashes(args, repository, db_path)
            elif args.command == "extract-metadata":
                self.cmd_extract_metadata(args, repository, db_path)
            elif args.command == "duplicates":
                self.cmd_duplicates(args, repository)


def main(argv=None) -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        app.run(argv)
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
