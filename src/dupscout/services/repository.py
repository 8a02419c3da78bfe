"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/repository.py
SQLite-backed inventory repository.

Uses stdlib sqlite3. Each process (coordinator or worker) opens its own
connection; WAL journaling plus a busy timeout lets concurrent workers write
fingerprints without sharing a connection. Every sqlite3 error is raised as
RepositoryError.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from dupscout.core.errors import RepositoryError
from dupscout.core.interfaces import Repository
from dupscout.core.models import DuplicateGroup, FileRecord, HashStrategy, SelectionStats

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    root TEXT NOT NULL,
    started_at TEXT DEFAULT CURRENT_TIMESTAMP,
    completed_at TEXT,
    total_files INTEGER,
    total_size INTEGER
);
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    size INTEGER NOT NULL,
    mtime REAL,
    atime REAL,
    ctime REAL,
    hash TEXT,
    quick_hash TEXT,
    hash_strategy TEXT,
    scan_id INTEGER REFERENCES scans(id)
);
CREATE INDEX IF NOT EXISTS idx_files_size ON files(size);
CREATE INDEX IF NOT EXISTS idx_files_hash ON files(hash);
CREATE TABLE IF NOT EXISTS duplicate_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    hash TEXT NOT NULL,
    file_count INTEGER NOT NULL,
    file_size INTEGER NOT NULL,
    wasted_space INTEGER NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS image_metadata (
    file_id INTEGER PRIMARY KEY REFERENCES files(id),
    width INTEGER,
    height INTEGER,
    format TEXT,
    camera_make TEXT,
    camera_model TEXT,
    date_taken TEXT
);
CREATE TABLE IF NOT EXISTS music_metadata (
    file_id INTEGER PRIMARY KEY REFERENCES files(id),
    duration REAL,
    bitrate INTEGER,
    sample_rate INTEGER,
    channels INTEGER,
    title TEXT,
    artist TEXT,
    album TEXT,
    genre TEXT,
    year INTEGER
);
"""

# A changed size or mtime invalidates stored fingerprints
_UPSERT_FILE = """
INSERT INTO files (path, size, mtime, atime, ctime, scan_id)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    hash = CASE WHEN files.size != excluded.size OR files.mtime != excluded.mtime
                THEN NULL ELSE files.hash END,
    quick_hash = CASE WHEN files.size != excluded.size OR files.mtime != excluded.mtime
                      THEN NULL ELSE files.quick_hash END,
    hash_strategy = CASE WHEN files.size != excluded.size OR files.mtime != excluded.mtime
                         THEN NULL ELSE files.hash_strategy END,
    size = excluded.size,
    mtime = excluded.mtime,
    atime = excluded.atime,
    ctime = excluded.ctime,
    scan_id = excluded.scan_id
"""

_RECORD_COLUMNS = "id, path, size, mtime, atime, ctime"

_METADATA_TABLES = {"image": "image_metadata", "music": "music_metadata"}


class SqliteRepository(Repository):
    def __init__(self, db_path: str, timeout: float = 30.0):
        self.db_path = str(Path(db_path).expanduser())
        with self._guard("open database"):
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, timeout=timeout)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)

    def __enter__(self) -> 'SqliteRepository':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except (sqlite3.Error, OSError) as e:
            raise RepositoryError(f"Failed to {action} ({self.db_path}): {e}") from e

    # =============================
    # Inventory
    # =============================

    def create_scan(self, root: str) -> int:
        with self._guard("create scan session"):
            with self._conn:
                cursor = self._conn.execute("INSERT INTO scans (root) VALUES (?)", (root,))
            return cursor.lastrowid

    def complete_scan(self, scan_id: int, total_files: int, total_size: int) -> None:
        with self._guard("complete scan session"):
            with self._conn:
                self._conn.execute(
                    "UPDATE scans SET completed_at = CURRENT_TIMESTAMP, total_files = ?, total_size = ? "
                    "WHERE id = ?",
                    (total_files, total_size, scan_id),
                )

    def store_files(self, records: Sequence[FileRecord], scan_id: Optional[int] = None) -> int:
        """Inserts or refreshes records by path. Returns the number written."""
        with self._guard("store files"):
            with self._conn:
                self._conn.executemany(
                    _UPSERT_FILE,
                    [(r.path, r.size, r.mtime, r.atime, r.ctime, scan_id) for r in records],
                )
        return len(records)

    def file_count(self) -> int:
        with self._guard("count files"):
            return self._conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    def records(self, limit: Optional[int] = None) -> List[FileRecord]:
        query = f"SELECT {_RECORD_COLUMNS} FROM files ORDER BY id"
        params: list = []
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        with self._guard("list files"):
            return [self._to_record(row) for row in self._conn.execute(query, params)]

    @staticmethod
    def _media_filter(extensions: Iterable[str], missing_from: Optional[str]) -> Tuple[str, list]:
        patterns = sorted({ext.lower() for ext in extensions})
        if not patterns:
            raise ValueError("At least one extension is required")
        clause = " WHERE (" + " OR ".join("LOWER(f.path) LIKE ?" for _ in patterns) + ")"
        params: list = [f"%{ext}" for ext in patterns]
        if missing_from is not None:
            table = _METADATA_TABLES[missing_from]
            clause += f" AND NOT EXISTS (SELECT 1 FROM {table} m WHERE m.file_id = f.id)"
        return clause, params

    def media_records(
        self,
        extensions: Iterable[str],
        limit: Optional[int] = None,
        missing_from: Optional[str] = None
    ) -> List[FileRecord]:
        """
        Records whose path ends with one of extensions, in insertion order.
        missing_from names a metadata kind ("image", "music"); records that
        already have a row of that kind are left out. Both filters apply
        before LIMIT.
        """
        clause, params = self._media_filter(extensions, missing_from)
        query = f"SELECT {_RECORD_COLUMNS} FROM files f{clause} ORDER BY f.id"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        with self._guard("list media files"):
            return [self._to_record(row) for row in self._conn.execute(query, params)]

    def media_record_count(self, extensions: Iterable[str], missing_from: Optional[str] = None) -> int:
        clause, params = self._media_filter(extensions, missing_from)
        with self._guard("count media files"):
            return self._conn.execute(f"SELECT COUNT(*) FROM files f{clause}", params).fetchone()[0]

    # =============================
    # Fingerprints
    # =============================

    @staticmethod
    def _size_filter(min_size: int, max_size: int, alias: str = "") -> tuple:
        clause = f" AND {alias}size >= ?"
        params = [min_size]
        if max_size and max_size > 0:
            clause += f" AND {alias}size <= ?"
            params.append(max_size)
        return clause, params

    def records_without_hash(
        self,
        min_size: int = 0,
        max_size: int = 0,
        limit: Optional[int] = None,
        smart: bool = True
    ) -> List[FileRecord]:
        """
        Records lacking a fingerprint, largest first. With smart=True only
        records whose size is shared by another unhashed record in the same
        size range are returned; the comparison covers the whole table, not
        just the first `limit` rows. max_size of 0 means unbounded.
        """
        clause, params = self._size_filter(min_size, max_size, "f.")
        query = f"SELECT {_RECORD_COLUMNS} FROM files f WHERE f.hash IS NULL{clause}"
        if smart:
            inner_clause, inner_params = self._size_filter(min_size, max_size)
            query += (
                f" AND f.size IN (SELECT size FROM files WHERE hash IS NULL{inner_clause}"
                f" GROUP BY size HAVING COUNT(*) > 1)"
            )
            params.extend(inner_params)
        query += " ORDER BY f.size DESC, f.id"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._guard("load files without hash"):
            return [self._to_record(row) for row in self._conn.execute(query, params)]

    def smart_hash_stats(self, min_size: int = 0, max_size: int = 0) -> SelectionStats:
        clause, params = self._size_filter(min_size, max_size)
        with self._guard("compute smart hash statistics"):
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM files WHERE hash IS NULL{clause}", params
            ).fetchone()[0]
            kept = self._conn.execute(
                f"SELECT COALESCE(SUM(n), 0) FROM (SELECT COUNT(*) AS n FROM files "
                f"WHERE hash IS NULL{clause} GROUP BY size HAVING COUNT(*) > 1)",
                params,
            ).fetchone()[0]
        return SelectionStats(total_eligible=total, candidates_kept=kept, candidates_skipped=total - kept)

    def update_hash(
        self,
        file_id: int,
        full_hash: Optional[str],
        quick_hash: Optional[str],
        strategy: Optional[HashStrategy] = None
    ) -> None:
        with self._guard(f"update hash of file {file_id}"):
            with self._conn:
                self._conn.execute(
                    "UPDATE files SET hash = ?, quick_hash = ?, hash_strategy = ? WHERE id = ?",
                    (full_hash, quick_hash, strategy.value if strategy else None, file_id),
                )

    def stored_hash(self, file_id: int) -> Optional[sqlite3.Row]:
        with self._guard(f"read hash of file {file_id}"):
            return self._conn.execute(
                "SELECT hash, quick_hash, hash_strategy FROM files WHERE id = ?", (file_id,)
            ).fetchone()

    # =============================
    # Duplicates
    # =============================

    def duplicate_candidates_by_size(self, min_size: int = 0) -> Dict[int, List[FileRecord]]:
        """Size buckets with 2+ stored records, largest size first."""
        query = (
            f"SELECT {_RECORD_COLUMNS} FROM files WHERE size >= ? AND size IN "
            f"(SELECT size FROM files WHERE size >= ? GROUP BY size HAVING COUNT(*) > 1) "
            f"ORDER BY size DESC, path"
        )
        buckets: Dict[int, List[FileRecord]] = {}
        with self._guard("load duplicate candidates"):
            for row in self._conn.execute(query, (min_size, min_size)):
                record = self._to_record(row)
                buckets.setdefault(record.size, []).append(record)
        return buckets

    def store_duplicate_group(self, group: DuplicateGroup) -> None:
        with self._guard("store duplicate group"):
            with self._conn:
                self._conn.execute(
                    "INSERT INTO duplicate_groups (hash, file_count, file_size, wasted_space) "
                    "VALUES (?, ?, ?, ?)",
                    (group.hash, group.count, group.size, group.wasted_space),
                )

    def clear_duplicate_groups(self) -> None:
        with self._guard("clear duplicate groups"):
            with self._conn:
                self._conn.execute("DELETE FROM duplicate_groups")

    def duplicate_group_summary(self) -> Dict[str, int]:
        with self._guard("summarize duplicate groups"):
            row = self._conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(file_count), 0), COALESCE(SUM(wasted_space), 0) "
                "FROM duplicate_groups"
            ).fetchone()
        return {"groups": row[0], "files": row[1], "wasted_space": row[2]}

    # =============================
    # Image metadata
    # =============================

    def has_image_metadata(self, file_id: int) -> bool:
        with self._guard(f"check metadata of file {file_id}"):
            row = self._conn.execute(
                "SELECT 1 FROM image_metadata WHERE file_id = ?", (file_id,)
            ).fetchone()
        return row is not None

    def store_image_metadata(self, file_id: int, metadata: Dict[str, object]) -> None:
        with self._guard(f"store metadata of file {file_id}"):
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO image_metadata "
                    "(file_id, width, height, format, camera_make, camera_model, date_taken) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        file_id,
                        metadata.get("width"),
                        metadata.get("height"),
                        metadata.get("format"),
                        metadata.get("camera_make"),
                        metadata.get("camera_model"),
                        metadata.get("date_taken"),
                    ),
                )

    def image_metadata(self, file_id: int) -> Optional[Dict[str, object]]:
        with self._guard(f"read metadata of file {file_id}"):
            row = self._conn.execute(
                "SELECT width, height, format, camera_make, camera_model, date_taken "
                "FROM image_metadata WHERE file_id = ?",
                (file_id,),
            ).fetchone()
        return dict(row) if row else None

    # =============================
    # Music metadata
    # =============================

    def has_music_metadata(self, file_id: int) -> bool:
        with self._guard(f"check music metadata of file {file_id}"):
            row = self._conn.execute(
                "SELECT 1 FROM music_metadata WHERE file_id = ?", (file_id,)
            ).fetchone()
        return row is not None

    def store_music_metadata(self, file_id: int, metadata: Dict[str, object]) -> None:
        with self._guard(f"store music metadata of file {file_id}"):
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO music_metadata "
                    "(file_id, duration, bitrate, sample_rate, channels, title, artist, album, genre, year) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        file_id,
                        metadata.get("duration"),
                        metadata.get("bitrate"),
                        metadata.get("sample_rate"),
                        metadata.get("channels"),
                        metadata.get("title"),
                        metadata.get("artist"),
                        metadata.get("album"),
                        metadata.get("genre"),
                        metadata.get("year"),
                    ),
                )

    def music_metadata(self, file_id: int) -> Optional[Dict[str, object]]:
        with self._guard(f"read music metadata of file {file_id}"):
            row = self._conn.execute(
                "SELECT duration, bitrate, sample_rate, channels, title, artist, album, genre, year "
                "FROM music_metadata WHERE file_id = ?",
                (file_id,),
            ).fetchone()
        return dict(row) if row else None

    @staticmethod
    def _to_record(row: sqlite3.Row) -> FileRecord:
        return FileRecord(
            id=row["id"],
            path=row["path"],
            size=row["size"],
            mtime=row["mtime"] or 0.0,
            atime=row["atime"] or 0.0,
            ctime=row["ctime"] or 0.0,
        )
