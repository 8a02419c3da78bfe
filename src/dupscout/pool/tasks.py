"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

pool/tasks.py
Work tasks run inside worker processes.

A task is pickled into every worker, so it carries only plain configuration.
Connections and hashers are created in open() and released in close(), once
per batch, inside the worker.
"""

import os
from dataclasses import dataclass, field
from typing import ClassVar, Dict, FrozenSet, Optional, Type, Union

import mutagen
from PIL import Image, UnidentifiedImageError

from dupscout.core.hasher import HasherImpl, HashParams
from dupscout.core.models import FileRecord, HashStrategy
from dupscout.services.repository import SqliteRepository

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".webp"
})

AUDIO_EXTENSIONS = frozenset({
    ".mp3", ".flac", ".wav", ".aac", ".m4a", ".ogg", ".wma", ".opus"
})

# EXIF tags
_MAKE = 0x010F
_MODEL = 0x0110
_DATETIME = 0x0132
_EXIF_IFD = 0x8769
_DATETIME_ORIGINAL = 0x9003


@dataclass
class HashTask:
    """Fingerprints stored records and writes the result back to the database."""
    db_path: str
    strategy: HashStrategy = HashStrategy.SMART
    params: HashParams = field(default_factory=HashParams)

    def __post_init__(self):
        self._repository: Optional[SqliteRepository] = None
        self._hasher: Optional[HasherImpl] = None

    def open(self) -> None:
        self._repository = SqliteRepository(self.db_path)
        self._hasher = HasherImpl(params=self.params)

    def close(self) -> None:
        if self._repository is not None:
            self._repository.close()
            self._repository = None

    def label(self, item: FileRecord) -> str:
        return item.path

    def process(self, item: FileRecord) -> Optional[str]:
        if not os.path.exists(item.path):
            return "file not found"

        content_hash = self._hasher.fingerprint(item.path, self.strategy)
        if self.strategy is HashStrategy.QUICK:
            quick_hash = content_hash
        else:
            quick_hash = self._hasher.fingerprint(item.path, HashStrategy.QUICK)

        strategy = self.strategy
        if strategy is HashStrategy.SMART:
            strategy = HasherImpl.resolve_smart(item.size, self.params)

        self._repository.update_hash(item.id, content_hash, quick_hash, strategy)
        return None


@dataclass
class ImageMetadataTask:
    """Reads dimensions, format and camera EXIF of stored image records."""
    kind: ClassVar[str] = "image"
    extensions: ClassVar[FrozenSet[str]] = IMAGE_EXTENSIONS

    db_path: str
    skip_existing: bool = True

    def __post_init__(self):
        self._repository: Optional[SqliteRepository] = None

    def open(self) -> None:
        self._repository = SqliteRepository(self.db_path)

    def close(self) -> None:
        if self._repository is not None:
            self._repository.close()
            self._repository = None

    def label(self, item: FileRecord) -> str:
        return item.path

    def process(self, item: FileRecord) -> Optional[str]:
        if item.extension not in IMAGE_EXTENSIONS:
            return f"not an image ({item.extension or 'no extension'})"
        if self.skip_existing and self._repository.has_image_metadata(item.id):
            return "metadata already stored"
        if not os.path.exists(item.path):
            return "file not found"

        self._repository.store_image_metadata(item.id, read_image_metadata(item.path))
        return None


@dataclass
class MusicMetadataTask:
    """Reads stream properties and common tags of stored audio records."""
    kind: ClassVar[str] = "music"
    extensions: ClassVar[FrozenSet[str]] = AUDIO_EXTENSIONS

    db_path: str
    skip_existing: bool = True

    def __post_init__(self):
        self._repository: Optional[SqliteRepository] = None

    def open(self) -> None:
        self._repository = SqliteRepository(self.db_path)

    def close(self) -> None:
        if self._repository is not None:
            self._repository.close()
            self._repository = None

    def label(self, item: FileRecord) -> str:
        return item.path

    def process(self, item: FileRecord) -> Optional[str]:
        if item.extension not in AUDIO_EXTENSIONS:
            return f"not an audio file ({item.extension or 'no extension'})"
        if self.skip_existing and self._repository.has_music_metadata(item.id):
            return "metadata already stored"
        if not os.path.exists(item.path):
            return "file not found"

        self._repository.store_music_metadata(item.id, read_music_metadata(item.path))
        return None


MetadataTask = Union[ImageMetadataTask, MusicMetadataTask]

METADATA_TASKS: Dict[str, Type[MetadataTask]] = {
    ImageMetadataTask.kind: ImageMetadataTask,
    MusicMetadataTask.kind: MusicMetadataTask,
}


def read_image_metadata(path: str) -> Dict[str, object]:
    """
    Raises:
        OSError: unreadable or unrecognized image
        ValueError: image exceeds Pillow's decompression bomb limit
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            exif = img.getexif()
            date_taken = exif.get_ifd(_EXIF_IFD).get(_DATETIME_ORIGINAL) or exif.get(_DATETIME)
            return {
                "width": width,
                "height": height,
                "format": img.format,
                "camera_make": _clean(exif.get(_MAKE)),
                "camera_model": _clean(exif.get(_MODEL)),
                "date_taken": _clean(date_taken),
            }
    except UnidentifiedImageError as e:
        raise OSError(f"Unrecognized image format: {path}") from e
    except Image.DecompressionBombError as e:
        raise ValueError(str(e)) from e


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    value = str(value).strip("\x00 ").strip()
    return value or None


def read_music_metadata(path: str) -> Dict[str, object]:
    """
    Duration, bitrate, sample rate and channels from the stream info, plus
    title, artist, album, genre and year where the tags carry them.

    Raises:
        OSError: unreadable or unrecognized audio file
    """
    try:
        audio = mutagen.File(path, easy=True)
    except mutagen.MutagenError as e:
        raise OSError(f"Unreadable audio file: {path} ({e})") from e
    if audio is None or audio.info is None:
        raise OSError(f"Unrecognized audio format: {path}")

    info = audio.info
    tags = audio.tags
    year = _first_tag(tags, "date")
    duration = getattr(info, "length", None)
    return {
        "duration": round(float(duration), 3) if duration is not None else None,
        "bitrate": getattr(info, "bitrate", None) or None,
        "sample_rate": getattr(info, "sample_rate", None) or None,
        "channels": getattr(info, "channels", None) or None,
        "title": _first_tag(tags, "title"),
        "artist": _first_tag(tags, "artist"),
        "album": _first_tag(tags, "album"),
        "genre": _first_tag(tags, "genre"),
        "year": int(year[:4]) if year and year[:4].isdigit() else None,
    }


def _first_tag(tags, key: str) -> Optional[str]:
    if not tags:
        return None
    values = tags.get(key)
    if isinstance(values, list):
        values = values[0] if values else None
    return _clean(values)
