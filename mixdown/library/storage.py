"""File-based sound library storage.

Directory structure:
    downloads/
      421337/
        audio        # raw bytes as downloaded
        meta.json    # {"id": 421337, "name": "rain.mp3", "date": "2026-..."}
    recordings/
      1760900000000/
        audio
        meta.json
    mixes/
      1760900004321/
        audio        # 16-bit PCM WAV
        meta.json
"""

from __future__ import annotations

import enum
import json
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType

from ..audio.buffers import AudioSourceBlob
from ..common.errors import PersistenceError

logger = logging.getLogger(__name__)


class Collection(str, enum.Enum):
    DOWNLOADS = "downloads"
    RECORDINGS = "recordings"
    MIXES = "mixes"


@dataclass
class LibraryEntry:
    """Saved sound metadata."""

    id: int
    name: str
    date: datetime
    collection: Collection
    path: Path  # Audio file on disk

    @property
    def size(self) -> int:
        return self.path.stat().st_size


class LibraryStorage:
    """Local library of downloads, recordings and mixes.

    The caller owns the lifecycle: call ``open()`` before use and
    ``close()`` afterwards, or use it as a context manager.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> LibraryStorage:
        """Create the collection directories and mark the library usable."""
        try:
            for collection in Collection:
                (self.data_dir / collection.value).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to open library at {self.data_dir}: {e}") from e
        self._is_open = True
        logger.debug(f"Opened library at {self.data_dir}")
        return self

    def close(self) -> None:
        self._is_open = False

    def __enter__(self) -> LibraryStorage:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _collection_dir(self, collection: Collection) -> Path:
        if not self._is_open:
            raise PersistenceError("Library is not open")
        return self.data_dir / collection.value

    def _new_id(self, collection: Collection) -> int:
        """Millisecond timestamp, bumped until it doesn't collide."""
        entry_id = time.time_ns() // 1_000_000
        while (self._collection_dir(collection) / str(entry_id)).exists():
            entry_id += 1
        return entry_id

    def _write(
        self, collection: Collection, entry_id: int, name: str, data: bytes
    ) -> LibraryEntry:
        """Write an entry into a hidden staging directory, then rename it into place.

        Listing never sees a half-written entry; an existing entry with the
        same id is replaced only once the new one is complete.
        """
        collection_dir = self._collection_dir(collection)
        entry_dir = collection_dir / str(entry_id)
        date = datetime.now(timezone.utc)
        meta = {"id": entry_id, "name": name, "date": date.isoformat()}
        staging: Path | None = None
        try:
            staging = Path(
                tempfile.mkdtemp(prefix=f".tmp-{entry_id}-", dir=collection_dir)
            )
            (staging / "audio").write_bytes(data)
            (staging / "meta.json").write_text(json.dumps(meta))
            self._replace(staging, entry_dir)
        except OSError as e:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)
            raise PersistenceError(
                f"Failed to save {collection.value} entry {name!r}: {e}"
            ) from e

        logger.info(f"Saved {collection.value}/{entry_id} {name!r} ({len(data)} bytes)")
        return LibraryEntry(
            id=entry_id,
            name=name,
            date=date,
            collection=collection,
            path=entry_dir / "audio",
        )

    @staticmethod
    def _replace(staging: Path, entry_dir: Path) -> None:
        if not entry_dir.exists():
            staging.rename(entry_dir)
            return

        # rename() cannot overwrite a non-empty directory
        previous = entry_dir.with_name(f".old-{entry_dir.name}-{staging.name}")
        entry_dir.rename(previous)
        try:
            staging.rename(entry_dir)
        except OSError:
            previous.rename(entry_dir)
            raise
        shutil.rmtree(previous, ignore_errors=True)

    def _read_entry(self, collection: Collection, entry_dir: Path) -> LibraryEntry:
        try:
            data = json.loads((entry_dir / "meta.json").read_text())
            return LibraryEntry(
                id=int(data["id"]),
                name=str(data["name"]),
                date=datetime.fromisoformat(data["date"]),
                collection=collection,
                path=entry_dir / "audio",
            )
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise PersistenceError(f"Corrupt library entry {entry_dir}: {e}") from e

    def save_download(self, sound_id: int, name: str, data: bytes) -> LibraryEntry:
        """Save a downloaded sound under its Freesound id, replacing any previous copy."""
        return self._write(Collection.DOWNLOADS, sound_id, name, data)

    def save_recording(self, data: bytes, filename: str) -> LibraryEntry:
        return self._write(
            Collection.RECORDINGS, self._new_id(Collection.RECORDINGS), filename, data
        )

    def save_mix(self, data: bytes, filename: str) -> LibraryEntry:
        return self._write(Collection.MIXES, self._new_id(Collection.MIXES), filename, data)

    def store(self, data: bytes, filename: str) -> LibraryEntry:
        """Persist a finished mix."""
        return self.save_mix(data, filename)

    def list_entries(self, collection: Collection) -> list[LibraryEntry]:
        """List all entries in a collection, oldest id first."""
        collection_dir = self._collection_dir(collection)
        entries = [
            self._read_entry(collection, entry_dir)
            for entry_dir in collection_dir.iterdir()
            if entry_dir.is_dir() and not entry_dir.name.startswith(".")
        ]
        return sorted(entries, key=lambda entry: entry.id)

    def list_downloads(self) -> list[LibraryEntry]:
        return self.list_entries(Collection.DOWNLOADS)

    def list_recordings(self) -> list[LibraryEntry]:
        return self.list_entries(Collection.RECORDINGS)

    def list_mixes(self) -> list[LibraryEntry]:
        return self.list_entries(Collection.MIXES)

    def get_entry(self, collection: Collection, entry_id: int) -> LibraryEntry:
        entry_dir = self._collection_dir(collection) / str(entry_id)
        if not entry_dir.is_dir():
            raise PersistenceError(f"No {collection.value} entry with id {entry_id}")
        return self._read_entry(collection, entry_dir)

    def load(self, collection: Collection, entry_id: int) -> AudioSourceBlob:
        """Load an entry's bytes as a mix source."""
        entry = self.get_entry(collection, entry_id)
        try:
            data = entry.path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Failed to read {entry.path}: {e}") from e
        return AudioSourceBlob(data=data, name=entry.name, created_at=entry.date)
