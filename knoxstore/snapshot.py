"""Snapshots: collections of archives stored in one backup run."""

from __future__ import annotations

import enum
import os
import time
import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Generator, Iterator, Optional

from .archive import Archive, ArchiveType
from .chunker import chunk_file
from .chunkindex import ChunkIndex
from .compression import Compression
from .encryption import Encryption
from .pipeline import new_decoding_pipeline, new_encoding_pipeline
from .scanner import find_files, is_special_path


@dataclass
class StoreOptions:
    """Storage settings for a snapshot operation."""

    cwd: str = ""
    paths: list = field(default_factory=list)
    excludes: list = field(default_factory=list)
    compress: Compression = Compression.NONE
    encrypt: Encryption = Encryption.NONE
    pedantic: bool = False
    data_parts: int = 1
    parity_parts: int = 0


@dataclass
class SnapshotStats:
    """Counters describing stored or transferred data."""

    files: int = 0
    dirs: int = 0
    symlinks: int = 0
    size: int = 0
    storage_size: int = 0
    transferred: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SnapshotStats":
        return cls(**{f.name: int(data.get(f.name, 0)) for f in fields(cls)})


@dataclass
class StoreEvent:
    """Progress report emitted while storing a snapshot."""

    path: str = ""
    timer: float = field(default_factory=time.time)
    current_item: SnapshotStats = field(default_factory=SnapshotStats)
    total: SnapshotStats = field(default_factory=SnapshotStats)
    error: Optional[BaseException] = None


class _Outcome(enum.Enum):
    DONE = enum.auto()
    SKIP = enum.auto()
    STOP = enum.auto()


@dataclass
class _ScanResult:
    archive: Optional[Archive] = None
    error: Optional[BaseException] = None
    path: str = ""


def _relative(cwd: str, path: str) -> Optional[str]:
    if not cwd or os.path.isabs(cwd) != os.path.isabs(path):
        return None
    try:
        rel = os.path.relpath(path, cwd)
    except ValueError:
        return None
    if rel.startswith(".." + os.sep):
        return None
    return rel


@dataclass
class Snapshot:
    """A compilation of archives stored together."""

    id: str = ""
    date: datetime = field(default_factory=lambda: datetime.now().astimezone())
    description: str = ""
    stats: SnapshotStats = field(default_factory=SnapshotStats)
    archives: dict = field(default_factory=dict)

    def _gather(self, cwd: str, paths: list[str], excludes: list[str]) -> list[_ScanResult]:
        results: list[_ScanResult] = []
        for root in paths:
            try:
                for archive in find_files(root, excludes):
                    rel = _relative(cwd, archive.path)
                    if rel is not None:
                        archive.path = rel
                    if is_special_path(archive.path):
                        continue
                    self.stats.size += archive.size
                    if archive.type is ArchiveType.DIRECTORY:
                        self.stats.dirs += 1
                    elif archive.type is ArchiveType.FILE:
                        self.stats.files += 1
                    elif archive.type is ArchiveType.SYMLINK:
                        self.stats.symlinks += 1
                    results.append(_ScanResult(archive=archive))
            except (OSError, ValueError) as exc:
                results.append(_ScanResult(error=exc, path=root))
        return results

    def _report(self, event: StoreEvent) -> StoreEvent:
        return replace(event, current_item=replace(event.current_item), total=replace(self.stats))

    def _store_file(
        self, archive: Archive, event: StoreEvent, backend, key: str, opts: StoreOptions
    ) -> Generator[StoreEvent, None, _Outcome]:
        data_parts = max(1, opts.data_parts)
        try:
            chunks = chunk_file(
                os.path.join(opts.cwd, archive.path),
                key,
                opts.compress,
                opts.encrypt,
                data_parts,
                opts.parity_parts,
            )
        except FileNotFoundError:
            # deleted before we got to it
            return _Outcome.SKIP
        except Exception as exc:
            yield StoreEvent(path=archive.path, error=exc)
            return _Outcome.STOP if opts.pedantic else _Outcome.SKIP

        archive.encrypted = int(opts.encrypt)
        archive.compressed = int(opts.compress)
        while True:
            try:
                chunk = next(chunks)
            except StopIteration:
                break
            except Exception as exc:
                yield StoreEvent(path=archive.path, error=exc)
                return _Outcome.STOP if opts.pedantic else _Outcome.DONE
            try:
                stored = backend.store_chunk(chunk)
            except Exception as exc:
                yield StoreEvent(path=archive.path, error=exc)
                if opts.pedantic:
                    return _Outcome.STOP
                continue
            chunk.data = []
            archive.chunks.append(chunk)
            archive.storage_size += stored
            event.current_item.storage_size = archive.storage_size
            event.current_item.transferred += chunk.original_size
            self.stats.transferred += chunk.original_size
            self.stats.storage_size += stored
            yield self._report(event)
        return _Outcome.DONE

    def add(self, backend, key: str, chunk_index: ChunkIndex, opts: StoreOptions) -> Iterator[StoreEvent]:
        """Store the paths in opts, yielding progress events as work proceeds."""
        for result in self._gather(opts.cwd, opts.paths, opts.excludes):
            if result.error is not None:
                yield StoreEvent(path=result.path, error=result.error)
                if opts.pedantic:
                    return
                continue

            archive = result.archive
            event = StoreEvent(
                path=archive.path,
                current_item=SnapshotStats(size=archive.size, storage_size=archive.storage_size),
            )
            yield self._report(event)

            if archive.type is ArchiveType.FILE:
                outcome = yield from self._store_file(archive, event, backend, key, opts)
                if outcome is _Outcome.STOP:
                    return
                if outcome is _Outcome.SKIP:
                    continue

            self.add_archive(archive)
            chunk_index.add_archive(archive, self.id)

    def clone(self) -> "Snapshot":
        """Return a new snapshot with a fresh id carrying over stats and archives."""
        snapshot = new_snapshot(self.description)
        snapshot.stats = replace(self.stats)
        snapshot.archives = dict(self.archives)
        return snapshot

    def add_archive(self, archive: Archive) -> None:
        self.archives[archive.path] = archive

    def save(self, backend, key: str) -> None:
        """Encode the snapshot's metadata and store it on backend."""
        pipe = new_encoding_pipeline(Compression.LZMA, Encryption.AES, key)
        backend.save_snapshot(self.id, pipe.encode(self.to_dict()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "stats": self.stats.to_dict(),
            "items": {path: archive.to_dict() for path, archive in self.archives.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        items = data.get("items") or {}
        return cls(
            id=str(data.get("id", "")),
            date=datetime.fromisoformat(data["date"]) if data.get("date") else datetime.now().astimezone(),
            description=str(data.get("description", "")),
            stats=SnapshotStats.from_dict(data.get("stats") or {}),
            archives={path: Archive.from_dict(item) for path, item in items.items()},
        )


def new_snapshot(description: str = "") -> Snapshot:
    """Create an empty snapshot with a new short id."""
    return Snapshot(id=uuid.uuid4().hex[:8], description=description)


def open_snapshot(snapshot_id: str, backend, key: str) -> Snapshot:
    """Load and decode an existing snapshot."""
    pipe = new_decoding_pipeline(Compression.LZMA, Encryption.AES, key)
    return Snapshot.from_dict(pipe.decode(backend.load_snapshot(snapshot_id)))