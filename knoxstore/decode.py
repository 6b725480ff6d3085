"""Restoring archives and snapshots from stored chunks."""

from __future__ import annotations

import os
import stat
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .archive import Archive, ArchiveType
from .chunker import Chunk
from .hashing import HashType, hash_data
from .pipeline import new_decoding_pipeline
from .redundancy import ReedSolomon, ReedSolomonError
from .scanner import _match
from .snapshot import Snapshot, SnapshotStats


class CheckSumError(ValueError):
    """Raised when decoded data does not match its recorded checksum."""

    def __init__(self, method: str, expected: str, found: str) -> None:
        self.method = method
        self.expected = expected
        self.found = found
        super().__init__(f"{method} mismatch, expected {expected}, got {found}")


class DataReconstructionError(ValueError):
    """Raised when too few parts of a chunk could be loaded to rebuild it."""

    def __init__(self, chunk: Chunk, blocks_found: int, failed_backends: int) -> None:
        self.chunk = chunk
        self.blocks_found = blocks_found
        self.failed_backends = failed_backends
        super().__init__(
            f"Could not reconstruct data, got {blocks_found} out of {chunk.data_parts} chunks "
            f"({failed_backends} backends missing data)"
        )


@dataclass
class RestoreEvent:
    """Progress report emitted while restoring."""

    path: str = ""
    timer: float = field(default_factory=time.time)
    current_item: SnapshotStats = field(default_factory=SnapshotStats)
    total: SnapshotStats = field(default_factory=SnapshotStats)
    error: Optional[BaseException] = None

    def transfer_speed(self) -> int:
        """Average transfer speed in bytes per second."""
        elapsed = time.time() - self.timer
        if elapsed <= 0:
            return 0
        return int(self.current_item.transferred / elapsed)


def _new_event(archive: Archive) -> RestoreEvent:
    return RestoreEvent(
        path=archive.path,
        current_item=SnapshotStats(size=archive.size, storage_size=archive.storage_size),
        total=SnapshotStats(size=archive.size),
    )


def _snapshot_event(event: RestoreEvent) -> RestoreEvent:
    return RestoreEvent(
        path=event.path,
        timer=event.timer,
        current_item=SnapshotStats(**event.current_item.to_dict()),
        total=SnapshotStats(**event.total.to_dict()),
        error=event.error,
    )


def decode_chunk(key: str, archive: Archive, chunk: Chunk, data: bytes) -> bytes:
    """Decrypt and decompress stored chunk data and verify its checksum."""
    pipe = new_decoding_pipeline(archive.compressed, archive.encrypted, key)
    plain = pipe.process(data)
    digest = hash_data(plain, HashType.HIGHWAY256)
    if digest != chunk.decrypted_hash:
        raise CheckSumError("highwayhash", chunk.decrypted_hash, digest)
    return plain


def load_chunk(backend, key: str, archive: Archive, chunk: Chunk) -> bytes:
    """Load a chunk from backend, rebuilding it from parity parts if needed."""
    if chunk.parity_parts <= 0:
        return decode_chunk(key, archive, chunk, backend.load_chunk(chunk, 0))

    rs = ReedSolomon(chunk.data_parts, chunk.parity_parts)
    total = chunk.data_parts + chunk.parity_parts
    parts: list = [None] * total
    found = 0
    missing = 0
    for i in range(total):
        try:
            parts[i] = backend.load_chunk(chunk, i)
        except Exception:
            missing += 1
            continue
        found += 1
        if found >= chunk.data_parts:
            try:
                shards = rs.reconstruct(parts) if missing else parts
                joined = rs.join(shards, chunk.size)
            except ReedSolomonError:
                continue
            return decode_chunk(key, archive, chunk, joined)
    raise DataReconstructionError(chunk, found, chunk.data_parts - found)


def decode_archive(backend, key: str, archive: Archive, path: str) -> Iterator[RestoreEvent]:
    """Restore a single archive to path, yielding progress events."""
    event = _new_event(archive)
    perms = stat.S_IMODE(archive.mode)

    if archive.type is ArchiveType.DIRECTORY:
        os.makedirs(path, perms, exist_ok=True)
        event.total.dirs += 1
        yield _snapshot_event(event)
    elif archive.type is ArchiveType.SYMLINK:
        os.symlink(archive.points_to, path)
        event.total.symlinks += 1
        yield _snapshot_event(event)
    elif archive.type is ArchiveType.FILE:
        event.total.files += 1
        event.total.size = archive.size
        event.total.storage_size = archive.storage_size
        yield _snapshot_event(event)

        os.makedirs(os.path.dirname(path) or ".", 0o755, exist_ok=True)
        fd = os.open(path, os.O_CREAT | os.O_WRONLY, perms)
        with os.fdopen(fd, "wb") as out:
            for num in range(len(archive.chunks)):
                chunk = archive.chunks[archive.index_of_chunk(num)]
                data = load_chunk(backend, key, archive, chunk)
                out.write(data)
                event.total.transferred += len(data)
                event.current_item.transferred += len(data)
                yield _snapshot_event(event)
            out.flush()
            os.fsync(out.fileno())
        os.utime(path, (archive.mod_time, archive.mod_time))

    if os.name != "nt":
        os.lchown(path, archive.uid, archive.gid)


_cache: dict[str, bytes] = {}
_cache_lock = threading.Lock()


def _cached_chunk(backend, key: str, archive: Archive, chunk: Chunk) -> bytes:
    with _cache_lock:
        data = _cache.get(chunk.hash)
        if data is None:
            data = load_chunk(backend, key, archive, chunk)
            _cache[chunk.hash] = data
        return data


def decode_archive_data(backend, key: str, archive: Archive) -> tuple[bytes, SnapshotStats]:
    """Return the full content of an archive and statistics about it."""
    stats = SnapshotStats()
    if archive.type is not ArchiveType.FILE:
        return b"", stats
    pieces = []
    for num in range(len(archive.chunks)):
        chunk = archive.chunks[archive.index_of_chunk(num)]
        pieces.append(_cached_chunk(backend, key, archive, chunk))
    stats.storage_size += archive.storage_size
    stats.size += archive.size
    stats.transferred += archive.size
    stats.files += 1
    return b"".join(pieces), stats


def _read_chunk(backend, key: str, archive: Archive, chunk_num: int) -> bytes:
    chunk = archive.chunks[archive.index_of_chunk(chunk_num)]
    return _cached_chunk(backend, key, archive, chunk)


def read_archive(backend, key: str, archive: Archive, offset: int, size: int) -> bytes:
    """Read up to size bytes of an archive's content starting at offset.

    Raises EOFError when offset lies beyond the archive's data.
    """
    if archive.type is not ArchiveType.FILE:
        return b""
    part, inner = archive.chunk_for_offset(offset)
    out = bytearray()
    while len(out) < size:
        if part >= len(archive.chunks):
            return bytes(out)
        data = _read_chunk(backend, key, archive, part)[inner:]
        if not data:
            raise EOFError(f"chunk #{part} holds no data at offset {inner}")
        out += data[: size - len(out)]
        inner = 0
        part += 1

    if part < len(archive.chunks):
        def prefetch(num: int = part) -> None:
            try:
                _read_chunk(backend, key, archive, num)
            except Exception:
                pass

        threading.Thread(target=prefetch, daemon=True).start()
    return bytes(out)


def decode_snapshot(
    backend,
    key: str,
    snapshot: Snapshot,
    dst: str,
    excludes: Iterable[str] = (),
    pedantic: bool = False,
) -> Iterator[RestoreEvent]:
    """Restore every archive of snapshot below dst, yielding progress events.

    Errors restoring an archive are reported as events carrying the error;
    with pedantic set, the restore stops after the first one.
    """
    excludes = list(excludes)
    for archive in snapshot.archives.values():
        target = os.path.normpath(dst + os.sep + archive.path)
        excluded = False
        for exclude in excludes:
            try:
                excluded = _match(exclude.lower(), archive.path.lower())
            except ValueError:
                print("Invalid exclude filter:", exclude)
                return
            if excluded:
                break
        if excluded:
            continue
        try:
            yield from decode_archive(backend, key, archive, target)
        except Exception as exc:
            yield RestoreEvent(path=archive.path, error=exc)
            if pedantic:
                return