"""Archive metadata for files, directories and symlinks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .chunker import Chunk


class ArchiveType(IntEnum):
    """Kinds of archived filesystem entries."""

    FILE = 0
    DIRECTORY = 1
    SYMLINK = 2


class ChunkError(LookupError):
    """Raised when a chunk number is not part of an archive."""

    def __init__(self, chunk_num: int) -> None:
        self.chunk_num = chunk_num
        super().__init__(f"Could not find chunk #{chunk_num}")


class SeekError(ValueError):
    """Raised when an offset cannot be located inside an archive."""

    def __init__(self, offset: int) -> None:
        self.offset = offset
        super().__init__(f"Could not seek to offset {offset}")


@dataclass
class Archive:
    """All metadata belonging to a file, directory or symlink."""

    path: str = ""
    points_to: str = ""
    mode: int = 0
    mod_time: int = 0
    size: int = 0
    storage_size: int = 0
    uid: int = 0
    gid: int = 0
    chunks: list = field(default_factory=list)
    encrypted: int = 0
    compressed: int = 0
    type: ArchiveType = ArchiveType.FILE

    def index_of_chunk(self, chunk_num: int) -> int:
        """Return the list position of the chunk with number chunk_num."""
        for index, chunk in enumerate(self.chunks):
            if chunk.num == chunk_num:
                return index
        raise ChunkError(chunk_num)

    def chunk_for_offset(self, offset: int) -> tuple[int, int]:
        """Return (chunk number, offset inside that chunk) for a data offset.

        Raises EOFError when the offset lies beyond the archive's data.
        """
        size = 0
        for num in range(len(self.chunks)):
            try:
                chunk = self.chunks[self.index_of_chunk(num)]
            except ChunkError:
                raise SeekError(offset) from None
            if size + chunk.original_size > offset:
                return chunk.num, offset - size
            size += chunk.original_size
        raise EOFError(f"offset {offset} is beyond the end of the archive")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"path": self.path}
        if self.points_to:
            result["pointsto"] = self.points_to
        result.update(
            mode=self.mode,
            modtime=self.mod_time,
            size=self.size,
            storagesize=self.storage_size,
            uid=self.uid,
            gid=self.gid,
        )
        if self.chunks:
            result["chunks"] = [chunk.to_dict() for chunk in self.chunks]
        result.update(
            encrypted=self.encrypted,
            compressed=self.compressed,
            type=int(self.type),
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Archive":
        return cls(
            path=str(data.get("path", "")),
            points_to=str(data.get("pointsto", "")),
            mode=int(data.get("mode", 0)),
            mod_time=int(data.get("modtime", 0)),
            size=int(data.get("size", 0)),
            storage_size=int(data.get("storagesize", 0)),
            uid=int(data.get("uid", 0)),
            gid=int(data.get("gid", 0)),
            chunks=[Chunk.from_dict(c) for c in data.get("chunks") or []],
            encrypted=int(data.get("encrypted", 0)),
            compressed=int(data.get("compressed", 0)),
            type=ArchiveType(int(data.get("type", 0))),
        )