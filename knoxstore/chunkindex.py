"""Index linking stored chunks to the snapshots that reference them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .archive import Archive
from .compression import Compression
from .encryption import Encryption
from .pipeline import new_decoding_pipeline, new_encoding_pipeline


@dataclass
class ChunkIndexItem:
    """A chunk and the snapshots that reference it."""

    hash: str
    data_parts: int = 0
    parity_parts: int = 0
    size: int = 0
    snapshots: list = field(default_factory=list)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "data_parts": self.data_parts,
            "parity_parts": self.parity_parts,
            "size": self.size,
            "snapshots": list(self.snapshots),
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "ChunkIndexItem":
        return cls(
            hash=str(data.get("hash", "")),
            data_parts=int(data.get("data_parts", 0)),
            parity_parts=int(data.get("parity_parts", 0)),
            size=int(data.get("size", 0)),
            snapshots=list(data.get("snapshots") or []),
        )


@dataclass
class ChunkIndex:
    """Maps chunk hashes to their index entries."""

    chunks: dict = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        return {"chunks": {h: item._to_dict() for h, item in self.chunks.items()}}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "ChunkIndex":
        chunks = data.get("chunks") or {}
        return cls({h: ChunkIndexItem._from_dict(item) for h, item in chunks.items()})

    def save(self, backend, key: str) -> None:
        """Encode the index and store it on backend."""
        pipe = new_encoding_pipeline(Compression.LZMA, Encryption.AES, key)
        backend.save_chunk_index(pipe.encode(self._to_dict()))

    def pack(self, backend) -> int:
        """Delete unreferenced chunks from backend; return the bytes freed."""
        freed = 0
        kept: dict[str, ChunkIndexItem] = {}
        for item in self.chunks.values():
            if item.snapshots:
                kept[item.hash] = item
                continue
            print(f"Chunk {item.hash} is no longer referenced by any snapshot. Deleting!")
            for part in range(item.data_parts + item.parity_parts):
                backend.delete_chunk(item.hash, part, item.data_parts)
                freed += item.size
        self.chunks = kept
        return freed

    def add_archive(self, archive: Archive, snapshot_id: str) -> None:
        """Record that snapshot_id references every chunk of archive."""
        for chunk in archive.chunks:
            item = self.chunks.get(chunk.hash)
            if item is not None:
                item.snapshots.append(snapshot_id)
            else:
                self.chunks[chunk.hash] = ChunkIndexItem(
                    hash=chunk.hash,
                    data_parts=chunk.data_parts,
                    parity_parts=chunk.parity_parts,
                    size=chunk.size,
                    snapshots=[snapshot_id],
                )

    def remove_snapshot(self, snapshot_id: str) -> None:
        """Drop every reference to snapshot_id."""
        for item in self.chunks.values():
            item.snapshots = [s for s in item.snapshots if s != snapshot_id]


def open_chunk_index(backend, key: str) -> ChunkIndex:
    """Load the chunk index from backend, creating and saving an empty one if missing."""
    try:
        raw = backend.load_chunk_index()
    except Exception:  # any load failure means there is no usable index yet
        index = ChunkIndex()
        index.save(backend, key)
        return index
    pipe = new_decoding_pipeline(Compression.LZMA, Encryption.AES, key)
    return ChunkIndex._from_dict(pipe.decode(raw))