"""Distributes repository data over several storage backends."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .backend import Backend
from .chunker import Chunk

RETRIES = 3

T = TypeVar("T")


class BackendManagerError(Exception):
    """Raised when no storage backend could complete an operation."""


def _retry(call: Callable[[], T]) -> T:
    """Call up to RETRIES times; re-raise the last failure."""
    for attempt in range(RETRIES):
        try:
            return call()
        except Exception:
            if attempt == RETRIES - 1:
                raise
    raise AssertionError("unreachable")


@dataclass
class BackendManager:
    """Stores data on multiple backends."""

    backends: list = field(default_factory=list)
    _last_used_backend: int = field(default=0, init=False, repr=False)

    def add_backend(self, backend: Backend) -> None:
        self.backends.append(backend)

    def locations(self) -> list[str]:
        """Return the locations of all backends."""
        return [be.location() for be in self.backends]

    def _first_success(self, operation: Callable[[Backend], Any], message: str) -> Any:
        for be in self.backends:
            for _ in range(RETRIES):
                try:
                    return operation(be)
                except Exception:
                    continue
        raise BackendManagerError(message)

    def _on_all(self, operation: Callable[[Backend], None]) -> None:
        for be in self.backends:
            _retry(functools.partial(operation, be))

    def load_chunk(self, chunk: Chunk, part: int) -> bytes:
        return self._first_success(
            lambda be: be.load_chunk(chunk.hash, part, chunk.data_parts),
            "Unable to load chunk from any storage backend",
        )

    def store_chunk(self, chunk: Chunk) -> int:
        """Store every part of chunk, round robin; return the largest stored size."""
        if not self.backends:
            raise BackendManagerError("Storing chunk failed")
        size = 0
        for part, data in enumerate(chunk.data):
            self._last_used_backend += 1
            if self._last_used_backend + 1 > len(self.backends):
                self._last_used_backend = 0
            be = self.backends[self._last_used_backend]
            stored = _retry(functools.partial(be.store_chunk, chunk.hash, part, chunk.data_parts, data))
            size = max(size, stored)
        return size

    def delete_chunk(self, shasum: str, part: int, total_parts: int) -> None:
        self._first_success(
            lambda be: be.delete_chunk(shasum, part, total_parts),
            "Unable to delete chunk from any storage backend",
        )

    def load_snapshot(self, snapshot_id: str) -> bytes:
        return self._first_success(
            lambda be: be.load_snapshot(snapshot_id),
            "Unable to load snapshot from any storage backend",
        )

    def save_snapshot(self, snapshot_id: str, data: bytes) -> None:
        """Store a snapshot on all backends."""
        self._on_all(lambda be: be.save_snapshot(snapshot_id, data))

    def load_chunk_index(self) -> bytes:
        return self._first_success(
            lambda be: be.load_chunk_index(),
            "Unable to load chunk-index from any storage backend",
        )

    def save_chunk_index(self, data: bytes) -> None:
        """Store the chunk index on all backends."""
        self._on_all(lambda be: be.save_chunk_index(data))

    def init_repository(self) -> None:
        for be in self.backends:
            be.init_repository()

    def load_repository(self) -> bytes:
        return self._first_success(
            lambda be: be.load_repository(),
            "Unable to load repository from any storage backend",
        )

    def save_repository(self, data: bytes) -> None:
        """Store the repository metadata on all backends."""
        self._on_all(lambda be: be.save_repository(data))