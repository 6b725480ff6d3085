"""Storage backend interface and URL-based backend lookup."""

from __future__ import annotations

import abc
import os
import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit


class BackendError(Exception):
    """Base class for storage backend errors."""

    default_message = "Storage backend error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class RepositoryExistsError(BackendError):
    default_message = "Repository seems to already exist"


class InvalidRepositoryURLError(BackendError):
    default_message = "Invalid repository url specified"


class AvailableSpaceUnknownError(BackendError):
    default_message = "Available space is unknown or undefined"


class AvailableSpaceUnlimitedError(BackendError):
    default_message = "Available space is unlimited"


class InvalidUsernameError(BackendError):
    default_message = "Username wrong or missing"


class Backend(abc.ABC):
    """Stores and loads repository data."""

    @abc.abstractmethod
    def location(self) -> str:
        """Return the type and location of the repository."""

    @abc.abstractmethod
    def protocols(self) -> list[str]:
        """Return the URL schemes this backend supports."""

    @abc.abstractmethod
    def description(self) -> str:
        """Return a user-friendly description of this backend."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the backend."""

    @abc.abstractmethod
    def available_space(self) -> int:
        """Return the free space in bytes."""

    @abc.abstractmethod
    def load_chunk(self, shasum: str, part: int, total_parts: int) -> bytes:
        """Load one part of a chunk."""

    @abc.abstractmethod
    def store_chunk(self, shasum: str, part: int, total_parts: int, data: bytes) -> int:
        """Store one part of a chunk and return the number of bytes stored."""

    @abc.abstractmethod
    def delete_chunk(self, shasum: str, part: int, total_parts: int) -> None:
        """Delete one part of a chunk."""

    @abc.abstractmethod
    def load_snapshot(self, snapshot_id: str) -> bytes:
        """Load a snapshot."""

    @abc.abstractmethod
    def save_snapshot(self, snapshot_id: str, data: bytes) -> None:
        """Store a snapshot."""

    @abc.abstractmethod
    def load_chunk_index(self) -> bytes:
        """Load the chunk index."""

    @abc.abstractmethod
    def save_chunk_index(self, data: bytes) -> None:
        """Store the chunk index."""

    @abc.abstractmethod
    def init_repository(self) -> None:
        """Create a new repository."""

    @abc.abstractmethod
    def load_repository(self) -> bytes:
        """Read the repository metadata."""

    @abc.abstractmethod
    def save_repository(self, data: bytes) -> None:
        """Store the repository metadata."""


class BackendFactory(abc.ABC):
    """Creates backends for the URL schemes it supports."""

    @abc.abstractmethod
    def new_backend(self, url: SplitResult) -> Backend:
        """Return a backend for url."""

    @abc.abstractmethod
    def protocols(self) -> list[str]:
        """Return the URL schemes this factory handles."""


_factories: list[BackendFactory] = []

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def register_storage_backend(factory: BackendFactory) -> None:
    """Make a backend factory available to backend_from_url."""
    _factories.append(factory)


def _parse_url(raw: str) -> SplitResult:
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
        raise InvalidRepositoryURLError(f"invalid URL {raw!r}: control character in URL")
    url = urlsplit(raw)
    for part in (url.netloc, url.path, url.fragment):
        match = _BAD_ESCAPE.search(part)
        if match:
            bad = part[match.start():match.start() + 3]
            raise InvalidRepositoryURLError(f"invalid URL {raw!r}: invalid URL escape {bad!r}")
    try:
        url.port
    except ValueError:
        raise InvalidRepositoryURLError(f"invalid URL {raw!r}: invalid port") from None
    return url


def _backend_from_protocol(url: SplitResult) -> Backend:
    for factory in _factories:
        if url.scheme in factory.protocols():
            return factory.new_backend(url)
    raise InvalidRepositoryURLError()


def backend_from_url(path: str) -> Backend:
    """Return a backend for a repository URL or a local path."""
    if "://" not in path:
        path = os.path.abspath(path)
        if not path.startswith("/"):
            path = "/" + path
        path = "file://" + path
    return _backend_from_protocol(_parse_url(path))