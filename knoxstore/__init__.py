"""Deduplicating, compressed and encrypted backup storage with an HTTP storage server."""

__version__ = "0.1.0"

__all__ = [
    "archive",
    "backend",
    "backendmanager",
    "chunker",
    "chunkindex",
    "compression",
    "decode",
    "encryption",
    "hashing",
    "pipeline",
    "redundancy",
    "scanner",
    "server",
    "snapshot",
]