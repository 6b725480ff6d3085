"""Compression pipeline steps."""

from __future__ import annotations

import gzip
import lzma
import zlib
from dataclasses import dataclass
from enum import IntEnum

import zstandard


class Compression(IntEnum):
    """Available compression algorithms."""

    NONE = 0
    GZIP = 1
    LZMA = 2
    FLATE = 3
    ZLIB = 4
    ZSTD = 5


def _deflate(data: bytes) -> bytes:
    comp = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    return comp.compress(data) + comp.flush()


_COMPRESS = {
    Compression.NONE: lambda data: data,
    Compression.GZIP: lambda data: gzip.compress(data, mtime=0),
    Compression.LZMA: lambda data: lzma.compress(data, format=lzma.FORMAT_XZ),
    Compression.FLATE: _deflate,
    Compression.ZLIB: zlib.compress,
    Compression.ZSTD: lambda data: zstandard.ZstdCompressor().compress(data),
}

_DECOMPRESS = {
    Compression.NONE: lambda data: data,
    Compression.GZIP: gzip.decompress,
    Compression.LZMA: lzma.decompress,
    Compression.FLATE: lambda data: zlib.decompress(data, -15),
    Compression.ZLIB: zlib.decompress,
    Compression.ZSTD: lambda data: zstandard.ZstdDecompressor().decompressobj().decompress(data),
}


@dataclass(frozen=True)
class Compressor:
    """Pipeline step that compresses data."""

    method: Compression

    def process(self, data: bytes) -> bytes:
        return _COMPRESS[Compression(self.method)](bytes(data))


@dataclass(frozen=True)
class Decompressor:
    """Pipeline step that decompresses data."""

    method: Compression

    def process(self, data: bytes) -> bytes:
        return _DECOMPRESS[Compression(self.method)](bytes(data))