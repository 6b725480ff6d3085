"""Content-defined chunking of files and per-chunk encoding."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterator, Optional

from .compression import Compression
from .encryption import Encryption
from .hashing import HashType, hash_data
from .pipeline import Pipeline, new_encoding_pipeline
from .redundancy import redundant_data

KIB = 1024
MIB = 1024 * KIB
WINDOW_SIZE = 64
MIN_SIZE = 512 * KIB
PREFERRED_CHUNK_SIZE = 1 * MIB
CHUNKER_POLYNOMIAL = 0x3DA3358B4DC173
AVERAGE_BITS = 20

_READ_SIZE = 512 * KIB


@dataclass
class Chunk:
    """An encoded chunk together with its metadata."""

    data: list = field(default_factory=list, compare=False, repr=False)
    data_parts: int = 0
    parity_parts: int = 0
    original_size: int = 0
    size: int = 0
    decrypted_hash: str = ""
    hash: str = ""
    num: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the chunk's metadata; the data itself is not included."""
        return {
            "data_parts": self.data_parts,
            "parity_parts": self.parity_parts,
            "original_size": self.original_size,
            "size": self.size,
            "decrypted_hash": self.decrypted_hash,
            "hash": self.hash,
            "num": self.num,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chunk":
        return cls(
            data_parts=int(data.get("data_parts", 0)),
            parity_parts=int(data.get("parity_parts", 0)),
            original_size=int(data.get("original_size", 0)),
            size=int(data.get("size", 0)),
            decrypted_hash=str(data.get("decrypted_hash", "")),
            hash=str(data.get("hash", "")),
            num=int(data.get("num", 0)),
        )


def _pol_deg(x: int) -> int:
    return x.bit_length() - 1


def _pol_mod(x: int, d: int) -> int:
    if d == 0:
        raise ZeroDivisionError("polynomial division by zero")
    deg_d = _pol_deg(d)
    while x and _pol_deg(x) >= deg_d:
        x ^= d << (_pol_deg(x) - deg_d)
    return x


def _append_byte(h: int, b: int, pol: int) -> int:
    return _pol_mod((h << 8) | b, pol)


@functools.lru_cache(maxsize=8)
def _tables(pol: int) -> tuple[tuple[int, ...], tuple[int, ...]]:
    out = []
    for b in range(256):
        h = _append_byte(0, b, pol)
        for _ in range(WINDOW_SIZE - 1):
            h = _append_byte(h, 0, pol)
        out.append(h)
    k = _pol_deg(pol)
    mod = tuple(_pol_mod(b << k, pol) | (b << k) for b in range(256))
    return tuple(out), mod


class Chunker:
    """Splits a byte stream into content-defined chunks using a Rabin fingerprint."""

    def __init__(
        self,
        stream: BinaryIO,
        polynomial: int = CHUNKER_POLYNOMIAL,
        min_size: int = MIN_SIZE,
        max_size: int = PREFERRED_CHUNK_SIZE,
        average_bits: int = AVERAGE_BITS,
    ) -> None:
        if min_size < WINDOW_SIZE:
            raise ValueError(f"minimum chunk size must be at least {WINDOW_SIZE} bytes")
        if max_size < min_size:
            raise ValueError("maximum chunk size must not be below the minimum chunk size")
        if _pol_deg(polynomial) < 8:
            raise ValueError("polynomial degree must be at least 8")
        self._stream = stream
        self._out_table, self._mod_table = _tables(polynomial)
        self._shift = _pol_deg(polynomial) - 8
        self._min_size = min_size
        self._max_size = max_size
        self._split_mask = (1 << average_bits) - 1
        self._reset()

    def _reset(self) -> None:
        self._window = [0] * WINDOW_SIZE
        self._wpos = 0
        self._count = 0
        self._digest = 0
        self._slide(1)
        self._pre = self._min_size - WINDOW_SIZE

    def _slide(self, b: int) -> None:
        out = self._window[self._wpos]
        self._window[self._wpos] = b
        digest = self._digest ^ self._out_table[out]
        self._wpos = (self._wpos + 1) % WINDOW_SIZE
        index = digest >> self._shift
        self._digest = ((digest << 8) | b) ^ self._mod_table[index]

    def _scan(self, block: bytes, start: int) -> Optional[int]:
        """Roll the fingerprint over block[start:]; return the cut position, if any."""
        out_table, mod_table, shift = self._out_table, self._mod_table, self._shift
        min_size, max_size, mask = self._min_size, self._max_size, self._split_mask
        window = self._window
        digest, wpos, added = self._digest, self._wpos, self._count
        for pos, b in enumerate(memoryview(block)[start:], start=start):
            out = window[wpos]
            window[wpos] = b
            digest ^= out_table[out]
            wpos = (wpos + 1) % WINDOW_SIZE
            index = (digest >> shift) & 0xFF
            digest = ((digest << 8) | b) ^ mod_table[index]
            added += 1
            if added < min_size:
                continue
            if digest & mask == 0 or added >= max_size:
                return pos + 1
        self._digest, self._wpos, self._count = digest, wpos, added
        return None

    def __iter__(self) -> Iterator[bytes]:
        data = bytearray()
        while True:
            block = self._stream.read(_READ_SIZE)
            if not block:
                if data:
                    yield bytes(data)
                    self._reset()
                return
            pos = 0
            while pos < len(block):
                if self._pre > 0:
                    take = min(self._pre, len(block) - pos)
                    data += block[pos:pos + take]
                    pos += take
                    self._pre -= take
                    self._count += take
                    continue
                cut = self._scan(block, pos)
                if cut is None:
                    data += block[pos:]
                    pos = len(block)
                else:
                    data += block[pos:cut]
                    pos = cut
                    yield bytes(data)
                    data = bytearray()
                    self._reset()


def process_chunk(data: bytes, num: int, pipeline: Pipeline, data_parts: int, parity_parts: int) -> Chunk:
    """Encode one piece of input and split it into storable parts."""
    encoded = pipeline.process(data)
    chunk = Chunk(
        data_parts=data_parts,
        parity_parts=parity_parts,
        original_size=len(data),
        size=len(encoded),
        decrypted_hash=hash_data(data, HashType.HIGHWAY256),
        hash=hash_data(encoded, HashType.HIGHWAY256),
        num=num,
    )
    if parity_parts > 0:
        chunk.data = redundant_data(encoded, data_parts, parity_parts)
    else:
        chunk.data_parts = 1
        chunk.data = [encoded]
    return chunk


def chunk_file(
    filename: str,
    password: str,
    compression: Compression,
    encryption: Encryption,
    data_parts: int,
    parity_parts: int,
) -> Iterator[Chunk]:
    """Open filename and return an iterator over its encoded chunks.

    The file is opened and the pipeline built immediately, so a missing file
    or an invalid password raises before iteration begins.
    """
    pipeline = new_encoding_pipeline(compression, encryption, password)
    stream = open(filename, "rb")

    def generate() -> Iterator[Chunk]:
        with stream:
            for num, piece in enumerate(Chunker(stream)):
                yield process_chunk(piece, num, pipeline, data_parts, parity_parts)

    return generate()