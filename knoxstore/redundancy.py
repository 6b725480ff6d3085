"""Reed-Solomon erasure coding over GF(2^8)."""

from __future__ import annotations

from typing import Optional, Sequence


class ReedSolomonError(ValueError):
    """Raised for invalid shard configurations or unrecoverable data."""


def _build_tables() -> tuple[list[int], list[int]]:
    exp = [0] * 512
    log = [0] * 256
    x = 1
    for i in range(255):
        exp[i] = x
        log[x] = i
        x <<= 1
        if x & 0x100:
            x ^= 0x11D
    for i in range(255, 512):
        exp[i] = exp[i - 255]
    return exp, log


_EXP, _LOG = _build_tables()


def _mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _EXP[_LOG[a] + _LOG[b]]


def _inv(a: int) -> int:
    if a == 0:
        raise ReedSolomonError("matrix is singular")
    return _EXP[(255 - _LOG[a]) % 255]


def _pow(a: int, n: int) -> int:
    if n == 0:
        return 1
    if a == 0:
        return 0
    return _EXP[(_LOG[a] * n) % 255]


_MUL_TABLES = [bytes(_mul(c, x) for x in range(256)) for c in range(256)]


def _mat_mul(a: list[list[int]], b: list[list[int]]) -> list[list[int]]:
    result = []
    for row in a:
        out = []
        for col in zip(*b):
            acc = 0
            for x, y in zip(row, col):
                acc ^= _mul(x, y)
            out.append(acc)
        result.append(out)
    return result


def _mat_invert(m: list[list[int]]) -> list[list[int]]:
    n = len(m)
    work = [list(row) + [int(i == j) for j in range(n)] for i, row in enumerate(m)]
    for col in range(n):
        pivot = next((r for r in range(col, n) if work[r][col]), None)
        if pivot is None:
            raise ReedSolomonError("matrix is singular")
        work[col], work[pivot] = work[pivot], work[col]
        scale = _inv(work[col][col])
        work[col] = [_mul(v, scale) for v in work[col]]
        for r in range(n):
            factor = work[r][col]
            if r != col and factor:
                work[r] = [v ^ _mul(factor, p) for v, p in zip(work[r], work[col])]
    return [row[n:] for row in work]


def _combine(row: Sequence[int], shards: Sequence[bytes], size: int) -> bytes:
    acc = 0
    for coef, shard in zip(row, shards):
        if coef:
            acc ^= int.from_bytes(shard.translate(_MUL_TABLES[coef]), "little")
    return acc.to_bytes(size, "little")


class ReedSolomon:
    """Systematic Vandermonde-based Reed-Solomon encoder."""

    def __init__(self, data_shards: int, parity_shards: int) -> None:
        if data_shards <= 0 or parity_shards < 0:
            raise ReedSolomonError("cannot create Encoder with less than one data shard or less than zero parity shards")
        if data_shards + parity_shards > 256:
            raise ReedSolomonError("cannot create Encoder with more than 256 data+parity shards")
        self.data_shards = data_shards
        self.parity_shards = parity_shards
        self.total_shards = data_shards + parity_shards
        vandermonde = [[_pow(r, c) for c in range(data_shards)] for r in range(self.total_shards)]
        top_inverse = _mat_invert(vandermonde[:data_shards])
        self._matrix = _mat_mul(vandermonde, top_inverse)

    def _check_count(self, shards: Sequence) -> None:
        if len(shards) != self.total_shards:
            raise ReedSolomonError("too few shards given")

    @staticmethod
    def _shard_size(shards: Sequence[Optional[bytes]]) -> int:
        sizes = {len(s) for s in shards if s}
        if not sizes:
            raise ReedSolomonError("no shard data")
        if len(sizes) > 1:
            raise ReedSolomonError("shard sizes do not match")
        return sizes.pop()

    def _parity(self, data: Sequence[bytes], size: int) -> list[bytes]:
        return [_combine(row, data, size) for row in self._matrix[self.data_shards:]]

    def split(self, data: bytes) -> list[bytes]:
        """Split data into equally sized data shards plus empty parity shards."""
        if not data:
            raise ReedSolomonError("not enough data to fill the number of requested shards")
        per_shard = -(-len(data) // self.data_shards)
        padded = bytes(data).ljust(per_shard * self.data_shards, b"\x00")
        shards = [padded[i * per_shard:(i + 1) * per_shard] for i in range(self.data_shards)]
        return shards + [bytes(per_shard)] * self.parity_shards

    def encode(self, shards: Sequence[bytes]) -> list[bytes]:
        """Return the shards with parity shards computed from the data shards."""
        self._check_count(shards)
        data = [bytes(s) for s in shards[:self.data_shards]]
        if any(not s for s in data):
            raise ReedSolomonError("shards contain no data")
        size = self._shard_size(data)
        return data + self._parity(data, size)

    def verify(self, shards: Sequence[bytes]) -> bool:
        """Return True if the parity shards match the data shards."""
        self._check_count(shards)
        if any(not s for s in shards):
            raise ReedSolomonError("shards contain no data")
        size = self._shard_size(shards)
        data = [bytes(s) for s in shards[:self.data_shards]]
        return self._parity(data, size) == [bytes(s) for s in shards[self.data_shards:]]

    def reconstruct(self, shards: Sequence[Optional[bytes]]) -> list[bytes]:
        """Return all shards, rebuilding missing (None or empty) ones."""
        self._check_count(shards)
        size = self._shard_size(shards)
        present = [i for i, s in enumerate(shards) if s]
        if len(present) == self.total_shards:
            return [bytes(s) for s in shards]
        if len(present) < self.data_shards:
            raise ReedSolomonError("too few shards given")
        rows = present[:self.data_shards]
        decode = _mat_invert([self._matrix[i] for i in rows])
        sub = [bytes(shards[i]) for i in rows]
        data = [
            bytes(shards[i]) if shards[i] else _combine(decode[i], sub, size)
            for i in range(self.data_shards)
        ]
        parity = self._parity(data, size)
        return data + [
            bytes(shards[self.data_shards + i]) if shards[self.data_shards + i] else p
            for i, p in enumerate(parity)
        ]

    def join(self, shards: Sequence[Optional[bytes]], size: int) -> bytes:
        """Concatenate the data shards and return the first size bytes."""
        if len(shards) < self.data_shards:
            raise ReedSolomonError("too few shards given")
        data = shards[:self.data_shards]
        if any(not s for s in data):
            raise ReedSolomonError("too few data shards given for reconstruction")
        joined = b"".join(bytes(s) for s in data)
        if len(joined) < size:
            raise ReedSolomonError("not enough data to fill the requested size")
        return joined[:size]


def redundant_data(data: bytes, data_parts: int, parity_parts: int) -> list[bytes]:
    """Split data into data_parts shards and add parity_parts parity shards."""
    rs = ReedSolomon(data_parts, parity_parts)
    return rs.encode(rs.split(data))