"""Content hashing: SHA-256 and HighwayHash-256."""

from __future__ import annotations

import hashlib
import struct
from enum import IntEnum

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1

_INIT0 = (0xDBE6D5D5FE4CCE2F, 0xA4093822299F31D0, 0x13198A2E03707344, 0x243F6A8885A308D3)
_INIT1 = (0x3BD39E10CB0EF593, 0xC0ACF169B5F18A8C, 0xBE5466CF34E90C6C, 0x452821E638D01377)

_ZERO_KEY = bytes(32)


class HashType(IntEnum):
    """Available hash algorithms."""

    SHA256 = 0
    HIGHWAY256 = 1


def _swap32(x: int) -> int:
    return ((x >> 32) | (x << 32)) & _MASK64


def _zipper(v1: int, v0: int) -> tuple[int, int]:
    """Return the (add1, add0) terms of HighwayHash's zipper merge."""
    add0 = (
        (((v0 & 0xFF000000) | (v1 & 0xFF00000000)) >> 24)
        | (((v0 & 0xFF0000000000) | (v1 & 0xFF000000000000)) >> 16)
        | (v0 & 0xFF0000)
        | ((v0 & 0xFF00) << 32)
        | ((v1 & 0xFF00000000000000) >> 8)
        | (v0 << 56)
    ) & _MASK64
    add1 = (
        (((v1 & 0xFF000000) | (v0 & 0xFF00000000)) >> 24)
        | (v1 & 0xFF0000)
        | ((v1 & 0xFF0000000000) >> 16)
        | ((v1 & 0xFF00) << 24)
        | ((v0 & 0xFF000000000000) >> 8)
        | ((v1 & 0xFF) << 48)
        | (v0 & 0xFF00000000000000)
    ) & _MASK64
    return add1, add0


def _rot32(x: int, count: int) -> int:
    return ((x << count) | (x >> (32 - count))) & _MASK32


class _HighwayState:
    def __init__(self, key: bytes) -> None:
        k = struct.unpack("<4Q", key)
        self.mul0 = list(_INIT0)
        self.mul1 = list(_INIT1)
        self.v0 = [m ^ ki for m, ki in zip(self.mul0, k)]
        self.v1 = [m ^ _swap32(ki) for m, ki in zip(self.mul1, k)]

    def update(self, lanes) -> None:
        v0, v1, mul0, mul1 = self.v0, self.v1, self.mul0, self.mul1
        for i, lane in enumerate(lanes):
            v1[i] = (v1[i] + mul0[i] + lane) & _MASK64
            mul0[i] ^= ((v1[i] & _MASK32) * (v0[i] >> 32)) & _MASK64
            v0[i] = (v0[i] + mul1[i]) & _MASK64
            mul1[i] ^= ((v0[i] & _MASK32) * (v1[i] >> 32)) & _MASK64
        for src, dst in ((v1, v0), (v0, v1)):
            for lo, hi in ((0, 1), (2, 3)):
                add1, add0 = _zipper(src[hi], src[lo])
                dst[hi] = (dst[hi] + add1) & _MASK64
                dst[lo] = (dst[lo] + add0) & _MASK64

    def update_packet(self, packet: bytes) -> None:
        self.update(struct.unpack("<4Q", packet))

    def update_remainder(self, tail: bytes) -> None:
        size_mod32 = len(tail)
        size_mod4 = size_mod32 & 3
        remainder = size_mod32 & ~3
        packet = bytearray(32)
        self.v0 = [(v + (size_mod32 << 32) + size_mod32) & _MASK64 for v in self.v0]
        self.v1 = [
            _rot32(v & _MASK32, size_mod32) | (_rot32(v >> 32, size_mod32) << 32)
            for v in self.v1
        ]
        packet[:remainder] = tail[:remainder]
        if size_mod32 & 16:
            start = remainder + size_mod4 - 4
            packet[28:32] = tail[start:start + 4]
        elif size_mod4:
            packet[16] = tail[remainder]
            packet[17] = tail[remainder + (size_mod4 >> 1)]
            packet[18] = tail[remainder + size_mod4 - 1]
        self.update_packet(bytes(packet))

    def finalize256(self) -> bytes:
        for _ in range(10):
            v0 = self.v0
            self.update((_swap32(v0[2]), _swap32(v0[3]), _swap32(v0[0]), _swap32(v0[1])))
        s = [
            ((self.v1[i] + self.mul1[i]) & _MASK64, (self.v0[i] + self.mul0[i]) & _MASK64)
            for i in range(4)
        ]
        out = []
        for lo, hi in ((0, 1), (2, 3)):
            a3 = s[hi][0] & 0x3FFFFFFFFFFFFFFF
            a2, a1, a0 = s[lo][0], s[hi][1], s[lo][1]
            m1 = (a1 ^ ((a3 << 1) | (a2 >> 63)) ^ ((a3 << 2) | (a2 >> 62))) & _MASK64
            m0 = (a0 ^ (a2 << 1) ^ (a2 << 2)) & _MASK64
            out.extend((m0, m1))
        return struct.pack("<4Q", *out)


def highway_hash256(data: bytes, key: bytes) -> bytes:
    """Return the 32-byte HighwayHash-256 digest of data under a 32-byte key."""
    if len(key) != 32:
        raise ValueError("highwayhash key must be 32 bytes")
    state = _HighwayState(bytes(key))
    data = bytes(data)
    full = len(data) - len(data) % 32
    for pos in range(0, full, 32):
        state.update_packet(data[pos:pos + 32])
    if full != len(data):
        state.update_remainder(data[full:])
    return state.finalize256()


def hash_data(data: bytes, hash_type: HashType) -> str:
    """Hash data and return the digest as lower-case hex."""
    hash_type = HashType(hash_type)
    if hash_type is HashType.SHA256:
        return hashlib.sha256(data).hexdigest()
    return highway_hash256(data, _ZERO_KEY).hex()