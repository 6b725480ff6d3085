"""Encryption pipeline steps (AES-256 in CFB mode)."""

from __future__ import annotations

import hashlib
from enum import IntEnum

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


class Encryption(IntEnum):
    """Available encryption algorithms."""

    NONE = 0
    AES = 1


class InvalidPasswordError(ValueError):
    """Raised when encryption is requested with an empty password."""

    def __init__(self) -> None:
        super().__init__("Empty password not permitted")


class _CipherStep:
    def __init__(self, method: Encryption, password: str) -> None:
        self.method = Encryption(method)
        self._cipher = None
        if self.method is Encryption.AES:
            if not password:
                raise InvalidPasswordError()
            key = hashlib.sha256(password.encode()).digest()
            self._cipher = Cipher(algorithms.AES(key), modes.CFB(key[:16]))


class Encryptor(_CipherStep):
    """Pipeline step that encrypts data."""

    def process(self, data: bytes) -> bytes:
        if self._cipher is None:
            return data
        enc = self._cipher.encryptor()
        return enc.update(bytes(data)) + enc.finalize()


class Decryptor(_CipherStep):
    """Pipeline step that decrypts data."""

    def process(self, data: bytes) -> bytes:
        if self._cipher is None:
            return data
        dec = self._cipher.decryptor()
        return dec.update(bytes(data)) + dec.finalize()