"""Processing pipelines chaining compression and encryption."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from .compression import Compression, Compressor, Decompressor
from .encryption import Decryptor, Encryption, Encryptor


class Processor(Protocol):
    def process(self, data: bytes) -> bytes: ...


@dataclass
class Pipeline:
    """Passes data through a sequence of processors."""

    processors: list = field(default_factory=list)

    def process(self, data: bytes) -> bytes:
        for proc in self.processors:
            data = proc.process(data)
        return data

    def encode(self, obj: Any) -> bytes:
        """Serialise obj to JSON and send it through the processors."""
        raw = json.dumps(obj, sort_keys=True, separators=(",", ":")).encode()
        return self.process(raw)

    def decode(self, data: bytes) -> Any:
        """Send data through the processors and parse the JSON result."""
        return json.loads(self.process(data).decode())


def new_encoding_pipeline(compression: Compression, encryption: Encryption, password: str) -> Pipeline:
    """Return a pipeline that compresses, then encrypts."""
    return Pipeline([Compressor(Compression(compression)), Encryptor(encryption, password)])


def new_decoding_pipeline(compression: Compression, encryption: Encryption, password: str) -> Pipeline:
    """Return a pipeline that decrypts, then decompresses."""
    return Pipeline([Decryptor(encryption, password), Decompressor(Compression(compression))])