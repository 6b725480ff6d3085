import io
import random

import pytest

from knoxstore.chunker import Chunk, Chunker, chunk_file, process_chunk
from knoxstore.compression import Compression
from knoxstore.encryption import Encryption, InvalidPasswordError
from knoxstore.hashing import HashType, hash_data
from knoxstore.pipeline import new_decoding_pipeline, new_encoding_pipeline
from knoxstore.redundancy import ReedSolomon

PASSWORD = "password"


def _random_bytes(n, seed=7):
    return random.Random(seed).randbytes(n)


class _ShortReader:
    def __init__(self, data, step):
        self._stream = io.BytesIO(data)
        self._step = step

    def read(self, n):
        return self._stream.read(min(n, self._step))


def test_chunk_dict_round_trip_drops_data():
    chunk = Chunk(data=[b"abc"], data_parts=2, parity_parts=1, original_size=10,
                  size=3, decrypted_hash="aa", hash="bb", num=4)
    d = chunk.to_dict()
    assert "data" not in d
    assert d["data_parts"] == 2
    assert d["decrypted_hash"] == "aa"
    restored = Chunk.from_dict(d)
    assert restored == chunk
    assert restored.data == []


def test_empty_stream_yields_nothing():
    assert list(Chunker(io.BytesIO(b""))) == []


def test_input_below_min_size_is_one_chunk():
    data = _random_bytes(1000)
    assert list(Chunker(io.BytesIO(data))) == [data]


def test_chunks_reassemble_and_respect_bounds():
    data = _random_bytes(40_000)
    chunks = list(Chunker(io.BytesIO(data), min_size=256, max_size=4096, average_bits=8))
    assert b"".join(chunks) == data
    assert len(chunks) > 1
    assert all(256 <= len(c) <= 4096 for c in chunks[:-1])
    assert 0 < len(chunks[-1]) <= 4096


def test_cut_points_do_not_depend_on_read_sizes():
    data = _random_bytes(30_000, seed=3)
    whole = list(Chunker(io.BytesIO(data), min_size=128, max_size=2048, average_bits=7))
    short = list(Chunker(_ShortReader(data, 333), min_size=128, max_size=2048, average_bits=7))
    assert whole == short


def test_max_size_forces_cuts():
    data = _random_bytes(10_000, seed=5)
    chunks = list(Chunker(io.BytesIO(data), min_size=128, max_size=1024, average_bits=40))
    assert b"".join(chunks) == data
    assert all(len(c) == 1024 for c in chunks[:-1])


def test_invalid_boundaries():
    with pytest.raises(ValueError):
        Chunker(io.BytesIO(b""), min_size=10)
    with pytest.raises(ValueError):
        Chunker(io.BytesIO(b""), min_size=2048, max_size=1024)


def test_process_chunk_without_parity():
    data = _random_bytes(5000)
    pipe = new_encoding_pipeline(Compression.ZLIB, Encryption.AES, PASSWORD)
    chunk = process_chunk(data, 3, pipe, 4, 0)
    assert chunk.data_parts == 1
    assert chunk.parity_parts == 0
    assert chunk.num == 3
    assert chunk.original_size == len(data)
    assert len(chunk.data) == 1
    assert chunk.size == len(chunk.data[0])
    assert chunk.decrypted_hash == hash_data(data, HashType.HIGHWAY256)
    assert chunk.hash == hash_data(chunk.data[0], HashType.HIGHWAY256)
    decoder = new_decoding_pipeline(Compression.ZLIB, Encryption.AES, PASSWORD)
    assert decoder.process(chunk.data[0]) == data


def test_process_chunk_with_parity():
    data = _random_bytes(3000)
    pipe = new_encoding_pipeline(Compression.NONE, Encryption.AES, PASSWORD)
    chunk = process_chunk(data, 0, pipe, 2, 1)
    assert chunk.data_parts == 2
    assert len(chunk.data) == 3
    encoded = new_encoding_pipeline(Compression.NONE, Encryption.AES, PASSWORD).process(data)
    rs = ReedSolomon(2, 1)
    assert rs.verify(chunk.data)
    assert rs.join(chunk.data, chunk.size) == encoded


def test_chunk_file_round_trip(tmp_path):
    content = _random_bytes(3000)
    path = tmp_path / "file.bin"
    path.write_bytes(content)
    chunks = list(chunk_file(str(path), PASSWORD, Compression.GZIP, Encryption.AES, 1, 0))
    assert [c.num for c in chunks] == [0]
    decoder = new_decoding_pipeline(Compression.GZIP, Encryption.AES, PASSWORD)
    assert decoder.process(chunks[0].data[0]) == content


def test_chunk_file_with_parity(tmp_path):
    path = tmp_path / "file.bin"
    path.write_bytes(_random_bytes(2000))
    chunks = list(chunk_file(str(path), PASSWORD, Compression.NONE, Encryption.NONE, 2, 1))
    assert all(len(c.data) == 3 for c in chunks)


def test_chunk_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        chunk_file(str(tmp_path / "missing"), PASSWORD, Compression.NONE, Encryption.AES, 1, 0)


def test_chunk_file_empty_password(tmp_path):
    path = tmp_path / "file.bin"
    path.write_bytes(b"data")
    with pytest.raises(InvalidPasswordError):
        chunk_file(str(path), "", Compression.NONE, Encryption.AES, 1, 0)