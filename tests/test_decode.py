import os

import pytest

from knoxstore.archive import Archive, ArchiveType
from knoxstore.compression import Compression
from knoxstore.chunker import process_chunk
from knoxstore.decode import (
    CheckSumError,
    DataReconstructionError,
    decode_archive,
    decode_archive_data,
    decode_chunk,
    decode_snapshot,
    load_chunk,
    read_archive,
)
from knoxstore.encryption import Encryption
from knoxstore.pipeline import new_encoding_pipeline
from knoxstore.snapshot import Snapshot

password = "password"


class FakeBackend:
    def __init__(self):
        self.parts = {}

    def put(self, chunk):
        for i, data in enumerate(chunk.data):
            self.parts[(chunk.hash, i)] = data

    def load_chunk(self, chunk, part):
        return self.parts[(chunk.hash, part)]


def make_archive(pieces, backend, parity=0, data_parts=1, path="file.bin"):
    pipe = new_encoding_pipeline(Compression.ZLIB, Encryption.AES, password)
    chunks = []
    for num, piece in enumerate(pieces):
        chunk = process_chunk(piece, num, pipe, data_parts, parity)
        backend.put(chunk)
        chunk.data = []
        chunks.append(chunk)
    total = sum(len(p) for p in pieces)
    return Archive(
        path=path,
        mode=0o100644,
        mod_time=1_000_000,
        size=total,
        uid=os.getuid(),
        gid=os.getgid(),
        chunks=chunks,
        encrypted=Encryption.AES,
        compressed=Compression.ZLIB,
        type=ArchiveType.FILE,
    )


def test_decode_archive_data_round_trip():
    backend = FakeBackend()
    pieces = [b"alpha-" * 50, b"beta-" * 40]
    archive = make_archive(pieces, backend)
    data, stats = decode_archive_data(backend, password, archive)
    assert data == b"".join(pieces)
    assert stats.files == 1
    assert stats.size == archive.size


def test_decode_chunk_checksum_mismatch():
    backend = FakeBackend()
    archive = make_archive([b"checksum test data"], backend)
    chunk = archive.chunks[0]
    chunk.decrypted_hash = "00" * 32
    with pytest.raises(CheckSumError):
        decode_chunk(password, archive, chunk, backend.load_chunk(chunk, 0))


def test_load_chunk_reconstructs_missing_part():
    backend = FakeBackend()
    payload = b"parity protected payload " * 30
    archive = make_archive([payload], backend, parity=1, data_parts=2)
    chunk = archive.chunks[0]
    del backend.parts[(chunk.hash, 0)]
    assert load_chunk(backend, password, archive, chunk) == payload


def test_load_chunk_too_many_missing():
    backend = FakeBackend()
    archive = make_archive([b"lost data " * 20], backend, parity=1, data_parts=2)
    chunk = archive.chunks[0]
    del backend.parts[(chunk.hash, 0)]
    del backend.parts[(chunk.hash, 1)]
    with pytest.raises(DataReconstructionError) as info:
        load_chunk(backend, password, archive, chunk)
    assert info.value.blocks_found == 1


def test_read_archive_across_chunks():
    backend = FakeBackend()
    pieces = [b"0123456789", b"abcdefghij", b"KLMNOPQRST"]
    archive = make_archive(pieces, backend)
    whole = b"".join(pieces)
    assert read_archive(backend, password, archive, 5, 10) == whole[5:15]
    assert read_archive(backend, password, archive, 25, 100) == whole[25:]


def test_read_archive_beyond_end():
    backend = FakeBackend()
    archive = make_archive([b"short read content"], backend)
    with pytest.raises(EOFError):
        read_archive(backend, password, archive, 1000, 5)


def test_decode_archive_writes_file(tmp_path):
    backend = FakeBackend()
    pieces = [b"restored file content " * 10]
    archive = make_archive(pieces, backend)
    target = tmp_path / "sub" / "out.bin"
    events = list(decode_archive(backend, password, archive, str(target)))
    assert target.read_bytes() == pieces[0]
    assert int(os.stat(target).st_mtime) == archive.mod_time
    assert events[-1].current_item.transferred == len(pieces[0])


def test_decode_snapshot_with_excludes_and_errors(tmp_path):
    backend = FakeBackend()
    kept = make_archive([b"kept snapshot file"], backend, path="keep.txt")
    skipped = make_archive([b"excluded snapshot file"], backend, path="skip.log")
    broken = make_archive([b"broken snapshot file"], backend, path="broken.txt")
    del backend.parts[(broken.chunks[0].hash, 0)]
    directory = Archive(path="dir", mode=0o40755, uid=os.getuid(), gid=os.getgid(),
                        type=ArchiveType.DIRECTORY)
    snap = Snapshot(id="abcd1234", archives={
        a.path: a for a in (kept, skipped, broken, directory)
    })
    events = list(decode_snapshot(backend, password, snap, str(tmp_path), ["*.log"], False))
    assert (tmp_path / "keep.txt").read_bytes() == b"kept snapshot file"
    assert not (tmp_path / "skip.log").exists()
    assert (tmp_path / "dir").is_dir()
    errors = [e for e in events if e.error is not None]
    assert [e.path for e in errors] == ["broken.txt"]