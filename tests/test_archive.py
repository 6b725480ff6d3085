import pytest

from knoxstore.archive import Archive, ArchiveType, ChunkError, SeekError
from knoxstore.chunker import Chunk


def _archive(sizes, order=None):
    nums = order if order is not None else list(range(len(sizes)))
    return Archive(path="dir/file", chunks=[Chunk(num=n, original_size=s) for n, s in zip(nums, sizes)])


def test_index_of_chunk_finds_position():
    arc = _archive([10, 20, 30], order=[2, 0, 1])
    assert arc.index_of_chunk(2) == 0
    assert arc.index_of_chunk(0) == 1
    assert arc.index_of_chunk(1) == 2


def test_index_of_chunk_missing():
    arc = _archive([10])
    with pytest.raises(ChunkError) as info:
        arc.index_of_chunk(5)
    assert info.value.chunk_num == 5
    assert str(info.value) == "Could not find chunk #5"


def test_chunk_for_offset_start():
    arc = _archive([100, 50])
    assert arc.chunk_for_offset(0) == (0, 0)


def test_chunk_for_offset_inside_later_chunk():
    arc = _archive([100, 50, 25])
    num, inner = arc.chunk_for_offset(100)
    assert (num, inner) == (1, 0)
    num, inner = arc.chunk_for_offset(149)
    assert num == 1
    assert inner == 49


def test_chunk_for_offset_end_is_eof():
    arc = _archive([100, 50])
    with pytest.raises(EOFError):
        arc.chunk_for_offset(150)


def test_chunk_for_offset_missing_chunk_is_seek_error():
    arc = _archive([100, 50], order=[0, 7])
    with pytest.raises(SeekError) as info:
        arc.chunk_for_offset(120)
    assert info.value.offset == 120


def test_dict_round_trip():
    arc = Archive(path="a/b", mode=0o644, mod_time=1234, size=30, storage_size=40,
                  uid=1000, gid=100, chunks=[Chunk(num=0, original_size=30, hash="ab")],
                  encrypted=1, compressed=2, type=ArchiveType.FILE)
    assert Archive.from_dict(arc.to_dict()) == arc


def test_dict_omits_empty_optional_fields():
    d = Archive(path="d", type=ArchiveType.DIRECTORY).to_dict()
    assert "pointsto" not in d
    assert "chunks" not in d
    assert d["type"] == int(ArchiveType.DIRECTORY)


def test_symlink_round_trip():
    arc = Archive(path="link", points_to="target", type=ArchiveType.SYMLINK)
    d = arc.to_dict()
    assert d["pointsto"] == "target"
    restored = Archive.from_dict(d)
    assert restored.type is ArchiveType.SYMLINK
    assert restored.points_to == "target"