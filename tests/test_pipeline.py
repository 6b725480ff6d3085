import pytest

from knoxstore.compression import Compression
from knoxstore.encryption import Encryption, InvalidPasswordError
from knoxstore.pipeline import Pipeline, new_decoding_pipeline, new_encoding_pipeline

PASSWORD = "password"


@pytest.mark.parametrize("compression", list(Compression))
@pytest.mark.parametrize("encryption", list(Encryption))
def test_process_round_trip(compression, encryption):
    data = b"chunk data " * 50
    enc = new_encoding_pipeline(compression, encryption, PASSWORD)
    dec = new_decoding_pipeline(compression, encryption, PASSWORD)
    assert dec.process(enc.process(data)) == data


def test_encode_decode_objects():
    obj = {"chunks": {"abc": {"size": 3, "snapshots": ["s1", "s2"]}}}
    enc = new_encoding_pipeline(Compression.LZMA, Encryption.AES, PASSWORD)
    dec = new_decoding_pipeline(Compression.LZMA, Encryption.AES, PASSWORD)
    assert dec.decode(enc.encode(obj)) == obj


def test_empty_pipeline_is_identity():
    assert Pipeline().process(b"abc") == b"abc"


def test_encrypted_output_hides_plaintext():
    enc = new_encoding_pipeline(Compression.NONE, Encryption.AES, PASSWORD)
    assert b"visible" not in enc.encode({"k": "visible"})


def test_empty_password_rejected():
    with pytest.raises(InvalidPasswordError):
        new_encoding_pipeline(Compression.NONE, Encryption.AES, "")
    with pytest.raises(InvalidPasswordError):
        new_decoding_pipeline(Compression.NONE, Encryption.AES, "")