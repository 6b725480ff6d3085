import base64
import threading
import urllib.error
import urllib.request

import pytest

from knoxstore.server import AuthError, auth_path, create_server

USER = "placeholder"


def auth_header():
    return "Basic " + base64.b64encode(f"{USER}:password".encode()).decode()


@pytest.fixture
def storage(tmp_path):
    user_dir = tmp_path / USER
    (user_dir / "chunks").mkdir(parents=True)
    (user_dir / "snapshots").mkdir()
    return tmp_path


@pytest.fixture
def server(storage):
    srv = create_server(str(storage), "127.0.0.1", 0)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}"
    srv.shutdown()
    srv.server_close()


def multipart(filename, data):
    boundary = "xyzBOUNDARYxyz"
    body = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="uploadfile"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode() + data + f"\r\n--{boundary}--\r\n".encode()
    return body, f"multipart/form-data; boundary={boundary}"


def request(url, data=None, ctype=None, auth=True):
    req = urllib.request.Request(url, data=data, method="POST" if data is not None else "GET")
    if auth:
        req.add_header("Authorization", auth_header())
    if ctype:
        req.add_header("Content-Type", ctype)
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, resp.read()
    except urllib.error.HTTPError as err:
        return err.code, err.read()


def test_auth_path_valid(storage):
    assert auth_path(str(storage), USER, "/upload") == str(storage / USER)


def test_auth_path_errors(storage):
    (storage / "plainfile").write_text("x")
    with pytest.raises(AuthError):
        auth_path(str(storage), None, "/upload")
    with pytest.raises(AuthError):
        auth_path(str(storage), "nobody", "/upload")
    with pytest.raises(AuthError):
        auth_path(str(storage), "plainfile", "/upload")
    with pytest.raises(AuthError, match="url path tampering"):
        auth_path(str(storage), USER, "/download/../etc")
    with pytest.raises(AuthError, match="auth code tampering"):
        auth_path(str(storage), "../" + USER, "/upload")


def test_upload_and_download_chunk(server, storage):
    body, ctype = multipart("abc123.0_1", b"chunk bytes")
    status, _ = request(server + "/upload", body, ctype)
    assert status == 200
    assert (storage / USER / "chunks" / "abc123.0_1").read_bytes() == b"chunk bytes"
    status, data = request(server + "/download/abc123.0_1")
    assert data == b"chunk bytes"


def test_repository_round_trip(server, storage):
    body, ctype = multipart("anything", b"repo metadata")
    request(server + "/repository", body, ctype)
    assert (storage / USER / "repository.knoxite").read_bytes() == b"repo metadata"
    _, data = request(server + "/repository")
    assert data == b"repo metadata"


def test_snapshot_round_trip(server):
    body, ctype = multipart("snap0001", b"snapshot data")
    request(server + "/snapshot", body, ctype)
    _, data = request(server + "/snapshot/snap0001")
    assert data == b"snapshot data"


def test_missing_auth_is_unauthorized(server):
    status, _ = request(server + "/repository", auth=False)
    assert status == 401


def test_missing_file_is_not_found(server):
    status, _ = request(server + "/download/nothere")
    assert status == 404