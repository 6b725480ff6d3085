"""A minimal HTTP storage server for chunks, snapshots and repositories."""

from __future__ import annotations

import argparse
import base64
import binascii
import os
import shutil
from email.parser import BytesParser
from email.policy import HTTP
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import urlsplit

STORAGE_PATH = "/tmp/knoxite.storage"
DEFAULT_PORT = 42024
MAX_MEMORY = 32 << 20


class AuthError(PermissionError):
    """Raised when a request's credentials do not map to a storage directory."""


def auth_path(storage_path: str, auth: Optional[str], url_path: str) -> str:
    """Return the storage directory for an auth code, checking for tampering."""
    if auth is None:
        raise AuthError("Security alert: no auth set")
    traversal = ".." + os.sep
    if traversal in url_path:
        raise AuthError("Security alert: url path tampering")
    if traversal in auth:
        raise AuthError("Security alert: auth code tampering")
    directory = os.path.join(storage_path, auth)
    if not os.path.exists(directory):
        raise AuthError("Invalid auth code: unknown user")
    if not os.path.isdir(directory):
        raise AuthError("Invalid auth code: not a dir")
    return directory


def _basic_auth_user(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    return decoded.split(":", 1)[0]


class StorageRequestHandler(BaseHTTPRequestHandler):
    """Serves uploads and downloads below the server's storage path."""

    server_version = "knoxstore"

    def _path(self) -> str:
        return urlsplit(self.path).path

    def _authorize(self) -> Optional[str]:
        try:
            return auth_path(
                self.server.storage_path,
                _basic_auth_user(self.headers.get("Authorization")),
                self._path(),
            )
        except AuthError as exc:
            print("ERROR:", exc)
            self.send_response(HTTPStatus.UNAUTHORIZED)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return None

    def _reply(self, status: int, body: bytes = b"") -> None:
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _receive(self, directory: str, name: Optional[str]) -> Optional[str]:
        """Store the multipart field 'uploadfile'; return the stored path."""
        ctype = self.headers.get("Content-Type", "")
        length = int(self.headers.get("Content-Length") or 0)
        if length > MAX_MEMORY or not ctype.startswith("multipart/form-data"):
            self._reply(HTTPStatus.INTERNAL_SERVER_ERROR)
            return None
        body = self.rfile.read(length)
        message = BytesParser(policy=HTTP).parsebytes(
            b"Content-Type: " + ctype.encode() + b"\r\n\r\n" + body
        )
        part = None
        if message.is_multipart():
            for candidate in message.iter_parts():
                if candidate.get_param("name", header="content-disposition") == "uploadfile":
                    part = candidate
                    break
        filename = part.get_filename() if part is not None else None
        if part is None or (name is None and not filename):
            print("http: no such file")
            self._reply(HTTPStatus.INTERNAL_SERVER_ERROR)
            return None
        target = os.path.join(directory, name or os.path.basename(filename))
        data = part.get_payload(decode=True) or b""
        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT, 0o600)
            with os.fdopen(fd, "wb") as out:
                out.write(data)
        except OSError as exc:
            print(exc)
            self._reply(HTTPStatus.INTERNAL_SERVER_ERROR)
            return None
        headers = {k: [v] for k, v in part.items()}
        self._reply(HTTPStatus.OK, str(headers).encode())
        return target

    def _serve_file(self, filename: str) -> None:
        try:
            with open(filename, "rb") as src:
                self.send_response(HTTPStatus.OK)
                self.send_header("Content-Type", "application/octet-stream")
                self.send_header("Content-Length", str(os.fstat(src.fileno()).st_size))
                self.end_headers()
                shutil.copyfileobj(src, self.wfile)
        except (FileNotFoundError, IsADirectoryError):
            self._reply(HTTPStatus.NOT_FOUND, b"404 page not found\n")

    def do_GET(self) -> None:
        path = self._path()
        if path.startswith("/download/"):
            print("Serving chunk", path[10:])
            directory = self._authorize()
            if directory:
                self._serve_file(os.path.join(directory, "chunks", path[10:]))
        elif path == "/repository":
            print("Serving repository")
            directory = self._authorize()
            if directory:
                self._serve_file(os.path.join(directory, "repository.knoxite"))
        elif path.startswith("/snapshot/"):
            print("Serving snapshot", path[10:])
            directory = self._authorize()
            if directory:
                self._serve_file(os.path.join(directory, "snapshots", path[10:]))
        else:
            self._reply(HTTPStatus.NOT_FOUND, b"404 page not found\n")

    def do_POST(self) -> None:
        path = self._path()
        if path == "/upload":
            print("Receiving upload")
            directory = self._authorize()
            if directory:
                stored = self._receive(os.path.join(directory, "chunks"), None)
                if stored:
                    print("Stored chunk", stored)
        elif path == "/repository":
            print("Receiving repository")
            directory = self._authorize()
            if directory:
                stored = self._receive(directory, "repository.knoxite")
                if stored:
                    print("Stored repository", stored)
        elif path == "/snapshot":
            print("Receiving snapshot")
            directory = self._authorize()
            if directory:
                stored = self._receive(os.path.join(directory, "snapshots"), None)
                if stored:
                    print("Stored snapshot", stored)
        else:
            self._reply(HTTPStatus.NOT_FOUND, b"404 page not found\n")


def create_server(storage_path: str = STORAGE_PATH, host: str = "", port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    """Return an HTTP server storing data below storage_path."""
    server = ThreadingHTTPServer((host, port), StorageRequestHandler)
    server.storage_path = storage_path
    return server


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Storage server for backup repositories")
    parser.add_argument("--storage", default=STORAGE_PATH, help="storage directory")
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)
    try:
        server = create_server(args.storage, args.host, args.port)
    except OSError as exc:
        raise SystemExit(f"ListenAndServe: {exc}")
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())