# knoxstore

knoxstore keeps backups as snapshots of files and directories. Each file is
cut into content-defined chunks. Each chunk is compressed, optionally
encrypted with AES and named by its hash, so a chunk that turns up in
several files or snapshots is recorded once in the chunk index. With
Reed-Solomon parity, a chunk is spread over several storage backends and
survives the loss of some of them.

## Installation

```
pip install knoxstore
```

For running the test suite:

```
pip install "knoxstore[test]"
pytest
```

## Building blocks

- `knoxstore.hashing`: `hash_data(data, hash_type)` returns a hex digest for
  `HashType.SHA256` or `HashType.HIGHWAY256` (HighwayHash-256 under an
  all-zero key); `highway_hash256(data, key)` takes any 32-byte key and
  returns the raw digest.
- `knoxstore.compression`: `Compressor` and `Decompressor` for each
  `Compression` method (`NONE`, `GZIP`, `LZMA` as xz, `FLATE`, `ZLIB`, `ZSTD`).
- `knoxstore.encryption`: `Encryptor` and `Decryptor` for each `Encryption`
  method (`NONE`, `AES`). The AES key is the SHA-256 of the password. An
  empty password with `AES` raises `InvalidPasswordError`.
- `knoxstore.pipeline`: `new_encoding_pipeline(compression, encryption, password)`
  (compress, then encrypt) and `new_decoding_pipeline(...)` (decrypt, then
  decompress) return a `Pipeline`. `Pipeline.process` runs the steps on
  bytes. `Pipeline.encode` serialises an object to JSON before processing,
  and `Pipeline.decode` parses JSON after processing.
- `knoxstore.redundancy`: `ReedSolomon(data_shards, parity_shards)` with
  `split`, `encode`, `verify`, `reconstruct` and `join`, plus the shortcut
  `redundant_data(data, data_parts, parity_parts)`. Failures raise
  `ReedSolomonError`.

```python
from knoxstore.compression import Compression
from knoxstore.encryption import Encryption
from knoxstore.pipeline import new_decoding_pipeline, new_encoding_pipeline

password = "password"
encoder = new_encoding_pipeline(Compression.ZSTD, Encryption.AES, password)
decoder = new_decoding_pipeline(Compression.ZSTD, Encryption.AES, password)

stored = encoder.process(b"some file contents")
assert decoder.process(stored) == b"some file contents"
```

## Repositories, snapshots and restores

- `knoxstore.backend`: the abstract `Backend` and `BackendFactory` classes.
  `register_storage_backend(factory)` makes a factory known, and
  `backend_from_url(path)` picks one by URL scheme. A plain path is made
  absolute and turned into a `file://` URL. A malformed URL, or a scheme no
  registered factory handles, raises `InvalidRepositoryURLError`.
- `knoxstore.backendmanager`: `BackendManager` holds several backends. It
  stores the parts of a chunk on its backends in turn, loads from the first
  backend that answers, and writes snapshots, the chunk index and repository
  metadata to every backend. Each call to a backend is tried up to three
  times; when no backend succeeds, `BackendManagerError` is raised.
- `knoxstore.chunker`: `Chunker` cuts a binary stream into content-defined
  pieces (512 KiB to 1 MiB). `chunk_file(filename, password, compression,
  encryption, data_parts, parity_parts)` yields `Chunk` objects that are
  ready to store.
- `knoxstore.archive`: `Archive` holds the metadata of one file, directory
  or symlink (`ArchiveType`) and the list of its chunks.
- `knoxstore.scanner`: `find_files(root_path, excludes)` walks a tree in
  lexical order and yields `Archive` entries. Exclude patterns are
  shell-style, do not depend on case, and are checked against both the full
  path and the base name; an excluded directory is skipped with its contents.
- `knoxstore.snapshot`: `new_snapshot(description)` creates a `Snapshot`.
  `Snapshot.add(backend, key, chunk_index, opts)` stores the paths named by
  `StoreOptions` and yields `StoreEvent` progress; errors are reported as
  events, and with `pedantic` set the run stops at the first one.
  `Snapshot.save(backend, key)` and `open_snapshot(snapshot_id, backend, key)`
  write and read snapshot metadata (LZMA-compressed and AES-encrypted).
- `knoxstore.chunkindex`: `ChunkIndex` records which snapshots refer to
  which chunks. `open_chunk_index(backend, key)` loads it, or creates and
  saves an empty one. `ChunkIndex.pack(backend)` deletes chunks that no
  snapshot uses any longer and returns the number of bytes freed.
- `knoxstore.decode`: `decode_snapshot(backend, key, snapshot, dst, excludes,
  pedantic)` restores a whole snapshot and yields `RestoreEvent` progress.
  `decode_archive_data` returns the contents of one file, and
  `read_archive(backend, key, archive, offset, size)` reads a range of bytes
  from one; both keep loaded chunks in an in-process cache. Corrupt data
  raises `CheckSumError`. If too few parts can be loaded to rebuild a chunk,
  `DataReconstructionError` is raised.

The `backend` passed to `Snapshot.add`, `load_chunk` and the restore
functions is a `BackendManager`: they call its `store_chunk(chunk)` and
`load_chunk(chunk, part)`.

## Storage server

A small HTTP server stores chunks, snapshots and repository metadata for
clients. Each client has its own directory below the storage root, and the
client names it in the HTTP Basic authentication user field.

```
knoxstore-server
```

The server listens on port 42024 and stores below `/tmp/knoxite.storage`.
Run `knoxstore-server --help` to see the options `--storage`, `--host` and
`--port`.

Endpoints:

- `POST /upload` and `GET /download/<chunk>`: store and fetch chunks
- `POST /repository` and `GET /repository`: store and fetch repository metadata
- `POST /snapshot` and `GET /snapshot/<id>`: store and fetch snapshots

Uploads are multipart forms, and the file goes in the field `uploadfile`.
The server rejects requests without credentials, paths that try to climb
out of the storage directory, and names of clients that have no directory.
It does not create directories: a client's directory and its `chunks` and
`snapshots` subdirectories must already exist.

## What the package does not do

- It ships no concrete storage backend. `backend_from_url` finds nothing
  until a `BackendFactory` has been registered, and the HTTP server has no
  matching client backend here.
- It has no command-line client for storing, restoring, listing or
  removing snapshots; those are library calls only.
- It has no notion of repositories holding volumes, no configuration files
  and no way to mount a snapshot as a filesystem.