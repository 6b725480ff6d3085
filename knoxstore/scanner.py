"""Walking the filesystem to collect archive metadata."""

from __future__ import annotations

import functools
import os
import re
import stat
import sys
from typing import Iterable, Iterator, Optional

from .archive import Archive, ArchiveType

_BAD_PATTERN = "syntax error in pattern"


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    if i >= len(pattern) or pattern[i] in "-]":
        raise ValueError(_BAD_PATTERN)
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            raise ValueError(_BAD_PATTERN)
    return pattern[i], i + 1


@functools.lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern:
    """Translate a shell pattern with path semantics into a regular expression."""
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            if i >= n:
                raise ValueError(_BAD_PATTERN)
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            negate = i < n and pattern[i] == "^"
            if negate:
                i += 1
            items: list[str] = []
            while True:
                if i < n and pattern[i] == "]" and items:
                    i += 1
                    break
                lo, i = _class_char(pattern, i)
                if i < n and pattern[i] == "-":
                    hi, i = _class_char(pattern, i + 1)
                    if lo > hi:
                        raise ValueError(_BAD_PATTERN)
                    items.append(f"{re.escape(lo)}-{re.escape(hi)}")
                else:
                    items.append(re.escape(lo))
            body = "".join(items)
            out.append(f"[^{body}]" if negate else f"[{body}]")
        else:
            out.append(re.escape(c))
    return re.compile("".join(out), re.DOTALL)


def _match(pattern: str, name: str) -> bool:
    return _compile(pattern).fullmatch(name) is not None


def _excluded(path: str, excludes: list[str]) -> bool:
    lowered = path.lower()
    base = os.path.basename(path).lower()
    for exclude in excludes:
        pattern = exclude.lower()
        try:
            matched = _match(pattern, lowered)
        except ValueError:
            print("Invalid exclude filter:", exclude)
            raise
        if matched or _match(pattern, base):
            return True
    return False


def _archive_for(path: str, st: os.stat_result) -> Optional[Archive]:
    archive = Archive(
        path=path,
        mode=st.st_mode,
        mod_time=int(st.st_mtime),
        uid=st.st_uid,
        gid=st.st_gid,
    )
    if stat.S_ISLNK(st.st_mode):
        try:
            archive.points_to = os.readlink(path)
        except OSError as exc:
            print(f"\n\nerror resolving symlink for: {path} - {exc}\n\n", file=sys.stderr)
            return None
        archive.type = ArchiveType.SYMLINK
    elif stat.S_ISDIR(st.st_mode):
        archive.type = ArchiveType.DIRECTORY
    elif stat.S_ISREG(st.st_mode):
        archive.type = ArchiveType.FILE
        archive.size = st.st_size
    else:
        return None
    return archive


def _visit(path: str, st: os.stat_result, excludes: list[str]) -> Iterator[Archive]:
    if _excluded(path, excludes):
        return
    archive = _archive_for(path, st)
    if archive is not None:
        yield archive
    if not stat.S_ISDIR(st.st_mode):
        return
    try:
        names = sorted(os.listdir(path))
    except FileNotFoundError:
        return
    for name in names:
        child = os.path.join(path, name)
        try:
            child_stat = os.lstat(child)
        except FileNotFoundError:
            continue
        yield from _visit(child, child_stat, excludes)


def find_files(root_path: str, excludes: Iterable[str] = ()) -> Iterator[Archive]:
    """Yield an Archive for every file, directory and symlink below root_path.

    Entries are visited in lexical order. Paths matching an exclude pattern
    (by full path or base name, case-insensitively) are skipped, directories
    together with their contents. A missing root yields nothing; other
    filesystem errors and invalid patterns are raised and end the walk.
    """
    excludes = list(excludes)
    try:
        st = os.lstat(root_path)
    except FileNotFoundError:
        return
    yield from _visit(root_path, st, excludes)


def is_special_path(path: str) -> bool:
    """Return True for the '.' and '..' pseudo paths."""
    return path in (".", "..")