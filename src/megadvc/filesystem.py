"""Filesystem scanning and content hashing for megadvc."""

from __future__ import annotations

import stat
from hashlib import blake2b
from pathlib import Path
from typing import Iterable

from .models import HASH_SIZE, Hash

CHUNK_SIZE = 1024 * 1024


def hash_path(path: Path) -> Hash:
    """Return the BLAKE2b-256 digest of the bytes stored at ``path``."""

    hasher = blake2b(digest_size=HASH_SIZE)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.digest()


def hashed_files(root: Path, *, ignore: Iterable[Path] = ()) -> dict[Hash, Path]:
    """Hash every regular file below ``root``.

    Directories are walked in sorted order, so when two files share content
    the later path (lexicographically) is the one recorded. Symlinks and
    other non-regular entries are skipped. Any ``OSError`` aborts the scan.
    """

    ignored = frozenset(ignore)
    files: dict[Hash, Path] = {}
    for path in _iter_regular_files(Path(root), ignored):
        files[hash_path(path)] = path
    return files


def _iter_regular_files(path: Path, ignored: frozenset[Path]) -> Iterable[Path]:
    if path in ignored:
        return

    mode = path.lstat().st_mode
    if stat.S_ISREG(mode):
        yield path
    elif stat.S_ISDIR(mode):
        for child in sorted(path.iterdir()):
            yield from _iter_regular_files(child, ignored)
