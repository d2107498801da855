"""Local and reference locks: staging, re-scans, diffing and persistence."""

from __future__ import annotations

import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

import tomli_w

from .filesystem import hashed_files
from .models import HASH_SIZE, Hash, Snapshot, SnapshotDiff


class LockError(RuntimeError):
    """Raised when a lock cannot be updated."""


class SerializationError(LockError):
    """Raised when a lock record cannot be parsed or rendered."""


class StagedChangesError(LockError):
    """Raised when a clean re-scan is requested while changes are staged."""


# ----------------------------------------------------------------------
# Diffing


def moved(current: Snapshot, other: Snapshot) -> set[tuple[Path, Path]]:
    """Return ``(old, new)`` pairs for content found at a different path."""

    files = current.files
    other_files = other.files
    return {
        (other_files[digest], files[digest])
        for digest in files.keys() & other_files.keys()
        if files[digest] != other_files[digest]
    }


def deleted(current: Snapshot, other: Snapshot) -> set[Path]:
    """Return the last known paths of content missing from ``current``."""

    other_files = other.files
    return {other_files[digest] for digest in other_files.keys() - current.files.keys()}


def added(current: Snapshot, other: Snapshot) -> set[Path]:
    """Return the paths of content that ``other`` has never seen."""

    files = current.files
    return {files[digest] for digest in files.keys() - other.files.keys()}


def diff(current: Snapshot, other: Snapshot) -> SnapshotDiff:
    return SnapshotDiff(
        moved=frozenset(moved(current, other)),
        added=frozenset(added(current, other)),
        deleted=frozenset(deleted(current, other)),
    )


# ----------------------------------------------------------------------
# Lock variants


@dataclass(frozen=True, slots=True)
class RemoteLock:
    """Read-only snapshot used as a comparison target."""

    generation: int
    files: Mapping[Hash, Path]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteLock":
        try:
            return cls(
                generation=_parse_generation(data["generation"]),
                files=_parse_files(data.get("files", {})),
            )
        except KeyError as exc:
            raise SerializationError(f"Lock record is missing '{exc.args[0]}'") from exc

    @classmethod
    def loads(cls, text: str) -> "RemoteLock":
        return cls.from_dict(_parse_toml(text))

    @classmethod
    def load(cls, path: Path) -> "RemoteLock":
        return cls.from_dict(_read_toml(path))

    def to_dict(self) -> dict[str, Any]:
        return {"generation": self.generation, "files": _render_files(self.files)}


@dataclass(slots=True)
class LocalLock:
    """Snapshot of a working tree together with the user's staged intent."""

    path: Path
    generation: int = 0
    files: dict[Hash, Path] = field(default_factory=dict)
    add: set[Path] = field(default_factory=set)
    remove: set[Path] = field(default_factory=set)

    @classmethod
    def from_path(cls, path: Path, *, ignore: Iterable[Path] = ()) -> "LocalLock":
        root = Path(path)
        return cls(path=root, files=hashed_files(root, ignore=ignore))

    def update(self, *, ignore: Iterable[Path] = (), require_clean: bool = False) -> "LocalLock":
        """Re-scan the tree in place and return the superseded lock.

        Staged paths carry over to the new state. The receiver is left
        untouched if the scan fails. With ``require_clean`` the re-scan is
        refused while anything is staged.
        """

        if require_clean and (self.add or self.remove):
            raise StagedChangesError("Changes staged; push or unstage them before re-scanning")

        files = hashed_files(self.path, ignore=ignore)
        old = LocalLock(
            path=self.path,
            generation=self.generation,
            files=self.files,
            add=set(self.add),
            remove=set(self.remove),
        )
        self.files = files
        self.generation += 1
        return old

    def iter_files(self) -> Iterator[Path]:
        return iter(self.files.values())

    def stage_add(self, path: Path) -> bool:
        return _insert(self.add, path)

    def stage_remove(self, path: Path) -> bool:
        return _insert(self.remove, path)

    def unstage(self, path: Path) -> bool:
        path = Path(path)
        found = path in self.add or path in self.remove
        self.add.discard(path)
        self.remove.discard(path)
        return found

    def staged(self) -> set[Path]:
        """Paths to include in the next push."""

        return self.add - self.remove

    def to_remove(self) -> set[Path]:
        """Paths to delete from the remote on the next push."""

        return self.remove - self.add

    def reference(self) -> RemoteLock:
        return RemoteLock(generation=self.generation, files=dict(self.files))

    # ------------------------------------------------------------------
    # Persistence

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LocalLock":
        try:
            return cls(
                path=Path(_expect(data["path"], str, "path")),
                generation=_parse_generation(data["generation"]),
                files=_parse_files(data.get("files", {})),
                add=_parse_paths(data.get("add", []), "add"),
                remove=_parse_paths(data.get("remove", []), "remove"),
            )
        except KeyError as exc:
            raise SerializationError(f"Lock record is missing '{exc.args[0]}'") from exc

    @classmethod
    def loads(cls, text: str) -> "LocalLock":
        return cls.from_dict(_parse_toml(text))

    @classmethod
    def load(cls, path: Path) -> "LocalLock":
        return cls.from_dict(_read_toml(path))

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "generation": self.generation,
            "add": sorted(str(p) for p in self.add),
            "remove": sorted(str(p) for p in self.remove),
            "files": _render_files(self.files),
        }

    def encode(self) -> bytes:
        """Render the lock as UTF-8 TOML.

        Paths that cannot be encoded (undecodable file names on POSIX) raise
        ``SerializationError``.
        """

        try:
            return tomli_w.dumps(self.to_dict()).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Unable to render lock for '{self.path}': {exc}") from exc

    def dumps(self) -> str:
        return self.encode().decode("utf-8")

    def save(self, path: Path) -> None:
        """Atomically write the lock to ``path``."""

        payload = self.encode()
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.megadvc-tmp-", dir=path.parent)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(temp_path, path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise


def _insert(target: set[Path], path: Path) -> bool:
    path = Path(path)
    if path in target:
        return False
    target.add(path)
    return True


def _parse_toml(text: str) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise SerializationError(f"Lock record is not valid TOML: {exc}") from exc


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        try:
            return tomllib.load(handle)
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise SerializationError(f"Lock file '{path}' is not valid UTF-8 TOML: {exc}") from exc


def _expect(value: Any, kind: type, name: str) -> Any:
    if not isinstance(value, kind) or isinstance(value, bool):
        raise SerializationError(f"Lock field '{name}' must be of type {kind.__name__}")
    return value


def _parse_generation(raw: Any) -> int:
    generation = _expect(raw, int, "generation")
    if generation < 0:
        raise SerializationError("Lock field 'generation' must not be negative")
    return generation


def _parse_paths(raw: Any, name: str) -> set[Path]:
    items = _expect(raw, list, name)
    return {Path(_expect(item, str, name)) for item in items}


def _parse_files(raw: Any) -> dict[Hash, Path]:
    table = _expect(raw, dict, "files")
    files: dict[Hash, Path] = {}
    for key, value in table.items():
        try:
            digest = bytes.fromhex(key)
        except ValueError as exc:
            raise SerializationError(f"Invalid hash '{key}' in lock") from exc
        if len(digest) != HASH_SIZE:
            raise SerializationError(f"Hash '{key}' must be {HASH_SIZE} bytes")
        files[digest] = Path(_expect(value, str, "files"))
    return files


def _render_files(files: Mapping[Hash, Path]) -> dict[str, str]:
    return {digest.hex(): str(path) for digest, path in sorted(files.items())}
