"""Shared models and protocols for megadvc."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

Hash = bytes
"""BLAKE2b digest of a file's full content, always ``HASH_SIZE`` bytes."""

HASH_SIZE = 32


class Snapshot(Protocol):
    """Anything that records which content lives at which path."""

    @property
    def generation(self) -> int: ...

    @property
    def files(self) -> Mapping[Hash, Path]: ...


@dataclass(frozen=True, slots=True)
class SnapshotDiff:
    """Differences between a current snapshot and an older one."""

    moved: frozenset[tuple[Path, Path]]
    added: frozenset[Path]
    deleted: frozenset[Path]

    def is_empty(self) -> bool:
        return not (self.moved or self.added or self.deleted)


@dataclass(frozen=True, slots=True)
class LockStatus:
    """Report emitted by ``megadvc status``."""

    generation: int
    previous_generation: int
    files: frozenset[Path]
    staged: frozenset[Path]
    to_remove: frozenset[Path]
    moved: frozenset[tuple[Path, Path]]
    added: frozenset[Path]
    deleted: frozenset[Path]

    def is_clean(self) -> bool:
        return not (self.staged or self.to_remove or self.moved or self.added or self.deleted)


@dataclass(frozen=True, slots=True)
class PushReport:
    """Paths handed to the remote store by ``megadvc push``."""

    pushed: tuple[Path, ...]
    removed: tuple[Path, ...]
    generation: int
