"""Core package for the megadvc project."""

from .cli import app, run
from .lock import LocalLock, LockError, RemoteLock, SerializationError, StagedChangesError, added, deleted, diff, moved
from .megacmd import MegaCmd, MegaError, RemoteStore
from .models import Hash, LockStatus, PushReport, Snapshot, SnapshotDiff
from .options import ConfigError, Options, load_options, save_options
from .repository import (
    FileAbsentError,
    FileOutsideRepositoryError,
    RemoteRepositoryExistsError,
    Repository,
    RepositoryAbsentError,
    RepositoryError,
    RepositoryExistsError,
    init_repository,
)

__all__ = [
    "Hash",
    "Snapshot",
    "SnapshotDiff",
    "LockStatus",
    "PushReport",
    "LocalLock",
    "RemoteLock",
    "LockError",
    "SerializationError",
    "StagedChangesError",
    "moved",
    "added",
    "deleted",
    "diff",
    "MegaCmd",
    "MegaError",
    "RemoteStore",
    "ConfigError",
    "Options",
    "load_options",
    "save_options",
    "Repository",
    "RepositoryError",
    "RepositoryAbsentError",
    "RepositoryExistsError",
    "RemoteRepositoryExistsError",
    "FileAbsentError",
    "FileOutsideRepositoryError",
    "init_repository",
    "app",
    "run",
]
