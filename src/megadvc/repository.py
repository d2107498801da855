"""High level orchestration for megadvc repositories."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from loguru import logger

from .lock import LocalLock, RemoteLock, diff
from .megacmd import RemoteStore
from .models import LockStatus, PushReport
from .options import LOCK_PATH, OPTIONS_PATH, Options, load_options, save_options


class RepositoryError(RuntimeError):
    """Raised when megadvc encounters an unrecoverable repository state."""


class RepositoryAbsentError(RepositoryError):
    """Raised when the repository metadata files are missing."""


class RepositoryExistsError(RepositoryError):
    """Raised when initialising over an existing repository."""


class RemoteRepositoryExistsError(RepositoryError):
    """Raised when the remote root already holds a repository lock."""


class FileAbsentError(RepositoryError):
    """Raised when paths requested for staging do not exist."""

    def __init__(self, paths: Iterable[Path]) -> None:
        self.paths = tuple(paths)
        listing = ", ".join(f"'{path}'" for path in self.paths)
        super().__init__(f"File absent: {listing}")


class FileOutsideRepositoryError(RepositoryError):
    """Raised when paths requested for staging lie outside the repository root."""

    def __init__(self, paths: Iterable[Path], root: Path) -> None:
        self.paths = tuple(paths)
        self.root = root
        listing = ", ".join(f"'{path}'" for path in self.paths)
        super().__init__(f"Outside repository root '{root}': {listing}")


def init_repository(local: Path, remote: Path | None = None, *, store: RemoteStore) -> "Repository":
    """Create ``.mega.lock`` and ``.mega.toml`` in ``local``.

    The remote root defaults to the name of the local directory. If the
    remote root already carries a lock, the local files are kept and
    ``RemoteRepositoryExistsError`` is raised.
    """

    local_absolute = Path(local).resolve(strict=True)
    options_path = local_absolute / OPTIONS_PATH
    lock_path = local_absolute / LOCK_PATH

    if options_path.exists() or lock_path.exists():
        raise RepositoryExistsError(f"Repository already initialised in '{local_absolute}'")

    logger.debug("LOCAL: repository not initialised")

    options = Options.new(remote if remote is not None else Path(local_absolute.name), local_absolute)

    lock = LocalLock.from_path(local_absolute, ignore=options.ignored_paths())
    lock.save(lock_path)
    logger.debug("LOCAL: {} written", LOCK_PATH)

    save_options(options, options_path)
    logger.debug("LOCAL: {} written", OPTIONS_PATH)

    if store.lock_exists(options):
        raise RemoteRepositoryExistsError(f"Remote path '{options.remote_path}' already holds a repository")

    logger.info("Initialised repository in '{}'", local_absolute)
    return Repository(local_absolute, options)


class Repository:
    """Coordinates staging, status and push against the persisted lock."""

    def __init__(self, root: Path, options: Options) -> None:
        self.root = root
        self.options = options

    @classmethod
    def open(cls, root: Path | None = None) -> "Repository":
        root = Path.cwd() if root is None else Path(root)
        options_path = root / OPTIONS_PATH
        lock_path = root / LOCK_PATH

        if not options_path.exists() or not lock_path.exists():
            raise RepositoryAbsentError(f"No megadvc repository found in '{root}'")

        return cls(root, load_options(options_path))

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_PATH

    def load_lock(self) -> LocalLock:
        return LocalLock.load(self.lock_path)

    def add(self, files: Iterable[Path]) -> list[Path]:
        """Stage ``files`` for the next push; nothing is staged if any is missing."""

        lock = self.load_lock()
        newly = [path for path in self._validate(files) if lock.stage_add(path)]
        lock.save(self.lock_path)
        logger.info("All files staged to add")
        return newly

    def remove(self, files: Iterable[Path]) -> list[Path]:
        """Stage ``files`` for removal; nothing is staged if any is missing."""

        lock = self.load_lock()
        newly = [path for path in self._validate(files) if lock.stage_remove(path)]
        lock.save(self.lock_path)
        logger.info("All files staged to remove")
        return newly

    def status(self, *, against: Path | None = None) -> LockStatus:
        """Re-scan the tree and compare it with the persisted lock.

        With ``against`` the comparison target is another recorded lock file
        instead. The re-scan is not written back.
        """

        lock = self.load_lock()
        old = lock.update(ignore=self.options.ignored_paths())
        reference = RemoteLock.load(against) if against is not None else old
        changes = diff(lock, reference)

        return LockStatus(
            generation=lock.generation,
            previous_generation=reference.generation,
            files=frozenset(lock.iter_files()),
            staged=frozenset(lock.staged()),
            to_remove=frozenset(lock.to_remove()),
            moved=changes.moved,
            added=changes.added,
            deleted=changes.deleted,
        )

    def push(self, *, store: RemoteStore) -> PushReport:
        """Send staged files to the remote, drop removed ones and publish the lock."""

        lock = self.load_lock()
        lock.update(ignore=self.options.ignored_paths())

        pushed = tuple(sorted(lock.staged()))
        removed = tuple(sorted(lock.to_remove()))

        for path in pushed:
            store.push(path, self.options)
        for path in removed:
            store.remove(path, self.options)

        # Paths staged both ways cancel out and are dropped as well.
        for path in (*pushed, *removed, *(lock.add & lock.remove)):
            lock.unstage(path)

        lock.save(self.lock_path)
        store.push(self.lock_path, self.options)
        logger.info("Pushed {} file(s), removed {} file(s)", len(pushed), len(removed))

        return PushReport(pushed=pushed, removed=removed, generation=lock.generation)

    def _validate(self, files: Iterable[Path]) -> list[Path]:
        resolved = [Path(file).resolve() for file in files]
        missing = [path for path in resolved if not path.exists()]
        if missing:
            raise FileAbsentError(missing)

        root = self.options.local_path.resolve()
        outside = [path for path in resolved if not path.is_relative_to(root)]
        if outside:
            raise FileOutsideRepositoryError(outside, root)
        return resolved
