"""Remote store access through the MEGAcmd command-line tools."""

from __future__ import annotations

import subprocess
from pathlib import Path, PurePosixPath
from typing import Protocol, Sequence

from loguru import logger

from .options import LOCK_PATH, Options


class MegaError(RuntimeError):
    """Raised when a remote command cannot be issued."""


class RemoteStore(Protocol):
    """The narrow surface megadvc needs from a remote store."""

    def push(self, file: Path, options: Options) -> None: ...

    def remove(self, file: Path, options: Options) -> None: ...

    def lock_exists(self, options: Options) -> bool: ...


class MegaCmd:
    """``RemoteStore`` backed by ``mega-put``, ``mega-rm`` and ``mega-ls``.

    Commands are spawned and not awaited; their exit codes are not inspected.
    """

    def push(self, file: Path, options: Options) -> None:
        local_file = Path(file).resolve()
        self._put(local_file, self.remote_destination(local_file, options))

    def remove(self, file: Path, options: Options) -> None:
        self._rm(self.remote_destination(Path(file).resolve(), options))

    def lock_exists(self, options: Options) -> bool:
        listing = self._ls(options.remote_path)
        return PurePosixPath(LOCK_PATH) in listing

    @staticmethod
    def remote_destination(local_file: Path, options: Options) -> PurePosixPath:
        """Mirror ``local_file``'s location under the local root onto the remote root."""

        local_root = options.local_path.resolve()
        try:
            relative = local_file.relative_to(local_root)
        except ValueError as exc:
            raise MegaError(f"'{local_file}' is outside the repository root '{local_root}'") from exc
        return PurePosixPath(options.remote_path.as_posix()) / relative.as_posix()

    # ------------------------------------------------------------------
    # Subprocess wrappers

    def _put(self, local_file: Path, remote_path: PurePosixPath) -> None:
        self._spawn(["mega-put", "-c", str(local_file), str(remote_path)])

    def _rm(self, remote_path: PurePosixPath) -> None:
        self._spawn(["mega-rm", "-r", str(remote_path)])

    def _ls(self, remote_path: Path) -> list[PurePosixPath]:
        try:
            result = subprocess.run(
                ["mega-ls", remote_path.as_posix()],
                stdout=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise MegaError(f"Unable to run 'mega-ls': {exc}") from exc
        return [PurePosixPath(line) for line in result.stdout.splitlines() if line.strip()]

    def _spawn(self, command: Sequence[str]) -> subprocess.Popen:
        logger.debug("REMOTE: {}", " ".join(command))
        try:
            return subprocess.Popen(command)  # not awaited
        except OSError as exc:
            raise MegaError(f"Unable to run '{command[0]}': {exc}") from exc
