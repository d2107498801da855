"""Repository options stored in ``.mega.toml``."""

from __future__ import annotations

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, ConfigDict, ValidationError

OPTIONS_PATH = ".mega.toml"
LOCK_PATH = ".mega.lock"


class ConfigError(RuntimeError):
    """Raised when an options file cannot be parsed or validated."""


class RemoteOptions(BaseModel):
    """Where the repository lives on the remote store."""

    model_config = ConfigDict(frozen=True)

    path: Path


class LocalOptions(BaseModel):
    """The tracked working tree and the entries excluded from scans."""

    model_config = ConfigDict(frozen=True)

    path: Path
    ignore: tuple[Path, ...] = ()


class Options(BaseModel):
    """Fully parsed options file."""

    model_config = ConfigDict(frozen=True)

    remote: RemoteOptions
    local: LocalOptions

    @classmethod
    def new(cls, remote_path: Path, local_path: Path) -> "Options":
        return cls(remote=RemoteOptions(path=remote_path), local=LocalOptions(path=local_path))

    @property
    def remote_path(self) -> Path:
        return self.remote.path

    @property
    def local_path(self) -> Path:
        return self.local.path

    def ignored_paths(self) -> list[Path]:
        """Absolute paths never scanned, including the repository metadata."""

        root = self.local.path
        ignored = [root / OPTIONS_PATH, root / LOCK_PATH]
        for entry in self.local.ignore:
            ignored.append(entry if entry.is_absolute() else root / entry)
        return ignored


def load_options(path: Path) -> Options:
    """Load and validate an options file."""

    if not path.exists():
        raise ConfigError(f"Options file '{path}' does not exist")

    with path.open("rb") as handle:
        try:
            data = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Options file '{path}' is not valid UTF-8 TOML: {exc}") from exc

    try:
        return Options.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Options file '{path}' is invalid: {exc}") from exc


def save_options(options: Options, path: Path) -> None:
    try:
        payload = tomli_w.dumps(options.model_dump(mode="json")).encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ConfigError(f"Unable to render options for '{options.local_path}': {exc}") from exc
    path.write_bytes(payload)
