from __future__ import annotations

from pathlib import Path

import pytest

from megadvc.options import Options


class FakeStore:
    """In-memory ``RemoteStore`` that records every call."""

    def __init__(self, *, has_lock: bool = False) -> None:
        self.has_lock = has_lock
        self.pushed: list[Path] = []
        self.removed: list[Path] = []

    def push(self, file: Path, options: Options) -> None:
        self.pushed.append(Path(file))

    def remove(self, file: Path, options: Options) -> None:
        self.removed.append(Path(file))

    def lock_exists(self, options: Options) -> bool:
        return self.has_lock


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    (root / "raw").mkdir(parents=True)
    (root / "raw" / "a.csv").write_text("a,b\n1,2\n")
    (root / "model.bin").write_bytes(b"\x00\x01\x02")
    return root.resolve()
