from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from megadvc.filesystem import hash_path
from megadvc.lock import LocalLock, RemoteLock, SerializationError, StagedChangesError


def test_from_path_starts_at_generation_zero(data_dir: Path) -> None:
    lock = LocalLock.from_path(data_dir)

    assert lock.generation == 0
    assert lock.add == set()
    assert lock.remove == set()
    assert sorted(lock.iter_files()) == [data_dir / "model.bin", data_dir / "raw" / "a.csv"]


def test_stage_add_is_idempotent(tmp_path: Path) -> None:
    lock = LocalLock(path=tmp_path)

    assert lock.stage_add(Path("/p")) is True
    assert lock.stage_add(Path("/p")) is False
    assert lock.staged() == {Path("/p")}


def test_stage_remove_is_idempotent(tmp_path: Path) -> None:
    lock = LocalLock(path=tmp_path)

    assert lock.stage_remove(Path("/p")) is True
    assert lock.stage_remove(Path("/p")) is False
    assert lock.to_remove() == {Path("/p")}


def test_staging_both_ways_cancels_out(tmp_path: Path) -> None:
    lock = LocalLock(path=tmp_path)
    lock.stage_add(Path("/p"))
    lock.stage_remove(Path("/p"))
    lock.stage_add(Path("/q"))
    lock.stage_remove(Path("/r"))

    assert lock.staged() == {Path("/q")}
    assert lock.to_remove() == {Path("/r")}
    assert Path("/p") in lock.add and Path("/p") in lock.remove


def test_unstage_clears_both_sets(tmp_path: Path) -> None:
    lock = LocalLock(path=tmp_path)
    lock.stage_add(Path("/p"))
    lock.stage_remove(Path("/p"))

    assert lock.unstage(Path("/p")) is True
    assert lock.unstage(Path("/p")) is False
    assert lock.add == set() and lock.remove == set()


def test_update_returns_previous_state_and_keeps_staging(data_dir: Path) -> None:
    lock = LocalLock.from_path(data_dir)
    lock.stage_add(data_dir / "model.bin")
    (data_dir / "new.txt").write_text("fresh\n")

    old = lock.update()

    assert old.generation == 0
    assert lock.generation == 1
    assert data_dir / "new.txt" not in set(old.iter_files())
    assert data_dir / "new.txt" in set(lock.iter_files())
    assert lock.add == {data_dir / "model.bin"}
    assert old.add == {data_dir / "model.bin"}

    lock.stage_add(data_dir / "new.txt")
    assert data_dir / "new.txt" not in old.add


def test_update_failure_leaves_lock_untouched(data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    lock = LocalLock.from_path(data_dir)
    before = dict(lock.files)

    def boom(*_args, **_kwargs):
        raise PermissionError("mocked")

    monkeypatch.setattr("megadvc.lock.hashed_files", boom)

    with pytest.raises(PermissionError):
        lock.update()

    assert lock.generation == 0
    assert lock.files == before


def test_update_guard_rejects_staged_changes(data_dir: Path) -> None:
    lock = LocalLock.from_path(data_dir)
    lock.update(require_clean=True)
    lock.stage_remove(data_dir / "model.bin")

    with pytest.raises(StagedChangesError):
        lock.update(require_clean=True)
    assert lock.generation == 1


def test_round_trip_preserves_everything(data_dir: Path, tmp_path: Path) -> None:
    lock = LocalLock.from_path(data_dir)
    lock.update()
    lock.stage_add(data_dir / "model.bin")
    lock.stage_remove(data_dir / "raw" / "a.csv")

    lock_file = tmp_path / "out.lock"
    lock.save(lock_file)
    loaded = LocalLock.load(lock_file)

    assert loaded == lock
    assert LocalLock.loads(loaded.dumps()) == lock
    assert list(tmp_path.glob(".out.lock.megadvc-tmp-*")) == []


def test_files_table_uses_hex_hashes(data_dir: Path) -> None:
    lock = LocalLock.from_path(data_dir)

    payload = lock.to_dict()

    assert payload["files"][hash_path(data_dir / "model.bin").hex()] == str(data_dir / "model.bin")


@pytest.mark.parametrize(
    "text",
    [
        "not = [valid",
        'generation = 0\nadd = []\nremove = []\n',
        'path = "/x"\ngeneration = -1\n',
        'path = "/x"\ngeneration = "1"\n',
        'path = "/x"\ngeneration = 0\n[files]\nabcd = "/x/a"\n',
        'path = "/x"\ngeneration = 0\n[files]\nzz = "/x/a"\n',
        'path = "/x"\ngeneration = 0\nadd = "/x/a"\n',
    ],
)
def test_invalid_records_raise_serialization_error(text: str) -> None:
    with pytest.raises(SerializationError):
        LocalLock.loads(text)


@pytest.mark.parametrize("loader", [LocalLock.load, RemoteLock.load])
def test_invalid_utf8_file_raises_serialization_error(tmp_path: Path, loader) -> None:  # noqa: ANN001
    lock_file = tmp_path / "bad.lock"
    lock_file.write_bytes(b'path = "/x"\ngeneration = 0\nadd = ["\xff"]\n')

    with pytest.raises(SerializationError):
        loader(lock_file)


@pytest.mark.skipif(sys.platform in ("darwin", "win32"), reason="filesystem rejects undecodable names")
def test_undecodable_file_name_cannot_be_saved(tmp_path: Path) -> None:
    root = tmp_path / "tree"
    root.mkdir()
    (root / os.fsdecode(b"bad\xffname")).write_text("data\n")
    lock = LocalLock.from_path(root)
    lock_file = tmp_path / "out.lock"

    with pytest.raises(SerializationError):
        lock.save(lock_file)

    assert not lock_file.exists()
    assert list(tmp_path.glob(".out.lock.megadvc-tmp-*")) == []


def test_remote_lock_reads_local_record(data_dir: Path) -> None:
    lock = LocalLock.from_path(data_dir)
    lock.stage_add(data_dir / "model.bin")

    remote = RemoteLock.loads(lock.dumps())

    assert remote.generation == lock.generation
    assert dict(remote.files) == lock.files
    assert remote == lock.reference()
