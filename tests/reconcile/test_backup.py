from datetime import datetime
from pathlib import Path

import pytest

from appliance.errors import ResourceError
from appliance.observers.dispatcher import EventBus
from appliance.observers.events import BackupRecorded
from appliance.reconcile.backup import BackupArchive, list_backups
from appliance.utils.execution import RunContext

STARTED = datetime(2026, 3, 14, 9, 30, 0)


def _archive(tmp_path, dry_run=False, bus=None):
    ctx = RunContext(dry_run=dry_run, root=tmp_path / "root", started=STARTED)
    return BackupArchive(ctx, bus)


def test_record_named_after_basename_and_run_start(tmp_path: Path):
    a = _archive(tmp_path)
    src = tmp_path / "root/etc/fstab"
    src.parent.mkdir(parents=True)
    src.write_text("original\n")

    rec = a.preserve(src)
    assert rec.materialized
    assert rec.destination == tmp_path / "root/var/backups/airplayer-appliance/fstab.20260314_093000"
    assert rec.destination.read_text() == "original\n"


def test_first_backup_per_run_wins(tmp_path: Path):
    a = _archive(tmp_path)
    src = tmp_path / "root/etc/fstab"
    src.parent.mkdir(parents=True)
    src.write_text("original\n")
    first = a.preserve(src)

    src.write_text("edited once\n")
    again = a.preserve(src)

    assert again == first
    assert first.destination.read_text() == "original\n"
    assert len(a.records) == 1


def test_same_basename_from_two_paths_does_not_collide(tmp_path: Path):
    a = _archive(tmp_path)
    one = tmp_path / "root/etc/systemd/system.conf"
    two = tmp_path / "root/etc/other/system.conf"
    for p, text in ((one, "one"), (two, "two")):
        p.parent.mkdir(parents=True)
        p.write_text(text)

    r1, r2 = a.preserve(one), a.preserve(two)
    assert r1.destination != r2.destination
    assert r2.destination.name == "system.conf.20260314_093000.1"
    assert r2.destination.read_text() == "two"


def test_absent_path_is_not_backed_up(tmp_path: Path):
    assert _archive(tmp_path).preserve(tmp_path / "root/missing") is None


def test_dry_run_describes_but_never_writes(tmp_path: Path, capture):
    a = _archive(tmp_path, dry_run=True, bus=EventBus([capture]))
    src = tmp_path / "root/etc/fstab"
    src.parent.mkdir(parents=True)
    src.write_text("x")

    rec = a.preserve(src)
    assert rec.materialized is False
    assert not a.directory.exists()
    ev = capture.of(BackupRecorded)[0]
    assert ev.materialized is False
    assert ev.source == str(src)


def test_directories_and_symlinks_are_copied_as_is(tmp_path: Path):
    a = _archive(tmp_path)
    d = tmp_path / "root/var/log/apt"
    d.mkdir(parents=True)
    (d / "history.log").write_text("h")
    link = tmp_path / "root/var/log/dpkg"
    link.symlink_to("/tmp")

    assert (a.preserve(d).destination / "history.log").read_text() == "h"
    dest = a.preserve(link).destination
    assert dest.is_symlink()


def test_ensure_failure_is_resource_error(tmp_path: Path):
    blocker = tmp_path / "root/var/backups"
    blocker.parent.mkdir(parents=True)
    blocker.write_text("not a directory")
    with pytest.raises(ResourceError):
        _archive(tmp_path).ensure()


def test_list_backups_groups_by_basename_newest_first(tmp_path: Path):
    for name in (
        "fstab.20260101_100000",
        "fstab.20260314_093000",
        "config.txt.20260314_093000",
        "config.txt.20260314_093000.1",
        "README",
    ):
        (tmp_path / name).write_text("")
    groups = list_backups(tmp_path)
    assert list(groups) == ["config.txt", "fstab"]
    assert [p.name for p in groups["fstab"]] == ["fstab.20260314_093000", "fstab.20260101_100000"]
    assert len(groups["config.txt"]) == 2
