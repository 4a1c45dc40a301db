import os
import stat

import pytest

from appliance.errors import PreconditionError
from appliance.items.payload import PayloadItem
from appliance.reconcile.state import StateStore


def targets(settings, host):
    item = PayloadItem()
    return item.targets(settings, host, StateStore(host.ctx).for_item(item.value_key, item.stamp_key))


def test_extraction_overlays_and_marks_executables(settings, make_host, root):
    install = root / "home/airman/AirPlayer"
    install.mkdir(parents=True)
    (install / "settings.json").write_text("{}")

    for t in targets(settings, make_host()):
        t.apply()

    assert (install / "settings.json").read_text() == "{}"
    for name in ("AirPlayer", "Bootloader", "update.sh"):
        assert (install / name).stat().st_mode & stat.S_IXUSR
    assert not (install / "lib/libairplayer.so").stat().st_mode & stat.S_IXUSR
    link = root / "usr/lib/aarch64-linux-gnu/libzip.so.4"
    assert os.readlink(link) == "/usr/lib/aarch64-linux-gnu/libzip.so.5"
    rules = (root / "etc/udev/rules.d/42-knobster.rules").read_text()
    assert "16d0" in rules and "0e8a" in rules


def test_unchanged_archive_is_pending_but_not_material(settings, make_host):
    host = make_host()
    item = PayloadItem()
    state = StateStore(host.ctx).for_item(item.value_key, item.stamp_key)
    extract = item.targets(settings, host, state)[0]

    assert extract.detect().material
    extract.apply()
    state.record(item.state_value(settings, host))

    det = extract.detect()
    assert det.needs_update and not det.material


def test_preflight_requires_the_archive(settings, make_host, payload):
    PayloadItem().preflight(settings, make_host())
    payload.unlink()
    with pytest.raises(PreconditionError):
        PayloadItem().preflight(settings, make_host())
