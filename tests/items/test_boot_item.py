from appliance.items.boot import BootItem
from appliance.reconcile.state import StateStore


def converge(item, settings, host):
    targets = item.targets(settings, host, StateStore(host.ctx).for_item(item.value_key, item.stamp_key))
    for t in targets:
        if t.detect().needs_update:
            t.apply()
    return targets


def test_pi4_gets_gpu_mem_in_all_section(settings, make_host, root):
    targets = converge(BootItem(), settings, make_host())

    text = (root / "boot/firmware/config.txt").read_text()
    assert text.startswith("dtparam=audio=on\n")
    assert "[all]\n" in text
    assert text.index("gpu_mem=384") > text.index("[all]")
    assert "dtoverlay=disable-wifi" in text and "dtoverlay=disable-bt" in text
    assert all(not t.detect().needs_update for t in targets)


def test_pi5_gets_cma_overlay_and_drops_stale_kms_line(make_settings, make_host, root):
    (root / "proc/device-tree/model").write_bytes(b"Raspberry Pi 5 Model B Rev 1.0\x00")
    cfg = root / "boot/firmware/config.txt"
    cfg.write_text("[all]\ndtoverlay=vc4-kms-v3d\nmax_framebuffers=2\n")

    converge(BootItem(), make_settings(GPU_MEMORY="256"), make_host())

    text = cfg.read_text()
    assert "dtoverlay=vc4-kms-v3d,cma-256" in text
    assert "dtoverlay=vc4-kms-v3d\n" not in text
    assert "gpu_mem" not in text
    assert "max_framebuffers=2" in text


def test_radio_overlays_removed_when_not_wanted(make_settings, make_host, root):
    cfg = root / "boot/firmware/config.txt"
    cfg.write_text(cfg.read_text() + "dtoverlay=disable-wifi\ndtoverlay=disable-bt\n")

    converge(BootItem(), make_settings(DISABLE_WIFI="false", DISABLE_BLUETOOTH="no"), make_host())

    text = cfg.read_text()
    assert "disable-wifi" not in text
    assert "disable-bt" not in text


def test_cmdline_gains_ipv6_token_once(settings, make_host, root):
    cmdline = root / "boot/firmware/cmdline.txt"
    converge(BootItem(), settings, make_host())
    converge(BootItem(), settings, make_host(force=True))

    text = cmdline.read_text()
    assert text.count("\n") == 1
    assert text.split().count("ipv6.disable=1") == 1
    assert text.startswith("console=serial0,115200")


def test_state_value_is_gpu_memory(settings, make_host):
    assert BootItem().state_value(settings, make_host()) == "384"
