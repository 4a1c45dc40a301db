from appliance.items.packages import PackagesItem
from appliance.reconcile.state import StateStore


def package_target(settings, host):
    (t,) = PackagesItem().targets(settings, host, StateStore(host.ctx).for_item("packages", "packages_installed"))
    return t


def test_missing_packages_are_installed_with_full_upgrade(make_settings, make_host, fake):
    fake.installed = {"xinit"}
    target = package_target(make_settings(PACKAGES="xinit openbox ufw"), make_host())

    det = target.detect()
    assert det.needs_update
    target.apply()

    verbs = [c[5] for c in fake.calls if "apt-get" in c]
    assert verbs == ["update", "install", "full-upgrade", "autoremove"]
    assert fake.installed >= {"xinit", "openbox", "ufw"}
    assert not target.detect().needs_update


def test_extra_installed_packages_are_ignored(make_settings, make_host, fake):
    fake.installed = {"xinit", "openbox", "vim", "htop"}
    target = package_target(make_settings(PACKAGES="xinit openbox"), make_host())
    assert not target.detect().needs_update


def test_state_value_is_sorted_and_deduplicated(make_settings, make_host):
    s = make_settings(PACKAGES="ufw xinit ufw")
    assert PackagesItem().state_value(s, make_host()) == "ufw,xinit"
