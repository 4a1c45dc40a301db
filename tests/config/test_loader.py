from pathlib import Path
import textwrap

import pytest

from appliance.config.loader import build_settings, find_properties, load_settings, parse_properties
from appliance.errors import ConfigError


def test_load_settings_minimal_ok(tmp_path: Path, payload):
    text = textwrap.dedent(f"""
        # Air Player appliance
        SYSTEM_USER=airman
        SYSTEM_USER_HOME=/home/${{SYSTEM_USER}}
        NETWORK_INTERFACE=eth0
        NETWORK_IP=192.168.1.50
        NETWORK_SUBNET=24
        NETWORK_GATEWAY=192.168.1.1
        NETWORK_DNS="192.168.1.1 1.1.1.1"
        SSH_PORT=2222
        SSH_ALLOWED_USER=$SYSTEM_USER
        GPU_MEMORY=256
        AIRPLAYER_ZIP_NAME={payload.name}
        AIRPLAYER_INSTALL_DIR=${{SYSTEM_USER_HOME}}/AirPlayer
        NUM_DISPLAYS=1
        PRIMARY_DISPLAY=HDMI-1
        PRIMARY_RESOLUTION=1920x1080
        FIREWALL_ALLOWED_NETWORK=192.168.1.0/24
        FIREWALL_AIRMANAGER_IP=192.168.1.10
        FIREWALL_PORT_HTTP=8080
        FIREWALL_PORT_API=8081
        FIREWALL_PORT_AIRPLAYER=9000
    """)
    f = payload.parent / "setup.properties"
    f.write_text(text)

    s = load_settings(f)
    assert s.system_user_home == Path("/home/airman")
    assert s.ssh.port == 2222
    assert s.ssh.allow_users == "airman"
    assert s.network.cidr == "192.168.1.50/24"
    assert s.network.dns == "192.168.1.1 1.1.1.1"
    assert s.payload.install_dir == Path("/home/airman/AirPlayer")
    # relative archive names resolve next to the properties file
    assert s.payload.archive == payload.resolve()
    assert s.display.count == 1
    assert s.display.displays[0].rotation == "normal"
    assert "ufw" in s.packages


def test_parse_properties_expands_earlier_keys_then_environment():
    flat = parse_properties(
        "A=one\nB=${A}-two\nC=$HOME/x\nD='${A} literal'\n",
        env={"HOME": "/home/pi"},
    )
    assert flat == {"A": "one", "B": "one-two", "C": "/home/pi/x", "D": "${A} literal"}


def test_parse_properties_strips_comments_and_export():
    flat = parse_properties("export A=1  # trailing\n\n# comment\nB=\"x y\"\n", env={})
    assert flat == {"A": "1", "B": "x y"}


def test_parse_properties_rejects_garbage_line():
    with pytest.raises(ConfigError) as ei:
        parse_properties("A=1\nnot a setting\n", env={})
    assert "line 2" in str(ei.value)


def test_parse_properties_unterminated_quote_is_config_error():
    with pytest.raises(ConfigError):
        parse_properties('A="open\n', env={})


def test_only_first_num_displays_descriptors_are_read(props):
    # the tertiary keys are invalid but never looked at with NUM_DISPLAYS=2
    s = build_settings(props(TERTIARY_DISPLAY="DSI-1", TERTIARY_RESOLUTION="garbage"))
    assert [d.role for d in s.display.displays] == ["primary", "secondary"]
    sec = s.display.displays[1]
    assert sec.position == "right-of"
    assert sec.relative_to == "HDMI-1"


def test_tertiary_defaults_to_disabled(props):
    s = build_settings(
        props(
            NUM_DISPLAYS="3",
            TERTIARY_DISPLAY="DSI-1",
            TERTIARY_RESOLUTION="800x480",
            TERTIARY_POSITION="below",
            TERTIARY_POSITION_REFERENCE="PRIMARY",
        )
    )
    tertiary = s.display.displays[2]
    assert tertiary.enabled is False
    assert tertiary.relative_to == "HDMI-1"
    assert [d.role for d in s.display.enabled] == ["primary", "secondary"]


def test_invalid_values_are_reported_by_key_name(props):
    with pytest.raises(ConfigError) as ei:
        build_settings(props(SSH_PORT="99999", SECONDARY_RESOLUTION="wide"))
    msg = str(ei.value)
    assert "SSH_PORT" in msg
    assert "SECONDARY_RESOLUTION" in msg


def test_missing_required_key_is_config_error(props):
    flat = props()
    del flat["NETWORK_IP"]
    with pytest.raises(ConfigError) as ei:
        build_settings(flat)
    assert "NETWORK_IP" in str(ei.value)


def test_secondary_without_position_is_rejected(props):
    flat = props()
    del flat["SECONDARY_POSITION"]
    with pytest.raises(ConfigError) as ei:
        build_settings(flat)
    assert "position" in str(ei.value)


def test_packages_and_services_split_on_whitespace_and_commas(props):
    s = build_settings(props(PACKAGES="xinit, openbox ufw", SERVICES_TO_DISABLE="cups avahi-daemon"))
    assert s.packages == ("xinit", "openbox", "ufw")
    assert s.hardening.services_to_disable == ("cups", "avahi-daemon")


def test_find_properties_priority(tmp_path: Path, monkeypatch):
    explicit = tmp_path / "explicit.properties"
    from_env = tmp_path / "env.properties"
    local = tmp_path / "setup.properties"
    for f in (explicit, from_env, local):
        f.write_text("A=1\n")

    monkeypatch.setenv("AIRPLAYER_PROPERTIES", str(from_env))
    assert find_properties(explicit, cwd=tmp_path) == explicit
    assert find_properties(None, cwd=tmp_path) == from_env

    monkeypatch.delenv("AIRPLAYER_PROPERTIES")
    assert find_properties(None, cwd=tmp_path) == local


def test_find_properties_missing_is_config_error(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AIRPLAYER_PROPERTIES", raising=False)
    with pytest.raises(ConfigError):
        find_properties(None, cwd=tmp_path)
    with pytest.raises(ConfigError):
        find_properties(tmp_path / "nope.properties")
