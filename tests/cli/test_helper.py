import io
from pathlib import Path

from appliance.cli.helper import confirm_with_timeout, perform_terminal_action
from appliance.reconcile.outcome import TerminalAction
from appliance.system.host import Host
from appliance.utils.execution import RunContext


def live_host(fake):
    return Host(RunContext(root=Path("/")), fake)


def test_nothing_to_do():
    assert perform_terminal_action(TerminalAction.NONE, host=None) is False


def test_offline_root_never_reboots(make_host, fake, capsys):
    assert perform_terminal_action(TerminalAction.REBOOT, make_host(), confirm=lambda q, t: True) is False
    assert fake.calls == []
    assert "Offline root" in capsys.readouterr().out


def test_reboot_after_confirmation(fake):
    asked = []

    def confirm(question, timeout):
        asked.append(timeout)
        return True

    assert perform_terminal_action(TerminalAction.REBOOT, live_host(fake), timeout=5, confirm=confirm) is True
    assert fake.calls == [["systemctl", "reboot"]]
    assert asked == [5]


def test_declined_reboot_is_deferred(fake, capsys):
    assert perform_terminal_action(TerminalAction.REBOOT, live_host(fake), confirm=lambda q, t: False) is False
    assert fake.calls == []
    assert "Reboot deferred" in capsys.readouterr().out


def test_display_changes_restart_the_session(fake):
    assert perform_terminal_action(TerminalAction.RESTART_SESSION, live_host(fake), confirm=lambda q, t: True)
    assert fake.calls == [["systemctl", "restart", "getty@tty1.service"]]


def test_no_reboot_flag(fake):
    assert perform_terminal_action(TerminalAction.REBOOT, live_host(fake), no_reboot=True) is False
    assert fake.calls == []


def test_non_interactive_stdin_proceeds():
    assert confirm_with_timeout("Reboot now?", 30, stream=io.StringIO("n\n")) is True
