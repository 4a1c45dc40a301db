# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/cli/helper.py
from __future__ import annotations

import logging
import select
import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO

import typer

from ..logging.log import default_log_dir
from ..observers.console import ConsoleObserver
from ..observers.dispatcher import EventBus
from ..observers.jsonfile import JsonFileObserver
from ..observers.logger import LoggerObserver
from ..reconcile.outcome import TerminalAction
from ..system.host import Host

log = logging.getLogger("appliance")


def build_bus(
    logger: logging.Logger,
    run_id: str,
    *,
    env: str,
    verbose: bool = False,
    audit_dir: Optional[Path] = None,
) -> EventBus:
    observers: List = [
        ConsoleObserver(verbose=verbose),
        LoggerObserver(logger),
        JsonFileObserver((audit_dir or default_log_dir()) / f"{run_id}.jsonl"),
    ]
    return EventBus(observers=observers, run_id=run_id, env=env)


def confirm_with_timeout(prompt: str, timeout: float, *, stream: TextIO = sys.stdin) -> bool:
    """
    Ask *prompt*; proceed unless the operator answers no within *timeout*
    seconds. A non-interactive stdin proceeds immediately.
    """
    if not stream.isatty():
        return True
    typer.echo(f"{prompt} [Y/n] (continuing in {int(timeout)}s) ", nl=False)
    ready, _, _ = select.select([stream], [], [], timeout)
    if not ready:
        typer.echo("")
        return True
    answer = stream.readline().strip().lower()
    return answer not in ("n", "no")


def perform_terminal_action(
    action: TerminalAction,
    host: Host,
    *,
    no_reboot: bool = False,
    timeout: float = 30,
    confirm: Callable[[str, float], bool] = confirm_with_timeout,
) -> bool:
    """Returns True when the action was carried out."""
    if action is TerminalAction.NONE:
        return False
    if host.services.offline:
        typer.echo(f"Offline root {host.ctx.root}: {action.value.lower()} skipped")
        return False
    if no_reboot:
        typer.echo("Changes were made; --no-reboot given, apply them later with a reboot.")
        return False

    if action is TerminalAction.REBOOT:
        if not confirm("Changes were made. Reboot now?", timeout):
            typer.echo("Reboot deferred. Reboot later for all changes to take effect.")
            return False
        log.info("rebooting")
        host.services.reboot()
        return True

    if not confirm("Display changes were made. Restart the session now?", timeout):
        typer.echo("Session restart deferred.")
        return False
    log.info("restarting getty@tty1 to relaunch the X session")
    host.services.restart("getty@tty1.service")
    return True
