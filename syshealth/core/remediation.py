"""
Remediation: turn findings into an ordered plan, and run it in fix mode.

Plan order is fixed: locks are cleared before upgrades are attempted, and
tool installation runs last. A failing step is recorded and the next step
still runs; nothing here ends the program.
"""
from __future__ import annotations

import logging
import os
import shlex
from typing import Callable, Iterable

from syshealth.collectors.linux.packages import (
    PackageManager,
    count_held_back,
    held_lock_files,
    missing_tools,
    running_package_processes,
)
from syshealth.core.models import ActionResult, Finding, RemediationAction
from syshealth.helpers.unix import privileged, run_live

logger = logging.getLogger(__name__)

ACTION_PRIORITY: tuple[str, ...] = ("clear_locks", "upgrade_packages", "install_tools")

TITLES: dict[str, str] = {
    "clear_locks": "Clear package manager locks",
    "upgrade_packages": "Upgrade system packages",
    "install_tools": "Install missing monitoring tools",
}

REBOOT_REQUIRED_FILE = "/var/run/reboot-required"

Runner = Callable[[list[str], dict[str, str] | None], int]
HeldCounter = Callable[[PackageManager], int]
StepCallback = Callable[[str], None]


def _sudo(cmd: Iterable[str]) -> str:
    return shlex.join(["sudo", *cmd])


def manual_steps(action_id: str, pm: PackageManager | None, tools: list[str] | None = None) -> tuple[str, ...]:
    """Command lines a user could run by hand for this action."""
    if pm is None:
        return ()
    if action_id == "clear_locks":
        steps = []
        if pm.lock_files:
            steps.append(_sudo(["rm", "-f", *pm.lock_files]))
        steps += [_sudo(c) for c in pm.repair]
        return tuple(steps)
    if action_id == "upgrade_packages":
        return tuple(_sudo(c) for c in (*pm.refresh, *pm.upgrade_ladder))
    if action_id == "install_tools":
        packages = [pm.tool_packages[t] for t in (tools or []) if t in pm.tool_packages]
        return (_sudo(pm.install_cmd(packages)),) if packages else ()
    return ()


def build_plan(
    findings: Iterable[Finding],
    pm: PackageManager | None = None,
    tools: list[str] | None = None,
) -> list[RemediationAction]:
    """
    Deterministic: the same findings always produce the same ordered plan,
    whatever order the findings arrive in.
    """
    wanted = {f.remediation for f in findings if f.remediation}
    return [
        RemediationAction(id=a, title=TITLES[a], manual=manual_steps(a, pm, tools))
        for a in ACTION_PRIORITY
        if a in wanted
    ]


def _default_runner(cmd: list[str], env: dict[str, str] | None) -> int:
    return run_live(cmd, env=env)


class Remediator:
    """
    Executes a plan against the active package manager.

    `runner` and `held_counter` are injectable so the escalation policy can
    be exercised without touching a real system.
    """

    def __init__(
        self,
        pm: PackageManager | None,
        runner: Runner = _default_runner,
        held_counter: HeldCounter = count_held_back,
        on_step: StepCallback | None = None,
        systemd_updates: bool = False,
        tools: list[str] | None = None,
    ):
        self.pm = pm
        self.runner = runner
        self.held_counter = held_counter
        self.on_step = on_step or (lambda msg: logger.info(msg))
        self.systemd_updates = systemd_updates
        self.tools = list(tools or [])

    def _run(self, result: ActionResult, cmd: tuple[str, ...] | list[str], message: str) -> int:
        full = privileged(list(cmd))
        self.on_step(message)
        env = self.pm.env if self.pm and self.pm.env else None
        rc = self.runner(full, env)
        result.steps.append((shlex.join(full), rc))
        if rc != 0:
            logger.warning("step failed (rc=%s): %s", rc, shlex.join(full))
        return rc

    def execute(self, plan: list[RemediationAction]) -> list[ActionResult]:
        handlers = {
            "clear_locks": self.clear_locks,
            "upgrade_packages": self.upgrade_packages,
            "install_tools": self.install_tools,
        }
        results = []
        for action in plan:
            if self.pm is None:
                results.append(ActionResult(
                    action, skipped=True,
                    notes=["No supported package manager found. Manual action required."],
                ))
                continue
            result = ActionResult(action)
            handlers[action.id](result)
            results.append(result)
        return results

    def clear_locks(self, result: ActionResult) -> None:
        pm = self.pm
        # Removing a lock under a live package manager can corrupt its state.
        running = running_package_processes(pm)
        if running:
            names = ", ".join(f"{p['name']} (pid {p['pid']})" for p in running)
            result.skipped = True
            result.notes.append(f"{names} still running; locks left in place. Let it finish, then re-run.")
            return

        if pm.lock_style == "fcntl":
            held = held_lock_files(pm)
            if held:
                result.skipped = True
                result.notes.append(f"Lock held by another process: {', '.join(held)}; not removed.")
                return

        for path in pm.lock_files:
            if os.path.exists(path):
                self._run(result, ("rm", "-f", path), f"Removing stale lock {path}")
        for cmd in pm.repair:
            self._run(result, cmd, "Finishing interrupted package operations")

    def upgrade_packages(self, result: ActionResult) -> None:
        pm = self.pm
        for cmd in pm.refresh:
            self._run(result, cmd, "Updating package lists")

        ladder = pm.upgrade_ladder
        self._run(result, ladder[0], "Upgrading packages")
        for cmd in ladder[1:]:
            held = self.held_counter(pm)
            if held <= 0:
                break
            result.notes.append(f"{held} package(s) held back; retrying with: {shlex.join(cmd)}")
            self._run(result, cmd, "Upgrading held-back packages")
        else:
            if len(ladder) > 1:
                remaining = self.held_counter(pm)
                if remaining > 0:
                    result.notes.append(f"{remaining} package(s) still held back after a full upgrade")

        for cmd in pm.cleanup:
            self._run(result, cmd, "Cleaning up packages")

        # Never reboot on the user's behalf.
        if self.systemd_updates or os.path.exists(REBOOT_REQUIRED_FILE):
            result.notes.append("A reboot is required to finish applying updates. Run: sudo reboot")

    def install_tools(self, result: ActionResult) -> None:
        pm = self.pm
        packages = [pm.tool_packages[t] for t in self.tools if t in pm.tool_packages]
        if not packages:
            result.skipped = True
            result.notes.append("Nothing to install.")
            return

        self._run(result, pm.install_cmd(packages), f"Installing {', '.join(packages)}")
        still = missing_tools(tuple(self.tools))
        if still:
            result.notes.append(f"Still missing after install: {', '.join(still)}")
