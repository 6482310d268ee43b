"""
Package manager probes.

Managers are tried in rank order (apt, dnf, yum, pacman); the first whose
binary is on PATH is the active one. Each manager describes how to list
upgradable packages, how to upgrade (as an escalation ladder), which lock
files it uses and what its processes are called. Remediation reads the same
description, so detection and fixing never disagree about which tool is in
charge.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable

import psutil

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

logger = logging.getLogger(__name__)

# Commands the report benefits from. Each manager maps them to its package name.
MONITORING_TOOLS: tuple[str, ...] = ("smartctl", "sensors", "iostat")


def _parse_apt(stdout: str) -> list[str]:
    # Listing... Done
    # bash/jammy-updates 5.1-6ubuntu1.1 amd64 [upgradable from: 5.1-6ubuntu1]
    out = []
    for line in stdout.splitlines():
        s = line.strip()
        if not s or s.startswith("Listing") or s.startswith("WARNING"):
            continue
        out.append(s)
    return out


def _parse_rpm(stdout: str) -> list[str]:
    # dnf/yum check-update prints "name.arch  version  repo", then an
    # optional "Obsoleting Packages" block we do not count.
    out = []
    for line in stdout.splitlines():
        s = line.strip()
        if not s or s.startswith("Last metadata"):
            continue
        if s.startswith("Obsoleting"):
            break
        if len(s.split()) >= 3:
            out.append(s)
    return out


def _parse_pacman(stdout: str) -> list[str]:
    # linux 6.9.1.arch1-1 -> 6.9.2.arch1-1
    return [s.strip() for s in stdout.splitlines() if "->" in s]


KEPT_BACK_HEADER = "The following packages have been kept back:"


def _parse_apt_kept_back(stdout: str) -> list[str]:
    """
    Package names from the kept-back block of `apt-get -s upgrade`.

    Other blocks ("deferred due to phasing", "will be upgraded") are not
    held back by dependencies and no upgrade rung installs them sooner.
    """
    names: list[str] = []
    in_block = False
    for line in stdout.splitlines():
        if not line.strip():
            continue
        if not line[0].isspace():
            in_block = line.strip() == KEPT_BACK_HEADER
            continue
        if in_block:
            names.extend(line.split())
    return names


@dataclass(frozen=True)
class PackageManager:
    name: str
    binary: str
    list_upgradable: tuple[str, ...]
    parse_upgradable: Callable[[str], list[str]]
    # how to list packages an upgrade left behind; empty means "still upgradable"
    held_back: tuple[str, ...] = ()
    parse_held_back: Callable[[str], list[str]] | None = None
    # exit codes that still mean "listing worked"
    list_ok_rcs: tuple[int, ...] = (0,)
    refresh: tuple[tuple[str, ...], ...] = ()
    upgrade_ladder: tuple[tuple[str, ...], ...] = ()
    cleanup: tuple[tuple[str, ...], ...] = ()
    install: tuple[str, ...] = ()
    tool_packages: dict[str, str] = field(default_factory=dict)
    processes: tuple[str, ...] = ()
    # "fcntl": lock files always exist, only a held POSIX lock means locked.
    # "exists": the file's presence is the lock.
    lock_style: str = "fcntl"
    lock_files: tuple[str, ...] = ()
    repair: tuple[tuple[str, ...], ...] = ()
    env: dict[str, str] = field(default_factory=dict)

    def present(self) -> bool:
        return has_cmd(self.binary)

    def install_cmd(self, packages: list[str]) -> list[str]:
        return [*self.install, *packages]


APT = PackageManager(
    name="apt",
    binary="apt",
    list_upgradable=("apt", "list", "--upgradable"),
    parse_upgradable=_parse_apt,
    held_back=("apt-get", "-s", "upgrade"),
    parse_held_back=_parse_apt_kept_back,
    refresh=(("apt-get", "update"),),
    upgrade_ladder=(
        ("apt-get", "upgrade", "-y"),
        ("apt-get", "--with-new-pkgs", "upgrade", "-y"),
        ("apt-get", "dist-upgrade", "-y"),
    ),
    cleanup=(("apt-get", "autoremove", "-y"), ("apt-get", "autoclean", "-y")),
    install=("apt-get", "install", "-y"),
    tool_packages={"smartctl": "smartmontools", "sensors": "lm-sensors", "iostat": "sysstat"},
    # Only names that exist while a transaction runs. unattended-upgr and
    # packagekitd idle as resident daemons and would read as a permanent lock.
    processes=("apt", "apt-get", "aptitude", "dpkg", "synaptic"),
    lock_style="fcntl",
    lock_files=(
        "/var/lib/dpkg/lock-frontend",
        "/var/lib/dpkg/lock",
        "/var/lib/apt/lists/lock",
        "/var/cache/apt/archives/lock",
    ),
    repair=(("dpkg", "--configure", "-a"),),
    env={"DEBIAN_FRONTEND": "noninteractive"},
)

DNF = PackageManager(
    name="dnf",
    binary="dnf",
    list_upgradable=("dnf", "check-update", "--quiet"),
    parse_upgradable=_parse_rpm,
    # check-update exits 100 when updates are available
    list_ok_rcs=(0, 100),
    refresh=(("dnf", "makecache"),),
    upgrade_ladder=(
        ("dnf", "upgrade", "-y"),
        ("dnf", "upgrade", "-y", "--allowerasing"),
        ("dnf", "distro-sync", "-y"),
    ),
    cleanup=(("dnf", "autoremove", "-y"), ("dnf", "clean", "all")),
    install=("dnf", "install", "-y"),
    tool_packages={"smartctl": "smartmontools", "sensors": "lm_sensors", "iostat": "sysstat"},
    processes=("dnf", "rpm"),
    lock_style="fcntl",
    lock_files=("/var/lib/rpm/.rpm.lock",),
)

YUM = PackageManager(
    name="yum",
    binary="yum",
    list_upgradable=("yum", "check-update", "--quiet"),
    parse_upgradable=_parse_rpm,
    list_ok_rcs=(0, 100),
    refresh=(("yum", "makecache"),),
    upgrade_ladder=(
        ("yum", "update", "-y"),
        ("yum", "distro-sync", "-y"),
    ),
    cleanup=(("yum", "autoremove", "-y"), ("yum", "clean", "all")),
    install=("yum", "install", "-y"),
    tool_packages={"smartctl": "smartmontools", "sensors": "lm_sensors", "iostat": "sysstat"},
    processes=("yum", "rpm"),
    lock_style="exists",
    lock_files=("/var/run/yum.pid",),
)

PACMAN = PackageManager(
    name="pacman",
    binary="pacman",
    list_upgradable=("pacman", "-Qu"),
    parse_upgradable=_parse_pacman,
    # -Qu exits 1 when nothing is upgradable
    list_ok_rcs=(0, 1),
    upgrade_ladder=(("pacman", "-Syu", "--noconfirm"),),
    cleanup=(("pacman", "-Sc", "--noconfirm"),),
    install=("pacman", "-S", "--noconfirm", "--needed"),
    tool_packages={"smartctl": "smartmontools", "sensors": "lm_sensors", "iostat": "sysstat"},
    processes=("pacman",),
    lock_style="exists",
    lock_files=("/var/lib/pacman/db.lck",),
)

# Rank order: first present wins.
MANAGERS: tuple[PackageManager, ...] = (APT, DNF, YUM, PACMAN)


def detect_package_manager(managers: tuple[PackageManager, ...] = MANAGERS) -> PackageManager | None:
    for pm in managers:
        if pm.present():
            logger.debug("package manager: %s", pm.name)
            return pm
    return None


def missing_tools(tools: tuple[str, ...] = MONITORING_TOOLS) -> list[str]:
    return [t for t in tools if not has_cmd(t)]


def list_upgradable(pm: PackageManager) -> tuple[list[str] | None, dict[str, Any]]:
    """(upgradable lines or None on failure, evidence)."""
    cmd = list(pm.list_upgradable)
    rc, stdout, stderr = run_cmd(cmd, timeout_s=120, env=pm.env or None)
    evidence = get_evidence(cmd, rc, stdout, stderr)
    if rc not in pm.list_ok_rcs:
        return None, evidence
    return pm.parse_upgradable(stdout), evidence


def count_held_back(pm: PackageManager) -> int:
    """
    Packages the last upgrade left behind. Drives the upgrade ladder.

    apt asks a simulated upgrade for its kept-back block, so phased updates
    never escalate to dist-upgrade. Managers without a dedicated query count
    what is still upgradable.
    """
    if pm.held_back and pm.parse_held_back is not None:
        cmd = list(pm.held_back)
        # the block headers are matched in English
        rc, stdout, stderr = run_cmd(cmd, timeout_s=120, env={**pm.env, "LC_ALL": "C"})
        if rc != 0:
            logger.warning("could not count held-back packages (rc=%s): %s", rc, stderr.strip())
            return 0
        return len(pm.parse_held_back(stdout))

    packages, _ = list_upgradable(pm)
    return len(packages) if packages is not None else 0


def get_pending_updates(pm: PackageManager | None) -> dict[str, Any]:
    """
    Pending update inventory for the active manager.

    Output:
      {
        "manager": "apt",
        "packages": ["bash/jammy-updates 5.1 ...", ...],
        "count": 12,
        "systemd": True,        # any upgradable line mentions systemd
        "not_checked": False, "error": None, "remediation": None, "evidence": {...}
      }
    """
    if pm is None:
        return {
            "manager": None,
            "packages": [],
            "count": None,
            "systemd": False,
            "not_checked": True,
            "error": "No supported package manager found",
            "remediation": "Supported managers: apt, dnf, yum, pacman.",
            "evidence": {},
        }

    packages, evidence = list_upgradable(pm)
    if packages is None:
        return {
            "manager": pm.name,
            "packages": [],
            "count": None,
            "systemd": False,
            "not_checked": True,
            "error": evidence["stderr"] or f"{pm.name} could not list upgradable packages",
            "remediation": "Check network access to the package repositories and re-run.",
            "evidence": evidence,
        }

    return {
        "manager": pm.name,
        "packages": packages,
        "count": len(packages),
        "systemd": any("systemd" in p for p in packages),
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": evidence,
    }


def running_package_processes(pm: PackageManager, own_pid: int | None = None) -> list[dict[str, Any]]:
    """Processes belonging to the package manager, excluding ourselves."""
    own_pid = os.getpid() if own_pid is None else own_pid
    found = []
    for proc in psutil.process_iter(["pid", "name"]):
        try:
            name = proc.info["name"]
            pid = proc.info["pid"]
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if pid != own_pid and name in pm.processes:
            found.append({"pid": pid, "name": name})
    return found


def _held_lock_inodes(proc_locks: str = "/proc/locks") -> set[tuple[int, int, int]]:
    """
    (major, minor, inode) of every file with an active POSIX/flock lock.

    /proc/locks line format:
      1: POSIX  ADVISORY  WRITE 1234 08:02:131074 0 EOF
    Reading it needs no privileges and never takes a lock itself.
    """
    held: set[tuple[int, int, int]] = set()
    try:
        with open(proc_locks, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError:
        return held

    for line in lines:
        parts = line.split()
        # "->" marks a blocked waiter; the holder is listed on its own line
        if "->" in parts:
            continue
        for tok in parts:
            if tok.count(":") == 2:
                major, minor, inode = tok.split(":")
                try:
                    held.add((int(major, 16), int(minor, 16), int(inode)))
                except ValueError:
                    pass
                break
    return held


def held_lock_files(pm: PackageManager, proc_locks: str = "/proc/locks") -> list[str]:
    """Lock files currently held (fcntl style) or present (exists style)."""
    present = [p for p in pm.lock_files if os.path.exists(p)]
    if pm.lock_style == "exists":
        return present

    held_ids = _held_lock_inodes(proc_locks)
    held = []
    for path in present:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            continue
        if (os.major(st.st_dev), os.minor(st.st_dev), st.st_ino) in held_ids:
            held.append(path)
    return held


def get_lock_status(pm: PackageManager | None) -> dict[str, Any]:
    """
    Is the package manager busy or wedged?

      locked   -> a package-manager process is running, or a lock is held
      running  -> [{"pid": .., "name": ..}]
      held     -> lock files currently held (or present, for exists-style locks)
    """
    if pm is None:
        return {
            "locked": None,
            "running": [],
            "held": [],
            "not_checked": True,
            "error": "No supported package manager found",
            "remediation": None,
            "evidence": {},
        }

    running = running_package_processes(pm)
    held = held_lock_files(pm)
    return {
        "locked": bool(running or held),
        "running": running,
        "held": held,
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": {"lock_files": list(pm.lock_files), "lock_style": pm.lock_style},
    }


def manager_by_name(name: str | None) -> PackageManager | None:
    for pm in MANAGERS:
        if pm.name == name:
            return pm
    return None
