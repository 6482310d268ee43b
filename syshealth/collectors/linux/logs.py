from __future__ import annotations

from typing import Any

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

# Must exceed the error_log_count critical bound.
JOURNAL_ENTRIES = 50
RECENT_SHOWN = 5

# Sources that log at err priority on healthy machines.
NOISY_SOURCES = ('apparmor="STATUS"', "apparmor=STATUS", "snapd", "smartd", "sudo:")


def filter_journal(stdout: str, noisy: tuple[str, ...] = NOISY_SOURCES) -> list[str]:
    out = []
    for line in stdout.splitlines():
        s = line.strip()
        # "-- No entries --", "-- Logs begin at ..." and permission hints
        if not s or s.startswith("--") or s.startswith("Hint:"):
            continue
        if any(n in s for n in noisy):
            continue
        out.append(s)
    return out


def get_error_logs(entries: int = JOURNAL_ENTRIES) -> dict[str, Any]:
    """
    Recent err-priority journal entries, minus known-noisy sources.

    Output:
      {
        "count": 3,
        "recent": ["Mar 01 10:00:00 host kernel: ...", ...],   # last 5
        "not_checked": False, "error": None, "remediation": None, "evidence": {...}
      }
    """
    if not has_cmd("journalctl"):
        return {
            "count": None,
            "recent": [],
            "not_checked": True,
            "error": "journalctl not found (no systemd journal)",
            "remediation": None,
            "evidence": {},
        }

    cmd = ["journalctl", "-p", "err", "-n", str(entries), "--no-pager"]
    rc, stdout, stderr = run_cmd(cmd)
    evidence = get_evidence(cmd, rc, stdout, stderr)
    if rc != 0:
        return {
            "count": None,
            "recent": [],
            "not_checked": True,
            "error": "Unable to read the system journal",
            "remediation": "Try running with sudo.",
            "evidence": evidence,
        }

    lines = filter_journal(stdout)
    return {
        "count": len(lines),
        "recent": lines[-RECENT_SHOWN:],
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": evidence,
    }


def get_kernel_messages(tail: int = RECENT_SHOWN) -> dict[str, Any]:
    """Last few kernel ring buffer lines (dmesg usually needs root)."""
    cmd = ["dmesg"]
    rc, stdout, stderr = run_cmd(cmd)
    evidence = get_evidence(cmd, rc, "", stderr)
    if rc != 0:
        return {
            "lines": [],
            "not_checked": True,
            "error": "Unable to read kernel messages",
            "remediation": "Try running with sudo.",
            "evidence": evidence,
        }
    lines = [s.rstrip() for s in stdout.splitlines() if s.strip()]
    return {"lines": lines[-tail:], "not_checked": False, "error": None, "remediation": None, "evidence": evidence}
