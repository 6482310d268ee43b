from __future__ import annotations

import os
import re
from typing import Any

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

NVME_DEVICE = "/dev/nvme0n1"

_HEALTH_LINE = re.compile(r"SMART overall-health.*?:\s*(\S.*)$", re.IGNORECASE)
_TEMP_LINE = re.compile(r"^Temperature:\s+\+?(\d+(?:\.\d+)?)", re.IGNORECASE)
_SENSOR1_LINE = re.compile(r"^Temperature Sensor 1:\s+\+?(\d+(?:\.\d+)?)", re.IGNORECASE)
_ERROR_DETAIL = re.compile(r"Error|Wear|Life|Media|Unsafe")


def parse_smart_health(stdout: str) -> str | None:
    # SMART overall-health self-assessment test result: PASSED
    for line in stdout.splitlines():
        m = _HEALTH_LINE.search(line)
        if m:
            return m.group(1).strip()
    return None


def parse_smart_temperature(stdout: str) -> float | None:
    lines = [line.strip() for line in stdout.splitlines()]
    for pattern in (_TEMP_LINE, _SENSOR1_LINE):
        for s in lines:
            m = pattern.match(s)
            if m:
                return float(m.group(1))
    return None


def get_nvme_health(device: str = NVME_DEVICE) -> dict[str, Any]:
    """
    NVMe SMART summary via smartctl.

    Note smartctl's exit status is a bit mask (bit 3 = "disk failing"), so a
    non-zero rc does not mean the read failed. We go by the parsed lines.

    Output:
      {
        "device": "/dev/nvme0n1",
        "health": "PASSED" | "FAILED!" | None,
        "temp": 38.0 | None,
        "error_details": [...],   # only when health is not PASSED
        "not_checked": ..., "error": ..., "remediation": ..., "evidence": {...}
      }
    """
    base: dict[str, Any] = {"device": device, "health": None, "temp": None, "error_details": []}

    if not os.path.exists(device):
        return {
            **base,
            "not_checked": True,
            "error": f"No NVMe device at {device}",
            "remediation": None,
            "evidence": {},
        }

    if not has_cmd("smartctl"):
        return {
            **base,
            "not_checked": True,
            "error": "smartctl is not installed",
            "remediation": "Install smartmontools.",
            "evidence": {},
        }

    cmd_h = ["smartctl", "-H", device]
    rc_h, out_h, err_h = run_cmd(cmd_h)
    cmd_a = ["smartctl", "-a", device]
    rc_a, out_a, err_a = run_cmd(cmd_a)
    evidence = {
        "health": get_evidence(cmd_h, rc_h, out_h, err_h),
        "attributes": get_evidence(cmd_a, rc_a, out_a, err_a),
    }

    health = parse_smart_health(out_h)
    temp = parse_smart_temperature(out_a)

    details: list[str] = []
    if health is not None and health.upper() != "PASSED":
        details = [s.strip() for s in out_a.splitlines() if _ERROR_DETAIL.search(s)][:5]

    if health is None:
        return {
            **base,
            "temp": temp,
            "not_checked": True,
            "error": "Unable to read SMART health data",
            "remediation": "Try running with sudo.",
            "evidence": evidence,
        }

    return {
        **base,
        "health": health,
        "temp": temp,
        "error_details": details,
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": evidence,
    }


def get_io_stats() -> dict[str, Any]:
    """Extended per-device I/O statistics from one iostat sample (loop devices dropped)."""
    if not has_cmd("iostat"):
        return {
            "lines": [],
            "not_checked": True,
            "error": "iostat not found",
            "remediation": "Install the sysstat package to get I/O statistics.",
            "evidence": {},
        }

    cmd = ["iostat", "-dx", "1", "1"]
    rc, stdout, stderr = run_cmd(cmd, timeout_s=5)
    evidence = get_evidence(cmd, rc, stdout, stderr)
    if rc != 0:
        return {
            "lines": [],
            "not_checked": True,
            "error": stderr or "iostat failed",
            "remediation": None,
            "evidence": evidence,
        }

    lines: list[str] = []
    in_table = False
    for line in stdout.splitlines():
        if line.startswith("Device"):
            in_table = True
        if in_table and line.strip() and not line.startswith("loop"):
            lines.append(line.rstrip())

    return {"lines": lines, "not_checked": False, "error": None, "remediation": None, "evidence": evidence}
