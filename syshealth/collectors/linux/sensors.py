from __future__ import annotations

import re
from typing import Any

import psutil

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

# Core 0:        +42.0°C  (high = +80.0°C, crit = +100.0°C)
# Package id 0:  +45.0°C  (high = +80.0°C, crit = +100.0°C)
# Tctl:          +49.5°C
_SENSOR_LINE = re.compile(r"^\s*(Core \d+|Package id \d+|Tctl|Tdie):\s+\+?(-?\d+(?:\.\d+)?)\s*°?C")

# psutil chip names that report CPU package/core temperatures
CPU_CHIPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal")


def parse_sensors(stdout: str) -> list[dict[str, Any]]:
    readings = []
    for line in stdout.splitlines():
        m = _SENSOR_LINE.match(line)
        if m:
            readings.append({"label": m.group(1), "temp": float(m.group(2)), "line": line.strip()})
    return readings


def _from_sensors_cmd() -> dict[str, Any] | None:
    if not has_cmd("sensors"):
        return None
    cmd = ["sensors"]
    rc, stdout, stderr = run_cmd(cmd)
    readings = parse_sensors(stdout) if rc == 0 else []
    if not readings:
        return None
    return {"source": "sensors", "readings": readings, "evidence": get_evidence(cmd, rc, stdout, stderr)}


def _from_psutil() -> dict[str, Any] | None:
    # Not available on every platform/psutil build
    read = getattr(psutil, "sensors_temperatures", None)
    if read is None:
        return None
    try:
        chips = read()
    except (OSError, RuntimeError):
        return None

    readings = []
    for chip, entries in chips.items():
        if chip not in CPU_CHIPS:
            continue
        for e in entries:
            label = e.label or chip
            readings.append({"label": label, "temp": float(e.current), "line": f"{label}: {e.current:.1f}°C"})
    if not readings:
        return None
    return {"source": "psutil", "readings": readings, "evidence": {"chips": sorted(chips)}}


def get_cpu_temperatures() -> dict[str, Any]:
    """
    CPU core/package temperatures.

    Probes, first match wins:
      - `sensors` (lm-sensors) text output
      - psutil.sensors_temperatures() (same kernel hwmon data, no binary needed)

    Output:
      {
        "source": "sensors" | "psutil" | None,
        "readings": [{"label": "Core 0", "temp": 42.0, "line": "..."}, ...],
        "max": 45.0,
        "not_checked": False, "error": None, "remediation": None, "evidence": {...}
      }
    """
    for probe in (_from_sensors_cmd, _from_psutil):
        result = probe()
        if result:
            return {
                **result,
                "max": max(r["temp"] for r in result["readings"]),
                "not_checked": False,
                "error": None,
                "remediation": None,
            }

    return {
        "source": None,
        "readings": [],
        "max": None,
        "not_checked": True,
        "error": "No CPU temperature sensors found",
        "remediation": "Install lm-sensors and run sensors-detect.",
        "evidence": {"sensors_installed": has_cmd("sensors")},
    }
