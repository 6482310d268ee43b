"""
GPU telemetry, one probe per vendor.

At most one vendor is expected per host; probes run in rank order
(NVIDIA, AMD, Intel) and the first one present answers. Every probe returns
the same record shape so the rest of the program never branches on vendor.
"""
from __future__ import annotations

import glob
import os
import re
from typing import Any

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

# intel_gpu_top streams forever; sample this long and parse what arrived.
INTEL_SAMPLE_S = 0.5


def _record(vendor: str, **fields: Any) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "vendor": vendor,
        "model": None,
        "temp": None,
        "utilization": None,
        "memory": None,
        "power": None,
        "processes": [],
        "activity": [],
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": {},
    }
    rec.update(fields)
    return rec


def _to_float(text: str | None) -> float | None:
    if text is None:
        return None
    m = re.search(r"-?\d+(?:\.\d+)?", text)
    return float(m.group(0)) if m else None


class GpuProbe:
    vendor = ""

    def present(self) -> bool:
        raise NotImplementedError

    def collect(self) -> dict[str, Any]:
        raise NotImplementedError


class NvidiaProbe(GpuProbe):
    vendor = "NVIDIA"
    QUERY = "name,temperature.gpu,utilization.gpu,utilization.memory,memory.used,memory.total,power.draw"

    def present(self) -> bool:
        return has_cmd("nvidia-smi")

    def collect(self) -> dict[str, Any]:
        cmd = ["nvidia-smi", f"--query-gpu={self.QUERY}", "--format=csv,noheader,nounits"]
        rc, stdout, stderr = run_cmd(cmd)
        evidence = get_evidence(cmd, rc, stdout, stderr)

        first = stdout.splitlines()[0] if rc == 0 and stdout else ""
        fields = [f.strip() for f in first.split(",")]
        if len(fields) >= 7:
            name, temp, util, mem_util, mem_used, mem_total, power = fields[:7]
            return _record(
                self.vendor,
                model=name,
                temp=_to_float(temp),
                utilization=f"{util}%",
                memory=f"{mem_used} MiB / {mem_total} MiB ({mem_util}%)",
                power=f"{power} W",
                processes=self._processes(),
                evidence=evidence,
            )

        # Fallback: scrape the default table for the first "NNC" token
        rc2, out2, err2 = run_cmd(["nvidia-smi"])
        m = re.search(r"\b(\d+)C\b", out2) if rc2 == 0 else None
        if m:
            return _record(self.vendor, temp=float(m.group(1)), evidence=get_evidence(["nvidia-smi"], rc2, out2, err2))

        return _record(
            self.vendor,
            not_checked=True,
            error=stderr or err2 or "nvidia-smi returned no data",
            remediation="Check that the NVIDIA driver is loaded (nvidia-smi should list the GPU).",
            evidence=evidence,
        )

    def _processes(self) -> list[str]:
        cmd = ["nvidia-smi", "--query-compute-apps=pid,process_name,used_memory", "--format=csv,noheader"]
        rc, stdout, _ = run_cmd(cmd)
        if rc != 0:
            return []
        return [line.strip() for line in stdout.splitlines() if line.strip()]


class AmdProbe(GpuProbe):
    vendor = "AMD"

    def present(self) -> bool:
        return has_cmd("rocm-smi")

    @staticmethod
    def _value(stdout: str) -> str | None:
        # GPU[0]		: Temperature (Sensor edge) (C): 45.0
        for line in stdout.splitlines():
            s = line.strip()
            if s.startswith("GPU[") and ":" in s:
                return s.rsplit(":", 1)[1].strip() or None
        return None

    def _query(self, flag: str) -> tuple[str | None, dict[str, Any]]:
        cmd = ["rocm-smi", flag]
        rc, stdout, stderr = run_cmd(cmd)
        return (self._value(stdout) if rc == 0 else None), get_evidence(cmd, rc, stdout, stderr)

    def collect(self) -> dict[str, Any]:
        temp, evidence = self._query("--showtemp")
        model, _ = self._query("--showproductname")
        util, _ = self._query("--showuse")
        mem, _ = self._query("--showmemuse")
        power, _ = self._query("--showpower")

        if temp is None and model is None:
            return _record(
                self.vendor,
                not_checked=True,
                error=evidence["stderr"] or "rocm-smi returned no data",
                remediation="Check that the amdgpu driver and ROCm are installed.",
                evidence=evidence,
            )
        return _record(
            self.vendor,
            model=model,
            temp=_to_float(temp),
            utilization=f"{util}%" if util else None,
            memory=f"{mem}%" if mem else None,
            power=f"{power} W" if power else None,
            evidence=evidence,
        )


class IntelProbe(GpuProbe):
    vendor = "Intel"
    drm_device = "/sys/class/drm/card0/device"

    def present(self) -> bool:
        try:
            with open(os.path.join(self.drm_device, "vendor"), "r", encoding="utf-8") as f:
                return f.read().strip().lower() == "0x8086"
        except OSError:
            return False

    def _temp(self) -> float | None:
        for path in sorted(glob.glob(os.path.join(self.drm_device, "hwmon", "hwmon*", "temp1_input"))):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return int(f.read().strip()) / 1000
            except (OSError, ValueError):
                continue
        return None

    def _model(self) -> str | None:
        rc, stdout, _ = run_cmd(["lspci"])
        if rc != 0:
            return None
        for line in stdout.splitlines():
            if re.search(r"VGA.*Intel", line, re.IGNORECASE):
                return line.split(": ", 1)[-1].strip()
        return None

    def _activity(self) -> list[str]:
        if not has_cmd("intel_gpu_top"):
            return []
        # rc is 124 (killed at the deadline) on success; only the output matters
        _, stdout, _ = run_cmd(["intel_gpu_top", "-J"], timeout_s=INTEL_SAMPLE_S)
        lines = [s.strip() for s in stdout.splitlines() if re.search(r"busy|engines", s)]
        return lines[:3]

    def collect(self) -> dict[str, Any]:
        return _record(
            self.vendor,
            model=self._model(),
            temp=self._temp(),
            activity=self._activity(),
            evidence={"drm_device": self.drm_device},
        )


PROBES: tuple[GpuProbe, ...] = (NvidiaProbe(), AmdProbe(), IntelProbe())


def get_gpu_info(probes: tuple[GpuProbe, ...] = PROBES) -> dict[str, Any]:
    for probe in probes:
        if probe.present():
            return probe.collect()
    return _record(
        None,
        not_checked=True,
        error="No supported GPU telemetry tool found",
        remediation=None,
    )
