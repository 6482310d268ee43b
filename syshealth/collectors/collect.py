"""
The collection pass: query every telemetry source once and normalise the
result into a Snapshot (flat metrics + per-section details for the report).
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from syshealth.collectors.linux.containers import get_containers
from syshealth.collectors.linux.gpu import get_gpu_info
from syshealth.collectors.linux.logs import get_error_logs, get_kernel_messages
from syshealth.collectors.linux.packages import (
    detect_package_manager,
    get_lock_status,
    get_pending_updates,
    missing_tools,
)
from syshealth.collectors.linux.sensors import get_cpu_temperatures
from syshealth.collectors.linux.storage import get_io_stats, get_nvme_health
from syshealth.core.models import Metric, Snapshot
from syshealth.shared.hardware import get_cpu_info, get_disk_usage, get_memory_info, max_disk_usage
from syshealth.shared.network import get_listening_ports, get_net_addr, sample_traffic
from syshealth.shared.system import get_system_info

logger = logging.getLogger(__name__)


def _safe(section: str, fn: Callable[[], Any]) -> Any:
    """
    Run one probe. An unexpected failure in a single source becomes a
    not_checked record for that section instead of ending the run.
    """
    try:
        return fn()
    except Exception as e:
        logger.warning("%s probe failed: %s: %s", section, type(e).__name__, e)
        return {"not_checked": True, "error": f"{section} data could not be read", "remediation": None, "evidence": {}}


def _metric(name: str, value: Any, detail: dict[str, Any] | None = None, unit: str = "") -> Metric:
    if value is None:
        reason = (detail or {}).get("error") or "no data"
        return Metric.unavailable(name, reason, unit)
    return Metric(name=name, value=value, unit=unit)


def collect_all(traffic_window_s: float | None = None) -> Snapshot:
    snap = Snapshot()
    d = snap.details

    d["system"] = _safe("system", get_system_info)

    cpu = d["cpu"] = _safe("cpu", get_cpu_info)
    snap.add(_metric("cpu_usage_pct", cpu.get("usage_pct"), cpu, "%"))

    temps = d["cpu_temps"] = _safe("cpu temperature", get_cpu_temperatures)
    snap.add(_metric("cpu_temp_max_c", temps.get("max"), temps, "°C"))

    mem = d["memory"] = _safe("memory", get_memory_info)
    snap.add(_metric("mem_used_pct", mem.get("used_pct"), mem, "%"))
    snap.add(_metric("swap_used_pct", mem.get("swap_used_pct"), mem, "%"))

    disks = _safe("disk", get_disk_usage)
    if isinstance(disks, dict):
        d["disks"] = {**disks, "rows": []}
        snap.add(_metric("disk_usage_max_pct", None, disks, "%"))
    else:
        d["disks"] = {"rows": disks, "not_checked": False, "error": None}
        snap.add(_metric("disk_usage_max_pct", max_disk_usage(disks), {"error": "no real filesystems mounted"}, "%"))

    gpu = d["gpu"] = _safe("gpu", get_gpu_info)
    snap.add(_metric("gpu_temp_c", gpu.get("temp"), gpu, "°C"))

    nvme = d["nvme"] = _safe("nvme", get_nvme_health)
    snap.add(_metric("nvme_health", nvme.get("health"), nvme))
    snap.add(_metric("nvme_temp_c", nvme.get("temp"), nvme, "°C"))
    d["io"] = _safe("iostat", get_io_stats)

    logs = d["logs"] = _safe("journal", get_error_logs)
    snap.add(_metric("error_log_count", logs.get("count"), logs))
    d["kernel"] = _safe("dmesg", get_kernel_messages)

    pm = detect_package_manager()
    lock = d["lock"] = _safe("package lock", lambda: get_lock_status(pm))
    snap.add(_metric("package_manager_locked", lock.get("locked"), lock))
    updates = d["updates"] = _safe("updates", lambda: get_pending_updates(pm))
    snap.add(_metric("pending_updates_count", updates.get("count"), updates))
    snap.add(_metric(
        "systemd_updates_pending",
        None if updates.get("not_checked") else updates.get("systemd", False),
        updates,
    ))
    snap.add(Metric("missing_tools", missing_tools()))

    containers = d["containers"] = _safe("containers", get_containers)
    snap.add(_metric("containers_running", containers.get("running"), containers))
    snap.add(_metric("containers_total", containers.get("total"), containers))

    d["network"] = {
        "interfaces": _safe("interfaces", get_net_addr),
        "traffic": _safe(
            "traffic",
            sample_traffic if traffic_window_s is None else (lambda: sample_traffic(traffic_window_s)),
        ),
        "sockets": _safe("sockets", get_listening_ports),
    }

    available = sum(1 for m in snap.metrics.values() if m.available)
    logger.debug("collected %d metrics (%d available)", len(snap.metrics), available)
    return snap
