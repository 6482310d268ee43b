import pytest

from syshealth.core.models import Metric, Snapshot


def not_checked(error, **fields):
    return {**fields, "not_checked": True, "error": error, "remediation": None, "evidence": {}}


def checked(**fields):
    return {**fields, "not_checked": False, "error": None, "remediation": None, "evidence": {}}


def build_snapshot(mem_used_pct=45, pending=3, locked=False, systemd=False, tools=None):
    """A plausible apt host without a GPU or NVMe drive."""
    snap = Snapshot()
    snap.add(Metric("cpu_usage_pct", 12.5, unit="%"))
    snap.add(Metric("cpu_temp_max_c", 48.0, unit="°C"))
    snap.add(Metric("mem_used_pct", mem_used_pct, unit="%"))
    snap.add(Metric("swap_used_pct", 0, unit="%"))
    snap.add(Metric("disk_usage_max_pct", 61, unit="%"))
    snap.add(Metric.unavailable("gpu_temp_c", "No supported GPU telemetry tool found", "°C"))
    snap.add(Metric.unavailable("nvme_health", "No NVMe device at /dev/nvme0n1"))
    snap.add(Metric.unavailable("nvme_temp_c", "No NVMe device at /dev/nvme0n1", "°C"))
    snap.add(Metric("error_log_count", 0))
    snap.add(Metric("package_manager_locked", locked))
    snap.add(Metric("pending_updates_count", pending))
    snap.add(Metric("systemd_updates_pending", systemd))
    snap.add(Metric("missing_tools", list(tools or [])))
    snap.add(Metric("containers_running", 1))
    snap.add(Metric("containers_total", 2))

    gib = 1024 ** 3
    snap.details.update({
        "system": {
            "hostname": "testbox", "os": "Ubuntu 22.04.4 LTS", "kernel": "6.5.0-41-generic",
            "machine": "x86_64", "uptime": "up 3 hours, 4 minutes", "generated_at": "Mon 01 Jan 2024 10:00:00",
        },
        "cpu": {"usage_pct": 12.5, "load_avg": (0.5, 0.4, 0.3), "physical_cores": 4, "total_cores": 8},
        "cpu_temps": checked(source="sensors", max=48.0, readings=[
            {"label": "Core 0", "temp": 48.0, "line": "Core 0:        +48.0°C"},
        ]),
        "memory": checked(
            total=16 * gib, used=7 * gib, free=2 * gib, shared=0, buff_cache=6 * gib, available=8 * gib,
            used_pct=mem_used_pct, swap_total=2 * gib, swap_used=0, swap_free=2 * gib, swap_used_pct=0,
        ),
        "disks": checked(rows=[
            {"device": "/dev/sda2", "mountpoint": "/", "fstype": "ext4", "total": 100 * gib,
             "used": 61 * gib, "free": 39 * gib, "use_pct": 61, "transient": False},
            {"device": "/dev/loop3", "mountpoint": "/snap/core/1", "fstype": "ext4", "total": gib,
             "used": gib, "free": 0, "use_pct": 100, "transient": True},
        ]),
        "gpu": not_checked("No supported GPU telemetry tool found", vendor=None),
        "nvme": not_checked("No NVMe device at /dev/nvme0n1", device="/dev/nvme0n1", health=None, temp=None),
        "io": not_checked("iostat not found", lines=[]),
        "logs": checked(count=0, recent=[]),
        "kernel": not_checked("Unable to read kernel messages", lines=[]),
        "lock": checked(locked=locked, running=[], held=[]),
        "updates": checked(manager="apt", packages=[], count=pending, systemd=systemd),
        "containers": checked(running=1, total=2, runtimes=[
            checked(runtime="docker", running=1, total=2, containers=["web: Up 2 hours (Image: nginx)"]),
            not_checked("podman not installed or not in PATH", runtime="podman", running=None, total=None,
                        containers=[]),
        ]),
        "network": {
            "interfaces": [{"name": "eth0", "isup": True, "speed_mbps": 1000, "addresses": ["192.168.1.10"]}],
            "traffic": [{"name": "eth0", "rx_kbps": 1.5, "tx_kbps": 0.25}],
            "sockets": checked(connections=12, listening=["tcp 0.0.0.0:22"]),
        },
    })
    return snap


@pytest.fixture
def snapshot():
    return build_snapshot()


@pytest.fixture
def make_snapshot():
    return build_snapshot
