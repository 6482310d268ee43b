import math

import psutil

from syshealth.core.errors import BaselineUnavailableError

# Filesystems that are not real storage, and mount paths that are transient.
VIRTUAL_FSTYPES = frozenset({
    "tmpfs", "devtmpfs", "squashfs", "fuse.cursor", "overlay", "proc", "sysfs",
    "cgroup", "cgroup2", "devpts", "ramfs", "efivarfs", "autofs", "nsfs", "tracefs",
})


def check_baseline() -> None:
    """
    Every threshold comparison starts from psutil counters. If psutil cannot
    read memory and CPU times (no procfs, unsupported platform), no check is
    meaningful, so fail before collecting anything.
    """
    try:
        psutil.virtual_memory()
        psutil.cpu_times()
    except (OSError, RuntimeError, NotImplementedError, AttributeError) as e:
        raise BaselineUnavailableError(
            f"psutil cannot read system counters ({type(e).__name__}: {e}); is /proc mounted?"
        ) from e


def get_cpu_info(sample_s: float = 0.5):
    """
        CPU usage (user + system %), load averages and core counts.
        Usage comes from one sampled window, like the first summary line of `top`.
    """
    times = psutil.cpu_times_percent(interval=sample_s)
    try:
        load = psutil.getloadavg()
    except (OSError, AttributeError):
        load = None
    freq = psutil.cpu_freq()
    cpu_info = {
        "usage_pct": round(times.user + times.system, 1),
        "load_avg": None if load is None else tuple(round(x, 2) for x in load),
        "physical_cores": psutil.cpu_count(logical=False),
        "total_cores": psutil.cpu_count(logical=True),
        "current_frequency": None if freq is None else freq.current,
        "max_frequency": None if freq is None else freq.max,
    }
    return cpu_info


def _pct(used, total):
    return int(used / total * 100) if total else 0


def get_memory_info():
    """Memory and swap, in bytes, plus integer used-percentages."""
    vm = psutil.virtual_memory()
    sw = psutil.swap_memory()
    return {
        "total": vm.total,
        "used": vm.used,
        "free": vm.free,
        "shared": getattr(vm, "shared", 0),
        "buff_cache": getattr(vm, "buffers", 0) + getattr(vm, "cached", 0),
        "available": vm.available,
        "used_pct": _pct(vm.used, vm.total),
        "swap_total": sw.total,
        "swap_used": sw.used,
        "swap_free": sw.free,
        "swap_used_pct": _pct(sw.used, sw.total),
    }


def is_transient_mount(mountpoint: str) -> bool:
    # /tmp/ scratch mounts, snap squashfs images, AppImage .mount_XXXX dirs
    return mountpoint.startswith("/tmp/") or "/snap/" in mountpoint or ".mount_" in mountpoint


def get_disk_usage():
    """
        One row per real mounted filesystem, df-style.

        use_pct matches df's Use% column: ceil(used / (used + available) * 100),
        which ignores blocks reserved for root.
    """
    rows = []
    seen = set()
    for part in psutil.disk_partitions(all=False):
        if part.fstype in VIRTUAL_FSTYPES or part.mountpoint in seen:
            continue
        seen.add(part.mountpoint)
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):
            continue
        denom = usage.used + usage.free
        rows.append({
            "device": part.device,
            "mountpoint": part.mountpoint,
            "fstype": part.fstype,
            "total": usage.total,
            "used": usage.used,
            "free": usage.free,
            "use_pct": math.ceil(usage.used * 100 / denom) if denom else 0,
            "transient": is_transient_mount(part.mountpoint),
        })
    return rows


def max_disk_usage(rows):
    """Highest Use% across non-transient mounts, or None when there are none."""
    values = [r["use_pct"] for r in rows if not r["transient"]]
    return max(values) if values else None


def human_bytes(n):
    """1536 -> "1.5K" (free -h style)."""
    for unit in ("B", "K", "M", "G", "T"):
        if abs(n) < 1024 or unit == "T":
            break
        n /= 1024
    return f"{n}B" if unit == "B" else f"{n:.1f}{unit}"
