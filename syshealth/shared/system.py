"""
    Shared utility functions for host identity (report header).
"""
import platform
import time
from datetime import datetime

import psutil


def format_uptime(seconds):
    """Seconds -> "up 2 days, 3 hours, 4 minutes" (uptime -p style)."""
    minutes = int(seconds // 60)
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    return "up " + (", ".join(parts) if parts else "0 minutes")


def get_os_name():
    """PRETTY_NAME from os-release, falling back to the kernel name."""
    try:
        return platform.freedesktop_os_release().get("PRETTY_NAME", platform.system())
    except OSError:
        return platform.system()


def get_system_info():
    """Retrieve the host facts printed in the report header."""
    system_info = {
        "hostname": platform.node(),
        "os": get_os_name(),
        "kernel": platform.release(),
        "machine": platform.machine(),
        "uptime": format_uptime(time.time() - psutil.boot_time()),
        "generated_at": datetime.now().strftime("%a %d %b %Y %H:%M:%S"),
    }
    return system_info


def is_linux():
    return platform.system() == "Linux"
