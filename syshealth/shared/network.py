"""
    Network details for the report: interfaces, a short traffic sample and
    externally reachable listeners.
"""
import socket
import time
from typing import Any

import psutil

# Traffic is measured over this fixed window, then the sample is used as-is.
TRAFFIC_WINDOW_S = 1.0
LOOPBACK_PREFIXES = ("lo",)
IP_FAMILIES = (socket.AF_INET, socket.AF_INET6)
LOCAL_ONLY = ("127.0.0.1", "::1")


def _endpoint(laddr: Any) -> tuple[str | None, int | None]:
    # unbound sockets report an empty tuple
    return (laddr.ip, laddr.port) if laddr else (None, None)


def _is_loopback(iface_name: str) -> bool:
    return iface_name.startswith(LOOPBACK_PREFIXES)


def get_net_addr() -> list[dict[str, Any]]:
    """
    Non-loopback interfaces, `ip -br addr` style:

      {"name": "eth0", "isup": True, "speed_mbps": 1000, "addresses": ["192.168.1.10", "fe80::1"]}
    """
    stats_by_name = psutil.net_if_stats()
    interfaces = []
    for name, addrs in sorted(psutil.net_if_addrs().items()):
        if _is_loopback(name):
            continue
        # virtual interfaces sometimes have no stats entry
        stats = stats_by_name.get(name)
        interfaces.append({
            "name": name,
            "isup": stats.isup if stats else None,
            "speed_mbps": stats.speed if stats else None,
            "addresses": [a.address for a in addrs if a.family in IP_FAMILIES],
        })
    return interfaces


def sample_traffic(window_s: float = TRAFFIC_WINDOW_S) -> list[dict[str, Any]]:
    """
    Per-interface receive/transmit rate in KB/s over one fixed window.
    """
    before = psutil.net_io_counters(pernic=True)
    time.sleep(window_s)
    after = psutil.net_io_counters(pernic=True)

    rates: list[dict[str, Any]] = []
    for name in sorted(after):
        if _is_loopback(name) or name not in before:
            continue
        rx = (after[name].bytes_recv - before[name].bytes_recv) / 1024 / window_s
        tx = (after[name].bytes_sent - before[name].bytes_sent) / 1024 / window_s
        rates.append({"name": name, "rx_kbps": round(rx, 2), "tx_kbps": round(tx, 2)})
    return rates


def _listener(conn: Any) -> str | None:
    """A TCP listener or bound UDP socket as "tcp 0.0.0.0:22"; None for anything else."""
    ip, port = _endpoint(conn.laddr)
    if port is None or ip in LOCAL_ONLY:
        return None
    if conn.type == socket.SOCK_STREAM and conn.status == psutil.CONN_LISTEN:
        proto = "tcp"
    elif conn.type == socket.SOCK_DGRAM:
        proto = "udp"
    else:
        return None
    host = f"[{ip}]" if ":" in ip else ip
    return f"{proto} {host}:{port}"


def get_listening_ports(limit: int = 5) -> dict[str, Any]:
    """
    Total inet connections plus the first `limit` listeners reachable from
    other hosts. Enumerating other users' sockets needs root on some systems;
    that case comes back as not_checked.
    """
    try:
        conns = psutil.net_connections(kind="inet")
    except (psutil.AccessDenied, PermissionError):
        return {
            "connections": None,
            "listening": [],
            "not_checked": True,
            "error": "Permission denied while listing network sockets",
            "remediation": "Run with sudo to see system-wide connections.",
        }

    listening = {entry for entry in map(_listener, conns) if entry}
    return {
        "connections": len(conns),
        "listening": sorted(listening)[:limit],
        "not_checked": False,
        "error": None,
        "remediation": None,
    }
