"""
    Report formatting functions (rich console output).

    Everything here is presentation only: severities arrive already decided
    in the HealthReport, and are mapped to symbols and colours.
"""
from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from syshealth.core.evaluate import classify
from syshealth.core.models import ActionResult, Finding, HealthReport, RemediationAction, ThresholdRule
from syshealth.shared.hardware import human_bytes

SYMBOLS: dict[str, tuple[str, str]] = {
    "OK": ("✓", "green"),
    "WARNING": ("⚠", "yellow"),
    "CRITICAL": ("✗", "red"),
    "INFO": ("ℹ", "blue"),
}
OVERALL_STYLE = {"HEALTHY": "green", "WARNING": "yellow", "CRITICAL": "red"}
# per-reading labels for temperature lines
TEMP_WORDS = {"OK": "OK", "WARNING": "WARM", "CRITICAL": "HOT"}
USAGE_WORDS = {"OK": "OK", "WARNING": "WARNING", "CRITICAL": "CRITICAL"}


def symbol(severity: str) -> str:
    char, colour = SYMBOLS[severity]
    return f"[{colour}]{char}[/{colour}]"


def tag(severity: str, words: dict[str, str] = USAGE_WORDS) -> str:
    _, colour = SYMBOLS[severity]
    return f"[{colour}]({words[severity]})[/{colour}]"


def heading(console: Console, title: str) -> None:
    console.print(f"[bold underline]{title}[/bold underline]")


def sub(console: Console, title: str) -> None:
    console.print(f"[cyan]{title}:[/cyan]")


def _not_checked(console: Console, detail: dict[str, Any], indent: str = "  ") -> bool:
    """Print the plain-language reason for a section that has no data."""
    if detail and not detail.get("not_checked"):
        return False
    message = detail.get("error") or "Not available"
    if detail.get("remediation"):
        message += f". {detail['remediation']}"
    console.print(f"{indent}[yellow]{escape(message)}[/yellow]")
    return True


def print_header(console: Console, system: dict[str, Any], fix_mode: bool) -> None:
    console.print(Panel("[bold]SYSTEM HEALTH CHECK REPORT[/bold]", style="bold blue", expand=False, padding=(0, 12)))
    console.print(f"[cyan]Report generated at:[/cyan] {system.get('generated_at', 'N/A')}")
    console.print(
        f"[cyan]Hostname:[/cyan] {escape(str(system.get('hostname', 'N/A')))} "
        f"[cyan]| OS:[/cyan] {escape(str(system.get('os', 'N/A')))} "
        f"[cyan]| Kernel:[/cyan] {system.get('kernel', 'N/A')} "
        f"[cyan]| Uptime:[/cyan] {system.get('uptime', 'N/A')}"
    )
    if fix_mode:
        console.print("[cyan]Mode:[/cyan] [green]Check and Fix[/green]")
    else:
        console.print("[cyan]Mode:[/cyan] [blue]Check Only[/blue] (use --fix to automatically fix issues)")
    console.print()


def _cell(report: HealthReport, by_metric: dict[str, Finding], label: str, metric: str) -> str:
    m = report.snapshot.get(metric)
    f = by_metric.get(metric)
    sev = f.severity if f else "INFO"
    return f"[bold]{label}:[/bold] {escape(m.display())} {symbol(sev)}"


def print_dashboard(console: Console, report: HealthReport) -> None:
    heading(console, "SYSTEM DASHBOARD")
    by_metric = {f.metric: f for f in report.findings}
    cells = [
        ("CPU Usage", "cpu_usage_pct"), ("Memory", "mem_used_pct"),
        ("CPU Temp", "cpu_temp_max_c"), ("GPU Temp", "gpu_temp_c"),
        ("Disk Usage", "disk_usage_max_pct"), ("Updates", "pending_updates_count"),
        ("Containers", "containers_running"), ("Errors", "error_log_count"),
    ]
    table = Table(show_header=False, show_lines=True)
    table.add_column()
    table.add_column()
    for i in range(0, len(cells), 2):
        table.add_row(*(_cell(report, by_metric, label, metric) for label, metric in cells[i:i + 2]))
    console.print(table)

    systemd = report.snapshot.get("systemd_updates_pending")
    if systemd.available and systemd.value:
        console.print("[yellow]Note: System has pending systemd updates which require a reboot[/yellow]")
        console.print("[yellow]After updates: sudo reboot[/yellow]")
    console.print()


def print_cpu(console: Console, details: dict[str, Any], rules: dict[str, ThresholdRule]) -> None:
    heading(console, "CPU INFORMATION")
    cpu = details.get("cpu", {})
    load = cpu.get("load_avg")
    console.print(f"[cyan]Load Averages:[/cyan] {', '.join(str(x) for x in load) if load else 'N/A'}")
    if cpu.get("total_cores"):
        console.print(f"[cyan]Cores:[/cyan] {cpu.get('physical_cores')} physical / {cpu['total_cores']} logical")

    temps = details.get("cpu_temps", {})
    sub(console, "CPU Temperatures")
    if not _not_checked(console, temps):
        rule = rules["cpu_temp_max_c"]
        for r in temps.get("readings", []):
            console.print(f"  {escape(r['line'])} {tag(classify(r['temp'], rule), TEMP_WORDS)}")
    console.print()


def print_memory(console: Console, details: dict[str, Any], report: HealthReport) -> None:
    heading(console, "MEMORY INFORMATION")
    mem = details.get("memory", {})
    if _not_checked(console, mem):
        console.print()
        return

    by_metric = {f.metric: f for f in report.findings}
    table = Table(box=None, padding=(0, 2))
    for col in ("", "total", "used", "free", "buff/cache", "available"):
        table.add_column(col, justify="right" if col else "left")
    table.add_row(
        "Mem:", *(human_bytes(mem[k]) for k in ("total", "used", "free", "buff_cache", "available")),
    )
    table.add_row(
        "Swap:", human_bytes(mem["swap_total"]), human_bytes(mem["swap_used"]), human_bytes(mem["swap_free"]), "", "",
    )
    console.print(table)

    mem_sev = by_metric["mem_used_pct"].severity if "mem_used_pct" in by_metric else "INFO"
    swap_sev = by_metric["swap_used_pct"].severity if "swap_used_pct" in by_metric else "INFO"
    console.print(f"  Memory Usage: {mem['used_pct']}% {tag(mem_sev) if mem_sev != 'INFO' else ''}")
    console.print(f"  Swap Usage: {mem['swap_used_pct']}% {tag(swap_sev) if swap_sev != 'INFO' else ''}")
    console.print()


def print_disks(console: Console, details: dict[str, Any], rules: dict[str, ThresholdRule]) -> None:
    heading(console, "DISK INFORMATION")
    sub(console, "Disk Usage")
    disks = details.get("disks", {})
    if not _not_checked(console, disks):
        rule = rules["disk_usage_max_pct"]
        table = Table(box=None, padding=(0, 2))
        for col in ("Filesystem", "Size", "Used", "Avail", "Use%", "Mounted on", ""):
            table.add_column(col)
        for row in disks.get("rows", []):
            if row["transient"]:
                status = "[blue](TEMP)[/blue]"
            else:
                status = tag(classify(row["use_pct"], rule))
            table.add_row(
                escape(row["device"]), human_bytes(row["total"]), human_bytes(row["used"]),
                human_bytes(row["free"]), f"{row['use_pct']}%", escape(row["mountpoint"]), status,
            )
        console.print(table)

    nvme = details.get("nvme", {})
    if nvme.get("device") and not str(nvme.get("error", "")).startswith("No NVMe device"):
        sub(console, "NVMe Disk Health")
        if not _not_checked(console, nvme):
            health = nvme["health"]
            if str(health).upper() == "PASSED":
                console.print(f"  SMART overall-health: {escape(health)} [green](HEALTHY)[/green]")
            else:
                console.print(f"  SMART overall-health: {escape(str(health))} [red](FAILING)[/red]")
                if nvme.get("error_details"):
                    console.print("  [yellow]SMART Error Details:[/yellow]")
                    for line in nvme["error_details"]:
                        console.print(f"    {escape(line)}")
        if nvme.get("temp") is not None:
            sev = classify(nvme["temp"], rules["nvme_temp_c"])
            console.print(f"  Temperature: {nvme['temp']:.0f}°C {tag(sev, TEMP_WORDS)}")

    io = details.get("io", {})
    sub(console, "Disk I/O Statistics")
    if not _not_checked(console, io):
        for line in io.get("lines", []):
            console.print(f"  {escape(line)}", highlight=False)
    console.print()


def print_gpu(console: Console, details: dict[str, Any], rules: dict[str, ThresholdRule]) -> None:
    gpu = details.get("gpu", {})
    if not gpu.get("vendor"):
        return
    heading(console, "GPU INFORMATION")
    sub(console, f"{gpu['vendor']} GPU Status")
    if _not_checked(console, gpu):
        console.print()
        return

    if gpu.get("model"):
        console.print(f"  [bold]Model:[/bold] {escape(gpu['model'])}")
    if gpu.get("temp") is not None:
        sev = classify(gpu["temp"], rules["gpu_temp_c"])
        console.print(f"  [bold]Temperature:[/bold] {gpu['temp']:.0f}°C {tag(sev, TEMP_WORDS)}")
    for label, key in (("GPU Utilization", "utilization"), ("Memory Used", "memory"), ("Power Draw", "power")):
        if gpu.get(key):
            console.print(f"  [bold]{label}:[/bold] {escape(gpu[key])}")
    if gpu.get("activity"):
        console.print("  [bold]GPU Activity:[/bold]")
        for line in gpu["activity"]:
            console.print(f"    {escape(line)}")
    if gpu["vendor"] == "NVIDIA":
        sub(console, "GPU Processes")
        for line in gpu.get("processes") or ["No GPU processes running"]:
            console.print(f"  {escape(line)}")
    console.print()


def print_containers(console: Console, details: dict[str, Any]) -> None:
    heading(console, "CONTAINER INFORMATION")
    for rt in details.get("containers", {}).get("runtimes", []):
        name = rt["runtime"].capitalize()
        if rt["not_checked"]:
            console.print(f"  {escape(rt['error'])}")
            continue
        sub(console, f"{name} Containers")
        console.print(f"  Running: {rt['running']} | Total: {rt['total']}")
        if rt["containers"]:
            sub(console, "Running Containers")
            for line in rt["containers"]:
                console.print(f"  {escape(line)}")
    console.print()


def print_network(console: Console, details: dict[str, Any]) -> None:
    heading(console, "NETWORK INFORMATION")
    net = details.get("network", {})

    sub(console, "Network Interfaces")
    interfaces = net.get("interfaces", [])
    if isinstance(interfaces, dict):
        _not_checked(console, interfaces)
    else:
        for iface in interfaces:
            state = "UP" if iface["isup"] else "DOWN" if iface["isup"] is False else "UNKNOWN"
            console.print(f"  {iface['name']:<16} {state:<8} {' '.join(iface['addresses'])}", highlight=False)

    traffic = net.get("traffic", [])
    if isinstance(traffic, list) and traffic:
        sub(console, "Network Traffic (KB/s)")
        for t in traffic:
            console.print(f"  {t['name']:<16} in {t['rx_kbps']:>10.2f}  out {t['tx_kbps']:>10.2f}", highlight=False)

    sockets = net.get("sockets", {})
    if not _not_checked(console, sockets):
        sub(console, "Active Network Connections")
        console.print(f"  Total Connections: {sockets['connections']}")
        sub(console, "Listening Ports")
        for entry in sockets.get("listening", []):
            console.print(f"  {entry}", highlight=False)
    console.print()


def print_logs(console: Console, details: dict[str, Any]) -> None:
    heading(console, "SYSTEM LOGS")
    logs = details.get("logs", {})
    sub(console, "Recent Error Logs (last 5)")
    if not _not_checked(console, logs):
        if logs.get("recent"):
            for line in logs["recent"]:
                console.print(f"  {escape(line)}", highlight=False)
        else:
            console.print("  [green]No significant errors found[/green]")

    kernel = details.get("kernel", {})
    sub(console, "Recent Kernel Messages")
    if not _not_checked(console, kernel):
        for line in kernel.get("lines", []):
            console.print(f"  {escape(line)}", highlight=False)
    console.print()


def print_summary(console: Console, report: HealthReport) -> None:
    console.print(Panel("[bold]SYSTEM HEALTH SUMMARY[/bold]", style="bold blue", expand=False, padding=(0, 12)))
    console.print("[bold]System Status Checks:[/bold]")
    for f in report.findings:
        if f.metric.startswith("containers_"):
            continue
        console.print(f"  {symbol(f.severity)} {escape(f.message)}")

    style = OVERALL_STYLE[report.overall]
    console.print()
    console.print(f"[bold]Overall System Health: [{style}]{report.overall}[/{style}][/bold]")
    console.print(f"Issues found: {len(report.issues)}")


def print_recommendations(console: Console, plan: list[RemediationAction]) -> None:
    if not plan:
        return
    console.print()
    sub(console, "Recommendations")
    for action in plan:
        console.print(f"  - {action.title}")
        for line in action.manual:
            console.print(f"      {escape(line)}", highlight=False)
    console.print("  - Run with --fix to apply these automatically: [cyan]sudo system-health --fix[/cyan]")


def print_fix_results(console: Console, results: list[ActionResult]) -> None:
    for r in results:
        if r.skipped:
            sev = "WARNING"
        elif r.ok:
            sev = "OK"
        else:
            sev = "CRITICAL"
        console.print(f"  {symbol(sev)} {r.action.title}")
        for cmd, rc in r.steps:
            if rc != 0:
                console.print(f"      [red]failed (exit {rc}):[/red] {escape(cmd)}", highlight=False)
        for note in r.notes:
            console.print(f"      [yellow]{escape(note)}[/yellow]")


def render_report(console: Console, report: HealthReport, rules: dict[str, ThresholdRule], fix_mode: bool) -> None:
    details = report.snapshot.details
    print_header(console, details.get("system", {}), fix_mode)
    print_dashboard(console, report)
    print_cpu(console, details, rules)
    print_memory(console, details, report)
    print_disks(console, details, rules)
    print_gpu(console, details, rules)
    print_containers(console, details)
    print_network(console, details)
    print_logs(console, details)
    console.print("========== Health Check Complete ==========")
    console.print()
    print_summary(console, report)
