"""
    Main entry point for the System Health Monitor.
"""
import argparse
import logging
import sys

from rich.console import Console
from rich.markup import escape

from syshealth import __version__
from syshealth.collectors.collect import collect_all
from syshealth.collectors.linux.packages import manager_by_name
from syshealth.core.errors import SysHealthError
from syshealth.core.evaluate import evaluate
from syshealth.core.remediation import Remediator, build_plan
from syshealth.core.thresholds import load_thresholds
from syshealth.logging_config import setup_logging
from syshealth.reports.formatter import (
    OVERALL_STYLE,
    print_fix_results,
    print_recommendations,
    render_report,
    symbol,
)
from syshealth.shared.hardware import check_baseline
from syshealth.shared.system import is_linux

logger = logging.getLogger(__name__)

EPILOG = """\
Features:
  - CPU/GPU temperature monitoring
  - Memory and disk usage analysis
  - NVMe drive health check (if available)
  - Package manager status and updates
  - Docker/Podman container status
  - Network information
  - System error log analysis

Automatic fixes (with --fix):
  - Clear package manager locks (only when no package manager is running)
  - Update system packages, escalating for held-back packages
  - Install missing monitoring tools

The system is never rebooted automatically; a notice is printed instead.
Some checks and all fixes need root privileges. Run with sudo if needed.
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="system-health",
        description="Check system health and optionally fix common issues.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--fix", action="store_true", help="run the health check and fix issues")
    parser.add_argument("--config", metavar="PATH", help="YAML file overriding warning/critical thresholds")
    parser.add_argument("--no-color", action="store_true", help="disable coloured output")
    parser.add_argument("--log-file", metavar="PATH", help="also write diagnostic logging to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run(args, console=None, collector=collect_all, remediator_factory=Remediator):
    """One full pass. Returns the process exit code."""
    console = console or Console(no_color=args.no_color, highlight=False)

    try:
        rules = load_thresholds(args.config)
        check_baseline()
    except SysHealthError as e:
        console.print(f"[bold red]✗ {escape(str(e))}[/bold red]")
        return 1

    if not is_linux():
        logger.warning("this tool targets Linux; most checks will report N/A")

    with console.status("Collecting system telemetry..."):
        snapshot = collector()
    report = evaluate(snapshot, rules)
    render_report(console, report, rules, fix_mode=args.fix)

    pm = manager_by_name(snapshot.details.get("updates", {}).get("manager"))
    tools = snapshot.get("missing_tools").value or []
    plan = build_plan(report.findings, pm, tools)
    logger.debug("remediation plan: %s", [a.id for a in plan])

    if args.fix and report.issues:
        console.print()
        console.print("[bold green]Attempting to fix issues:[/bold green]")
        systemd = snapshot.get("systemd_updates_pending")
        remediator = remediator_factory(
            pm,
            on_step=lambda msg: console.print(f"  {symbol('INFO')} {msg}..."),
            systemd_updates=bool(systemd.available and systemd.value),
            tools=tools,
        )
        results = remediator.execute(plan)
        print_fix_results(console, results)
        console.print()
        console.print("[bold green]Fix operations completed.[/bold green]")
        console.print("[cyan]Run the script again to verify system health.[/cyan]")
    elif args.fix:
        console.print()
        console.print("[green]No issues to fix.[/green]")
    elif report.issues:
        print_recommendations(console, plan)

    style = OVERALL_STYLE[report.overall]
    console.print()
    console.print(
        f"[bold]Health check finished:[/bold] [{style}]{report.overall}[/{style}] "
        f"({len(report.issues)} issue(s), {len(report.unavailable)} check(s) unavailable)"
    )
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
