"""
    Installer: puts the monitoring tools the report relies on in place and,
    optionally, adds shell aliases for the invoking user.
"""
import argparse
import logging
import os
import pwd
import sys
from pathlib import Path

from rich.console import Console

from syshealth.collectors.linux.packages import MONITORING_TOOLS, detect_package_manager, missing_tools
from syshealth.helpers.unix import has_cmd, is_root, privileged, run_live
from syshealth.logging_config import setup_logging

logger = logging.getLogger(__name__)

ALIAS_MARKER = "alias health="
ALIAS_BLOCK = (
    "\n# System Health Monitor aliases\n"
    "alias health='sudo system-health'\n"
    "alias health-fix='sudo system-health --fix'\n"
)


def install_tools(console, runner=run_live):
    """
    Install the packages for any missing monitoring tool, then verify each.
    Returns True when every tool is present afterwards.
    """
    console.print("\n[cyan]Installing dependencies...[/cyan]")
    for tool in MONITORING_TOOLS:
        if has_cmd(tool):
            console.print(f"[green]✓[/green] {tool} is already installed")

    missing = missing_tools()
    if not missing:
        console.print("[green]✓[/green] All dependencies are already installed")
        return True

    pm = detect_package_manager()
    if pm is None:
        console.print("[yellow]Unknown package manager. Please install these tools manually:[/yellow]")
        for tool in missing:
            console.print(f"- {tool}")
        return False

    console.print(f"Using package manager: [bold]{pm.name}[/bold]")
    packages = [pm.tool_packages[t] for t in missing]
    console.print(f"[blue]Installing missing packages:[/blue] {' '.join(packages)}")
    rc = runner(privileged(pm.install_cmd(packages)), pm.env or None)
    if rc != 0:
        logger.warning("install exited with %s", rc)

    console.print("[blue]Verifying installation...[/blue]")
    ok = True
    for tool in missing:
        if has_cmd(tool):
            console.print(f"[green]✓[/green] {pm.tool_packages[tool]} installed successfully")
        else:
            console.print(f"[red]✗[/red] Failed to install {pm.tool_packages[tool]}")
            ok = False

    if not ok:
        console.print("[yellow]Warning: Some dependencies could not be installed.[/yellow]")
        console.print("[yellow]The health check will still work but with limited functionality.[/yellow]")
    return ok


def target_home():
    """Home of the user who ran sudo, or of the current user."""
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir), sudo_user
        except KeyError:
            logger.warning("SUDO_USER %s has no passwd entry", sudo_user)
    return Path.home(), None


def add_aliases(console, home=None, owner=None):
    """
    Append health / health-fix aliases to ~/.zshrc once.
    Returns True if the file was changed.
    """
    if home is None:
        home, owner = target_home()
    zshrc = Path(home) / ".zshrc"

    console.print(f"\n[cyan]Checking for {zshrc}...[/cyan]")
    if not zshrc.is_file():
        console.print(f"[blue]{zshrc} not found. Skipping aliases setup.[/blue]")
        return False

    if ALIAS_MARKER in zshrc.read_text(encoding="utf-8", errors="replace"):
        console.print(f"[yellow]Aliases already exist in {zshrc}[/yellow]")
        return False

    with zshrc.open("a", encoding="utf-8") as f:
        f.write(ALIAS_BLOCK)

    # written as root on behalf of the sudo user: hand the file back
    if owner and is_root():
        entry = pwd.getpwnam(owner)
        os.chown(zshrc, entry.pw_uid, entry.pw_gid)

    console.print(f"[green]✓[/green] Aliases added to {zshrc}")
    console.print("You can now use: [bold]health[/bold] or [bold]health-fix[/bold]")
    console.print(f"[yellow]Remember to run: source {zshrc}[/yellow]")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="system-health-install",
        description="Install the monitoring tools used by system-health.",
    )
    parser.add_argument("--aliases", action="store_true", help="add health/health-fix aliases to ~/.zshrc")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    console = Console()
    if not is_root() and not has_cmd("sudo"):
        console.print("[yellow]This installer needs root privileges to install packages.[/yellow]")
        console.print("Please run: [bold]sudo system-health-install[/bold]")
        return 1

    console.print("[bold blue]SYSTEM HEALTH MONITOR - INSTALLER[/bold blue]")
    ok = install_tools(console)
    if args.aliases:
        add_aliases(console)

    console.print("\n[bold green]Installation complete![/bold green]")
    console.print("Usage:")
    console.print("  [bold]sudo system-health[/bold]       - Run health check")
    console.print("  [bold]sudo system-health --fix[/bold] - Run health check & fix issues")
    console.print("  [bold]system-health --help[/bold]     - Show help information")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
