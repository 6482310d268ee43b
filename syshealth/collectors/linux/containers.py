from __future__ import annotations

from typing import Any

from syshealth.helpers.unix import get_evidence, has_cmd, run_cmd

RUNTIMES = ("docker", "podman")


def _count_ids(stdout: str) -> int:
    return len([s for s in stdout.splitlines() if s.strip()])


def get_runtime_containers(runtime: str) -> dict[str, Any]:
    """
    Running/total container counts for one runtime CLI.

    A daemon that is down (docker installed, dockerd stopped) is reported as
    not_checked rather than as zero containers.
    """
    if not has_cmd(runtime):
        return {
            "runtime": runtime,
            "running": None,
            "total": None,
            "containers": [],
            "not_checked": True,
            "error": f"{runtime} not installed or not in PATH",
            "remediation": None,
            "evidence": {},
        }

    cmd_run = [runtime, "ps", "-q"]
    rc1, out1, err1 = run_cmd(cmd_run)
    cmd_all = [runtime, "ps", "-aq"]
    rc2, out2, err2 = run_cmd(cmd_all)
    evidence = {"running": get_evidence(cmd_run, rc1, out1, err1), "all": get_evidence(cmd_all, rc2, out2, err2)}

    if rc1 != 0 or rc2 != 0:
        return {
            "runtime": runtime,
            "running": None,
            "total": None,
            "containers": [],
            "not_checked": True,
            "error": f"Unable to query {runtime}",
            "remediation": f"Check the {runtime} service is running and you may access it (or use sudo).",
            "evidence": evidence,
        }

    running = _count_ids(out1)
    containers: list[str] = []
    if running:
        rc3, out3, _ = run_cmd([runtime, "ps", "--format", "{{.Names}}: {{.Status}} (Image: {{.Image}})"])
        if rc3 == 0:
            containers = [s.strip() for s in out3.splitlines() if s.strip()]

    return {
        "runtime": runtime,
        "running": running,
        "total": _count_ids(out2),
        "containers": containers,
        "not_checked": False,
        "error": None,
        "remediation": None,
        "evidence": evidence,
    }


def get_containers() -> dict[str, Any]:
    """Per-runtime results plus summed counts over the runtimes that answered."""
    runtimes = [get_runtime_containers(r) for r in RUNTIMES]
    answered = [r for r in runtimes if not r["not_checked"]]
    return {
        "runtimes": runtimes,
        "running": sum(r["running"] for r in answered) if answered else None,
        "total": sum(r["total"] for r in answered) if answered else None,
        "not_checked": not answered,
        "error": None if answered else "No container runtime available",
        "remediation": None,
        "evidence": {},
    }
