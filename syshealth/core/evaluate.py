"""
Classification of collected metrics into findings.

This is the only place severity is decided. Everything here is a pure
function of (Snapshot, threshold table) so it can be tested without any
real tool installed.
"""
from __future__ import annotations

from syshealth.core.models import (
    Finding,
    HealthReport,
    Metric,
    Severity,
    Snapshot,
    ThresholdRule,
)
from syshealth.core.thresholds import default_thresholds

# Order findings are produced (and printed) in.
CHECK_ORDER: tuple[str, ...] = (
    "cpu_usage_pct",
    "cpu_temp_max_c",
    "mem_used_pct",
    "swap_used_pct",
    "disk_usage_max_pct",
    "gpu_temp_c",
    "nvme_health",
    "nvme_temp_c",
    "error_log_count",
    "package_manager_locked",
    "pending_updates_count",
    "systemd_updates_pending",
    "missing_tools",
    "containers_running",
    "containers_total",
)

# metric -> remediation action id, used only when the finding is an issue
# (missing_tools is the exception: it is informational but still fixable).
REMEDIATIONS: dict[str, str] = {
    "package_manager_locked": "clear_locks",
    "pending_updates_count": "upgrade_packages",
    "missing_tools": "install_tools",
}

LABELS: dict[str, str] = {
    "nvme_health": "NVMe SMART health",
    "package_manager_locked": "Package manager lock",
    "systemd_updates_pending": "systemd updates",
    "missing_tools": "Monitoring tools",
    "containers_running": "Running containers",
    "containers_total": "Total containers",
}


def classify(value: float, rule: ThresholdRule) -> Severity:
    """CRITICAL if value > critical, WARNING if value > warning, else OK."""
    if value > rule.critical:
        return "CRITICAL"
    if value > rule.warning:
        return "WARNING"
    return "OK"


def _label(name: str, rules: dict[str, ThresholdRule]) -> str:
    if name in rules:
        return rules[name].label
    return LABELS.get(name, name)


def evaluate_metric(metric: Metric, rules: dict[str, ThresholdRule]) -> Finding:
    name = metric.name
    label = _label(name, rules)

    if not metric.available:
        reason = f" ({metric.reason})" if metric.reason else ""
        return Finding(name, "INFO", f"{label} data not available{reason}")

    value = metric.value

    if name in rules:
        rule = rules[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return Finding(name, "INFO", f"{label} could not be parsed ({value!r})")
        severity = classify(value, rule)
        shown = metric.display()
        if severity == "OK":
            return Finding(name, "OK", f"{label} normal at {shown}")
        return Finding(name, severity, f"{label} is high at {shown}", REMEDIATIONS.get(name))

    if name == "package_manager_locked":
        if value:
            return Finding(name, "WARNING", "Package manager is locked", REMEDIATIONS[name])
        return Finding(name, "OK", "Package manager is not locked")

    if name == "systemd_updates_pending":
        if value:
            return Finding(name, "WARNING", "Pending systemd updates will require a reboot")
        return Finding(name, "OK", "No pending systemd updates")

    if name == "nvme_health":
        if str(value).upper() in ("PASSED", "OK"):
            return Finding(name, "OK", "NVMe drive reports healthy")
        return Finding(name, "CRITICAL", f"NVMe drive SMART self-assessment: {value}")

    if name == "missing_tools":
        if value:
            return Finding(
                name, "INFO",
                f"Monitoring tools not installed: {metric.display()}",
                REMEDIATIONS[name],
            )
        return Finding(name, "OK", "All monitoring tools are installed")

    # container counts and anything else purely informational
    return Finding(name, "INFO", f"{label}: {metric.display()}")


def evaluate(snapshot: Snapshot, rules: dict[str, ThresholdRule] | None = None) -> HealthReport:
    """One finding per collected metric, in CHECK_ORDER then collection order."""
    rules = rules if rules is not None else default_thresholds()

    ordered = [n for n in CHECK_ORDER if n in snapshot.metrics]
    ordered += [n for n in snapshot.metrics if n not in CHECK_ORDER]

    findings = [evaluate_metric(snapshot.metrics[n], rules) for n in ordered]
    return HealthReport(snapshot=snapshot, findings=findings)
