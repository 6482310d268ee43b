# core/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Any

Severity = Literal["OK", "WARNING", "CRITICAL", "INFO"]
OverallStatus = Literal["HEALTHY", "WARNING", "CRITICAL"]

# Aggregation order. INFO is absent: it never aggregates.
SEVERITY_RANK: dict[str, int] = {"OK": 0, "WARNING": 1, "CRITICAL": 2}

MetricValue = float | int | str | bool | list[str] | None


@dataclass(frozen=True)
class Metric:
    name: str
    value: MetricValue = None
    available: bool = True
    reason: str | None = None
    unit: str = ""

    @classmethod
    def unavailable(cls, name: str, reason: str, unit: str = "") -> Metric:
        return cls(name=name, value=None, available=False, reason=reason, unit=unit)

    def display(self) -> str:
        """Value as shown in the dashboard ("N/A" when unavailable)."""
        if not self.available or self.value is None:
            return "N/A"
        if isinstance(self.value, float):
            return f"{self.value:.1f}{self.unit}"
        if isinstance(self.value, list):
            return ", ".join(self.value) or "none"
        return f"{self.value}{self.unit}"


@dataclass(frozen=True)
class ThresholdRule:
    metric: str
    warning: float
    critical: float
    label: str
    unit: str = ""
    direction: Literal[">"] = ">"


@dataclass(frozen=True)
class Finding:
    metric: str
    severity: Severity
    message: str
    remediation: str | None = None

    @property
    def is_issue(self) -> bool:
        return self.severity in ("WARNING", "CRITICAL")


@dataclass
class Snapshot:
    """Everything one collection pass produced."""
    metrics: dict[str, Metric] = field(default_factory=dict)
    # Per-section raw detail for the report body (collector dicts with
    # not_checked / error / remediation / evidence keys).
    details: dict[str, dict[str, Any]] = field(default_factory=dict)

    def add(self, metric: Metric) -> None:
        self.metrics[metric.name] = metric

    def get(self, name: str) -> Metric:
        return self.metrics.get(name) or Metric.unavailable(name, "not collected")


@dataclass
class HealthReport:
    snapshot: Snapshot
    findings: list[Finding]

    @property
    def issues(self) -> list[Finding]:
        return [f for f in self.findings if f.is_issue]

    @property
    def unavailable(self) -> list[Finding]:
        return [f for f in self.findings if not self.snapshot.get(f.metric).available]

    @property
    def overall(self) -> OverallStatus:
        worst = max((SEVERITY_RANK[f.severity] for f in self.issues), default=0)
        if worst >= SEVERITY_RANK["CRITICAL"]:
            return "CRITICAL"
        if worst >= SEVERITY_RANK["WARNING"]:
            return "WARNING"
        return "HEALTHY"


@dataclass(frozen=True)
class RemediationAction:
    id: str
    title: str
    manual: tuple[str, ...] = ()


@dataclass
class ActionResult:
    action: RemediationAction
    steps: list[tuple[str, int]] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped and all(rc == 0 for _, rc in self.steps)
