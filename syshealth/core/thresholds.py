"""
Threshold table.

Every rule is "greater than": a value equal to a bound stays on the lower side.
The defaults can be overridden by a YAML file of the form

    thresholds:
      mem_used_pct: {warning: 75, critical: 95}
      disk_usage_max_pct: {critical: 95}
"""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from syshealth.core.errors import ConfigError
from syshealth.core.models import ThresholdRule

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule("cpu_usage_pct", 70, 90, "CPU usage", "%"),
    ThresholdRule("mem_used_pct", 70, 90, "Memory usage", "%"),
    ThresholdRule("swap_used_pct", 20, 50, "Swap usage", "%"),
    ThresholdRule("disk_usage_max_pct", 80, 90, "Disk usage", "%"),
    ThresholdRule("cpu_temp_max_c", 75, 85, "CPU temperature", "°C"),
    ThresholdRule("gpu_temp_c", 75, 85, "GPU temperature", "°C"),
    ThresholdRule("nvme_temp_c", 60, 70, "NVMe drive temperature", "°C"),
    ThresholdRule("error_log_count", 0, 10, "Recent error log entries"),
    ThresholdRule("pending_updates_count", 10, 50, "Pending updates"),
)


def default_thresholds() -> dict[str, ThresholdRule]:
    return {r.metric: r for r in DEFAULT_RULES}


def load_thresholds(path: str | Path | None = None) -> dict[str, ThresholdRule]:
    """Default table, with overrides from `path` applied when given."""
    rules = default_thresholds()
    if path is None:
        return rules

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path} is not valid YAML: {e}") from e

    overrides = data.get("thresholds", {}) if isinstance(data, dict) else None
    if not isinstance(overrides, dict):
        raise ConfigError(f"{path}: 'thresholds' must be a mapping")

    for metric, bounds in overrides.items():
        if metric not in rules:
            raise ConfigError(f"{path}: unknown metric '{metric}'")
        rules[metric] = _apply_override(rules[metric], bounds, path)
        logger.debug("threshold override: %s", rules[metric])

    return rules


def _apply_override(rule: ThresholdRule, bounds: Any, path: Path) -> ThresholdRule:
    if not isinstance(bounds, dict):
        raise ConfigError(f"{path}: '{rule.metric}' must map to warning/critical")

    changes: dict[str, float] = {}
    for key in ("warning", "critical"):
        if key not in bounds:
            continue
        value = bounds[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{path}: {rule.metric}.{key} must be a number, got {value!r}")
        changes[key] = value

    updated = replace(rule, **changes)
    if updated.warning > updated.critical:
        raise ConfigError(
            f"{path}: {rule.metric} warning ({updated.warning}) is above critical ({updated.critical})"
        )
    return updated
