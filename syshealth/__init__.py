"""System Health Monitor: single-host health report with optional fixes."""

__version__ = "1.0.0"
