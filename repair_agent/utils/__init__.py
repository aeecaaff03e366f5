"""Utility functions."""

from .logging import setup_logging, get_logger
from .metrics import (
    QualityMetrics,
    calculate_metrics,
    format_metrics_report,
    check_quality_targets,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "QualityMetrics",
    "calculate_metrics",
    "format_metrics_report",
    "check_quality_targets",
]
