"""Metrics over analysis reports and repair results."""

from dataclasses import dataclass
from typing import List, Optional

from ..models import FixResult, QualityReport, Severity


@dataclass
class QualityMetrics:
    """Quality metrics aggregated over pipeline reports."""

    # Basic counts
    total_reports: int = 0
    total_issues: int = 0
    total_fixed: int = 0
    manual_required: int = 0

    # Rates
    fix_rate: float = 0.0  # Fixed issues / Issues found
    clean_rate: float = 0.0  # Reports with no issues / Reports

    # Severity breakdown
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    # Score stats
    avg_score: float = 100.0
    min_score: int = 100
    max_score: int = 100
    clean_reports: int = 0

    # Repair loop
    repair_sessions: int = 0
    repaired_sessions: int = 0
    repair_success_rate: float = 0.0
    avg_attempts: float = 0.0

    # Timing
    duration_ms: Optional[float] = None

    def __post_init__(self):
        """Calculate derived metrics."""
        if self.total_issues > 0:
            self.fix_rate = self.total_fixed / self.total_issues
        if self.total_reports > 0:
            self.clean_rate = self.clean_reports / self.total_reports
        if self.repair_sessions > 0:
            self.repair_success_rate = self.repaired_sessions / self.repair_sessions


def calculate_metrics(
    reports: List[QualityReport],
    fix_results: Optional[List[FixResult]] = None,
    duration_ms: Optional[float] = None
) -> QualityMetrics:
    """
    Calculate quality metrics from pipeline reports and repair results.

    Args:
        reports: Reports returned by CodeQualityPipeline.analyze
        fix_results: Results returned by ClosedLoopAutoFix.validate_and_fix
        duration_ms: Total duration in milliseconds

    Returns:
        QualityMetrics object with calculated statistics
    """
    fix_results = fix_results or []

    severity_counts = {Severity.ERROR: 0, Severity.WARNING: 0, Severity.INFO: 0}
    for report in reports:
        for result in report.pass_results:
            for issue in result.issues_found:
                severity_counts[issue.severity] += 1

    scores = [r.overall_score for r in reports]
    # Only sessions that had something to repair count towards the success rate
    sessions = [r for r in fix_results if r.errors_found > 0]

    return QualityMetrics(
        total_reports=len(reports),
        total_issues=sum(r.total_issues_found for r in reports),
        total_fixed=sum(r.total_issues_fixed for r in reports),
        manual_required=sum(r.manual_required for r in reports),
        error_count=severity_counts[Severity.ERROR],
        warning_count=severity_counts[Severity.WARNING],
        info_count=severity_counts[Severity.INFO],
        avg_score=sum(scores) / len(scores) if scores else 100.0,
        min_score=min(scores) if scores else 100,
        max_score=max(scores) if scores else 100,
        clean_reports=sum(1 for r in reports if r.total_issues_found == 0),
        repair_sessions=len(sessions),
        repaired_sessions=sum(1 for r in sessions if r.errors_remaining == 0),
        avg_attempts=sum(r.total_attempts for r in sessions) / len(sessions) if sessions else 0.0,
        duration_ms=duration_ms,
    )


def format_metrics_report(metrics: QualityMetrics) -> str:
    """
    Format metrics as a human-readable report.

    Args:
        metrics: QualityMetrics object

    Returns:
        Formatted report string
    """
    lines = [
        "## Quality Metrics",
        "",
        "### Summary",
        f"- Reports analyzed: {metrics.total_reports}",
        f"- Issues found: {metrics.total_issues}",
        f"- Issues fixed: {metrics.total_fixed}",
        f"- Manual review required: {metrics.manual_required}",
        "",
        "### Rates",
        f"- Fix rate: {metrics.fix_rate:.1%}",
        f"- Clean rate: {metrics.clean_rate:.1%}",
        "",
        "### Severity Breakdown",
        f"- Error: {metrics.error_count}",
        f"- Warning: {metrics.warning_count}",
        f"- Info: {metrics.info_count}",
        "",
        "### Score Statistics",
        f"- Average: {metrics.avg_score:.1f}",
        f"- Range: {metrics.min_score} - {metrics.max_score}",
    ]

    if metrics.repair_sessions:
        lines.append("")
        lines.append("### Repair Loop")
        lines.append(f"- Sessions: {metrics.repair_sessions}")
        lines.append(f"- Resolved: {metrics.repair_success_rate:.1%}")
        lines.append(f"- Average attempts: {metrics.avg_attempts:.1f}")

    if metrics.duration_ms:
        duration_sec = metrics.duration_ms / 1000
        lines.append("")
        lines.append("### Performance")
        lines.append(f"- Duration: {duration_sec:.2f}s")

    return "\n".join(lines)


def check_quality_targets(metrics: QualityMetrics) -> dict:
    """
    Check if metrics meet the quality targets.

    Targets:
    - Average score >= 80
    - Fix rate >= 70% of detected issues
    - Repair loop resolves >= 80% of sessions (when any ran)

    Args:
        metrics: QualityMetrics object

    Returns:
        Dictionary with target check results
    """
    targets = {
        "score_target": metrics.avg_score >= 80,
        "fix_rate_target": metrics.total_issues == 0 or metrics.fix_rate >= 0.70,
        "repair_target": metrics.repair_sessions == 0 or metrics.repair_success_rate >= 0.80,
    }

    targets["all_targets_met"] = all(targets.values())

    return targets
