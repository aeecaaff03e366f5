"""Tests for quality metrics."""

from repair_agent.models import FixResult, Issue, PassResult, QualityReport, SessionStatus, Severity
from repair_agent.utils.metrics import (
    QualityMetrics,
    calculate_metrics,
    check_quality_targets,
    format_metrics_report,
)


def make_report(issues, score):
    fixed = [i for i in issues if i.fixed]
    return QualityReport(
        pass_results=[PassResult(pass_name="Structural Integrity", issues_found=issues, issues_fixed=fixed)],
        original_code="",
        fixed_code="",
        total_issues_found=len(issues),
        total_issues_fixed=len(fixed),
        auto_fixable=len(fixed),
        manual_required=len(issues) - len(fixed),
        overall_score=score,
    )


def make_fix_result(found, remaining, attempts):
    return FixResult(
        session_id="fix_000000000000",
        status=SessionStatus.RESOLVED if remaining == 0 else SessionStatus.EXHAUSTED,
        original_code="",
        final_code="",
        total_attempts=attempts,
        errors_found=found,
        errors_fixed=found - remaining,
        errors_remaining=remaining,
    )


class TestCalculateMetrics:
    """Tests for calculate_metrics."""

    def test_aggregates_reports(self):
        """Given a clean and a repaired report, should count issues, severities and scores."""
        # Given
        reports = [
            make_report([], 100),
            make_report([
                Issue(type="unclosed-brace", severity=Severity.ERROR, message="m", fixed=True),
                Issue(type="placeholder-code", severity=Severity.WARNING, message="m"),
            ], 94),
        ]

        # When
        metrics = calculate_metrics(reports)

        # Then
        assert metrics.total_reports == 2
        assert metrics.total_issues == 2
        assert metrics.total_fixed == 1
        assert metrics.fix_rate == 0.5
        assert metrics.clean_rate == 0.5
        assert (metrics.error_count, metrics.warning_count, metrics.info_count) == (1, 1, 0)
        assert (metrics.avg_score, metrics.min_score, metrics.max_score) == (97.0, 94, 100)

    def test_counts_only_sessions_with_errors(self):
        """Given repair results, sessions without errors should not count towards the success rate."""
        # Given
        results = [make_fix_result(2, 0, 1), make_fix_result(1, 1, 3), make_fix_result(0, 0, 0)]

        # When
        metrics = calculate_metrics([], results)

        # Then
        assert metrics.repair_sessions == 2
        assert metrics.repaired_sessions == 1
        assert metrics.repair_success_rate == 0.5
        assert metrics.avg_attempts == 2.0

    def test_empty_input(self):
        """Given nothing, should return neutral metrics."""
        # When
        metrics = calculate_metrics([])

        # Then
        assert metrics.avg_score == 100.0
        assert metrics.fix_rate == 0.0


class TestFormatAndTargets:
    """Tests for report formatting and quality targets."""

    def test_report_sections(self):
        """Given metrics with repair sessions and a duration, should include every section."""
        # Given
        metrics = QualityMetrics(
            total_reports=2, total_issues=4, total_fixed=3, clean_reports=1,
            avg_score=91.5, min_score=85, max_score=98,
            repair_sessions=2, repaired_sessions=2, avg_attempts=1.5, duration_ms=1250,
        )

        # When
        report = format_metrics_report(metrics)

        # Then
        assert "- Fix rate: 75.0%" in report
        assert "- Average: 91.5" in report
        assert "- Range: 85 - 98" in report
        assert "### Repair Loop" in report
        assert "- Duration: 1.25s" in report

    def test_report_without_optional_sections(self):
        """Given metrics without sessions or duration, should leave those sections out."""
        # When
        report = format_metrics_report(QualityMetrics())

        # Then
        assert "### Repair Loop" not in report
        assert "### Performance" not in report

    def test_targets(self):
        """Given low scores and fix rates, should report the unmet targets."""
        # Given
        good = QualityMetrics(total_issues=10, total_fixed=8, avg_score=90.0)
        bad = QualityMetrics(total_issues=10, total_fixed=5, avg_score=70.0,
                             repair_sessions=5, repaired_sessions=3)

        # When / Then
        assert check_quality_targets(good)["all_targets_met"]
        assert check_quality_targets(bad) == {
            "score_target": False,
            "fix_rate_target": False,
            "repair_target": False,
            "all_targets_met": False,
        }
