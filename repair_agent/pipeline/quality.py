"""Five-pass analysis-and-fix pipeline with a 0-100 quality score."""

import math
import time
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from ..models import (
    AnalysisHistoryEntry,
    AnalyzeOptions,
    Issue,
    PassResult,
    PipelineStats,
    QualityReport,
    Severity,
)
from ..tools import BoundedStore
from ..utils.logging import get_logger
from . import pass1_structural, pass2_markup, pass3_imports, pass4_completeness, pass5_cleanup
from .rules import MARKUP_PATTERN, TYPE_ANNOTATION_PATTERN, TYPED_MARKUP_PATTERN

logger = get_logger(__name__)

MARKUP_LANGUAGES = ("jsx", "tsx", "react")
COMMON_ISSUES_LIMIT = 20

# (penalty if unfixed, penalty if fixed)
SEVERITY_PENALTIES = {
    Severity.ERROR: (5.0, 1.0),
    Severity.WARNING: (2.0, 0.5),
    Severity.INFO: (0.5, 0.0),
}


def detect_language(code: str) -> str:
    """Guess javascript, typescript, jsx or tsx from the text."""
    if MARKUP_PATTERN.search(code):
        return "tsx" if TYPED_MARKUP_PATTERN.search(code) else "jsx"
    if TYPE_ANNOTATION_PATTERN.search(code):
        return "typescript"
    return "javascript"


def calculate_score(issues: List[Issue]) -> int:
    """
    Severity-weighted score.

    Starts at 100 and subtracts a penalty per issue, smaller when the issue
    was fixed. Rounded half up and clamped to [0, 100].
    """
    score = 100.0
    for issue in issues:
        unfixed, fixed = SEVERITY_PENALTIES[issue.severity]
        score -= fixed if issue.fixed else unfixed
    return max(0, min(100, int(math.floor(score + 0.5))))


def build_summary(found: int, fixed: int, score: int) -> str:
    if found == 0:
        return "No issues found. Code looks clean."
    rate = int(math.floor(fixed / found * 100 + 0.5))
    return f"Found {found} issue(s), auto-fixed {fixed} ({rate}%). Quality score: {score}/100."


def _timed(pass_name: str, run: Callable[[str], Tuple[str, List[Issue]]],
           code: str) -> Tuple[str, PassResult]:
    start = time.perf_counter()
    code, issues = run(code)
    result = PassResult(
        pass_name=pass_name,
        issues_found=issues,
        issues_fixed=[i for i in issues if i.fixed],
        duration_ms=(time.perf_counter() - start) * 1000,
    )
    return code, result


class CodeQualityPipeline:
    """
    Runs the five passes in order and keeps aggregate statistics.

    One instance is meant to be shared; the history and the issue-type
    counters are bounded LRU stores safe to use from several threads.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self._history: BoundedStore[str, AnalysisHistoryEntry] = BoundedStore(self.config.history_size)
        self._issue_counts: BoundedStore[str, int] = BoundedStore(self.config.issue_type_limit)

    def analyze(self, code: str, options: Optional[AnalyzeOptions] = None) -> QualityReport:
        """
        Analyze and fix one file.

        Args:
            code: Source text (empty is valid)
            options: Language hint and multi-file flag

        Returns:
            QualityReport with the fixed code and every issue found

        Raises:
            TypeError: If code is not a string or options is malformed
        """
        if not isinstance(code, str):
            raise TypeError(f"code must be a string, got {type(code).__name__}")
        if options is None:
            options = AnalyzeOptions()
        elif not isinstance(options, AnalyzeOptions):
            raise TypeError("options must be an AnalyzeOptions instance")

        language = options.language or detect_language(code)
        is_markup = language in MARKUP_LANGUAGES

        current = code
        results: List[PassResult] = []

        current, result = _timed(pass1_structural.PASS_NAME, pass1_structural.run_structural_pass, current)
        results.append(result)

        current, result = _timed(
            pass2_markup.PASS_NAME,
            lambda text: pass2_markup.run_markup_pass(text, is_markup),
            current,
        )
        results.append(result)

        current, result = _timed(pass3_imports.PASS_NAME, pass3_imports.run_import_pass, current)
        results.append(result)

        current, result = _timed(
            pass4_completeness.PASS_NAME,
            lambda text: (text, pass4_completeness.run_completeness_pass(text)),
            current,
        )
        results.append(result)

        current, result = _timed(pass5_cleanup.PASS_NAME, pass5_cleanup.run_cleanup_pass, current)
        results.append(result)

        issues = [issue for r in results for issue in r.issues_found]
        found = len(issues)
        fixed = sum(1 for issue in issues if issue.fixed)
        score = calculate_score(issues)

        report = QualityReport(
            pass_results=results,
            original_code=code,
            fixed_code=current,
            total_issues_found=found,
            total_issues_fixed=fixed,
            auto_fixable=fixed,
            manual_required=found - fixed,
            overall_score=score,
            summary=build_summary(found, fixed, score),
            language=language,
        )

        self._history.set(uuid.uuid4().hex, AnalysisHistoryEntry(
            timestamp=datetime.now(),
            score=score,
            issues_found=found,
            issues_fixed=fixed,
            issue_types=[issue.type for issue in issues],
        ))
        for issue in issues:
            self._issue_counts.increment(issue.type)

        logger.info(f"Code quality analysis completed: {found} found, {fixed} fixed, score {score}")
        return report

    def get_stats(self) -> PipelineStats:
        """Aggregate statistics over the analysis history."""
        entries = self._history.values()
        average = sum(e.score for e in entries) / len(entries) if entries else 100.0
        counts = sorted(self._issue_counts.items(), key=lambda item: item[1], reverse=True)
        return PipelineStats(
            total_analyzed=len(entries),
            average_score=round(average, 1),
            common_issues=[{"type": t, "count": c} for t, c in counts[:COMMON_ISSUES_LIMIT]],
        )

    def clear(self) -> None:
        self._history.clear()
        self._issue_counts.clear()
        logger.info("Code quality history cleared")
