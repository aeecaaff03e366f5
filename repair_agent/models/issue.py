"""Data models for the analysis pipeline."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class Severity(Enum):
    """Issue severity levels."""
    ERROR = "error"       # Breaks the build or the render
    WARNING = "warning"   # Likely defect, code may still run
    INFO = "info"         # Cosmetic or housekeeping


@dataclass(frozen=True)
class Issue:
    """One defect detected by a pass."""
    type: str                     # Stable tag, e.g. "unclosed-brace"
    severity: Severity
    message: str
    line: Optional[int] = None
    fixed: bool = False           # Corrected by the pass that found it
    fix_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass
class PassResult:
    """Outcome of a single pass over the code."""
    pass_name: str
    issues_found: List[Issue] = field(default_factory=list)
    issues_fixed: List[Issue] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pass_name": self.pass_name,
            "issues_found": [i.to_dict() for i in self.issues_found],
            "issues_fixed": [i.to_dict() for i in self.issues_fixed],
            "duration_ms": self.duration_ms,
        }


@dataclass
class QualityReport:
    """Pipeline output for one analysis call."""
    pass_results: List[PassResult]
    original_code: str
    fixed_code: str
    total_issues_found: int = 0
    total_issues_fixed: int = 0
    auto_fixable: int = 0
    manual_required: int = 0
    overall_score: int = 100
    summary: str = ""
    language: str = "javascript"

    @property
    def issues(self) -> List[Issue]:
        """All issues across passes, in pass order."""
        return [issue for result in self.pass_results for issue in result.issues_found]

    def issue_types(self) -> List[str]:
        return [issue.type for issue in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pass_results": [r.to_dict() for r in self.pass_results],
            "original_code": self.original_code,
            "fixed_code": self.fixed_code,
            "total_issues_found": self.total_issues_found,
            "total_issues_fixed": self.total_issues_fixed,
            "auto_fixable": self.auto_fixable,
            "manual_required": self.manual_required,
            "overall_score": self.overall_score,
            "summary": self.summary,
            "language": self.language,
        }


@dataclass
class AnalyzeOptions:
    """Caller hints for an analysis call."""
    language: Optional[str] = None   # javascript, typescript, jsx, tsx
    is_multi_file: bool = False

    def __post_init__(self):
        if self.language is not None and not isinstance(self.language, str):
            raise TypeError("language must be a string")
        if not isinstance(self.is_multi_file, bool):
            raise TypeError("is_multi_file must be a bool")


@dataclass
class AnalysisHistoryEntry:
    """What an analysis call leaves behind for aggregate statistics."""
    timestamp: datetime
    score: int
    issues_found: int
    issues_fixed: int
    issue_types: List[str] = field(default_factory=list)


@dataclass
class PipelineStats:
    """Aggregate view over the analysis history."""
    total_analyzed: int = 0
    average_score: float = 100.0
    common_issues: List[Dict[str, Any]] = field(default_factory=list)  # [{"type", "count"}]
