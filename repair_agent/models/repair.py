"""Data models for the closed-loop repair engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Pattern


class FixStrategy(Enum):
    """Repair tactics, cheapest first."""
    SYNTAX_TARGETED = "syntax-targeted"            # Fix only flagged syntax errors
    ERROR_PATTERN_MATCH = "error-pattern-match"    # Apply a known fix for a seen signature
    IMPORT_RESOLUTION = "import-resolution"        # Resolve missing import bindings
    STYLE_ENFORCEMENT = "style-enforcement"        # Deterministic formatting
    FULL_REWRITE_SECTION = "full-rewrite-section"  # Regenerate the broken section


class SessionStatus(Enum):
    """Lifecycle of a repair session."""
    ANALYZING = "analyzing"   # Initial
    FIXING = "fixing"
    RESOLVED = "resolved"     # Terminal: no errors left
    EXHAUSTED = "exhausted"   # Terminal: budget used up with errors left


@dataclass
class SyntaxIssue:
    """One finding of the syntax validator."""
    line: int
    column: int
    message: str
    severity: str  # "error" or "warning"

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "column": self.column,
                "message": self.message, "severity": self.severity}


@dataclass
class ValidationResult:
    """Syntax validator output."""
    errors: List[SyntaxIssue] = field(default_factory=list)
    warnings: List[SyntaxIssue] = field(default_factory=list)
    suggested_fix: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class FixAttempt:
    """One iteration of the repair loop."""
    attempt_number: int
    strategy: FixStrategy
    errors: List[SyntaxIssue]          # Errors the attempt targeted
    fix_prompt: str
    fixed_code: Optional[str] = None   # None when nothing could be produced
    success: bool = False              # Error count went down
    duration_ms: float = 0.0
    used_model: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "strategy": self.strategy.value,
            "errors": [e.to_dict() for e in self.errors],
            "success": self.success,
            "duration_ms": self.duration_ms,
            "used_model": self.used_model,
        }


@dataclass
class RepairSession:
    """State of one bounded repair sequence."""
    id: str
    project_id: Optional[str] = None
    status: SessionStatus = SessionStatus.ANALYZING
    current_iteration: int = 0
    max_iterations: int = 5
    fix_attempts: List[Any] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    # Project loop bookkeeping
    original_errors: List["ErrorDescriptor"] = field(default_factory=list)
    resolved_errors: List["ErrorDescriptor"] = field(default_factory=list)
    unresolved_errors: List["ErrorDescriptor"] = field(default_factory=list)
    cancelled: bool = False

    @property
    def is_complete(self) -> bool:
        return self.status in (SessionStatus.RESOLVED, SessionStatus.EXHAUSTED)


@dataclass
class FixResult:
    """What validate_and_fix hands back to the caller."""
    session_id: str
    status: SessionStatus
    original_code: str
    final_code: str
    was_fixed: bool = False
    total_attempts: int = 0
    attempts: List[FixAttempt] = field(default_factory=list)
    errors_found: int = 0
    errors_fixed: int = 0
    errors_remaining: int = 0
    warnings_found: int = 0
    duration_ms: float = 0.0
    model_used: Optional[str] = None
    file_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "final_code": self.final_code,
            "was_fixed": self.was_fixed,
            "total_attempts": self.total_attempts,
            "attempts": [a.to_dict() for a in self.attempts],
            "errors_found": self.errors_found,
            "errors_fixed": self.errors_fixed,
            "errors_remaining": self.errors_remaining,
            "warnings_found": self.warnings_found,
            "duration_ms": self.duration_ms,
            "model_used": self.model_used,
            "file_path": self.file_path,
        }


@dataclass
class FixHistoryEntry:
    """One line of the fix history, written per validate_and_fix call."""
    session_id: str
    timestamp: datetime
    errors_found: int
    errors_fixed: int
    attempts: int
    success: bool
    strategies: List[str] = field(default_factory=list)        # Ordered, deduplicated
    error_categories: List[str] = field(default_factory=list)  # Deduplicated
    file_path: Optional[str] = None
    model_used: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class StrategyStats:
    """Running counters for one strategy."""
    attempts: int = 0
    successes: int = 0

    @property
    def rate(self) -> float:
        return self.successes / self.attempts if self.attempts else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"attempts": self.attempts, "successes": self.successes, "rate": self.rate}


@dataclass
class RecentTrend:
    improving: bool = False
    recent_fix_rate: float = 0.0
    overall_fix_rate: float = 0.0


@dataclass
class FixStatistics:
    """Aggregate view over the fix history."""
    total_sessions: int = 0
    total_errors: int = 0
    total_fixed: int = 0
    fix_rate: float = 0.0
    average_attempts: float = 0.0
    average_duration_ms: float = 0.0
    strategy_effectiveness: Dict[str, StrategyStats] = field(default_factory=dict)
    model_fix_rates: Dict[str, Dict[str, float]] = field(default_factory=dict)
    top_error_categories: List[Dict[str, Any]] = field(default_factory=list)
    recent_trend: RecentTrend = field(default_factory=RecentTrend)


@dataclass
class PreGenerationEnhancement:
    """Prompt augmentation produced before a model writes code."""
    enhanced_prompt: str
    prevention_rules: List[str] = field(default_factory=list)
    model_specific_warnings: List[str] = field(default_factory=list)
    injected_examples: List[str] = field(default_factory=list)
    total_injected_tokens: int = 0


@dataclass
class ErrorDescriptor:
    """A build or runtime error reported for a project."""
    type: str          # syntax, import, reference, type, runtime, unknown
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    stack: Optional[str] = None
    suggestion: Optional[str] = None

    def same_error(self, other: "ErrorDescriptor") -> bool:
        return self.message == other.message and self.file == other.file


@dataclass
class Patch:
    """A whole-file replacement proposed for one error."""
    file_path: str
    original_content: str
    patched_content: str
    description: str = ""


@dataclass
class RunResult:
    """Outcome of validating a project (build, type check or run)."""
    success: bool
    errors: List[ErrorDescriptor] = field(default_factory=list)


@dataclass
class ProjectFixAttempt:
    """One iteration of the project repair loop."""
    iteration: int
    error: ErrorDescriptor
    patch: Optional[Patch]
    success: bool
    run_result: Optional[RunResult] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ErrorPattern:
    """A known error signature and how to avoid it."""
    id: str
    name: str                         # Human-readable signature, e.g. "Missing import"
    regex: Pattern
    category: str                     # syntax, type, runtime, logic, import, jsx, async
    prevention: str
    auto_fix: Optional[str] = None    # Known fix description
    model_family: Optional[str] = None
    frequency: int = 0
    last_seen: datetime = field(default_factory=datetime.now)
    learned: bool = False             # Derived from repeated unknown errors


@dataclass
class ErrorOccurrence:
    """One error reported to the learning service."""
    message: str
    code: str = ""
    file_path: Optional[str] = None
    was_fixed: bool = False
    fix_applied: Optional[str] = None
    model_used: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class LearningInsight:
    category: str
    common_patterns: List[str] = field(default_factory=list)
    prevention_tips: List[str] = field(default_factory=list)
    model_specific_issues: Dict[str, List[str]] = field(default_factory=dict)
