"""Data models for code analysis and repair."""

from .issue import (
    Severity,
    Issue,
    PassResult,
    QualityReport,
    AnalyzeOptions,
    AnalysisHistoryEntry,
    PipelineStats,
)
from .repair import (
    FixStrategy,
    SessionStatus,
    SyntaxIssue,
    ValidationResult,
    FixAttempt,
    RepairSession,
    FixResult,
    FixHistoryEntry,
    StrategyStats,
    RecentTrend,
    FixStatistics,
    PreGenerationEnhancement,
    ErrorDescriptor,
    Patch,
    RunResult,
    ProjectFixAttempt,
    ErrorPattern,
    ErrorOccurrence,
    LearningInsight,
)

__all__ = [
    "Severity",
    "Issue",
    "PassResult",
    "QualityReport",
    "AnalyzeOptions",
    "AnalysisHistoryEntry",
    "PipelineStats",
    "FixStrategy",
    "SessionStatus",
    "SyntaxIssue",
    "ValidationResult",
    "FixAttempt",
    "RepairSession",
    "FixResult",
    "FixHistoryEntry",
    "StrategyStats",
    "RecentTrend",
    "FixStatistics",
    "PreGenerationEnhancement",
    "ErrorDescriptor",
    "Patch",
    "RunResult",
    "ProjectFixAttempt",
    "ErrorPattern",
    "ErrorOccurrence",
    "LearningInsight",
]
