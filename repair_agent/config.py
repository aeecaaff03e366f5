"""Configuration for the code repair agent."""

from dataclasses import dataclass, field, fields, replace
from typing import List


# Capacity of the shared aggregate stores
MAX_ANALYSIS_HISTORY = 500   # analysis history entries (LRU)
MAX_ISSUE_TYPES = 200        # distinct issue types counted (LRU)
MAX_FIX_HISTORY = 1000       # fix history entries (oldest evicted first)
MAX_ACTIVE_SESSIONS = 100    # completed repair sessions kept for lookup
MAX_LEARNED_PATTERNS = 500   # error signatures known to the learning service
MAX_ERROR_HISTORY = 500      # raw error occurrences kept for pattern learning

RECENT_TREND_WINDOW = 20     # fix history entries considered "recent"
CHARS_PER_TOKEN = 3.5        # rough prompt size estimate

STRATEGY_NAMES = (
    "syntax-targeted",
    "error-pattern-match",
    "import-resolution",
    "style-enforcement",
    "full-rewrite-section",
)


@dataclass
class RepairConfig:
    """Configuration for the closed-loop repair engine."""

    max_retries: int = 3             # Max fix attempts per validate_and_fix call
    auto_format: bool = True         # Run the style enforcer after the loop
    strict_mode: bool = False        # Treat validator warnings as blocking
    enable_learning: bool = True     # Feed outcomes to the error learning service
    fix_strategies: List[str] = field(default_factory=lambda: list(STRATEGY_NAMES))

    def __post_init__(self):
        """Reject values no repair session could honour."""
        if not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool):
            raise TypeError(f"max_retries must be an int, got {type(self.max_retries).__name__}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if sorted(self.fix_strategies) != sorted(STRATEGY_NAMES):
            raise ValueError(
                f"fix_strategies must list exactly the five strategies {list(STRATEGY_NAMES)}"
            )


@dataclass
class PipelineConfig:
    """Capacities for the analysis pipeline's aggregate stores."""

    history_size: int = MAX_ANALYSIS_HISTORY
    issue_type_limit: int = MAX_ISSUE_TYPES


def merge_config(config: RepairConfig, **partial) -> RepairConfig:
    """
    Return a copy of config with the given fields replaced.

    Args:
        config: Current configuration
        **partial: Field overrides, e.g. max_retries=5

    Returns:
        New RepairConfig

    Raises:
        ValueError: If a key is not a RepairConfig field
    """
    known = {f.name for f in fields(RepairConfig)}
    unknown = sorted(set(partial) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
    if "fix_strategies" in partial:
        partial["fix_strategies"] = list(partial["fix_strategies"])
    return replace(config, **partial)


# Default configurations
DEFAULT_CONFIG = RepairConfig()
DEFAULT_PIPELINE_CONFIG = PipelineConfig()
