"""Closed-loop repair engine."""

from .autofix import ClosedLoopAutoFix, categorize_error
from .validator import SyntaxValidator
from .formatter import StyleEnforcer
from .learning import ErrorLearning
from .guidance import detect_model_family
from .prompts import build_fix_prompt
from .patch import PatchGenerator
from .project_loop import ProjectRepairLoop, prioritize_error

__all__ = [
    "ClosedLoopAutoFix",
    "categorize_error",
    "SyntaxValidator",
    "StyleEnforcer",
    "ErrorLearning",
    "detect_model_family",
    "build_fix_prompt",
    "PatchGenerator",
    "ProjectRepairLoop",
    "prioritize_error",
]
