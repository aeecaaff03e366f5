"""Analysis-and-fix pipeline passes."""

from .quality import CodeQualityPipeline, calculate_score, build_summary, detect_language
from .pass1_structural import run_structural_pass
from .pass2_markup import run_markup_pass
from .pass3_imports import run_import_pass
from .pass4_completeness import run_completeness_pass
from .pass5_cleanup import run_cleanup_pass, strip_markdown
from .scanner import scan, mask_code

__all__ = [
    "CodeQualityPipeline",
    "calculate_score",
    "build_summary",
    "detect_language",
    "run_structural_pass",
    "run_markup_pass",
    "run_import_pass",
    "run_completeness_pass",
    "run_cleanup_pass",
    "strip_markdown",
    "scan",
    "mask_code",
]
