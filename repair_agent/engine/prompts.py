"""Prompt templates for model-assisted repair."""

from typing import Callable, List, Optional

from ..models import FixStrategy, SyntaxIssue
from .guidance import detect_model_family, family_guidance

STRATEGY_INSTRUCTIONS = {
    FixStrategy.SYNTAX_TARGETED: (
        "Fix ONLY the syntax errors listed above. Do not change logic or add features. "
        "Return the complete corrected code."
    ),
    FixStrategy.ERROR_PATTERN_MATCH: (
        "These errors match known patterns. Apply the known fixes listed above. "
        "Return the complete corrected code."
    ),
    FixStrategy.FULL_REWRITE_SECTION: (
        "The errors are structural. Rewrite the problematic sections while preserving the "
        "overall logic and functionality. Return the complete corrected code."
    ),
    FixStrategy.STYLE_ENFORCEMENT: (
        "Fix style and formatting issues. Ensure consistent indentation, proper spacing, "
        "and clean code. Return the complete corrected code."
    ),
    FixStrategy.IMPORT_RESOLUTION: (
        "Fix import/export issues. Ensure all imports are correctly specified with proper "
        "module paths and export names. Return the complete corrected code."
    ),
}


PATCH_PROMPT = """
Fix the following {error_type} error in {file_path}.

## Error
- Message: {message}
- Line: {line}
{suggestion}{stack}
## Current File
{content}

## Instructions
1. Make the smallest change that fixes this error
2. Keep everything else in the file exactly as it is
3. Reply with the complete corrected file only, without markdown fences or explanation
"""


def build_fix_prompt(
    code: str,
    errors: List[SyntaxIssue],
    strategy: FixStrategy,
    model_name: Optional[str] = None,
    known_fix: Optional[Callable[[str], Optional[str]]] = None,
) -> str:
    """
    Build the instruction sent to a model for one repair attempt.

    Args:
        code: Current code
        errors: Errors the attempt targets
        strategy: Selected strategy, named verbatim in the prompt
        model_name: Model identifier; a known family adds tailored guidance
        known_fix: Lookup of a known fix description for an error message

    Returns:
        Prompt text
    """
    parts = ["## Code Fix Request", "", f"### Strategy: {strategy.value}", "", "### Errors to Fix:"]
    for error in errors:
        parts.append(f"- Line {error.line}: {error.message} ({error.severity})")
        fix = known_fix(error.message) if known_fix else None
        if fix:
            parts.append(f"  Known fix: {fix}")

    parts.extend(["", "### Code with Errors:", "```"])
    error_lines = {error.line for error in errors}
    for number, line in enumerate(code.split("\n"), start=1):
        marker = ">>> " if number in error_lines else "    "
        parts.append(f"{marker}{number:>4}: {line}")
    parts.extend(["```", "", "### Instructions:", STRATEGY_INSTRUCTIONS[strategy]])

    family = detect_model_family(model_name)
    guidance = family_guidance(family)
    if guidance:
        parts.extend(["", f"### Model Guidance ({family}):", guidance])

    return "\n".join(parts) + "\n"
