"""Model-family, file-type and task-type guidance tables."""

from typing import Iterable, List, Optional, Tuple

# Ordered: the first family whose substring occurs in the model name wins,
# so codellama is listed before llama.
MODEL_FAMILIES: List[Tuple[str, Tuple[str, ...], str]] = [
    ("qwen", ("qwen",),
     "Qwen models: Be precise with TypeScript generics. Avoid nested ternaries. Use explicit return types."),
    ("codellama", ("codellama", "code-llama"),
     "CodeLlama models: Prefer functional patterns. Watch for scope issues in closures."),
    ("llama", ("llama",),
     "Llama models: Avoid complex type inference chains. Use simple, direct type annotations."),
    ("ministral", ("ministral", "mistral"),
     "Ministral models: Keep functions short. Prefer explicit over implicit. Watch for missing 'async' keywords."),
    ("deepseek", ("deepseek",),
     "DeepSeek models: Double-check import paths. Ensure all variables are declared before use."),
    ("gpt", ("gpt",),
     "GPT models: Return the whole file, not a diff. Do not leave placeholder comments in place of code."),
    ("claude", ("claude",),
     "Claude models: Return only code without surrounding explanation. Keep existing exports unchanged."),
]

MARKUP_FILE_RULES = [
    "- JSX files: Always return a single root element. Use fragments (<>...</>) when needed.",
    "- JSX files: Add unique 'key' props when mapping arrays to elements.",
]
TYPED_FILE_RULES = [
    "- TypeScript files: Avoid using 'any' type. Use explicit types or 'unknown' with type guards.",
    "- TypeScript files: Handle nullable values with optional chaining (?.) or null checks.",
]

TASK_TYPE_RULES = {
    "build": [
        "- Building new code: Ensure all imports are included at the top.",
        "- Building new code: Export the main component/function as default.",
        "- Building new code: Include proper TypeScript types for all props and state.",
    ],
    "refine": [
        "- Refining code: Preserve existing exports and interfaces.",
        "- Refining code: Do not remove existing imports unless confirmed unused.",
    ],
}

MARKUP_EXAMPLE = (
    "// Correct JSX pattern: always wrap multiple elements\n"
    "return (\n  <>\n    <Header />\n    <Main />\n  </>\n);"
)
IMPORT_EXAMPLE = (
    "// Correct import pattern:\n"
    'import { useState, useEffect } from "react";\n'
    'import type { FC } from "react";'
)


def detect_model_family(model_name: Optional[str]) -> Optional[str]:
    """Map a free-text model identifier to a known family, or None."""
    if not model_name:
        return None
    lower = model_name.lower()
    for family, needles, _ in MODEL_FAMILIES:
        if any(needle in lower for needle in needles):
            return family
    return None


def family_guidance(family: Optional[str]) -> Optional[str]:
    for name, _, guidance in MODEL_FAMILIES:
        if name == family:
            return guidance
    return None


def file_type_rules(files: Iterable[str]) -> List[str]:
    """Prevention rules for the extensions present in files, deduplicated."""
    rules: List[str] = []
    for path in files:
        if path.endswith((".tsx", ".jsx")):
            rules.extend(r for r in MARKUP_FILE_RULES if r not in rules)
        if path.endswith((".ts", ".tsx")):
            rules.extend(r for r in TYPED_FILE_RULES if r not in rules)
    return rules


def task_type_rules(task_type: str) -> List[str]:
    return list(TASK_TYPE_RULES.get(task_type, []))


def context_examples(task_type: str, files: Iterable[str]) -> List[str]:
    """Correct-pattern snippets appended after the prompt."""
    examples = []
    if any(path.endswith((".tsx", ".jsx")) for path in files):
        examples.append(MARKUP_EXAMPLE)
    if task_type in TASK_TYPE_RULES:
        examples.append(IMPORT_EXAMPLE)
    return examples
