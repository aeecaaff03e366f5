"""Pass 3: Import/Dependency Resolution."""

import re
from typing import List, Tuple

from ..models import Issue, Severity
from .rules import (
    KNOWN_BINDINGS,
    REPORTED_BINDINGS,
    TAILWIND_CDN_TAG,
    TAILWIND_CLASS_PATTERN,
    TAILWIND_INCLUDED_PATTERN,
)
from .scanner import mask_code

PASS_NAME = "Import/Dependency Resolution"

IMPORT_STATEMENT = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?"
    r"(?:([\w$]+)\s*,?\s*)?"
    r"(?:\{([^}]*)\}\s*)?"
    r"(?:\*\s*as\s+([\w$]+)\s*)?"
    r"from\s*(['\"])([^'\"]+)\4[ \t]*;?[ \t]*(?:\n|$)",
    re.M,
)
_ANY_IMPORT = re.compile(r"^[ \t]*import\b[^;]*?(?:from\s*)?['\"][^'\"]+['\"][ \t]*;?", re.M)
_CLASS_ATTRIBUTE = re.compile(
    r"\b(?:class|className)\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|\{\s*`([^`]*)`\s*\})"
)


def imported_names(match: "re.Match") -> List[str]:
    """Local binding names introduced by an import statement match."""
    names = []
    if match.group(1):
        names.append(match.group(1))
    if match.group(2):
        for part in match.group(2).split(","):
            part = re.sub(r"^\s*type\s+", "", part.strip())
            if part:
                names.append(re.split(r"\s+as\s+", part)[-1].strip())
    if match.group(3):
        names.append(match.group(3))
    return names


def strip_imports(code: str) -> str:
    return _ANY_IMPORT.sub("", code)


def remove_unused_imports(code: str) -> Tuple[str, List[Issue]]:
    """Remove import statements none of whose bindings is used."""
    issues: List[Issue] = []
    body = strip_imports(code)
    removals = []

    for match in IMPORT_STATEMENT.finditer(code):
        names = imported_names(match)
        # A React binding keeps the statement alive
        if not names or "React" in names:
            continue
        unused = [n for n in names if not re.search(rf"(?<![\w$]){re.escape(n)}(?![\w$])", body)]
        if unused and len(unused) == len(names):
            removals.append((match, unused))

    if not removals:
        return code, issues

    result = code
    for match, unused in reversed(removals):
        result = result[:match.start()] + result[match.end():]
    for match, unused in removals:
        issues.append(Issue(
            type="unused-import",
            severity=Severity.INFO,
            message=f"Unused import(s): {', '.join(unused)} from '{match.group(5)}'",
            fixed=True,
            fix_description="Removed unused import statement",
        ))
    result = re.sub(r"\n{3,}", "\n\n", result)
    if result.startswith("\n"):
        result = result.lstrip("\n")
    return result, issues


def add_tailwind_if_needed(code: str) -> Tuple[str, List[Issue]]:
    """Add the Tailwind CDN script to <head> when utility classes are used."""
    uses_utilities = any(
        TAILWIND_CLASS_PATTERN.search(next(v for v in m.groups() if v is not None))
        for m in _CLASS_ATTRIBUTE.finditer(code)
    )
    if not uses_utilities or TAILWIND_INCLUDED_PATTERN.search(code):
        return code, []

    head = re.search(r"<head[^>]*>", code, re.I)
    if not head:
        return code, []

    indent = "    "
    result = code[:head.end()] + f"\n{indent}{TAILWIND_CDN_TAG}" + code[head.end():]
    return result, [Issue(
        type="missing-tailwind",
        severity=Severity.INFO,
        message="Tailwind CSS classes detected but no Tailwind import found",
        fixed=True,
        fix_description="Added Tailwind CSS CDN script to <head>",
    )]


def detect_used_not_imported(code: str) -> List[Issue]:
    """Report well-known bindings that are used but never imported."""
    issues: List[Issue] = []
    masked_body = mask_code(strip_imports(code))
    imports = " ".join(m.group(0) for m in _ANY_IMPORT.finditer(code))

    for name in REPORTED_BINDINGS:
        if not re.search(rf"(?<![.\w$]){name}(?![\w$])", masked_body):
            continue
        if re.search(rf"(?<![\w$]){name}(?![\w$])", imports):
            continue
        if re.search(rf"\b(?:const|let|var|function|class)\s+{name}\b", masked_body):
            continue
        module = KNOWN_BINDINGS[name][0]
        issues.append(Issue(
            type="used-not-imported",
            severity=Severity.WARNING,
            message=f"'{name}' is used but not imported from '{module}'",
            fix_description=f"Add import for '{name}' from '{module}'",
        ))
    return issues


def run_import_pass(code: str) -> Tuple[str, List[Issue]]:
    """
    Pass 3: prune dead imports, add missing styling inclusion, report unresolved bindings.

    Args:
        code: Source text

    Returns:
        Tuple of (updated code, issues)
    """
    issues: List[Issue] = []

    code, found = remove_unused_imports(code)
    issues.extend(found)

    code, found = add_tailwind_if_needed(code)
    issues.extend(found)

    issues.extend(detect_used_not_imported(code))

    return code, issues
