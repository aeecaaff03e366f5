"""Pass 4: Code Completeness - placeholders and unresolved names. Never fixes."""

import re
from typing import List, Set

from ..models import Issue, Severity
from .pass3_imports import IMPORT_STATEMENT, imported_names
from .rules import EVENT_ATTRIBUTES, GLOBAL_NAMES, PLACEHOLDER_RULES
from .scanner import find_block_end, mask_code

PASS_NAME = "Code Completeness"

_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_DECLARATION = re.compile(r"\b(?:function\*?|class|const|let|var)\s+([A-Za-z_$][\w$]*)")
_DESTRUCTURING = re.compile(r"\b(?:const|let|var)\s*([\[{][^=;]*?[\]}])\s*=")
_PARAM_LISTS = [
    re.compile(r"\bfunction\*?\s*[\w$]*\s*\(([^()]*)\)"),
    re.compile(r"\(([^()]*)\)\s*(?::\s*[^=]+?)?=>"),
    re.compile(r"(?<![\w$.])([A-Za-z_$][\w$]*)\s*=>"),
    re.compile(r"^\s*(?:async\s+)?[\w$]+\s*\(([^()]*)\)\s*\{", re.M),
    re.compile(r"\bcatch\s*\(\s*([\w$]+)\s*\)"),
]
_COMPONENT_HEAD = re.compile(
    r"(?:function\s+([A-Z][\w$]*)\s*\(|(?:const|let)\s+([A-Z][\w$]*)\s*=\s*(?:async\s*)?"
    r"(?:\([^()]*\)|[\w$]+)\s*(?::\s*[^=]+?)?=>\s*\{)"
)
_MARKUP_RETURN = re.compile(r"return\s*\(?\s*<")
_EMPTY_RETURN = re.compile(r"return\s+null\b|return\s+undefined\b|return\s*;|return\s*(?=\n|\})")
_COMPONENT_HINT = re.compile(r"useState|useEffect|useRef|className|onClick")
_HANDLER_USE = re.compile(r"(?:%s)=\{\s*([\w$]+)\s*\}" % "|".join(EVENT_ATTRIBUTES))
_MARKUP_REGION_START = re.compile(r"(?:\breturn|=>)\s*\(")
_MARKUP_EXPRESSION = re.compile(r"\{\s*([A-Za-z_$][\w$]*)(?:\.[\w$]+|\[[\w$]+\])?\s*\}")


def collect_declared_names(code: str) -> Set[str]:
    """
    Names declared anywhere in the file.

    Covers function, class and variable declarations, destructuring patterns,
    function and arrow parameters, catch bindings and imports. Over-collects
    (type names in annotations are included) rather than under-collects.
    """
    masked = mask_code(code)
    names: Set[str] = set()
    names.update(_DECLARATION.findall(masked))
    for pattern in _DESTRUCTURING.findall(masked):
        names.update(_IDENTIFIER.findall(pattern))
    for params in _PARAM_LISTS:
        for group in params.findall(masked):
            names.update(_IDENTIFIER.findall(group))
    for match in IMPORT_STATEMENT.finditer(code):
        names.update(imported_names(match))
    return names


def detect_placeholders(code: str) -> List[Issue]:
    issues: List[Issue] = []
    for i, line in enumerate(code.split("\n"), start=1):
        for rule in PLACEHOLDER_RULES:
            if rule.pattern.search(line):
                issues.append(rule.issue(line=i, message=f"{rule.message} at line {i}"))
                break
    return issues


def detect_null_return_components(code: str) -> List[Issue]:
    """Components that render nothing where markup is expected."""
    issues: List[Issue] = []
    masked = mask_code(code)
    for match in _COMPONENT_HEAD.finditer(masked):
        name = match.group(1) or match.group(2)
        end = find_block_end(masked, match.start())
        if end == -1:
            continue
        body = masked[match.end():end]
        if _MARKUP_RETURN.search(body) or not _EMPTY_RETURN.search(body):
            continue
        if _COMPONENT_HINT.search(body):
            issues.append(Issue(
                type="null-return-component",
                severity=Severity.WARNING,
                message=f"Component '{name}' may return null/undefined instead of JSX",
            ))
    return issues


def detect_undefined_handlers(code: str, declared: Set[str]) -> List[Issue]:
    issues: List[Issue] = []
    seen: Set[str] = set()
    for name in _HANDLER_USE.findall(mask_code(code)):
        if name in declared or name in GLOBAL_NAMES or name in seen:
            continue
        seen.add(name)
        issues.append(Issue(
            type="undefined-handler",
            severity=Severity.ERROR,
            message=f"Event handler '{name}' is used in JSX but not defined",
        ))
    return issues


def markup_regions(masked: str) -> List[str]:
    """Parenthesised markup returned by components."""
    regions = []
    for match in _MARKUP_REGION_START.finditer(masked):
        start = match.end()
        depth = 1
        k = start
        while k < len(masked) and depth:
            if masked[k] == "(":
                depth += 1
            elif masked[k] == ")":
                depth -= 1
            k += 1
        region = masked[start:k - 1]
        if region.lstrip().startswith("<"):
            regions.append(region)
    return regions


def detect_undeclared_variables(code: str, declared: Set[str]) -> List[Issue]:
    issues: List[Issue] = []
    seen: Set[str] = set()
    for region in markup_regions(mask_code(code)):
        for name in _MARKUP_EXPRESSION.findall(region):
            if name in declared or name in GLOBAL_NAMES or len(name) <= 1 or name in seen:
                continue
            seen.add(name)
            issues.append(Issue(
                type="undeclared-state-variable",
                severity=Severity.WARNING,
                message=f"Variable '{name}' used in JSX may not be declared",
            ))
    return issues


def run_completeness_pass(code: str) -> List[Issue]:
    """
    Pass 4: flag incomplete code for manual or model-assisted follow-up.

    Args:
        code: Source text

    Returns:
        Issues found; the code is never modified
    """
    declared = collect_declared_names(code)
    issues: List[Issue] = []
    issues.extend(detect_placeholders(code))
    issues.extend(detect_null_return_components(code))
    issues.extend(detect_undefined_handlers(code, declared))
    issues.extend(detect_undeclared_variables(code, declared))
    return issues
