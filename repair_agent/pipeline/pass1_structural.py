"""Pass 1: Structural Integrity - delimiters, strings, truncation, terminators."""

import re
from typing import List, Tuple

from ..models import Issue, Severity
from .rules import TRUNCATION_RULES
from .scanner import OPENERS, scan, mask_code

PASS_NAME = "Structural Integrity"

_FUNCTION_HEAD = re.compile(
    r"(?:function\s+\w+|(?:const|let|var)\s+\w+\s*=\s*(?:async\s*)?\()[^{]*\{"
)
_SIMPLE_ASSIGNMENT = re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+[\w$]+\s*(?::\s*[\w$.<>\[\]| ]+)?=\s*[^{(\[`\s]")
_CONTINUATION_END = (";", "{", "}", "(", "[", ",", "=>", "=", "+", "-", "*", "/", "&&", "||", "?", ":", ".", "`")
_CONTINUATION_START = (".", "?", "+", "-", "*", "/", "||", "&&", ":", "?.", ")", "]")


def check_delimiters(code: str) -> Tuple[str, List[Issue]]:
    """Report unmatched closers and append closers for unclosed openers."""
    issues: List[Issue] = []
    result = scan(code)

    for closer in result.unmatched:
        issues.append(Issue(
            type=f"unmatched-closing-{closer.name}",
            severity=Severity.ERROR,
            message=f"Unmatched closing {closer.name} '{closer.char}' at line {closer.line}",
            line=closer.line,
        ))

    if not result.unclosed:
        return code, issues

    by_name = {}
    for opener in result.unclosed:
        by_name.setdefault(opener.name, []).append(opener)
    for name, openers in by_name.items():
        closer = OPENERS[openers[0].char]
        issues.append(Issue(
            type=f"unclosed-{name}",
            severity=Severity.ERROR,
            message=f"{len(openers)} unclosed {name}(s) - first opened at line {openers[0].line}",
            line=openers[0].line,
            fixed=True,
            fix_description=f"Added {len(openers)} closing '{closer}' at end of code",
        ))

    # Innermost first
    closers = "".join(OPENERS[o.char] for o in reversed(result.unclosed))
    return code.rstrip() + "\n" + closers + "\n", issues


def fix_unclosed_strings(code: str) -> Tuple[str, List[Issue]]:
    """Close single or double quoted strings that run to the end of their line."""
    issues: List[Issue] = []
    unterminated = scan(code).unterminated
    if not unterminated:
        return code, issues

    lines = code.split("\n")
    for quote in unterminated:
        idx = quote.line - 1
        lines[idx] = lines[idx].rstrip() + quote.char
        issues.append(Issue(
            type="unclosed-string",
            severity=Severity.ERROR,
            message=f"Unclosed string literal at line {quote.line}",
            line=quote.line,
            fixed=True,
            fix_description=f"Added closing {quote.char} at end of line",
        ))
    return "\n".join(lines), issues


def detect_truncation(code: str) -> List[Issue]:
    """Flag output that looks cut off mid-statement."""
    issues: List[Issue] = []
    trimmed = code.rstrip()
    if not trimmed:
        return issues

    masked = mask_code(trimmed)
    last_line = masked.split("\n")[-1].strip()
    for rule in TRUNCATION_RULES:
        if rule.pattern.search(last_line):
            issues.append(rule.issue(
                line=trimmed.count("\n") + 1,
                message=f"Code appears truncated: {rule.message}",
            ))
            break

    heads = list(_FUNCTION_HEAD.finditer(masked))
    if heads:
        tail = masked[heads[-1].start():]
        if tail.count("{") > tail.count("}") + 1:
            issues.append(Issue(
                type="incomplete-function",
                severity=Severity.WARNING,
                message="Last function body may be incomplete (unbalanced braces)",
            ))
    return issues


def fix_missing_semicolons(code: str) -> Tuple[str, List[Issue]]:
    """Terminate single-line const/let/var assignments."""
    issues: List[Issue] = []
    lines = code.split("\n")
    masked_lines = mask_code(code).split("\n")

    for i, line in enumerate(lines):
        masked = masked_lines[i].rstrip()
        if not _SIMPLE_ASSIGNMENT.match(masked):
            continue
        if masked.endswith(_CONTINUATION_END):
            continue
        if masked.count("(") != masked.count(")") or masked.count("[") != masked.count("]") \
                or masked.count("{") != masked.count("}"):
            continue
        if masked.endswith(">") or "<" in masked.split("=", 1)[1].lstrip()[:1]:
            continue
        next_line = next((m.strip() for m in masked_lines[i + 1:] if m.strip()), "")
        if next_line.startswith(_CONTINUATION_START):
            continue
        # Insert after the last code character so trailing comments stay put
        lines[i] = line[:len(masked)] + ";" + line[len(masked):]
        issues.append(Issue(
            type="missing-semicolon",
            severity=Severity.WARNING,
            message=f"Missing semicolon at line {i + 1}",
            line=i + 1,
            fixed=True,
            fix_description="Added semicolon at end of statement",
        ))
    return "\n".join(lines), issues


def run_structural_pass(code: str) -> Tuple[str, List[Issue]]:
    """
    Pass 1: check structure and repair what can be repaired mechanically.

    Args:
        code: Source text

    Returns:
        Tuple of (updated code, issues)
    """
    issues: List[Issue] = []

    code, found = check_delimiters(code)
    issues.extend(found)

    code, found = fix_unclosed_strings(code)
    issues.extend(found)

    issues.extend(detect_truncation(code))

    code, found = fix_missing_semicolons(code)
    issues.extend(found)

    return code, issues
