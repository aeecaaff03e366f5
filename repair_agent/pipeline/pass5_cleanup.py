"""Pass 5: Common LLM Mistakes - markdown, narrative, duplicates, dangling branches."""

import re
from typing import Dict, List, Set, Tuple

from ..models import Issue, Severity
from .rules import PREAMBLE_PATTERNS, SUFFIX_PATTERNS, line_number
from .scanner import find_block_end, mask_code

PASS_NAME = "Common LLM Mistakes"

_FENCE_OPEN = re.compile(r"^[ \t]*```[\w+#.-]*[ \t]*$")
_FENCE_CLOSE = re.compile(r"^[ \t]*```[ \t]*$")
_FUNCTION_DECLS = [
    re.compile(r"^[ \t]*(?:export\s+(?:default\s+)?)?(?:async\s+)?function\*?\s+([\w$]+)\s*\(", re.M),
    re.compile(
        r"^[ \t]*(?:export\s+)?(?:const|let|var)\s+([\w$]+)\s*(?::[^=\n]+)?=\s*(?:async\s+)?"
        r"(?:function\b|\([^()]*\)\s*(?::[^=\n]+?)?=>|[\w$]+\s*=>)",
        re.M,
    ),
]
_CONST_DECL = re.compile(r"^[ \t]*(?:export\s+)?const\s+([\w$]+)\s*(?::[^=\n]+)?=", re.M)
_CODE_START = re.compile(
    r"^(?:import|export|const|let|var|return|function|class|async|await|if|else|for|while|"
    r"switch|case|try|catch|throw|//|/\*|\*|<|\}|\)|\])"
)
_CODE_END = (";", "{", "}", "(", ")", "[", "]", ",", ">", "*/", "'", '"', "`")
_TERNARY = re.compile(r"(?:=|\breturn\b|\(|\{|&&|\|\|)[^?]*[\w)\]'\"`]\s*\?\s*[^:?]+$")
_ELSE_START = re.compile(r"^else\b")
_IF_OR_ELSE = re.compile(r"\bif\s*\(|\belse\b")


def looks_like_code(line: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    return bool(_CODE_START.match(stripped)) or stripped.endswith(_CODE_END) or "=>" in stripped


def strip_markdown(text: str) -> str:
    """Drop markdown fence lines from a model reply, keeping what they wrapped."""
    lines = [l for l in text.split("\n") if not (_FENCE_OPEN.match(l) or _FENCE_CLOSE.match(l))]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def remove_markdown_artifacts(code: str) -> Tuple[str, List[Issue]]:
    """Strip fence lines, and prose wrapped around a fenced block."""
    lines = code.split("\n")
    fence_lines = [i for i, l in enumerate(lines) if _FENCE_OPEN.match(l) or _FENCE_CLOSE.match(l)]
    if not fence_lines:
        return code, []

    issues = [Issue(
        type="markdown-artifacts",
        severity=Severity.ERROR,
        message=f"Found {len(fence_lines)} markdown code block marker(s)",
        fixed=True,
        fix_description="Removed markdown code block markers",
    )]

    first, last = fence_lines[0], fence_lines[-1]
    keep_from, keep_to = 0, len(lines)
    leading = [l for l in lines[:first] if l.strip()]
    if leading and not any(looks_like_code(l) for l in leading):
        keep_from = first
        issues.append(Issue(
            type="llm-preamble",
            severity=Severity.INFO,
            message="LLM preamble text detected and removed",
            fixed=True,
            fix_description="Removed introductory text before code",
        ))
    trailing = [l for l in lines[last + 1:] if l.strip()]
    if len(fence_lines) > 1 and trailing and not any(looks_like_code(l) for l in trailing):
        keep_to = last + 1
        issues.append(Issue(
            type="llm-suffix",
            severity=Severity.INFO,
            message="LLM explanatory suffix text detected and removed",
            fixed=True,
            fix_description="Removed trailing explanation text after code",
        ))

    kept = [
        l for i, l in enumerate(lines[keep_from:keep_to], start=keep_from)
        if i not in fence_lines
    ]
    result = re.sub(r"\n{3,}", "\n\n", "\n".join(kept)).strip()
    return result, issues


def remove_narrative(code: str) -> Tuple[str, List[Issue]]:
    """Remove an introductory sentence and a closing explanation."""
    issues: List[Issue] = []
    lines = code.split("\n")

    first = next((i for i, l in enumerate(lines) if l.strip()), None)
    if first is not None and any(p.match(lines[first].strip()) for p in PREAMBLE_PATTERNS):
        lines = lines[first + 1:]
        while lines and not lines[0].strip():
            lines.pop(0)
        issues.append(Issue(
            type="llm-preamble",
            severity=Severity.INFO,
            message="LLM preamble text detected and removed",
            fixed=True,
            fix_description="Removed introductory text before code",
        ))

    last_code = max((i for i, l in enumerate(lines) if looks_like_code(l)), default=-1)
    tail = lines[last_code + 1:]
    opener = next((l.strip() for l in tail if l.strip()), None)
    if opener and any(p.match(opener) for p in SUFFIX_PATTERNS):
        lines = lines[:last_code + 1]
        issues.append(Issue(
            type="llm-suffix",
            severity=Severity.INFO,
            message="LLM explanatory suffix text detected and removed",
            fixed=True,
            fix_description="Removed trailing explanation text after code",
        ))

    if not issues:
        return code, issues
    return "\n".join(lines).rstrip() + ("\n" if code.endswith("\n") else ""), issues


def _block_owners(masked: str, offsets: List[int]) -> Dict[int, int]:
    """Map each offset to the offset of its innermost enclosing '{' (-1 at top level)."""
    owners: Dict[int, int] = {}
    targets = sorted(set(offsets))
    stack: List[int] = []
    t = 0
    for k, ch in enumerate(masked):
        while t < len(targets) and targets[t] == k:
            owners[k] = stack[-1] if stack else -1
            t += 1
        if ch == "{":
            stack.append(k)
        elif ch == "}" and stack:
            stack.pop()
    for offset in targets[t:]:
        owners[offset] = stack[-1] if stack else -1
    return owners


def _group_declarations(code: str, patterns) -> Dict[Tuple[str, int], List[int]]:
    """Group declaration line offsets by (name, enclosing block)."""
    masked = mask_code(code)
    found = []
    for pattern in patterns:
        found.extend((m.start(), m.group(1)) for m in pattern.finditer(masked))
    owners = _block_owners(masked, [offset for offset, _ in found])
    groups: Dict[Tuple[str, int], List[int]] = {}
    for offset, name in sorted(found):
        groups.setdefault((name, owners[offset]), []).append(offset)
    return groups


def _cut(code: str, start: int, end: int) -> str:
    """Remove code[start:end] along with the rest of its last line if blank."""
    newline = code.find("\n", end)
    if newline != -1 and not code[end:newline].strip():
        end = newline + 1
    elif newline == -1 and not code[end:].strip():
        end = len(code)
    return code[:start] + code[end:]


def fix_duplicate_functions(code: str) -> Tuple[str, List[Issue]]:
    """Keep the last same-named declaration in each block, excising earlier ones."""
    result = code
    counts: Dict[Tuple[str, int], int] = {}
    order: List[Tuple[str, int]] = []
    stuck: Set[Tuple[str, int]] = set()

    while True:
        groups = _group_declarations(result, _FUNCTION_DECLS)
        duplicate = next(
            ((key, pos) for key, pos in groups.items() if len(pos) > 1 and key not in stuck),
            None,
        )
        if duplicate is None:
            break
        key, positions = duplicate
        if key not in counts:
            counts[key] = len(positions)
            order.append(key)
        end = find_block_end(result, positions[0])
        if end == -1:
            stuck.add(key)
            continue
        result = _cut(result, positions[0], end)

    if not order:
        return code, []
    result = re.sub(r"\n{3,}", "\n\n", result)
    issues = []
    for key in order:
        name = key[0]
        fixed = key not in stuck
        issues.append(Issue(
            type="duplicate-function",
            severity=Severity.ERROR,
            message=f"Duplicate function declaration: '{name}' appears {counts[key]} times",
            fixed=fixed,
            fix_description=(f"Kept the last declaration of '{name}', removed earlier one(s)"
                             if fixed else None),
        ))
    return result, issues


def fix_const_redeclaration(code: str) -> Tuple[str, List[Issue]]:
    """Turn all but the last const declaration of a name in a block into let."""
    groups = _group_declarations(code, [_CONST_DECL])
    issues: List[Issue] = []
    to_let: List[int] = []
    for (name, _), offsets in groups.items():
        if len(offsets) < 2:
            continue
        to_let.extend(offsets[:-1])
        first_line = line_number(code, offsets[0])
        issues.append(Issue(
            type="const-redeclaration",
            severity=Severity.ERROR,
            message=f"Variable '{name}' declared with const {len(offsets)} times",
            line=first_line,
            fixed=True,
            fix_description=f"Changed earlier const declarations to let for '{name}'",
        ))
    if not to_let:
        return code, issues

    result = code
    for offset in sorted(to_let, reverse=True):
        head = re.match(r"([ \t]*(?:export\s+)?)const\b", result[offset:])
        result = result[:offset] + head.group(1) + "let" + result[offset + head.end():]
    return result, issues


def detect_incomplete_ternary(code: str) -> List[Issue]:
    issues: List[Issue] = []
    masked = mask_code(code)
    lines = masked.split("\n")
    offset = 0
    for i, line in enumerate(lines):
        offset_next = offset + len(line) + 1
        trimmed = line.strip()
        if trimmed and not trimmed.startswith("?.") and not trimmed.endswith("("):
            if ":" not in trimmed and "?." not in trimmed and "??" not in trimmed \
                    and _TERNARY.search(trimmed):
                rest = masked[offset_next:]
                statement_rest = rest.split(";", 1)[0]
                if ":" not in statement_rest:
                    issues.append(Issue(
                        type="incomplete-ternary",
                        severity=Severity.WARNING,
                        message=f"Possible incomplete ternary expression at line {i + 1}",
                        line=i + 1,
                        fix_description="Ternary expression may be missing the : (else) branch",
                    ))
        offset = offset_next
    return issues


def _find_orphaned_else(code: str) -> int:
    """Line index of the first else branch with no if before it, or -1."""
    lines = mask_code(code).split("\n")
    previous: List[str] = []
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if not trimmed:
            continue
        if _ELSE_START.match(trimmed):
            prev = previous[-1] if previous else ""
            attached = prev.endswith("}") or any(_IF_OR_ELSE.search(p) for p in previous[-2:])
            if not attached:
                return i
        previous.append(trimmed)
    return -1


def remove_orphaned_else(code: str) -> Tuple[str, List[Issue]]:
    """Remove else / else-if branches that follow no if."""
    issues: List[Issue] = []
    result = code
    while True:
        index = _find_orphaned_else(result)
        if index == -1:
            break
        lines = result.split("\n")
        start = sum(len(l) + 1 for l in lines[:index])
        end = find_block_end(result, start) if "{" in lines[index] else -1
        if end == -1:
            end = start + len(lines[index])
        issues.append(Issue(
            type="orphaned-else",
            severity=Severity.ERROR,
            message=f"Orphaned else block at line {index + 1} without matching if",
            line=index + 1,
            fixed=True,
            fix_description="Removed orphaned else block",
        ))
        result = _cut(result, start, end)
    return result, issues


def run_cleanup_pass(code: str) -> Tuple[str, List[Issue]]:
    """
    Pass 5: remove what a model leaves around and inside generated code.

    Args:
        code: Source text

    Returns:
        Tuple of (updated code, issues)
    """
    issues: List[Issue] = []

    code, found = remove_markdown_artifacts(code)
    issues.extend(found)

    code, found = remove_narrative(code)
    issues.extend(found)

    code, found = fix_duplicate_functions(code)
    issues.extend(found)

    code, found = fix_const_redeclaration(code)
    issues.extend(found)

    issues.extend(detect_incomplete_ternary(code))

    code, found = remove_orphaned_else(code)
    issues.extend(found)

    return code, issues
