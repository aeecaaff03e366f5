"""Pass 2: Component Markup - exports, hook imports, tags, render call, attributes."""

import re
from collections import Counter
from typing import List, Optional, Tuple

from ..models import Issue, Severity
from .rules import (
    ATTRIBUTE_RULES,
    MARKUP_PATTERN,
    MARKUP_TAG_PATTERN,
    REACT_HOOKS,
    ROOT_RENDER_PATTERN,
    VOID_ELEMENTS,
)
from .scanner import mask_code

PASS_NAME = "React/JSX Specific"

_EXPORT_PATTERNS = [
    re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:function|class|const|let|var)\s+\w+"),
    re.compile(r"export\s+default\s+[\w(<]"),
    re.compile(r"export\s*\{[^}]*\}"),
    re.compile(r"module\.exports"),
]
_COMPONENT_DECL = re.compile(
    r"(?:function|const|let|class)\s+([A-Z][a-zA-Z0-9]*)\s*"
    r"(?:=\s*(?:async\s*)?(?:\([^)]*\)|[\w$]+)?\s*=>|[({<]|extends\b|=\s*function\b)"
)
_REACT_NAMED_IMPORT = re.compile(
    r"import\s+(?:([\w$]+)\s*,\s*)?\{([^}]*)\}\s*from\s*(['\"])react\3\s*;?"
)
_REACT_DEFAULT_IMPORT = re.compile(r"import\s+([\w$]+)\s+from\s*(['\"])react\2\s*;?")
_IMPORT_COMPLETE = re.compile(r"from\s*['\"]|^import\s*['\"]")
_OPEN_TAG = re.compile(
    r"(?<![\w$.])<([A-Za-z][\w.]*)((?:[^<>{}]|\{(?:[^{}]|\{[^{}]*\})*\})*)>"
)
_CLOSE_TAG = re.compile(r"</([A-Za-z][\w.]*)\s*>")


def has_markup(code: str) -> bool:
    return bool(MARKUP_PATTERN.search(code))


def has_export(code: str) -> bool:
    return any(p.search(code) for p in _EXPORT_PATTERNS)


def find_component(code: str) -> Optional[str]:
    match = _COMPONENT_DECL.search(mask_code(code))
    return match.group(1) if match else None


def _returns_markup(code: str, name: str) -> bool:
    return bool(
        re.search(rf"function\s+{name}\b[\s\S]*?return\s*\(?\s*<", code)
        or re.search(rf"(?:const|let)\s+{name}\s*=.*=>\s*\(?\s*<", code)
        or re.search(rf"class\s+{name}\b[\s\S]*?render\s*\(\s*\)", code)
        or re.search(r"<[A-Z]", code)
    )


def insert_import(code: str, statement: str) -> str:
    """Insert an import statement after the leading import block."""
    lines = code.split("\n")
    insert_at = 0
    in_import = False
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("import ") or stripped.startswith("import{"):
            in_import = not _IMPORT_COMPLETE.search(stripped)
            insert_at = i + 1
        elif in_import:
            in_import = not _IMPORT_COMPLETE.search(stripped)
            insert_at = i + 1
        elif stripped and not stripped.startswith(("//", "/*", "*", "'use", '"use')):
            break
    lines.insert(insert_at, statement)
    return "\n".join(lines)


def ensure_component_export(code: str) -> Tuple[str, List[Issue]]:
    """Export the top-level component when nothing is exported."""
    if has_export(code) or ROOT_RENDER_PATTERN.search(code):
        return code, []
    name = find_component(code)
    if not name or not _returns_markup(code, name):
        return code, []
    return code.rstrip() + f"\n\nexport default {name};\n", [Issue(
        type="missing-export",
        severity=Severity.WARNING,
        message=f"Component '{name}' is not exported",
        fixed=True,
        fix_description=f"Added 'export default {name}' at end of file",
    )]


def add_missing_hook_imports(code: str) -> Tuple[str, List[Issue]]:
    """Import hooks from react that are called but never imported."""
    masked = mask_code(code)
    named = _REACT_NAMED_IMPORT.search(code)
    imported = set()
    if named:
        imported = {n.strip().split(" as ")[-1].strip() for n in named.group(2).split(",")}

    missing = [
        hook for hook in REACT_HOOKS
        if re.search(rf"(?<![.\w$]){hook}\s*(?:<[^<>()]*>)?\s*\(", masked)
        and hook not in imported
        and not re.search(rf"(?:function|const|let|var)\s+{hook}\b", masked)
    ]
    if not missing:
        return code, []

    if named:
        default, names, quote = named.group(1), named.group(2), named.group(3)
        merged = [n.strip() for n in names.split(",") if n.strip()]
        merged += [h for h in missing if h not in merged]
        head = f"import {default}, " if default else "import "
        statement = f"{head}{{ {', '.join(merged)} }} from {quote}react{quote};"
        result = code[:named.start()] + statement + code[named.end():]
    else:
        default = _REACT_DEFAULT_IMPORT.search(code)
        if default:
            quote = default.group(2)
            statement = f"import {default.group(1)}, {{ {', '.join(missing)} }} from {quote}react{quote};"
            result = code[:default.start()] + statement + code[default.end():]
        else:
            result = f"import {{ {', '.join(missing)} }} from 'react';\n" + code

    if result == code:
        return code, []
    return result, [Issue(
        type="missing-react-imports",
        severity=Severity.ERROR,
        message=f"Missing React hook imports: {', '.join(missing)}",
        fixed=True,
        fix_description=f"Added imports for: {', '.join(missing)}",
    )]


def check_unclosed_tags(code: str) -> List[Issue]:
    """Compare opening and closing tag counts; reported, never fixed."""
    masked = mask_code(code)
    opened: Counter = Counter()
    closed: Counter = Counter()
    for match in _OPEN_TAG.finditer(masked):
        tag, attrs = match.group(1), match.group(2)
        if attrs.rstrip().endswith("/") or tag.lower() in VOID_ELEMENTS:
            continue
        opened[tag] += 1
    for match in _CLOSE_TAG.finditer(masked):
        closed[match.group(1)] += 1

    issues = []
    for tag, count in opened.items():
        missing = count - closed[tag]
        if missing > 0:
            issues.append(Issue(
                type="unclosed-jsx-tag",
                severity=Severity.WARNING,
                message=f"Potentially {missing} unclosed <{tag}> tag(s)",
                fix_description=f"Check that all <{tag}> tags have matching closing tags",
            ))
    return issues


def ensure_render_call(code: str) -> Tuple[str, List[Issue]]:
    """Give a standalone component a root render call."""
    if has_export(code) or ROOT_RENDER_PATTERN.search(code):
        return code, []
    name = find_component(code)
    if not name:
        return code, []

    result = code
    if not re.search(r"import[^;]*from\s*['\"]react-dom", code):
        result = insert_import(result, "import { createRoot } from 'react-dom/client';")
    result = result.rstrip() + (
        f"\n\nconst root = createRoot(document.getElementById('root'));\n"
        f"root.render(<{name} />);\n"
    )
    return result, [Issue(
        type="missing-render-call",
        severity=Severity.WARNING,
        message="Standalone React component has no render call",
        fixed=True,
        fix_description=f"Added createRoot render call for <{name} />",
    )]


def fix_attribute_names(code: str) -> Tuple[str, List[Issue]]:
    """Rename lowercase HTML attributes inside markup tags."""
    issues = []
    result = code
    for rule in ATTRIBUTE_RULES:
        count = 0

        def in_tag(match):
            nonlocal count
            text, changed = rule.apply(match.group(0))
            count += changed
            return text

        result = MARKUP_TAG_PATTERN.sub(in_tag, result)
        if count:
            issues.append(rule.issue(fixed=True, fix_description=f"Replaced {count} occurrence(s)"))
    return result, issues


def run_markup_pass(code: str, is_markup_language: bool = False) -> Tuple[str, List[Issue]]:
    """
    Pass 2: component conventions for markup-bearing files.

    Runs only when markup is detected or the language is known to carry it.

    Args:
        code: Source text
        is_markup_language: Language was given or detected as jsx/tsx

    Returns:
        Tuple of (updated code, issues)
    """
    issues: List[Issue] = []
    if not is_markup_language and not has_markup(code):
        return code, issues

    code, found = ensure_component_export(code)
    issues.extend(found)

    code, found = add_missing_hook_imports(code)
    issues.extend(found)

    issues.extend(check_unclosed_tags(code))

    code, found = ensure_render_call(code)
    issues.extend(found)

    code, found = fix_attribute_names(code)
    issues.extend(found)

    return code, issues
