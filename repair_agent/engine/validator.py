"""Lower-level syntax and style checker used by the repair loop."""

import re
from collections import Counter
from typing import List, Optional, Tuple

from ..models import SyntaxIssue, ValidationResult
from ..pipeline.pass4_completeness import collect_declared_names
from ..pipeline.rules import KNOWN_BINDINGS, REACT_HOOKS
from ..pipeline.scanner import scan

MAX_LINE_LENGTH = 120

# (pattern, message, severity), matched against masked lines
LINE_CHECKS = [
    (re.compile(r"=\s*=\s*=\s*="), "Invalid equality operator (====)", "error"),
    (re.compile(r"\bconst\s+[\w$]+\s*:\s*$"), "Missing type annotation value", "error"),
    (re.compile(r"\)\s*\{.*\}\s*else\b"), "Else clause on same line as closing brace", "warning"),
    (re.compile(r"\bfunction\s+\("), "Missing function name or use arrow function", "warning"),
    (re.compile(r"export\s+default\s+function\s*$"), "Incomplete function export", "warning"),
    (re.compile(r"=>\s*$"), "Arrow function missing body", "warning"),
    (re.compile(r"\breturn\s+$"), "Return statement missing value", "warning"),
]

_OPEN_NAMED_IMPORT = re.compile(r"^\s*import\s+(?:[\w$]+\s*,\s*)?\{[^}]*$")
_IMPORT_CLOSES = re.compile(r"[^}]*\}\s*from\b")
_ANY_TYPE = re.compile(r":\s*any\b")
_CONSOLE = re.compile(r"console\.(?:log|error|warn|debug|info)")

_USAGE = {
    "React": re.compile(r"(?<![.\w$])React\."),
    "ReactDOM": re.compile(r"(?<![.\w$])ReactDOM\."),
    "createRoot": re.compile(r"(?<![.\w$])createRoot\s*\("),
}
_USAGE.update({
    hook: re.compile(rf"(?<![.\w$]){hook}\s*(?:<[^<>()]*>)?\s*\(") for hook in REACT_HOOKS
})

_SUGGESTIONS = [
    ("Unmatched closing parenthesis", "Add opening parenthesis '(' or remove extra closing ')'"),
    ("Unmatched closing bracket", "Add opening bracket '[' or remove extra closing ']'"),
    ("Unmatched closing brace", "Add opening brace '{' or remove extra closing '}'"),
    ("Unclosed", "Add the missing closing delimiter(s) at the end of the block"),
    ("Unterminated string", "Close the string with the matching quote character"),
    ("Unterminated template", "Close the template literal with a backtick"),
    ("Invalid equality operator", "Use === instead of ===="),
]


class SyntaxValidator:
    """
    Heuristic validator for JavaScript/TypeScript text.

    Errors block the repair loop; warnings only block in strict mode.
    """

    def validate(self, code: str, language: str = "typescript") -> ValidationResult:
        """
        Validate source text.

        Args:
            code: Source text
            language: "typescript" also flags explicit any types

        Returns:
            ValidationResult with errors, warnings and a hint for the first error
        """
        errors: List[SyntaxIssue] = []
        warnings: List[SyntaxIssue] = []

        result = scan(code)
        errors.extend(self._delimiter_errors(result))

        masked_lines = result.masked.split("\n")
        lines = code.split("\n")
        for index, masked in enumerate(masked_lines):
            number = index + 1
            for pattern, message, severity in LINE_CHECKS:
                if pattern.search(masked):
                    target = errors if severity == "error" else warnings
                    target.append(SyntaxIssue(number, 0, message, severity))
            if _OPEN_NAMED_IMPORT.search(masked):
                rest = "\n".join(masked_lines[index:])
                if not _IMPORT_CLOSES.match(rest[rest.index("{") + 1:]):
                    warnings.append(SyntaxIssue(number, 0, "Incomplete import statement", "warning"))
            if language == "typescript":
                any_type = _ANY_TYPE.search(masked)
                if any_type:
                    warnings.append(SyntaxIssue(
                        number, any_type.start() + 1,
                        "Consider using a more specific type instead of 'any'", "warning",
                    ))

        errors.extend(self._unresolved_names(code, result.masked))
        warnings.extend(self._style_warnings(lines))

        return ValidationResult(
            errors=errors,
            warnings=warnings,
            suggested_fix=self.suggest_fix(errors[0]) if errors else None,
        )

    def _delimiter_errors(self, result) -> List[SyntaxIssue]:
        errors = []
        for d in result.unmatched:
            errors.append(SyntaxIssue(d.line, d.column, f"Unmatched closing {d.name} '{d.char}'", "error"))
        counts = Counter(d.char for d in result.unclosed)
        reported = set()
        for d in result.unclosed:
            if d.char in reported:
                continue
            reported.add(d.char)
            errors.append(SyntaxIssue(
                d.line, d.column, f"Unclosed {d.name} '{d.char}' ({counts[d.char]} missing)", "error",
            ))
        for d in result.unterminated:
            errors.append(SyntaxIssue(
                d.line, d.column, f"Unterminated string literal (started with {d.char})", "error",
            ))
        if result.open_template:
            d = result.open_template
            errors.append(SyntaxIssue(d.line, d.column, "Unterminated template literal", "error"))
        return errors

    def _unresolved_names(self, code: str, masked: str) -> List[SyntaxIssue]:
        """Well-known bindings used without an import or declaration."""
        declared = None
        errors = []
        for name, pattern in _USAGE.items():
            match = pattern.search(masked)
            if not match:
                continue
            if declared is None:
                declared = collect_declared_names(code)
            if name in declared:
                continue
            line = masked.count("\n", 0, match.start()) + 1
            column = match.start() - masked.rfind("\n", 0, match.start())
            errors.append(SyntaxIssue(line, column, f"Cannot find name '{name}'", "error"))
        return errors

    def _style_warnings(self, lines: List[str]) -> List[SyntaxIssue]:
        warnings = []
        for index, line in enumerate(lines):
            number = index + 1
            if len(line) > MAX_LINE_LENGTH:
                warnings.append(SyntaxIssue(
                    number, MAX_LINE_LENGTH,
                    f"Line exceeds {MAX_LINE_LENGTH} characters ({len(line)})", "warning",
                ))
            indent = line[:len(line) - len(line.lstrip(" \t"))]
            if "\t" in indent and " " in indent:
                warnings.append(SyntaxIssue(number, 0, "Mixed tabs and spaces in indentation", "warning"))
            console = _CONSOLE.search(line)
            if console and "eslint-disable" not in line:
                warnings.append(SyntaxIssue(
                    number, console.start() + 1,
                    "Console statement detected - consider using a logger", "warning",
                ))
        return warnings

    @staticmethod
    def suggest_fix(error: SyntaxIssue) -> Optional[str]:
        for prefix, suggestion in _SUGGESTIONS:
            if error.message.startswith(prefix):
                return suggestion
        missing = re.match(r"Cannot find name '([\w$]+)'", error.message)
        if missing and missing.group(1) in KNOWN_BINDINGS:
            module, is_default = KNOWN_BINDINGS[missing.group(1)]
            kind = "default import" if is_default else "named import"
            return f"Add a {kind} of '{missing.group(1)}' from '{module}'"
        return None

    def validate_chunk(self, chunk: str, previous_code: str) -> Tuple[bool, Optional[SyntaxIssue]]:
        """
        Check a streamed chunk for an error that can never be repaired by more text.

        Only a stray closing delimiter qualifies; unclosed openers may still be
        closed by later chunks.
        """
        result = self.validate(previous_code + chunk)
        critical = next((e for e in result.errors if e.message.startswith("Unmatched closing")), None)
        return critical is None, critical

    def get_completion_hints(self, code: str) -> List[str]:
        """What a truncated text still needs to close."""
        result = scan(code)
        counts = Counter(d.char for d in result.unclosed)
        hints = []
        for opener, closer, name in (("(", ")", "parenthesis"), ("[", "]", "bracket"), ("{", "}", "brace")):
            if counts[opener]:
                hints.append(f"Need {counts[opener]} closing {name} '{closer}'")
        if result.open_template:
            hints.append("Need 1 closing backtick '`'")
        return hints
