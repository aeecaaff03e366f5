"""Deterministic formatting applied by the style-enforcement strategy."""

import re
from typing import List, Tuple

from ..pipeline.pass1_structural import fix_missing_semicolons
from ..pipeline.scanner import scan

TAB_WIDTH = 2

_SINGLE_LINE_IMPORT = re.compile(r"^import\s.+\sfrom\s*(['\"])([^'\"]+)\1\s*;?\s*$")


class StyleEnforcer:
    """Formats code without changing what it means."""

    def format_code(self, code: str) -> Tuple[str, bool]:
        """
        Normalize whitespace, terminators and the import block.

        Args:
            code: Source text

        Returns:
            Tuple of (formatted code, whether anything changed)
        """
        formatted = code.replace("\r\n", "\n").replace("\r", "\n")
        formatted = self.normalize_indentation(formatted)
        formatted = "\n".join(line.rstrip() for line in formatted.split("\n"))
        formatted = re.sub(r"\n{3,}", "\n\n", formatted)
        formatted, _ = fix_missing_semicolons(formatted)
        formatted = self.sort_imports(formatted)
        if formatted and not formatted.endswith("\n"):
            formatted += "\n"
        return formatted, formatted != code

    @staticmethod
    def normalize_indentation(code: str) -> str:
        """Expand tabs in leading whitespace, leaving lines inside literals alone."""
        masked_lines = scan(code).masked.split("\n")
        lines = code.split("\n")
        for i, line in enumerate(lines):
            indent = line[:len(line) - len(line.lstrip(" \t"))]
            if "\t" not in indent or len(indent) == len(line):
                continue
            # First visible character blanked: the line continues a template or comment
            if masked_lines[i][len(indent)] == " ":
                continue
            lines[i] = indent.replace("\t", " " * TAB_WIDTH) + line[len(indent):]
        return "\n".join(lines)

    @staticmethod
    def sort_imports(code: str) -> str:
        """
        Group the leading imports as packages, then '@/' aliases, then relative paths.

        Only single-line imports with a from clause are moved; any other
        statement in the block leaves it untouched.
        """
        lines = code.split("\n")
        block: List[str] = []
        end = 0
        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                end = i + 1
                continue
            if not stripped.startswith("import"):
                break
            if not _SINGLE_LINE_IMPORT.match(stripped):
                return code
            block.append(stripped)
            end = i + 1
        if len(block) < 2:
            return code

        packages, aliases, relative = [], [], []
        for statement in block:
            module = _SINGLE_LINE_IMPORT.match(statement).group(2)
            if module.startswith("."):
                relative.append(statement)
            elif module.startswith("@/"):
                aliases.append(statement)
            else:
                packages.append(statement)

        groups = [sorted(group) for group in (packages, aliases, relative) if group]
        head = "\n\n".join("\n".join(group) for group in groups)
        rest = "\n".join(lines[end:]).lstrip("\n")
        return head + "\n\n" + rest if rest else head + "\n"
