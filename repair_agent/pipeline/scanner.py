"""Character scanner for delimiters, strings, comments and templates.

Tracks which characters of a source text are live code and which belong to
comments, quoted strings, template strings or regex literals, so that every
later check can look at code without being fooled by a brace inside a
string or a quote inside prose.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

OPENERS: Dict[str, str] = {"{": "}", "(": ")", "[": "]"}
CLOSERS: Dict[str, str] = {v: k for k, v in OPENERS.items()}
DELIMITER_NAMES: Dict[str, str] = {
    "{": "brace", "}": "brace",
    "(": "parenthesis", ")": "parenthesis",
    "[": "bracket", "]": "bracket",
}

# A quote opens a string only after one of these (or a keyword, or line start).
# Apostrophes inside markup text ("Don't", "user's") are left alone.
_STRING_PREFIX_CHARS = set("=(,:[{+?!&|;-*%/~^")
_STRING_PREFIX_KEYWORDS = {
    "return", "from", "import", "case", "in", "of", "typeof", "throw",
    "else", "yield", "await", "default", "export", "new", "delete", "void",
}
_REGEX_PREFIX_CHARS = set("(,=:[!&|?{};")
_REGEX_PREFIX_KEYWORDS = {"return", "typeof", "case", "yield", "await"}

_WORD_CHAR = re.compile(r"[\w$]")

CODE = "code"
LINE_COMMENT = "line-comment"
BLOCK_COMMENT = "block-comment"
STRING = "string"
TEMPLATE = "template"


@dataclass
class Delimiter:
    """A delimiter or quote and where it sits (1-based line and column)."""
    char: str
    line: int
    column: int
    offset: int

    @property
    def name(self) -> str:
        return DELIMITER_NAMES.get(self.char, "string")


@dataclass
class ScanResult:
    masked: str                                                  # Same length, non-code blanked
    unmatched: List[Delimiter] = field(default_factory=list)     # Closers with no opener
    unclosed: List[Delimiter] = field(default_factory=list)      # Openers never closed
    unterminated: List[Delimiter] = field(default_factory=list)  # Quotes running to end of line
    open_template: Optional[Delimiter] = None                    # Backtick never closed

    @property
    def balanced(self) -> bool:
        return not self.unmatched and not self.unclosed


def _previous_token(code: str, index: int):
    """Return the previous non-blank character on the same line and the word ending there."""
    j = index - 1
    while j >= 0 and code[j] in " \t":
        j -= 1
    if j < 0 or code[j] == "\n":
        return None, ""
    end = j + 1
    while j >= 0 and _WORD_CHAR.match(code[j]):
        j -= 1
    return code[end - 1], code[j + 1:end]


def opens_string(code: str, index: int) -> bool:
    """Whether the quote at index starts a string literal rather than prose."""
    prev, word = _previous_token(code, index)
    if prev is None:
        return True
    if prev in _STRING_PREFIX_CHARS:
        return True
    if prev == ">" and index >= 2 and code[:index].rstrip(" \t").endswith("=>"):
        return True
    return word in _STRING_PREFIX_KEYWORDS


def _regex_end(code: str, index: int) -> int:
    """Return the index just past a regex literal starting at index, or -1."""
    nxt = code[index + 1:index + 2]
    if nxt in ("/", "*", ">", ""):
        return -1
    prev, word = _previous_token(code, index)
    if not (prev is None or prev in _REGEX_PREFIX_CHARS or word in _REGEX_PREFIX_KEYWORDS):
        return -1
    j = index + 1
    in_class = False
    while j < len(code):
        ch = code[j]
        if ch == "\n":
            return -1
        if ch == "\\":
            j += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            j += 1
            while j < len(code) and code[j].isalpha():
                j += 1
            return j
        j += 1
    return -1


def scan(code: str) -> ScanResult:
    """
    Scan source text once, tracking delimiter stacks and lexical context.

    Skips // and /* */ comments, single and double quoted strings (escape
    aware, ended by the end of the line), template strings including nested
    ${...} expressions, regex literals and markdown fence lines.

    Args:
        code: Source text

    Returns:
        ScanResult with masked text and delimiter findings
    """
    masked = list(code)
    stacks: Dict[str, List[Delimiter]] = {k: [] for k in OPENERS}
    result = ScanResult(masked="")
    template_stack: List[Delimiter] = []
    expr_depths: List[int] = []   # Brace depth of each open ${...}

    mode = CODE
    quote: Optional[Delimiter] = None
    line, line_start = 1, 0
    i, n = 0, len(code)

    def blank(start: int, end: int) -> None:
        for k in range(start, min(end, n)):
            if masked[k] != "\n":
                masked[k] = " "

    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ""
        column = i - line_start + 1

        if ch == "\n":
            if mode == LINE_COMMENT:
                mode = CODE
            elif mode == STRING:
                result.unterminated.append(quote)
                mode = CODE
            line += 1
            line_start = i + 1
            i += 1
            continue

        if mode == LINE_COMMENT:
            blank(i, i + 1)
            i += 1
            continue

        if mode == BLOCK_COMMENT:
            blank(i, i + 1)
            if ch == "*" and nxt == "/":
                blank(i + 1, i + 2)
                mode = CODE
                i += 2
                continue
            i += 1
            continue

        if mode == STRING:
            if ch == "\\":
                blank(i, i + 2)
                if nxt == "\n":
                    line += 1
                    line_start = i + 2
                i += 2
                continue
            if ch == quote.char:
                mode = CODE
            else:
                blank(i, i + 1)
            i += 1
            continue

        if mode == TEMPLATE:
            if ch == "\\":
                blank(i, i + 2)
                if nxt == "\n":
                    line += 1
                    line_start = i + 2
                i += 2
                continue
            if ch == "`":
                template_stack.pop()
                mode = CODE
                i += 1
                continue
            blank(i, i + 1)
            if ch == "$" and nxt == "{":
                blank(i + 1, i + 2)
                expr_depths.append(0)
                mode = CODE
                i += 2
                continue
            i += 1
            continue

        # CODE
        in_expr = bool(expr_depths)
        if i == line_start and not in_expr and code[i:].lstrip(" \t").startswith("```"):
            end = code.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
            continue

        if ch == "/" and nxt == "/":
            blank(i, i + 2)
            mode = LINE_COMMENT
            i += 2
            continue
        if ch == "/" and nxt == "*":
            blank(i, i + 2)
            mode = BLOCK_COMMENT
            i += 2
            continue
        if ch == "/":
            end = _regex_end(code, i)
            if end != -1:
                blank(i, end)
                i = end
                continue

        if ch in "'\"" and opens_string(code, i):
            quote = Delimiter(ch, line, column, i)
            mode = STRING
            i += 1
            continue
        if ch == "`":
            template_stack.append(Delimiter(ch, line, column, i))
            mode = TEMPLATE
            i += 1
            continue

        if in_expr:
            blank(i, i + 1)
            if ch == "{":
                expr_depths[-1] += 1
            elif ch == "}":
                if expr_depths[-1] == 0:
                    expr_depths.pop()
                    mode = TEMPLATE
                else:
                    expr_depths[-1] -= 1
            i += 1
            continue

        if ch in OPENERS:
            stacks[ch].append(Delimiter(ch, line, column, i))
        elif ch in CLOSERS:
            stack = stacks[CLOSERS[ch]]
            if stack:
                stack.pop()
            else:
                result.unmatched.append(Delimiter(ch, line, column, i))
        i += 1

    if mode == STRING:
        result.unterminated.append(quote)
    if template_stack:
        result.open_template = template_stack[0]

    result.unclosed = sorted(
        (d for stack in stacks.values() for d in stack), key=lambda d: d.offset
    )
    result.masked = "".join(masked)
    return result


def mask_code(code: str) -> str:
    """Return code with comments and literal contents blanked out."""
    return scan(code).masked


def find_block_end(code: str, start: int) -> int:
    """
    Find the end of the block or statement that begins at start.

    Walks forward to the first code-level '{' and returns the index just
    past its matching '}'. An arrow function with an expression body ends
    at the first ';' or blank line at depth zero instead.

    Returns:
        End index, or -1 if the block never closes
    """
    masked = mask_code(code[start:])
    depth = 0
    started = False
    for k, ch in enumerate(masked):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "{":
            if depth == 0:
                started = True
            depth += 1
        elif ch == "}":
            depth -= 1
            if started and depth == 0:
                end = start + k + 1
                if code[end:end + 1] == ";":
                    end += 1
                return end
        elif ch == ";" and depth == 0:
            return start + k + 1
        elif ch == "\n" and depth == 0 and not started and masked[k + 1:k + 2] == "\n":
            return start + k
    return -1
