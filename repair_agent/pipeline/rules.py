"""Rule tables shared by the passes and the repair engine."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple

from ..models import Issue, Severity


@dataclass(frozen=True)
class Rule:
    """A pattern, the issue it raises, and an optional literal fix."""
    pattern: Pattern
    issue_type: str
    message: str
    severity: Severity = Severity.WARNING
    replacement: Optional[str] = None   # None: detect only

    def apply(self, text: str) -> Tuple[str, int]:
        """Substitute the replacement, counting only occurrences that change."""
        if self.replacement is None:
            return text, 0
        changed = 0

        def substitute(match):
            nonlocal changed
            if match.group(0) != self.replacement:
                changed += 1
            return self.replacement

        return self.pattern.sub(substitute, text), changed

    def issue(self, line: Optional[int] = None, fixed: bool = False,
              fix_description: Optional[str] = None, message: Optional[str] = None) -> Issue:
        return Issue(
            type=self.issue_type,
            severity=self.severity,
            message=message or self.message,
            line=line,
            fixed=fixed,
            fix_description=fix_description,
        )


def _rule(pattern: str, issue_type: str, message: str,
          severity: Severity = Severity.WARNING, replacement: Optional[str] = None,
          flags: int = 0) -> Rule:
    return Rule(re.compile(pattern, flags), issue_type, message, severity, replacement)


# Markup detection: an uppercase component tag or a className attribute
MARKUP_PATTERN = re.compile(r"<[A-Z][a-zA-Z0-9]*[\s/>]|className=")
TYPED_MARKUP_PATTERN = re.compile(r":\s*(string|number|boolean|React\.FC|JSX\.Element)")
TYPE_ANNOTATION_PATTERN = re.compile(r":\s*(string|number|boolean|void|any)\b")

# Last non-blank line of truncated output
TRUNCATION_RULES: List[Rule] = [
    _rule(r",\s*$", "truncated-code", "ends with a trailing comma", Severity.ERROR),
    _rule(r"\(\s*$", "truncated-code", "ends with an open parenthesis", Severity.ERROR),
    _rule(r"\{\s*$", "truncated-code", "ends with an open brace", Severity.ERROR),
    _rule(r"=>\s*$", "truncated-code", "ends with an arrow (incomplete arrow function)", Severity.ERROR),
    _rule(r"(?<![=!<>])=\s*$", "truncated-code", "ends with an assignment operator", Severity.ERROR),
    _rule(r"\+\s*$", "truncated-code", "ends with a plus operator", Severity.ERROR),
    _rule(r"&&\s*$", "truncated-code", "ends with logical AND", Severity.ERROR),
    _rule(r"\|\|\s*$", "truncated-code", "ends with logical OR", Severity.ERROR),
    _rule(r"\?\s*$", "truncated-code", "ends with a ternary operator", Severity.ERROR),
    _rule(r":\s*$", "truncated-code", "ends with a colon (incomplete ternary or object)", Severity.ERROR),
    _rule(r"\breturn\s*$", "truncated-code", "ends with an empty return statement", Severity.ERROR),
]

# Lowercase HTML attributes written in markup, normalised to their markup names
ATTRIBUTE_RULES: List[Rule] = [
    _rule(r"\bclass=", "jsx-class-to-classname", "HTML `class=` should be `className=` in JSX",
          Severity.ERROR, "className="),
    _rule(r"\bfor=", "jsx-for-to-htmlfor", "HTML `for=` should be `htmlFor=` in JSX",
          Severity.ERROR, "htmlFor="),
    _rule(r"\bonclick=", "jsx-onclick", "`onclick` should be `onClick` in JSX",
          Severity.ERROR, "onClick=", re.I),
    _rule(r"\bonchange=", "jsx-onchange", "`onchange` should be `onChange` in JSX",
          Severity.ERROR, "onChange=", re.I),
    _rule(r"\bonsubmit=", "jsx-onsubmit", "`onsubmit` should be `onSubmit` in JSX",
          Severity.ERROR, "onSubmit=", re.I),
    _rule(r"\bonmouseover=", "jsx-onmouseover", "`onmouseover` should be `onMouseOver` in JSX",
          Severity.ERROR, "onMouseOver=", re.I),
    _rule(r"\bonmouseout=", "jsx-onmouseout", "`onmouseout` should be `onMouseOut` in JSX",
          Severity.ERROR, "onMouseOut=", re.I),
    _rule(r"\bonkeydown=", "jsx-onkeydown", "`onkeydown` should be `onKeyDown` in JSX",
          Severity.ERROR, "onKeyDown=", re.I),
    _rule(r"\bonkeyup=", "jsx-onkeyup", "`onkeyup` should be `onKeyUp` in JSX",
          Severity.ERROR, "onKeyUp=", re.I),
    _rule(r"\bonfocus=", "jsx-onfocus", "`onfocus` should be `onFocus` in JSX",
          Severity.ERROR, "onFocus=", re.I),
    _rule(r"\bonblur=", "jsx-onblur", "`onblur` should be `onBlur` in JSX",
          Severity.ERROR, "onBlur=", re.I),
    _rule(r"\btabindex=", "jsx-tabindex", "`tabindex` should be `tabIndex` in JSX",
          Severity.ERROR, "tabIndex=", re.I),
    _rule(r"\breadonly(?=[\s=/>]|$)", "jsx-readonly", "`readonly` should be `readOnly` in JSX",
          Severity.ERROR, "readOnly", re.I),
    _rule(r"\bautocomplete=", "jsx-autocomplete", "`autocomplete` should be `autoComplete` in JSX",
          Severity.ERROR, "autoComplete=", re.I),
]

# Opening markup tag, allowing {...} attribute values nested two levels deep
MARKUP_TAG_PATTERN = re.compile(
    r"<[A-Za-z][\w.:-]*(?:\s(?:[^<>{}]|\{(?:[^{}]|\{[^{}]*\})*\})*)?/?>"
)

# Placeholder markers, checked per line
PLACEHOLDER_RULES: List[Rule] = [
    _rule(r"//\s*TODO", "placeholder-code", "TODO comment found", flags=re.I),
    _rule(r"//\s*FIXME", "placeholder-code", "FIXME comment found", flags=re.I),
    _rule(r"//\s*HACK", "placeholder-code", "HACK comment found", flags=re.I),
    _rule(r"/\*\s*implement\s*\*/", "placeholder-code", "Placeholder implement comment found", flags=re.I),
    _rule(r"//\s*implement\s*(here|this|later|me)", "placeholder-code",
          "Placeholder implement comment found", flags=re.I),
    _rule(r"//\s*\.{3}\s*$", "placeholder-code", "Ellipsis placeholder comment found"),
    _rule(r"^\s*\.{3}\s*$", "placeholder-code", "Spread/ellipsis placeholder found (likely incomplete code)"),
    _rule(r"//\s*add\s+(your|the|more)\s+", "placeholder-code",
          "Placeholder instruction comment found", flags=re.I),
    _rule(r"//\s*rest\s+of\s+(the\s+)?(code|implementation|logic)", "placeholder-code",
          'Placeholder "rest of code" comment found', flags=re.I),
    _rule(r"^\s*pass\s*;?\s*$", "placeholder-code", "Python-style `pass` placeholder detected"),
    _rule(r"throw\s+new\s+Error\s*\(\s*['\"`]not\s+implemented", "placeholder-code",
          '"Not implemented" error throw found', flags=re.I),
]

# Narrative a model puts before the code
PREAMBLE_PATTERNS: List[Pattern] = [
    re.compile(r"^Here(?:'s| is) (?:the|your|a|an) (?:updated |modified |complete |full )?"
               r"(?:code|implementation|solution|component|file|example)[^\n]*$", re.I),
    re.compile(r"^Sure[!,.]?(?:\s*Here(?:'s| is)[^\n]*)?$", re.I),
    re.compile(r"^(?:Below|Following) is (?:the|your|a|an) [^\n]*$", re.I),
    re.compile(r"^I've (?:created|written|implemented|updated|modified) [^\n]*$", re.I),
    re.compile(r"^(?:The|This) (?:code|implementation|solution) [^\n;{}=()]*$", re.I),
    re.compile(r"^Let me (?:create|write|implement|show|provide) [^\n]*$", re.I),
    re.compile(r"^Certainly[!,.]?(?:\s*Here[^\n]*)?$", re.I),
    re.compile(r"^Of course[!,.]?(?:\s*Here[^\n]*)?$", re.I),
]

# First line of narrative a model puts after the code
SUFFIX_PATTERNS: List[Pattern] = [
    re.compile(r"^This (?:code|implementation|component) (?:will|should|does) ", re.I),
    re.compile(r"^(?:Let me|I can) (?:know|explain|help)\b", re.I),
    re.compile(r"^Feel free to ", re.I),
    re.compile(r"^You can (?:then|now|also) ", re.I),
    re.compile(r"^Note:?\s+", re.I),
    re.compile(r"^Hope this helps", re.I),
]

VOID_ELEMENTS = frozenset({
    "img", "br", "hr", "input", "meta", "link", "area", "base",
    "col", "embed", "source", "track", "wbr",
})

REACT_HOOKS = (
    "useState", "useEffect", "useContext", "useReducer", "useCallback",
    "useMemo", "useRef", "useLayoutEffect", "useImperativeHandle",
    "useDebugValue", "useId", "useTransition", "useDeferredValue",
    "useSyncExternalStore", "useInsertionEffect",
)

# Well-known bindings and the module that provides them
KNOWN_BINDINGS: Dict[str, Tuple[str, bool]] = {   # name -> (module, is_default)
    "React": ("react", True),
    "ReactDOM": ("react-dom", True),
    "createRoot": ("react-dom/client", False),
    **{hook: ("react", False) for hook in REACT_HOOKS},
}
# Bindings the import pass reports when used but not imported
REPORTED_BINDINGS = ("React", "ReactDOM", "createRoot")

EVENT_ATTRIBUTES = (
    "onClick", "onChange", "onSubmit", "onKeyDown", "onKeyUp", "onFocus",
    "onBlur", "onMouseOver", "onMouseOut", "onInput",
)

GLOBAL_NAMES = frozenset({
    "undefined", "null", "true", "false", "NaN", "Infinity",
    "console", "window", "document", "Math", "JSON", "Date",
    "Array", "Object", "String", "Number", "Boolean", "Map",
    "Set", "Promise", "Error", "RegExp", "parseInt", "parseFloat",
    "setTimeout", "setInterval", "clearTimeout", "clearInterval",
    "fetch", "alert", "confirm", "prompt", "event", "e",
    "props", "children", "key", "ref", "className", "style",
    "index", "item", "i", "j", "k", "this",
})

TAILWIND_CLASS_PATTERN = re.compile(
    r"(?<![\w-])(flex|grid|p-\d|m-\d|text-(?:sm|lg|xl|2xl|3xl)|bg-\w+|rounded|shadow|border|"
    r"w-\d|h-\d|gap-\d|items-center|justify-center|space-[xy]-\d|min-h|max-w|overflow|"
    r"relative|absolute|fixed|sticky)(?![\w])"
)
TAILWIND_INCLUDED_PATTERN = re.compile(r"tailwindcss|tailwind\.css|@tailwind|cdn\.tailwindcss")
TAILWIND_CDN_TAG = '<script src="https://cdn.tailwindcss.com"></script>'

ROOT_RENDER_PATTERN = re.compile(r"ReactDOM\.render|createRoot|hydrateRoot")


def line_number(text: str, offset: int) -> int:
    """1-based line of a character offset."""
    return text.count("\n", 0, offset) + 1
