"""Error learning: known error signatures, fix hints and prevention prompts."""

import re
import threading
import uuid
from collections import Counter, deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Tuple

from ..config import MAX_ERROR_HISTORY, MAX_LEARNED_PATTERNS
from ..models import ErrorOccurrence, ErrorPattern, LearningInsight
from ..tools import BoundedStore
from ..utils.logging import get_logger
from .guidance import detect_model_family

logger = get_logger(__name__)

MAX_TRACKED_MODELS = 200
SIMILARITY_THRESHOLD = 0.7
MIN_SIMILAR_ERRORS = 3

# (name, regex, category, prevention, auto_fix)
BUILTIN_PATTERNS: List[Tuple[str, str, str, str, Optional[str]]] = [
    ("Missing semicolon", r"Missing semicolon|Expected.*';'", "syntax",
     "Always end statements with semicolons. Use 'semi: true' in your code style.",
     "Add semicolon at end of line"),
    ("Unclosed bracket", r"Unexpected token|Expected.*[}\])]", "syntax",
     "Ensure all opening brackets have matching closing brackets. Use an editor with bracket matching.",
     "Add missing closing bracket"),
    ("Unbalanced delimiter", r"Unmatched closing|Unclosed (?:brace|parenthesis|bracket)", "syntax",
     "Close every brace, parenthesis and bracket you open, and never add an extra closer.",
     "Remove the stray closer or append the missing one"),
    ("Unterminated literal", r"Unterminated (?:string|template) literal", "syntax",
     "Close every string and template literal on the line where it starts.",
     "Close the literal with its opening quote"),
    ("Invalid equality operator", r"Invalid equality operator", "syntax",
     "Use === and !== for comparisons.",
     "Replace ==== with ==="),
    ("Type mismatch", r"Type '.*' is not assignable to type", "type",
     "Define explicit types for function parameters and return values. Avoid using 'any'.",
     None),
    ("Missing import", r"Cannot find module|Cannot find name '(\w+)'", "import",
     "Import all dependencies at the top of the file. Check spelling of imported names.",
     "Add import statement for missing module"),
    ("Duplicate declaration", r"Duplicate identifier|has already been declared", "syntax",
     "Use unique names for variables and functions. Check for conflicting imports.",
     None),
    ("JSX expression error", r"JSX expressions must have one parent element", "jsx",
     "Wrap multiple JSX elements in a parent <div> or <Fragment>.",
     "Wrap elements in React.Fragment"),
    ("Missing key prop", r"Each child in a list should have a unique \"key\" prop", "jsx",
     "Always provide a unique 'key' prop when rendering lists with .map().",
     "Add key prop using index or unique id"),
    ("Async/await misuse", r"await is only valid in async function|Promise returned.*ignored", "async",
     "Mark functions as 'async' when using 'await'. Always handle Promise rejections.",
     "Add async keyword to function"),
    ("Undefined variable", r"(\w+) is not defined|Cannot read propert.*undefined", "runtime",
     "Initialize variables before use. Add null checks for optional properties.",
     "Add variable declaration or null check"),
    ("Invalid hook call", r"Invalid hook call|Hooks can only be called inside", "logic",
     "Only call hooks at the top level of React function components. "
     "Don't call hooks inside loops or conditions.",
     None),
    ("Export/import mismatch", r"does not provide an export named|Module.*has no exported member", "import",
     "Match import names exactly with export names. Use 'export default' for single exports.",
     "Fix export/import statement"),
    ("TypeScript strict mode", r"Object is possibly 'null'|Object is possibly 'undefined'", "type",
     "Use optional chaining (?.) and nullish coalescing (??) operators. Add type guards.",
     "Add null check or optional chaining"),
    ("React state mutation", r"Do not mutate state directly|Cannot assign to.*because it is a read-only", "logic",
     "Never mutate state directly. Use setState or the spread operator to create new state objects.",
     None),
    ("Missing return statement", r"A function whose declared type is.*must return a value", "type",
     "Ensure all code paths return a value for non-void functions.",
     "Add return statement"),
    ("Circular dependency", r"Circular dependency|Cannot access.*before initialization", "import",
     "Restructure code to avoid circular imports. Move shared code to a separate module.",
     None),
]

DEFAULT_PREVENTION_PROMPT = """## Code Quality Guidelines
- Always close all brackets, parentheses, and braces
- Import all dependencies at the top of the file
- Use TypeScript types explicitly (avoid 'any')
- Handle null/undefined with optional chaining (?.) or null checks
- Wrap JSX elements in a single parent element
- Add unique 'key' props to list items
- Mark functions as 'async' when using 'await'
- Never mutate React state directly
"""

CATEGORY_RECOMMENDATIONS = {
    "syntax": "Add extra emphasis on code syntax correctness in prompts",
    "type": "Include explicit TypeScript type annotations in examples",
    "import": "List required imports explicitly in the prompt",
    "jsx": "Provide JSX structure examples in the prompt",
    "async": "Include async/await patterns in code examples",
}

_WORDS = re.compile(r"\W+")
_QUOTED = re.compile(r"(['\"`])[^'\"`]*\1")
_NUMBER = re.compile(r"\b\d+\b")
_CAMEL = re.compile(r"\b[A-Z][a-z]+[A-Z]\w*")
_TOKEN = re.compile(r"'\.\.\.'|\bN\b|\bClassName\b")
_TOKEN_REGEX = {"'...'": r"['\"`][^'\"`]*['\"`]", "N": r"\d+", "ClassName": r"\w+"}


def similarity(first: str, second: str) -> float:
    """Jaccard similarity of the lowercase word sets of two messages."""
    a = set(_WORDS.split(first.lower())) - {""}
    b = set(_WORDS.split(second.lower())) - {""}
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def extract_pattern(message: str) -> Optional[Tuple[str, str]]:
    """
    Generalize an error message into a display name and a regex.

    Quoted text becomes '...', standalone numbers N and CamelCase words
    ClassName; each placeholder then matches any value of its kind.

    Returns:
        Tuple of (name, regex source), or None if too little is left
    """
    cleaned = _QUOTED.sub("'...'", message)
    cleaned = _NUMBER.sub("N", cleaned)
    cleaned = _CAMEL.sub("ClassName", cleaned).strip()
    if len(cleaned) < 10:
        return None

    parts = []
    position = 0
    for token in _TOKEN.finditer(cleaned):
        parts.append(re.escape(cleaned[position:token.start()]))
        parts.append(_TOKEN_REGEX[token.group(0)])
        position = token.end()
    parts.append(re.escape(cleaned[position:]))
    return cleaned, "".join(parts)


def infer_category(message: str) -> str:
    lower = message.lower()
    if "type" in lower or "assignable" in lower:
        return "type"
    if "import" in lower or "module" in lower or "export" in lower:
        return "import"
    if "jsx" in lower or "react" in lower:
        return "jsx"
    if "async" in lower or "await" in lower or "promise" in lower:
        return "async"
    if "undefined" in lower or "null" in lower or "runtime" in lower:
        return "runtime"
    if "hook" in lower or "state" in lower or "effect" in lower:
        return "logic"
    return "syntax"


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class ErrorLearning:
    """
    Tracks which error signatures occur, how often they get fixed and by
    which model, and turns that into hints for the repair loop and
    prevention text for generation prompts.

    Signatures seen repeatedly without a known pattern are generalized and
    learned as new patterns.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._patterns: BoundedStore[str, ErrorPattern] = BoundedStore(MAX_LEARNED_PATTERNS)
        self._history: Deque[ErrorOccurrence] = deque(maxlen=MAX_ERROR_HISTORY)
        self._models: BoundedStore[str, Dict[str, Any]] = BoundedStore(MAX_TRACKED_MODELS)
        self._fix_success: BoundedStore[str, Dict[str, int]] = BoundedStore(MAX_TRACKED_MODELS)
        self._load_builtin_patterns()

    def _load_builtin_patterns(self) -> None:
        for name, regex, category, prevention, auto_fix in BUILTIN_PATTERNS:
            pattern_id = f"pattern_{_slug(name)}"
            self._patterns.set(pattern_id, ErrorPattern(
                id=pattern_id,
                name=name,
                regex=re.compile(regex, re.I),
                category=category,
                prevention=prevention,
                auto_fix=auto_fix,
            ))

    def _matching(self, message: str) -> List[ErrorPattern]:
        return [p for p in self._patterns.values() if p.regex.search(message)]

    def record_error(self, occurrence: ErrorOccurrence) -> None:
        """
        Record one error and whether it was fixed.

        Args:
            occurrence: The error message and fix outcome
        """
        with self._lock:
            self._history.append(occurrence)
            matched = self._matching(occurrence.message)
            now = datetime.now()
            for pattern in matched:
                pattern.frequency += 1
                pattern.last_seen = now
                logger.debug(f"Error pattern matched: {pattern.name} (frequency {pattern.frequency})")

            first_id = matched[0].id if matched else None
            if occurrence.model_used:
                def track(entry):
                    entry = entry or {"errors": 0, "fixed": 0, "patterns": Counter()}
                    entry["errors"] += 1
                    if occurrence.was_fixed:
                        entry["fixed"] += 1
                    if first_id:
                        entry["patterns"][first_id] += 1
                    return entry
                self._models.update(occurrence.model_used, track)

            if first_id:
                def count(entry):
                    entry = entry or {"attempts": 0, "successes": 0}
                    entry["attempts"] += 1
                    if occurrence.was_fixed:
                        entry["successes"] += 1
                    return entry
                self._fix_success.update(first_id, count)
            else:
                self._learn(occurrence)

    def _learn(self, occurrence: ErrorOccurrence) -> None:
        if len(occurrence.message) <= 10:
            return
        similar = [
            e for e in self._history
            if similarity(e.message, occurrence.message) > SIMILARITY_THRESHOLD
        ]
        if len(similar) < MIN_SIMILAR_ERRORS:
            return
        extracted = extract_pattern(occurrence.message)
        if not extracted:
            return
        name, regex = extracted
        pattern_id = f"learned_{uuid.uuid4().hex[:12]}"
        self._patterns.set(pattern_id, ErrorPattern(
            id=pattern_id,
            name=name,
            regex=re.compile(regex, re.I),
            category=infer_category(occurrence.message),
            prevention=(f"This error has occurred {len(similar)} times. "
                        "Consider reviewing the related code patterns."),
            model_family=detect_model_family(occurrence.model_used),
            frequency=len(similar),
            learned=True,
        ))
        logger.info(f"New error pattern learned: {name} ({len(similar)} occurrences)")

    def get_auto_fix(self, message: str) -> Optional[str]:
        """Fix description of the first pattern matching message, if it has one."""
        for pattern in self._patterns.values():
            if pattern.auto_fix and pattern.regex.search(message):
                return pattern.auto_fix
        return None

    def known_fix(self, message: str) -> Optional[str]:
        """Like get_auto_fix, but only for signatures that have been seen before."""
        for pattern in self._patterns.values():
            if pattern.auto_fix and pattern.frequency > 0 and pattern.regex.search(message):
                return pattern.auto_fix
        return None

    def _fix_rate(self, pattern_id: str) -> Optional[int]:
        tracking = self._fix_success.get(pattern_id)
        if not tracking or not tracking["attempts"]:
            return None
        return int(round(tracking["successes"] / tracking["attempts"] * 100))

    def _family_tracking(self, family: str) -> Optional[Dict[str, Any]]:
        """Model tracking summed over every model name in a family."""
        total = None
        for model, entry in self._models.items():
            if detect_model_family(model) != family:
                continue
            if total is None:
                total = {"errors": 0, "fixed": 0, "patterns": Counter()}
            total["errors"] += entry["errors"]
            total["fixed"] += entry["fixed"]
            total["patterns"].update(entry["patterns"])
        return total

    def get_prevention_prompt(self, model_family: Optional[str] = None) -> str:
        """
        Prevention text for a generation prompt.

        Args:
            model_family: Family from detect_model_family, adds model notes

        Returns:
            Markdown block; the general guidelines when nothing has been recorded
        """
        with self._lock:
            top = sorted(
                (p for p in self._patterns.values() if p.frequency > 0),
                key=lambda p: p.frequency, reverse=True,
            )[:10]
            if not top:
                return DEFAULT_PREVENTION_PROMPT

            lines = [
                "## Common Error Prevention",
                "Based on previous generation patterns, please avoid these common mistakes:",
                "",
            ]
            for pattern in top:
                rate = self._fix_rate(pattern.id)
                tag = ""
                if rate is not None and rate < 50:
                    tag = " [CRITICAL - hard to fix automatically]"
                elif pattern.frequency >= 5:
                    tag = " [FREQUENT]"
                lines.append(f"- **{pattern.name}**{tag}: {pattern.prevention}")

            if model_family:
                tracking = self._family_tracking(model_family)
                family_patterns = [
                    p for p in self._patterns.values()
                    if p.model_family == model_family and p.frequency > 2
                ]
                if tracking or family_patterns:
                    lines.append("")
                    lines.append(f"### Model-Specific Notes ({model_family}):")
                if tracking and tracking["errors"]:
                    rate = int(round(tracking["fixed"] / tracking["errors"] * 100))
                    lines.append(f"- Overall fix rate for this model: {rate}%")
                    if rate < 60:
                        lines.append("- This model has a below-average fix rate. Extra care is needed.")
                    for pattern_id, count in tracking["patterns"].most_common(5):
                        pattern = self._patterns.get(pattern_id)
                        if pattern:
                            lines.append(f"- Watch for: {pattern.name} (occurred {count}x with this model)")
                for pattern in family_patterns[:5]:
                    lines.append(f"- Watch for: {pattern.name}")

            return "\n".join(lines) + "\n"

    def get_insights(self) -> List[LearningInsight]:
        """Seen patterns grouped by category, most frequent first."""
        seen = [p for p in self._patterns.values() if p.frequency > 0]
        categories: List[str] = []
        for p in seen:
            if p.category not in categories:
                categories.append(p.category)

        insights = []
        for category in categories:
            ranked = sorted((p for p in seen if p.category == category),
                            key=lambda p: p.frequency, reverse=True)
            model_issues: Dict[str, List[str]] = {}
            for p in ranked:
                if p.model_family:
                    model_issues.setdefault(p.model_family, []).append(p.name)
            insights.append(LearningInsight(
                category=category,
                common_patterns=[p.name for p in ranked[:5]],
                prevention_tips=[p.prevention for p in ranked[:5]],
                model_specific_issues=model_issues,
            ))
        return insights

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            patterns = self._patterns.values()
            categories: Counter = Counter()
            for p in patterns:
                if p.frequency > 0:
                    categories[p.category] += p.frequency

            model_rates = {
                model: {
                    "errors": entry["errors"],
                    "fixed": entry["fixed"],
                    "fix_rate": entry["fixed"] / entry["errors"] if entry["errors"] else 0.0,
                }
                for model, entry in self._models.items()
            }

            pattern_rates = []
            for pattern_id, tracking in self._fix_success.items():
                pattern = self._patterns.get(pattern_id)
                if pattern:
                    pattern_rates.append({
                        "pattern": pattern.name,
                        "attempts": tracking["attempts"],
                        "successes": tracking["successes"],
                        "fix_rate": tracking["successes"] / tracking["attempts"] if tracking["attempts"] else 0.0,
                    })
            pattern_rates.sort(key=lambda r: r["attempts"], reverse=True)

            fixed = sum(1 for e in self._history if e.was_fixed)
            return {
                "total_patterns": len(patterns),
                "learned_patterns": sum(1 for p in patterns if p.learned),
                "total_errors": len(self._history),
                "top_categories": [{"category": c, "count": n} for c, n in categories.most_common()],
                "model_fix_rates": model_rates,
                "pattern_fix_rates": pattern_rates[:15],
                "overall_fix_rate": fixed / len(self._history) if self._history else 0.0,
            }

    def get_model_report(self, model_name: str) -> Dict[str, Any]:
        """Weaknesses and prompt recommendations for one model name."""
        tracking = self._models.get(model_name)
        if not tracking:
            return {
                "model": model_name,
                "total_errors": 0,
                "fixed_errors": 0,
                "fix_rate": 0.0,
                "top_patterns": [],
                "weaknesses": [],
                "recommendations": [
                    "No data available yet. Use this model to generate code and build a profile."
                ],
            }

        top = []
        for pattern_id, count in tracking["patterns"].most_common(10):
            pattern = self._patterns.get(pattern_id)
            top.append({"pattern": pattern.name if pattern else pattern_id, "count": count})

        fix_rate = tracking["fixed"] / tracking["errors"] if tracking["errors"] else 0.0
        weaknesses, recommendations = [], []
        if fix_rate < 0.5:
            weaknesses.append("Low overall fix rate - code quality needs attention")
            recommendations.append("Consider using a more capable model for complex tasks")
        for entry in top:
            if entry["count"] >= 3:
                weaknesses.append(f"Recurring issue: {entry['pattern']} ({entry['count']} occurrences)")

        by_category: Counter = Counter()
        for pattern_id, count in tracking["patterns"].items():
            pattern = self._patterns.get(pattern_id)
            if pattern and count >= 2:
                by_category[pattern.category] += count
        for category, count in by_category.items():
            if count >= 4 and category in CATEGORY_RECOMMENDATIONS:
                recommendations.append(CATEGORY_RECOMMENDATIONS[category])
        if not recommendations:
            recommendations.append("Model is performing within expected parameters")

        return {
            "model": model_name,
            "total_errors": tracking["errors"],
            "fixed_errors": tracking["fixed"],
            "fix_rate": fix_rate,
            "top_patterns": top,
            "weaknesses": weaknesses,
            "recommendations": recommendations,
        }

    def get_pattern(self, pattern_id: str) -> Optional[ErrorPattern]:
        """Copy of one pattern, for inspection."""
        pattern = self._patterns.get(pattern_id)
        return replace(pattern) if pattern else None

    def clear_history(self) -> None:
        """Forget recorded errors and learned patterns; built-ins stay with zero frequency."""
        with self._lock:
            self._history.clear()
            self._models.clear()
            self._fix_success.clear()
            for pattern in self._patterns.values():
                if pattern.learned:
                    self._patterns.delete(pattern.id)
                else:
                    pattern.frequency = 0
        logger.info("Error learning history cleared")
