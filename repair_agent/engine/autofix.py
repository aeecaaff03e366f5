"""Closed-loop auto-fix: validate, pick a strategy, repair, re-validate."""

import asyncio
import math
import re
import threading
import time
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from ..config import (
    CHARS_PER_TOKEN,
    DEFAULT_CONFIG,
    MAX_ACTIVE_SESSIONS,
    MAX_FIX_HISTORY,
    RECENT_TREND_WINDOW,
    STRATEGY_NAMES,
    RepairConfig,
    merge_config,
)
from ..models import (
    ErrorOccurrence,
    FixAttempt,
    FixHistoryEntry,
    FixResult,
    FixStatistics,
    FixStrategy,
    PreGenerationEnhancement,
    RecentTrend,
    RepairSession,
    SessionStatus,
    StrategyStats,
    SyntaxIssue,
    ValidationResult,
)
from ..pipeline import CodeQualityPipeline
from ..pipeline.pass1_structural import check_delimiters, fix_unclosed_strings
from ..pipeline.pass2_markup import add_missing_hook_imports, insert_import
from ..pipeline.pass5_cleanup import remove_narrative, strip_markdown
from ..pipeline.rules import KNOWN_BINDINGS, REACT_HOOKS
from ..tools import BoundedStore
from ..utils.logging import get_logger
from .formatter import StyleEnforcer
from .guidance import context_examples, detect_model_family, file_type_rules, task_type_rules
from .learning import ErrorLearning
from .prompts import build_fix_prompt
from .validator import SyntaxValidator

logger = get_logger(__name__)

ModelCall = Callable[[str], Awaitable[Optional[str]]]

MAX_TRACKED_CATEGORIES = 200
TOP_CATEGORIES = 10
RECENT_FAILURES = 10

_SYNTAX_SHAPED = re.compile(
    r"bracket|brace|parenthesis|semicolon|unterminated|equality operator|unexpected token|type annotation",
    re.I,
)
_UNRESOLVED = re.compile(r"\bimport\b|\bmodule\b|\bexport\b|Cannot find name", re.I)
_UNMATCHED = re.compile(r"Unmatched closing \w+ '(.)'")
_MISSING_NAME = re.compile(r"Cannot find name '([\w$]+)'")

# Local fixes each strategy may apply
_SYNTAX_FIXERS = (FixStrategy.SYNTAX_TARGETED, FixStrategy.ERROR_PATTERN_MATCH)
_IMPORT_FIXERS = (FixStrategy.IMPORT_RESOLUTION, FixStrategy.ERROR_PATTERN_MATCH)

_CATEGORIES = [
    (("bracket", "brace", "parenthesis"), "brackets"),
    (("import", "module", "export", "cannot find name"), "imports"),
    (("type", "assignable"), "types"),
    (("semicolon",), "semicolons"),
    (("string", "unterminated"), "strings"),
    (("jsx", "react"), "jsx"),
    (("async", "await"), "async"),
    (("undefined", "null"), "nullability"),
]


def categorize_error(message: str) -> str:
    lower = message.lower()
    for needles, category in _CATEGORIES:
        if any(needle in lower for needle in needles):
            return category
    return "other"


def _line_offsets(code: str) -> List[int]:
    offsets = [0]
    for match in re.finditer("\n", code):
        offsets.append(match.end())
    return offsets


def fix_syntax_errors(code: str, errors: List[SyntaxIssue]) -> Optional[str]:
    """
    Mechanical repairs for delimiter, literal and operator errors.

    Returns:
        Repaired code, or None when no error had a local fix
    """
    result = code
    applied = False

    # Edits at a position never move anything before it
    positional = sorted(
        (e for e in errors if _UNMATCHED.match(e.message) or "Invalid equality operator" in e.message),
        key=lambda e: (e.line, e.column), reverse=True,
    )
    for error in positional:
        offsets = _line_offsets(result)
        if error.line > len(offsets):
            continue
        start = offsets[error.line - 1]
        end = offsets[error.line] - 1 if error.line < len(offsets) else len(result)
        unmatched = _UNMATCHED.match(error.message)
        if unmatched:
            at = start + error.column - 1
            if result[at:at + 1] == unmatched.group(1):
                result = result[:at] + result[at + 1:]
                applied = True
        else:
            line = result[start:end]
            fixed_line = re.sub(r"=\s*=\s*=\s*=", "===", line)
            if fixed_line != line:
                result = result[:start] + fixed_line + result[end:]
                applied = True

    messages = [e.message for e in errors]
    if any(m.startswith("Unterminated string literal") for m in messages):
        result, issues = fix_unclosed_strings(result)
        applied = applied or bool(issues)
    if any(m == "Unterminated template literal" for m in messages):
        result = result.rstrip() + "`\n"
        applied = True
    if any(m.startswith("Unclosed ") for m in messages):
        result, issues = check_delimiters(result)
        applied = applied or any(i.fixed for i in issues)

    return result if applied and result != code else None


def fix_missing_bindings(code: str, errors: List[SyntaxIssue]) -> Optional[str]:
    """Import well-known bindings reported as missing."""
    names = []
    for error in errors:
        match = _MISSING_NAME.match(error.message)
        if match and match.group(1) in KNOWN_BINDINGS and match.group(1) not in names:
            names.append(match.group(1))
    if not names:
        return None

    result = code
    if any(name in REACT_HOOKS for name in names):
        result, _ = add_missing_hook_imports(result)
    for name in names:
        if name in REACT_HOOKS:
            continue
        module, is_default = KNOWN_BINDINGS[name]
        binding = name if is_default else f"{{ {name} }}"
        result = insert_import(result, f"import {binding} from '{module}';")
    return result if result != code else None


class ClosedLoopAutoFix:
    """
    Bounded repair loop over the syntax validator.

    Each call validates the code, then for at most max_retries attempts
    selects a strategy, applies it (locally or through the injected model
    call), and keeps the result when the number of blocking problems
    drops. One instance is shared by its owner; history, sessions and
    counters are bounded and guarded by the engine lock, which is never
    held across a model call.
    """

    def __init__(
        self,
        config: Optional[RepairConfig] = None,
        pipeline: Optional[CodeQualityPipeline] = None,
        validator: Optional[SyntaxValidator] = None,
        formatter: Optional[StyleEnforcer] = None,
        learning: Optional[ErrorLearning] = None,
        model_call: Optional[ModelCall] = None,
    ):
        self._config = replace(config or DEFAULT_CONFIG)
        self.pipeline = pipeline or CodeQualityPipeline()
        self.validator = validator or SyntaxValidator()
        self.formatter = formatter or StyleEnforcer()
        self.learning = learning or ErrorLearning()
        self.model_call = model_call

        self._lock = threading.Lock()
        self._history: Deque[FixHistoryEntry] = deque(maxlen=MAX_FIX_HISTORY)
        self._sessions: BoundedStore[str, RepairSession] = BoundedStore(MAX_ACTIVE_SESSIONS)
        self._strategy_stats: Dict[str, StrategyStats] = {name: StrategyStats() for name in STRATEGY_NAMES}
        self._categories: BoundedStore[str, Tuple[int, int]] = BoundedStore(MAX_TRACKED_CATEGORIES)

    # Configuration

    def get_config(self) -> RepairConfig:
        with self._lock:
            return replace(self._config, fix_strategies=list(self._config.fix_strategies))

    def configure(self, **partial) -> RepairConfig:
        """
        Merge field overrides into the engine configuration.

        Raises:
            ValueError: Unknown key, max_retries below 1 or a bad strategy list
        """
        with self._lock:
            self._config = merge_config(self._config, **partial)
            config = self._config
        logger.info(f"Closed-loop auto-fix configured: {config}")
        return config

    # Pre-generation

    def enhance_pre_generation(
        self,
        prompt: str,
        model_id: Optional[str] = None,
        task_type: str = "build",
        target_files: Iterable[str] = (),
    ) -> PreGenerationEnhancement:
        """
        Wrap a generation prompt with prevention rules.

        Args:
            prompt: Original prompt, kept verbatim
            model_id: Model identifier, selects family-specific notes
            task_type: build, refine, plan, ...
            target_files: Paths the model is about to write

        Returns:
            PreGenerationEnhancement with the enhanced prompt and what was added
        """
        files = list(target_files)
        family = detect_model_family(model_id)

        rules: List[str] = []
        prevention = self.learning.get_prevention_prompt(family)
        if prevention and len(prevention) > 20:
            rules.append(prevention.rstrip("\n"))

        warnings = []
        if family:
            for insight in self.learning.get_insights():
                for issue in insight.model_specific_issues.get(family, []):
                    warnings.append(f"[{insight.category}] Watch for: {issue}")

        rules.extend(file_type_rules(files))
        rules.extend(task_type_rules(task_type))

        failures = self._recent_failure_patterns()
        if failures:
            rules.append("\n## Recent Error Patterns (CRITICAL - avoid these)\n"
                         + "\n".join(f"- {f}" for f in failures))

        examples = context_examples(task_type, files)

        enhanced = prompt
        if rules:
            enhanced = "\n".join(rules) + "\n\n" + enhanced
        if warnings:
            enhanced += "\n\n## Model-Specific Warnings\n" + "\n".join(f"- {w}" for w in warnings)
        if examples:
            enhanced += "\n\n## Correct Patterns (follow these)\n" + "\n\n".join(examples)

        tokens = math.ceil((len(enhanced) - len(prompt)) / CHARS_PER_TOKEN)
        logger.info(
            f"Pre-generation enhancement applied: {len(rules)} rules, {len(warnings)} model warnings, "
            f"{len(examples)} examples, ~{tokens} tokens"
        )
        return PreGenerationEnhancement(
            enhanced_prompt=enhanced,
            prevention_rules=rules,
            model_specific_warnings=warnings,
            injected_examples=examples,
            total_injected_tokens=tokens,
        )

    def _recent_failure_patterns(self) -> List[str]:
        with self._lock:
            failures = [h for h in self._history if not h.success and h.errors_found > 0]
        patterns: List[str] = []
        for entry in failures[-RECENT_FAILURES:]:
            for category in entry.error_categories:
                text = f"Recurring {category} errors detected, double-check {category} carefully"
                if text not in patterns:
                    patterns.append(text)
        return patterns

    # Repair loop

    def build_fix_prompt(
        self,
        code: str,
        errors: List[SyntaxIssue],
        strategy: FixStrategy,
        model_name: Optional[str] = None,
    ) -> str:
        return build_fix_prompt(code, errors, strategy, model_name, known_fix=self.learning.get_auto_fix)

    def select_strategy(
        self,
        errors: List[SyntaxIssue],
        failed: List[FixStrategy],
        consecutive_failures: int,
        allowed: List[str],
    ) -> FixStrategy:
        """
        Pick the cheapest applicable strategy not yet tried without success.

        Two failures in a row escalate straight to a section rewrite.
        """
        rewrite = FixStrategy.FULL_REWRITE_SECTION
        if consecutive_failures >= 2 and rewrite.value in allowed:
            return rewrite

        candidates = []
        if any(self.learning.known_fix(e.message) for e in errors):
            candidates.append(FixStrategy.ERROR_PATTERN_MATCH)
        if any(_SYNTAX_SHAPED.search(e.message) for e in errors):
            candidates.append(FixStrategy.SYNTAX_TARGETED)
        if any(_UNRESOLVED.search(e.message) for e in errors):
            candidates.append(FixStrategy.IMPORT_RESOLUTION)
        candidates.append(FixStrategy.STYLE_ENFORCEMENT)

        for strategy in candidates:
            if strategy.value in allowed and strategy not in failed:
                return strategy
        return rewrite

    async def _call_model(self, prompt: str) -> Optional[str]:
        if self.model_call is None:
            return None
        try:
            reply = await self.model_call(prompt)
        except Exception as e:
            logger.warning(f"Model call failed: {e}")
            return None
        if reply is None:
            logger.warning("Model call returned no code")
            return None
        cleaned, _ = remove_narrative(strip_markdown(reply))
        return cleaned or None

    async def _apply(
        self,
        strategy: FixStrategy,
        code: str,
        errors: List[SyntaxIssue],
        prompt: str,
    ) -> Tuple[Optional[str], bool]:
        """Return (candidate code or None, whether the model was asked)."""
        if strategy == FixStrategy.STYLE_ENFORCEMENT:
            formatted, changed = self.formatter.format_code(code)
            return (formatted if changed else None), False

        if strategy == FixStrategy.FULL_REWRITE_SECTION:
            if self.model_call is None:
                report = self.pipeline.analyze(code)
                return (report.fixed_code if report.fixed_code != code else None), False
            return await self._call_model(prompt), True

        candidate = None
        if strategy in _SYNTAX_FIXERS:
            candidate = fix_syntax_errors(code, errors)
        if strategy in _IMPORT_FIXERS:
            candidate = fix_missing_bindings(candidate or code, errors) or candidate
        if candidate is None and strategy == FixStrategy.ERROR_PATTERN_MATCH and self.model_call:
            return await self._call_model(prompt), True
        return candidate, False

    @staticmethod
    def _blocking(validation: ValidationResult, config: RepairConfig) -> int:
        return len(validation.errors) + (len(validation.warnings) if config.strict_mode else 0)

    async def validate_and_fix(
        self,
        code: str,
        file_path: Optional[str] = None,
        model_used: Optional[str] = None,
        project_id: Optional[str] = None,
        config_overrides: Optional[Dict] = None,
    ) -> FixResult:
        """
        Validate code and repair it in a bounded loop.

        Args:
            code: Source text
            file_path: Reported back and recorded in history
            model_used: Model that generated the code; selects prompt guidance
            project_id: Recorded on the session
            config_overrides: Per-call configuration overrides

        Returns:
            FixResult with the best code reached and every attempt

        Raises:
            TypeError: If code is not a string
            ValueError: If config_overrides names an unknown key
        """
        if not isinstance(code, str):
            raise TypeError(f"code must be a string, got {type(code).__name__}")
        config = self.get_config()
        if config_overrides:
            config = merge_config(config, **config_overrides)

        start = time.perf_counter()
        session = RepairSession(
            id=f"fix_{uuid.uuid4().hex[:12]}",
            project_id=project_id,
            max_iterations=config.max_retries,
        )
        self._sessions.set(session.id, session)

        initial = self.validator.validate(code)
        current = code
        attempts: List[FixAttempt] = []
        failed: List[FixStrategy] = []
        consecutive_failures = 0

        if self._blocking(initial, config):
            session.status = SessionStatus.FIXING
            validation = initial
            for number in range(1, config.max_retries + 1):
                if not self._blocking(validation, config):
                    break
                session.current_iteration = number
                targets = validation.errors or validation.warnings
                strategy = self.select_strategy(targets, failed, consecutive_failures, config.fix_strategies)
                prompt = self.build_fix_prompt(current, targets, strategy, model_used)

                attempt_start = time.perf_counter()
                candidate, used_model = await self._apply(strategy, current, targets, prompt)
                revalidated = None
                success = False
                if candidate is not None and candidate != current:
                    revalidated = self.validator.validate(candidate)
                    success = self._blocking(revalidated, config) < self._blocking(validation, config)

                attempt = FixAttempt(
                    attempt_number=number,
                    strategy=strategy,
                    errors=targets,
                    fix_prompt=prompt,
                    fixed_code=candidate,
                    success=success,
                    duration_ms=(time.perf_counter() - attempt_start) * 1000,
                    used_model=used_model,
                )
                attempts.append(attempt)
                session.fix_attempts.append(attempt)
                self._count_strategy(strategy, success)
                if config.enable_learning:
                    self._learn(validation.errors, revalidated if success else None, strategy,
                                code, file_path, model_used)

                logger.debug(f"Fix attempt {number}/{config.max_retries}: {strategy.value} "
                             f"{'succeeded' if success else 'failed'}")

                if success:
                    current = candidate
                    validation = revalidated
                    consecutive_failures = 0
                else:
                    failed.append(strategy)
                    consecutive_failures += 1

            if config.auto_format and any(a.success for a in attempts):
                formatted, changed = self.formatter.format_code(current)
                if changed and len(self.validator.validate(formatted).errors) <= len(validation.errors):
                    current = formatted

        final = self.validator.validate(current)
        session.status = (SessionStatus.RESOLVED if not self._blocking(final, config)
                          else SessionStatus.EXHAUSTED)
        session.completed_at = datetime.now()

        errors_found = len(initial.errors)
        result = FixResult(
            session_id=session.id,
            status=session.status,
            original_code=code,
            final_code=current,
            was_fixed=current != code,
            total_attempts=len(attempts),
            attempts=attempts,
            errors_found=errors_found,
            errors_fixed=max(0, errors_found - len(final.errors)),
            errors_remaining=len(final.errors),
            warnings_found=len(initial.warnings),
            duration_ms=(time.perf_counter() - start) * 1000,
            model_used=model_used,
            file_path=file_path,
        )
        self._record(result)

        logger.info(
            f"Closed-loop auto-fix completed: session {session.id}, {result.errors_found} found, "
            f"{result.errors_fixed} fixed, {result.total_attempts} attempts, {session.status.value}"
        )
        return result

    def validate_and_fix_sync(
        self,
        code: str,
        file_path: Optional[str] = None,
        model_used: Optional[str] = None,
        project_id: Optional[str] = None,
        config_overrides: Optional[Dict] = None,
    ) -> FixResult:
        """Synchronous wrapper for validate_and_fix."""
        return asyncio.run(self.validate_and_fix(code, file_path, model_used, project_id, config_overrides))

    def _learn(
        self,
        errors: List[SyntaxIssue],
        after: Optional[ValidationResult],
        strategy: FixStrategy,
        code: str,
        file_path: Optional[str],
        model_used: Optional[str],
    ) -> None:
        """Report each targeted error to the learning service; after is None on failure."""
        remaining = {e.message for e in after.errors} if after else set()
        for error in errors:
            fixed = after is not None and error.message not in remaining
            self.learning.record_error(ErrorOccurrence(
                message=error.message,
                code=code,
                file_path=file_path,
                was_fixed=fixed,
                fix_applied=(self.learning.get_auto_fix(error.message) or strategy.value) if fixed else None,
                model_used=model_used,
            ))
            self._categories.update(
                categorize_error(error.message),
                lambda old: ((old or (0, 0))[0] + 1, (old or (0, 0))[1] + int(fixed)),
            )

    def _count_strategy(self, strategy: FixStrategy, success: bool) -> None:
        with self._lock:
            stats = self._strategy_stats[strategy.value]
            stats.attempts += 1
            if success:
                stats.successes += 1

    def _record(self, result: FixResult) -> None:
        strategies: List[str] = []
        categories: List[str] = []
        for attempt in result.attempts:
            if attempt.strategy.value not in strategies:
                strategies.append(attempt.strategy.value)
            for error in attempt.errors:
                category = categorize_error(error.message)
                if category not in categories:
                    categories.append(category)

        entry = FixHistoryEntry(
            session_id=result.session_id,
            timestamp=datetime.now(),
            errors_found=result.errors_found,
            errors_fixed=result.errors_fixed,
            attempts=result.total_attempts,
            success=result.errors_found > 0 and result.errors_fixed == result.errors_found,
            strategies=strategies,
            error_categories=categories,
            file_path=result.file_path,
            model_used=result.model_used,
            duration_ms=result.duration_ms,
        )
        with self._lock:
            self._history.append(entry)

    # Reporting

    def get_fix_history(self, limit: int = 50) -> List[FixHistoryEntry]:
        """The last limit entries, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            return list(self._history)[-limit:]

    def get_session(self, session_id: str) -> Optional[RepairSession]:
        return self._sessions.get(session_id)

    def get_statistics(self) -> FixStatistics:
        with self._lock:
            history = list(self._history)
            strategies = {name: replace(stats) for name, stats in self._strategy_stats.items()}

        categories = sorted(self._categories.items(), key=lambda item: item[1][0], reverse=True)
        top_categories = [
            {"category": name, "count": found, "fix_rate": fixed / found if found else 0.0}
            for name, (found, fixed) in categories[:TOP_CATEGORIES]
        ]
        if not history:
            return FixStatistics(strategy_effectiveness=strategies, top_error_categories=top_categories)

        total_errors = sum(h.errors_found for h in history)
        total_fixed = sum(h.errors_fixed for h in history)
        overall = total_fixed / total_errors if total_errors else 0.0

        recent = history[-RECENT_TREND_WINDOW:]
        recent_errors = sum(h.errors_found for h in recent)
        recent_rate = sum(h.errors_fixed for h in recent) / recent_errors if recent_errors else 0.0

        models: Dict[str, Dict[str, float]] = {}
        for h in history:
            rates = models.setdefault(h.model_used or "unknown", {"errors": 0, "fixed": 0, "rate": 0.0})
            rates["errors"] += h.errors_found
            rates["fixed"] += h.errors_fixed
            rates["rate"] = rates["fixed"] / rates["errors"] if rates["errors"] else 0.0

        return FixStatistics(
            total_sessions=len(history),
            total_errors=total_errors,
            total_fixed=total_fixed,
            fix_rate=overall,
            average_attempts=sum(h.attempts for h in history) / len(history),
            average_duration_ms=sum(h.duration_ms for h in history) / len(history),
            strategy_effectiveness=strategies,
            model_fix_rates=models,
            top_error_categories=top_categories,
            recent_trend=RecentTrend(
                improving=recent_rate > overall,
                recent_fix_rate=recent_rate,
                overall_fix_rate=overall,
            ),
        )

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            for name in self._strategy_stats:
                self._strategy_stats[name] = StrategyStats()
        self._sessions.clear()
        self._categories.clear()
        logger.info("Closed-loop auto-fix history cleared")
