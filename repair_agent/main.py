#!/usr/bin/env python3
"""
Repair Agent - Main Entry Point

Self-healing code-quality core for model-generated JavaScript and
TypeScript: a five-pass analysis-and-fix pipeline and a closed-loop
repair engine that can fall back to Claude for model-assisted fixes.

Usage:
    python -m repair_agent.main analyze src/App.tsx
    python -m repair_agent.main fix src/App.tsx --use-claude --write
    python -m repair_agent.main enhance "Build a todo app" --files src/App.tsx
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .engine import ClosedLoopAutoFix
from .models import AnalyzeOptions
from .pipeline import CodeQualityPipeline
from .tools import ClaudeModelCall
from .utils import setup_logging, get_logger, calculate_metrics, format_metrics_report


def _read_source(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def cmd_analyze(args):
    """Handle 'analyze' subcommand."""
    import logging
    # --json keeps stdout parseable
    setup_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        stream=sys.stderr if args.json else None,
    )
    logger = get_logger()

    try:
        code = _read_source(args.file)
        pipeline = CodeQualityPipeline()
        report = pipeline.analyze(code, AnalyzeOptions(language=args.language))

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(f"\n=== {args.file} ({report.language}) ===")
            print(report.summary)
            for result in report.pass_results:
                for issue in result.issues_found:
                    status = "fixed" if issue.fixed else "open"
                    line = f"line {issue.line}" if issue.line else "-"
                    print(f"  [{result.pass_name}] {issue.severity.value} {line}: {issue.message} ({status})")
            print()
            print(format_metrics_report(calculate_metrics([report])))
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Analysis failed: {e}")
        sys.exit(1)


def cmd_fix(args):
    """Handle 'fix' subcommand."""
    import logging
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger()

    model_call = ClaudeModelCall(model=args.model) if args.use_claude else None
    engine = ClosedLoopAutoFix(model_call=model_call)
    overrides = {"max_retries": args.max_retries} if args.max_retries is not None else None

    try:
        code = _read_source(args.file)
        result = asyncio.run(engine.validate_and_fix(
            code,
            file_path=args.file,
            model_used=args.model,
            config_overrides=overrides,
        ))

        print(f"\n=== Repair Results: {args.file} ===")
        print(f"Status: {result.status.value}")
        print(f"Errors: {result.errors_found} found, {result.errors_fixed} fixed, "
              f"{result.errors_remaining} remaining")
        print(f"Attempts: {result.total_attempts}")
        for attempt in result.attempts:
            outcome = "ok" if attempt.success else "failed"
            print(f"  {attempt.attempt_number}. {attempt.strategy.value}: {outcome}")

        if args.write and result.was_fixed:
            Path(args.file).write_text(result.final_code, encoding="utf-8")
            logger.info(f"Wrote repaired code to {args.file}")
        elif result.was_fixed:
            print("\n" + result.final_code)

        sys.exit(0 if result.errors_remaining == 0 else 1)
    except Exception as e:
        logger.exception(f"Repair failed: {e}")
        sys.exit(1)


def cmd_enhance(args):
    """Handle 'enhance' subcommand."""
    import logging
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger()

    try:
        enhancement = ClosedLoopAutoFix().enhance_pre_generation(
            args.prompt,
            model_id=args.model,
            task_type=args.task_type,
            target_files=args.files or [],
        )
        print(enhancement.enhanced_prompt)
        logger.info(f"Injected ~{enhancement.total_injected_tokens} tokens")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Enhancement failed: {e}")
        sys.exit(1)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Self-healing code quality for model-generated code"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Run the five-pass quality pipeline on a file")
    analyze_parser.add_argument(
        "file",
        help="Source file to analyze"
    )
    analyze_parser.add_argument(
        "--language",
        type=str,
        choices=["javascript", "typescript", "jsx", "tsx"],
        help="Language override (default: detected)"
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON"
    )
    analyze_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    # fix command
    fix_parser = subparsers.add_parser("fix", help="Validate a file and repair it in a bounded loop")
    fix_parser.add_argument(
        "file",
        help="Source file to repair"
    )
    fix_parser.add_argument(
        "--model",
        type=str,
        help="Model that generated the code (selects prompt guidance, and the Claude model with --use-claude)"
    )
    fix_parser.add_argument(
        "--max-retries",
        type=int,
        help="Maximum repair attempts (default: 3)"
    )
    fix_parser.add_argument(
        "--use-claude",
        action="store_true",
        help="Allow model-assisted strategies through Claude"
    )
    fix_parser.add_argument(
        "--write",
        action="store_true",
        help="Write the repaired code back to the file"
    )
    fix_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    # enhance command
    enhance_parser = subparsers.add_parser("enhance", help="Add prevention rules to a generation prompt")
    enhance_parser.add_argument(
        "prompt",
        help="Generation prompt"
    )
    enhance_parser.add_argument(
        "--task-type",
        type=str,
        default="build",
        help="Task type: build, refine, ... (default: build)"
    )
    enhance_parser.add_argument(
        "--files",
        nargs="*",
        help="Files the model will write"
    )
    enhance_parser.add_argument(
        "--model",
        type=str,
        help="Model identifier"
    )
    enhance_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    # Route to subcommand
    if args.command == "analyze":
        cmd_analyze(args)
    elif args.command == "fix":
        cmd_fix(args)
    elif args.command == "enhance":
        cmd_enhance(args)
    else:
        # No subcommand - show help
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
