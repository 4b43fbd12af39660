"""CLI entry point for dialogue-eval.

Headless evaluation of an agent against a directory of transcripts.

Entry point:
    dialogue-eval validate <dir> [--continue-on-error]
    dialogue-eval run <dir> --model <id> [--format markdown|json|text] [-o report.md]
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dialogue-eval",
        description="Evaluate a conversational agent against recorded transcripts.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    validate_p = sub.add_parser("validate", help="Parse a transcript directory without running it")
    validate_p.add_argument("directory", help="Directory of transcript files")
    validate_p.add_argument(
        "--continue-on-error", action="store_true",
        help="Report every failing file instead of stopping at the first",
    )

    # run
    run_p = sub.add_parser("run", help="Evaluate an agent against a transcript directory")
    run_p.add_argument("directory", help="Directory of transcript files")
    run_p.add_argument("--model", required=True, help="Model ID sent to the agent endpoint")
    run_p.add_argument("--base-url", default=None, help="OpenAI-compatible base URL (default: AGENT_BASE_URL)")
    run_p.add_argument("--api-key", default=None, help="API key (default: AGENT_API_KEY)")
    run_p.add_argument("--config", default=None, help="YAML evaluation config file")
    run_p.add_argument("--threshold", type=float, default=None, help="Pass threshold in [0, 1]")
    run_p.add_argument("--max-concurrency", type=int, default=None, help="Concurrent test cases")
    run_p.add_argument("--format", dest="output_format", default=None,
                       choices=["markdown", "json", "text"], help="Report format")
    run_p.add_argument("--timeout", type=int, default=60, help="Timeout per agent request (seconds)")
    run_p.add_argument("-o", "--output", default=None, help="Output file path (default: stdout)")
    run_p.add_argument(
        "--continue-on-error", action="store_true",
        help="Skip transcripts that fail to parse instead of stopping at the first",
    )

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


def _cmd_validate(directory: str, continue_on_error: bool = False) -> int:
    """Load transcripts and report problems. Returns exit code."""
    from dialogue_eval.transcripts import TranscriptLoader

    result = TranscriptLoader().load_from_directory(directory, stop_on_error=not continue_on_error)

    print(f"Loaded {len(result.test_cases)} test cases", file=sys.stderr)
    for error in result.errors:
        print(f"Error: {error.file_path}: {error.message}", file=sys.stderr)

    return 1 if result.errors else 0


async def _cmd_run(
    directory: str,
    model: str,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    config_path: Optional[str] = None,
    threshold: Optional[float] = None,
    max_concurrency: Optional[int] = None,
    output_format: Optional[str] = None,
    timeout: int = 60,
    output: Optional[str] = None,
    continue_on_error: bool = False,
) -> int:
    """Execute an evaluation run. Returns exit code."""
    from dialogue_eval.agents import OpenAICompatibleAgent
    from dialogue_eval.config import EvaluationConfig, load_config
    from dialogue_eval.executor import EvaluationExecutor
    from dialogue_eval.export import render_report, save_report
    from dialogue_eval.scoring import ExactMatchScoringService

    try:
        config = load_config(config_path)
        overrides = {
            key: value
            for key, value in {
                "threshold": threshold,
                "max_concurrency": max_concurrency,
                "output_format": output_format,
            }.items()
            if value is not None
        }
        if overrides:
            config = EvaluationConfig(**{**config.model_dump(), **overrides})
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    agent = OpenAICompatibleAgent(
        model_id=model,
        base_url=base_url,
        api_key=api_key,
        timeout_seconds=timeout,
    )
    executor = EvaluationExecutor(ExactMatchScoringService(), config)

    print(
        f"Evaluating {model} against {directory} "
        f"(threshold {config.threshold}, concurrency {config.max_concurrency})",
        file=sys.stderr,
    )

    load_result = executor.loader.load_from_directory(
        directory, stop_on_error=not continue_on_error
    )
    for error in load_result.errors:
        print(f"Error: {error.file_path}: {error.message}", file=sys.stderr)

    if not load_result.test_cases:
        print(f"Error: no test cases loaded from {directory}", file=sys.stderr)
        return 1

    report = await executor.evaluate_test_cases(agent, load_result.test_cases)

    print(
        f"{report.passed_tests}/{report.total_tests} passed "
        f"({report.pass_rate:.1%}) in {report.duration:.1f}s",
        file=sys.stderr,
    )

    content = render_report(report, config.output_format)
    if output:
        save_report(content, output)
        print(f"Report written to {output}", file=sys.stderr)
    else:
        sys.stdout.write(content)
        sys.stdout.write("\n")

    return 0 if report.failed_tests == 0 and not load_result.errors else 1


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    load_dotenv()

    # Dispatch
    if args.command == "validate":
        code = _cmd_validate(args.directory, continue_on_error=args.continue_on_error)
    elif args.command == "run":
        code = asyncio.run(_cmd_run(
            directory=args.directory,
            model=args.model,
            base_url=args.base_url,
            api_key=args.api_key,
            config_path=args.config,
            threshold=args.threshold,
            max_concurrency=args.max_concurrency,
            output_format=args.output_format,
            timeout=args.timeout,
            output=args.output,
            continue_on_error=args.continue_on_error,
        ))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
