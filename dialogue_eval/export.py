"""
Report generation in Markdown, JSON and plain-text formats.
"""

import json
import re

from dialogue_eval.config import OUTPUT_FORMATS, REPORT_DIVIDER
from dialogue_eval.executor import EvaluationReport


def _status(passed: bool) -> str:
    return "PASS" if passed else "FAIL"


def _fenced(text: str) -> list[str]:
    """Code block lines for text, fenced longer than any backtick run inside it."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    fence = "`" * max(3, longest + 1)
    return [fence, text, fence]


def generate_markdown_report(report: EvaluationReport) -> str:
    """
    Generate a Markdown report: summary table, then one section per case.
    """
    lines = []

    lines.append("# Evaluation Report")
    lines.append("")
    lines.append(f"**Generated:** {report.timestamp.isoformat()}")
    lines.append(f"**Duration:** {report.duration:.2f}s")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| Total | Passed | Failed | Pass Rate |")
    lines.append("| --- | --- | --- | --- |")
    lines.append(
        f"| {report.total_tests} | {report.passed_tests} | "
        f"{report.failed_tests} | {report.pass_rate:.1%} |"
    )
    lines.append("")

    if report.results:
        lines.append("## Results")
        lines.append("")

    for result in report.results:
        lines.append(f"### {result.test_case.id} - {_status(result.passed)}")
        lines.append("")
        lines.append(f"**Score:** {result.score:.2f}")
        if result.error:
            lines.append(f"**Error:** {result.error}")
        lines.append("")
        lines.append("**Input:**")
        lines.append("")
        lines.extend(_fenced(result.test_case.input))
        lines.append("")
        lines.append("**Expected:**")
        lines.append("")
        lines.extend(_fenced(result.test_case.expected))
        lines.append("")
        lines.append("**Response:**")
        lines.append("")
        lines.extend(_fenced(result.response))
        lines.append("")

    return "\n".join(lines)


def generate_json_report(report: EvaluationReport) -> str:
    """
    Generate a JSON report with camelCase keys.
    """
    data = {
        "totalTests": report.total_tests,
        "passedTests": report.passed_tests,
        "failedTests": report.failed_tests,
        "passRate": report.pass_rate,
        "timestamp": report.timestamp.isoformat(),
        "duration": report.duration,
        "results": [
            {
                "testCase": {
                    "id": r.test_case.id,
                    "input": r.test_case.input,
                    "expected": r.test_case.expected,
                },
                "score": r.score,
                "passed": r.passed,
                "error": r.error,
                "timestamp": r.timestamp.isoformat(),
                "response": r.response,
            }
            for r in report.results
        ],
    }
    return json.dumps(data, indent=2)


def generate_text_report(report: EvaluationReport) -> str:
    """
    Generate a plain-text report for terminals.
    """
    lines = [
        "Evaluation Report",
        f"Generated: {report.timestamp.isoformat()}",
        f"Duration: {report.duration:.2f}s",
        f"Total: {report.total_tests}  Passed: {report.passed_tests}  "
        f"Failed: {report.failed_tests}  Pass rate: {report.pass_rate:.1%}",
    ]

    for result in report.results:
        lines.append(REPORT_DIVIDER.strip())
        lines.append(f"[{_status(result.passed)}] {result.test_case.id} (score {result.score:.2f})")
        if result.error:
            lines.append(f"Error: {result.error}")
        lines.append(f"Expected: {result.test_case.expected}")
        lines.append(f"Response: {result.response}")

    return "\n".join(lines)


_RENDERERS = {
    "markdown": generate_markdown_report,
    "json": generate_json_report,
    "text": generate_text_report,
}


def render_report(report: EvaluationReport, fmt: str) -> str:
    """Render a report in one of OUTPUT_FORMATS."""
    renderer = _RENDERERS.get(fmt)
    if renderer is None:
        raise ValueError(
            f"Unknown report format: {fmt}. Expected one of: {', '.join(OUTPUT_FORMATS)}"
        )
    return renderer(report)


def save_report(content: str, filepath: str) -> None:
    """Save report content to file."""
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(content)
