"""Report rendering and file output.

Renders a ``BatchResult`` as a Markdown report or as camelCase JSON and
writes it to disk with a timestamped filename.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ens_analyzer.exceptions import ReportError

if TYPE_CHECKING:
    from ens_analyzer.models import BatchResult, ClassificationResult, Evidence

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_REPORT_PREFIX = "ens-analysis"
_EVIDENCE_PER_PROJECT = 5


def stars(rating: int) -> str:
    return "★" * rating + "☆" * (5 - rating)


def generate_report_filename(suffix: str = ".md", timestamp: datetime | None = None) -> str:
    """Generate a report filename: ``ens-analysis_{timestamp}{suffix}``."""
    ts = timestamp or datetime.now(tz=UTC)
    return f"{_REPORT_PREFIX}_{ts.strftime('%Y%m%d_%H%M%S')}{suffix}"


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _location(evidence: Evidence) -> str:
    label = evidence.location.file
    if evidence.location.line > 0:
        label = f"{label}:{evidence.location.line}"
    if evidence.source_url:
        return f"[{label}]({evidence.source_url})"
    return f"`{label}`"


def _repo_link(result: ClassificationResult) -> str:
    return f"[{result.repository_id}]({result.source_url})"


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def render_markdown(batch: BatchResult) -> str:
    """Render the full Markdown report for a batch."""
    summary = batch.summary
    lines: list[str] = [
        "# ENS Integration Analysis",
        "",
        f"Generated: {batch.timestamp_iso}  ",
        f"Duration: {batch.duration_seconds:.1f}s  ",
        f"Analyzed: {batch.processed}/{batch.total} repositories",
        "",
        "## Overview",
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| Repositories analyzed | {batch.total} |",
        f"| ENS integrations found | {summary.integrated_count} "
        f"({summary.integrated_percentage}%) |",
        f"| Average rating | {summary.average_rating:.1f} / 5 |",
    ]
    if summary.top_project is not None:
        top = summary.top_project
        lines.append(f"| Top project | {_repo_link(top)} ({top.rating}/5) |")
    lines.append("")

    lines += ["## Rating Distribution", "", "| Rating | Projects |", "| --- | --- |"]
    for rating in range(5, -1, -1):
        lines.append(f"| {stars(rating)} ({rating}) | {summary.rating_histogram.get(rating, 0)} |")
    lines.append("")

    if summary.integration_type_histogram:
        lines += ["## Integration Types", "", "| Type | Projects |", "| --- | --- |"]
        ranked_types = sorted(
            summary.integration_type_histogram.items(),
            key=lambda item: item[1],
            reverse=True,
        )
        for kind, count in ranked_types:
            lines.append(f"| {kind.value} | {count} |")
        lines.append("")

    if summary.top_libraries:
        lines += [
            "## Most Common Libraries",
            "",
            "| Library | Projects | Share |",
            "| --- | --- | --- |",
        ]
        for lib in summary.top_libraries:
            lines.append(f"| `{lib.name}` | {lib.count} | {lib.percentage}% |")
        lines.append("")

    integrated = sorted(
        (r for r in batch.results if r.has_integration),
        key=lambda r: r.rating,
        reverse=True,
    )
    if integrated:
        lines += [
            "## Rankings",
            "",
            "| # | Repository | Rating | Confidence | Summary |",
            "| --- | --- | --- | --- | --- |",
        ]
        for rank, result in enumerate(integrated, start=1):
            lines.append(
                f"| {rank} | {_repo_link(result)} | {stars(result.rating)} | "
                f"{result.confidence.value} | {_cell(result.summary)} |"
            )
        lines.append("")

        lines += ["## Evidence", ""]
        for result in integrated:
            lines.append(f"### {result.repository_id} ({result.rating}/5)")
            lines.append("")
            if result.integration_types:
                types = ", ".join(t.value for t in result.integration_types)
                lines += [f"Integration types: {types}", ""]
            for item in result.top_evidence[:_EVIDENCE_PER_PROJECT]:
                lines.append(
                    f"- {item.kind.value}: `{_cell(item.pattern)}` "
                    f"({item.confidence.value}) {_location(item)}"
                )
            remaining = len(result.top_evidence) - _EVIDENCE_PER_PROJECT
            if remaining > 0:
                lines.append(f"- ... and {remaining} more")
            lines.append("")

    failures = batch.failures
    if failures:
        lines += ["## Failures", "", "| Repository | Error |", "| --- | --- |"]
        for result in failures:
            lines.append(
                f"| {_repo_link(result)} | {_cell(result.error_message or '')} |"
            )
        lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def render_json(batch: BatchResult) -> str:
    """Serialize a batch with the camelCase field names of the report format."""
    return json.dumps(batch.model_dump(mode="json", by_alias=True), indent=2)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _write(text: str, path: Path) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ReportError(f"Cannot write report to {path}: {exc}") from exc
    return path


def write_markdown_report(batch: BatchResult, path: Path) -> Path:
    written = _write(render_markdown(batch), path)
    logger.info("report_written", path=str(written), format="markdown")
    return written


def write_json_report(batch: BatchResult, path: Path) -> Path:
    written = _write(render_json(batch), path)
    logger.info("report_written", path=str(written), format="json")
    return written
