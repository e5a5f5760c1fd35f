"""Repository list parsing from CSV and JSON files."""

from __future__ import annotations

import csv
import io
import json
import re
from pathlib import Path

import structlog

from ens_analyzer.exceptions import InputParseError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_GITHUB_URL_RE = re.compile(r"^https?://github\.com/[^/]+/[^/]+")


def is_github_url(value: str) -> bool:
    return bool(_GITHUB_URL_RE.match(value))


def normalize_github_url(url: str) -> str:
    """Strip a ``.git`` suffix and trailing slash, and force https."""
    url = url.strip().removesuffix(".git").removesuffix("/")
    if url.startswith("http:"):
        url = "https:" + url.removeprefix("http:")
    return url


def _read(path: Path) -> str:
    if not path.exists():
        raise InputParseError(f"Input file not found: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputParseError(f"Cannot read input file {path}: {exc}") from exc


def _first_repo_url(row: list[str]) -> str | None:
    for cell in row:
        candidate = cell.strip().strip("'\"")
        if is_github_url(candidate):
            return normalize_github_url(candidate)
    return None


def parse_csv(path: Path) -> list[str]:
    """Extract repository URLs from a CSV file.

    The first cell in each row that looks like a GitHub repository URL is
    taken; rows without one, header rows included, are skipped.

    Raises:
        InputParseError: If the file is missing, empty, or has no URLs.
    """
    content = _read(path)
    rows = [row for row in csv.reader(io.StringIO(content)) if any(c.strip() for c in row)]
    if not rows:
        raise InputParseError("Input file is empty")

    urls: list[str] = []
    for row in rows:
        url = _first_repo_url(row)
        if url is not None:
            urls.append(url)

    if not urls:
        raise InputParseError("No valid GitHub repository URLs found in input file")

    logger.debug("csv_parsed", path=str(path), urls=len(urls))
    return urls


def parse_json(path: Path) -> list[str]:
    """Extract repository URLs from a JSON file.

    Accepts either an array of URLs or an object with a ``repositories``
    array. Entries that are not GitHub URLs are dropped.

    Raises:
        InputParseError: If the file is missing, not JSON, or has the
            wrong shape.
    """
    content = _read(path)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InputParseError(f"Failed to parse JSON file: {exc}") from exc

    if isinstance(data, dict) and isinstance(data.get("repositories"), list):
        data = data["repositories"]
    if not isinstance(data, list):
        raise InputParseError(
            "Invalid JSON structure. Expected array of URLs or object with "
            "repositories array."
        )

    return [
        normalize_github_url(item)
        for item in data
        if isinstance(item, str) and is_github_url(item)
    ]


def parse_input(path: Path) -> list[str]:
    """Parse a repository list, choosing the format from the file suffix."""
    if path.suffix.lower() == ".json":
        return parse_json(path)
    return parse_csv(path)
