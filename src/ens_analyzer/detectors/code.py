"""Line-oriented regex detection of ENS usage in source files.

Each code rule is tried against every line of every file; a line yields
at most one evidence per rule. Two heuristics cut false positives:
    - Lines that start a comment are ignored
    - ``durin`` matches embedded in a longer word ("during") are rejected
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ens_analyzer.models import Evidence, EvidenceKind, EvidenceLocation
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry

if TYPE_CHECKING:
    import re

    from ens_analyzer.patterns import CodeRule
    from ens_analyzer.scanner import FileInfo

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_CONTENT_CHARS = 500_000
CONTEXT_CHARS = 100

BINARY_EXTENSIONS = (".jpg", ".png", ".gif", ".pdf", ".zip", ".tar", ".gz")

_COMMENT_PREFIXES = ("//", "/*", "*")
_HASH_COMMENT_EXTENSIONS = frozenset({".py"})


class CodeDetector:
    """Scan source files with the registry's code rules."""

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY) -> None:
        self._rules: list[CodeRule] = registry.code_rules()

    def detect(self, files: list[FileInfo]) -> list[Evidence]:
        evidence: list[Evidence] = []
        for file in files:
            if file.path.lower().endswith(BINARY_EXTENSIONS):
                continue
            if len(file.content) > MAX_CONTENT_CHARS:
                continue
            evidence.extend(self._scan(file))
        return evidence

    def _scan(self, file: FileInfo) -> list[Evidence]:
        lines = file.content.split("\n")
        found: list[Evidence] = []
        for rule in self._rules:
            regex = rule.regex
            for number, line in enumerate(lines, start=1):
                match = regex.search(line)
                if match is None or not _is_valid_match(match, line, file, rule):
                    continue
                found.append(
                    Evidence(
                        kind=EvidenceKind.CODE,
                        pattern=rule.pattern,
                        location=EvidenceLocation(file=file.path, line=number),
                        confidence=rule.confidence,
                        integration_type=rule.integration_type,
                        weight=rule.weight,
                        context=line.strip()[:CONTEXT_CHARS],
                        matched_text=match.group(0),
                    )
                )
        return found


def _is_comment(line: str, extension: str) -> bool:
    stripped = line.strip()
    if stripped.startswith(_COMMENT_PREFIXES):
        return True
    return extension in _HASH_COMMENT_EXTENSIONS and stripped.startswith("#")


def _is_valid_match(
    match: re.Match[str], line: str, file: FileInfo, rule: CodeRule
) -> bool:
    if _is_comment(line, file.extension):
        return False

    if "durin" in rule.pattern.lower() and match.group(0).lower() == "durin":
        start, end = match.span()
        before = line[start - 1] if start > 0 else ""
        after = line[end] if end < len(line) else ""
        if before.isalnum() or after.isalnum():
            return False

    return True
