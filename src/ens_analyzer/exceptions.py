"""Centralized exception hierarchy for the ens-analyzer package.

All domain-specific exceptions inherit from ``EnsAnalyzerError`` so
callers can catch the entire family with a single ``except`` clause.
"""

from __future__ import annotations


class EnsAnalyzerError(Exception):
    """Base exception for all ens-analyzer errors."""


# ---------------------------------------------------------------------------
# Acquisition errors
# ---------------------------------------------------------------------------


class RepositoryAcquisitionError(EnsAnalyzerError):
    """Raised when a repository cannot be cloned or scanned."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class PatternConfigError(EnsAnalyzerError):
    """Raised when a pattern registry definition is malformed."""


# ---------------------------------------------------------------------------
# Input / output errors
# ---------------------------------------------------------------------------


class InputParseError(EnsAnalyzerError):
    """Raised when a repository list file cannot be parsed."""


class ReportError(EnsAnalyzerError):
    """Raised when a report cannot be rendered or written."""
