"""Evidence, classification and batch summary models.

Every record that crosses into reporting serializes with camelCase
aliases (``model_dump(by_alias=True)``) so the JSON report keeps the
field names consumers rely on, while Python code uses snake_case.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConfidenceLevel(StrEnum):
    """Ordinal strength of a single pattern rule.

    ``ERROR`` is the lowest level and also marks a repository where no
    evidence was found at all.
    """

    ERROR = "error"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def score(self) -> int:
        """Ordinal value from 0 (error) to 4 (very_high)."""
        return _CONFIDENCE_SCORES[self]


_CONFIDENCE_SCORES: dict[ConfidenceLevel, int] = {
    ConfidenceLevel.ERROR: 0,
    ConfidenceLevel.LOW: 1,
    ConfidenceLevel.MEDIUM: 2,
    ConfidenceLevel.HIGH: 3,
    ConfidenceLevel.VERY_HIGH: 4,
}


class EvidenceKind(StrEnum):
    """Where a piece of evidence was observed."""

    DEPENDENCY = "dependency"
    CODE = "code"
    CONTRACT = "contract"
    UI = "ui"
    CONFIG = "config"


class IntegrationType(StrEnum):
    """Canonical category of ENS integration technique."""

    NAME_RESOLUTION = "name_resolution"
    SUBDOMAIN_MGMT = "subdomain_mgmt"
    PROFILE_DISPLAY = "profile_display"
    AUTHENTICATION = "authentication"
    SMART_CONTRACT = "smart_contract"
    CROSS_CHAIN = "cross_chain"
    CONTENT_HOSTING = "content_hosting"
    TEXT_RECORDS = "text_records"
    AI_INTEGRATION = "ai_integration"
    CUSTOM_RESOLVER = "custom_resolver"
    L2_SUBDOMAIN = "l2_subdomain"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class EvidenceLocation(_Record):
    """File path (relative to the repository root) and 1-based line."""

    file: str = Field(description="Path relative to the repository root.")
    line: int = Field(default=0, ge=0, description="0 for file-level matches.")


class Evidence(_Record):
    """One observed signal of ENS integration."""

    kind: EvidenceKind
    pattern: str = Field(description="Dependency name, regex source, or address.")
    location: EvidenceLocation
    confidence: ConfidenceLevel
    integration_type: str = Field(description="Free-form tag from the pattern rule.")
    weight: int = Field(gt=0)
    context: str = Field(default="", description="Matched line or 'name: version'.")
    matched_text: str | None = None
    source_url: str | None = None

    def with_source_url(self, source_url: str) -> Evidence:
        """Return a copy carrying ``source_url``.

        A source URL is attached at most once; if one is already present
        the record is returned unchanged.
        """
        if self.source_url is not None:
            return self
        return self.model_copy(update={"source_url": source_url})


class ClassificationResult(_Record):
    """Verdict for a single repository."""

    repository_id: str
    source_url: str
    has_integration: bool
    confidence: ConfidenceLevel
    integration_types: tuple[IntegrationType, ...] = ()
    rating: int = Field(ge=0, le=5)
    top_evidence: tuple[Evidence, ...] = ()
    summary: str
    elapsed_ms: int = Field(default=0, ge=0)
    timestamp_iso: str
    error_message: str | None = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None

    @classmethod
    def from_failure(
        cls,
        repository_id: str,
        source_url: str,
        error_message: str,
        *,
        elapsed_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ClassificationResult:
        """Build the result recorded when acquisition or scanning failed."""
        return cls(
            repository_id=repository_id,
            source_url=source_url,
            has_integration=False,
            confidence=ConfidenceLevel.ERROR,
            integration_types=(),
            rating=0,
            top_evidence=(),
            summary=f"Analysis failed: {error_message}",
            elapsed_ms=elapsed_ms,
            timestamp_iso=(timestamp or utc_now()).isoformat(),
            error_message=error_message,
        )


class LibraryUsage(_Record):
    """How many integrated repositories declare a given dependency."""

    name: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0)


class BatchSummary(_Record):
    """Aggregate statistics over a batch of classification results."""

    integrated_count: int = Field(default=0, ge=0)
    integrated_percentage: int = Field(default=0, ge=0, le=100)
    average_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    top_project: ClassificationResult | None = None
    rating_histogram: dict[int, int] = Field(default_factory=dict)
    integration_type_histogram: dict[IntegrationType, int] = Field(
        default_factory=dict
    )
    top_libraries: tuple[LibraryUsage, ...] = ()


class BatchResult(_Record):
    """Envelope for a completed batch run, as written to the JSON report."""

    results: tuple[ClassificationResult, ...] = ()
    summary: BatchSummary = Field(default_factory=BatchSummary)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    processed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    timestamp_iso: str = Field(default_factory=lambda: utc_now().isoformat())

    @property
    def failures(self) -> list[ClassificationResult]:
        return [r for r in self.results if r.failed]
