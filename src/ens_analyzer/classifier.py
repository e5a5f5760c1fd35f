"""Evidence classifier: turns one repository's evidence into a verdict.

Derives four things from the raw evidence list:
    - Overall confidence (mean ordinal score, thresholded)
    - Canonical integration types (via the registry's tag table)
    - Star rating (ordered decision ladder, first match wins)
    - A one-sentence human-readable summary
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from ens_analyzer.models import (
    ClassificationResult,
    ConfidenceLevel,
    Evidence,
    EvidenceKind,
    IntegrationType,
    utc_now,
)
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TOP_EVIDENCE_LIMIT = 10

NO_INTEGRATION_SUMMARY = "No integration detected"

# Mean ordinal score -> overall confidence, checked top-down.
_CONFIDENCE_THRESHOLDS: tuple[tuple[float, ConfidenceLevel], ...] = (
    (3.5, ConfidenceLevel.VERY_HIGH),
    (2.5, ConfidenceLevel.HIGH),
    (1.5, ConfidenceLevel.MEDIUM),
)

CONFIDENCE_MULTIPLIERS: dict[ConfidenceLevel, float] = {
    ConfidenceLevel.VERY_HIGH: 1.0,
    ConfidenceLevel.HIGH: 0.8,
    ConfidenceLevel.MEDIUM: 0.6,
    ConfidenceLevel.LOW: 0.4,
    ConfidenceLevel.ERROR: 0.0,
}

RATING_DESCRIPTIONS: dict[int, str] = {
    1: "Basic ENS integration",
    2: "Good ENS integration",
    3: "Excellent ENS integration",
    4: "Prize-worthy ENS integration",
    5: "Exceptional ENS integration",
}

# Summary feature phrases, in the order they appear in the sentence.
_FEATURE_PHRASES: tuple[tuple[IntegrationType, str], ...] = (
    (IntegrationType.CUSTOM_RESOLVER, "custom resolver"),
    (IntegrationType.AI_INTEGRATION, "AI integration"),
    (IntegrationType.SUBDOMAIN_MGMT, "subdomain management"),
    (IntegrationType.TEXT_RECORDS, "text records"),
    (IntegrationType.NAME_RESOLUTION, "name resolution"),
)


# ---------------------------------------------------------------------------
# Rating ladder
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RatingFacts:
    """Quantities the rating ladder is evaluated against."""

    total_score: float
    type_count: int
    has_advanced: bool
    has_official: bool
    tags: frozenset[str]


RatingRule = tuple[int, Callable[[RatingFacts], bool]]

RATING_LADDER: tuple[RatingRule, ...] = (
    (
        5,
        lambda f: f.has_advanced and "custom_resolver" in f.tags and f.type_count >= 3,
    ),
    (
        4,
        lambda f: (f.has_advanced and f.type_count >= 3)
        or ("ai_integration" in f.tags and f.has_official),
    ),
    (3, lambda f: f.type_count >= 3 and f.has_official),
    (2, lambda f: f.type_count >= 2 and f.total_score >= 15),
    (1, lambda f: f.type_count >= 1 and f.total_score >= 5),
)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class Classifier:
    """Classifies a repository from its evidence list.

    The classifier is a pure function of the registry it was built with
    and the evidence it is given; instances hold no mutable state and can
    be shared across concurrent analyses.
    """

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY) -> None:
        self._registry = registry

    @property
    def registry(self) -> PatternRegistry:
        return self._registry

    def classify(
        self,
        repository_id: str,
        source_url: str,
        evidence: Sequence[Evidence],
        *,
        elapsed_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ClassificationResult:
        """Derive a ``ClassificationResult`` from ``evidence``.

        Args:
            repository_id: ``owner/name`` identifier.
            source_url: Canonical repository URL (not validated).
            evidence: Evidence in collector order.
            elapsed_ms: Time spent acquiring and scanning the repository.
            timestamp: Result timestamp (defaults to now, UTC).

        Returns:
            The repository verdict.
        """
        integration_types = self.integration_types(evidence)
        rating = self.rating(evidence, integration_types)

        return ClassificationResult(
            repository_id=repository_id,
            source_url=source_url,
            has_integration=len(evidence) > 0,
            confidence=self.overall_confidence(evidence),
            integration_types=integration_types,
            rating=rating,
            top_evidence=tuple(evidence[:TOP_EVIDENCE_LIMIT]),
            summary=self.summary(integration_types, rating),
            elapsed_ms=elapsed_ms,
            timestamp_iso=(timestamp or utc_now()).isoformat(),
        )

    # ---- Steps ---------------------------------------------------------------

    def overall_confidence(self, evidence: Sequence[Evidence]) -> ConfidenceLevel:
        if not evidence:
            return ConfidenceLevel.ERROR

        average = sum(e.confidence.score for e in evidence) / len(evidence)
        for threshold, level in _CONFIDENCE_THRESHOLDS:
            if average >= threshold:
                return level
        return ConfidenceLevel.LOW

    def integration_types(
        self, evidence: Sequence[Evidence]
    ) -> tuple[IntegrationType, ...]:
        """Canonical types present in ``evidence``, first-seen order, no repeats.

        Tags that are not in the registry's tag table are skipped.
        """
        found: dict[IntegrationType, None] = {}
        for item in evidence:
            canonical = self._registry.canonical_type(item.integration_type)
            if canonical is not None:
                found.setdefault(canonical, None)
        return tuple(found)

    def rating_facts(
        self,
        evidence: Sequence[Evidence],
        integration_types: Sequence[IntegrationType],
    ) -> RatingFacts:
        tags = frozenset(e.integration_type for e in evidence)
        return RatingFacts(
            total_score=sum(
                e.weight * CONFIDENCE_MULTIPLIERS[e.confidence] for e in evidence
            ),
            type_count=len(integration_types),
            has_advanced=not tags.isdisjoint(self._registry.advanced_tags),
            has_official=any(
                e.kind is EvidenceKind.DEPENDENCY
                and e.pattern in self._registry.official_libraries
                for e in evidence
            ),
            tags=tags,
        )

    def rating(
        self,
        evidence: Sequence[Evidence],
        integration_types: Sequence[IntegrationType],
    ) -> int:
        facts = self.rating_facts(evidence, integration_types)
        for stars, applies in RATING_LADDER:
            if applies(facts):
                return stars
        return 0

    def summary(self, integration_types: Sequence[IntegrationType], rating: int) -> str:
        if rating == 0:
            return NO_INTEGRATION_SUMMARY

        present = set(integration_types)
        features = [phrase for kind, phrase in _FEATURE_PHRASES if kind in present]
        description = RATING_DESCRIPTIONS[rating]
        if features:
            return f"{description} with {', '.join(features)}"
        return description


_DEFAULT_CLASSIFIER = Classifier()


def classify(
    repository_id: str,
    source_url: str,
    evidence: Sequence[Evidence],
    *,
    elapsed_ms: int = 0,
    timestamp: datetime | None = None,
) -> ClassificationResult:
    """Classify with the default pattern registry."""
    return _DEFAULT_CLASSIFIER.classify(
        repository_id,
        source_url,
        evidence,
        elapsed_ms=elapsed_ms,
        timestamp=timestamp,
    )
