"""Batch aggregation over per-repository classification results.

All integration-scoped statistics (average rating, type histogram,
library usage) are computed over repositories where evidence was found;
the rating histogram and the adoption percentage cover every repository
that was attempted, failed ones included.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from ens_analyzer.models import (
    BatchSummary,
    ClassificationResult,
    EvidenceKind,
    IntegrationType,
    LibraryUsage,
)

TOP_LIBRARIES_LIMIT = 10


def percent(part: int, whole: int) -> int:
    """Return ``part / whole`` as a whole percentage, rounding halves up.

    Computed in integer arithmetic so 1/8 gives exactly 13, not 12.
    Returns 0 when ``whole`` is 0.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def summarize(results: Sequence[ClassificationResult]) -> BatchSummary:
    """Aggregate a batch of results into a ``BatchSummary``.

    Args:
        results: One result per attempted repository, in input order.

    Returns:
        Summary statistics. An empty batch, or one where every repository
        failed, yields zeroed aggregates and no top project.
    """
    integrated = [r for r in results if r.has_integration]
    integrated_count = len(integrated)

    average_rating = (
        sum(r.rating for r in integrated) / integrated_count if integrated else 0.0
    )

    return BatchSummary(
        integrated_count=integrated_count,
        integrated_percentage=percent(integrated_count, len(results)),
        average_rating=average_rating,
        top_project=_top_project(integrated),
        rating_histogram=_rating_histogram(results),
        integration_type_histogram=_integration_type_histogram(integrated),
        top_libraries=_top_libraries(integrated),
    )


def _top_project(
    integrated: Sequence[ClassificationResult],
) -> ClassificationResult | None:
    best: ClassificationResult | None = None
    for result in integrated:
        # Strictly greater keeps the first-seen result on ties.
        if best is None or result.rating > best.rating:
            best = result
    return best


def _rating_histogram(results: Sequence[ClassificationResult]) -> dict[int, int]:
    counts = Counter(r.rating for r in results)
    return dict(sorted(counts.items()))


def _integration_type_histogram(
    integrated: Sequence[ClassificationResult],
) -> dict[IntegrationType, int]:
    counts: Counter[IntegrationType] = Counter()
    for result in integrated:
        counts.update(dict.fromkeys(result.integration_types, 1))
    return dict(counts)


def _top_libraries(integrated: Sequence[ClassificationResult]) -> tuple[LibraryUsage, ...]:
    counts: Counter[str] = Counter()
    for result in integrated:
        for evidence in result.top_evidence:
            if evidence.kind is EvidenceKind.DEPENDENCY:
                counts[evidence.pattern] += 1

    # Counter preserves first-insertion order and sorted() is stable, so
    # equal counts stay in first-encountered order.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        LibraryUsage(name=name, count=count, percentage=percent(count, len(integrated)))
        for name, count in ranked[:TOP_LIBRARIES_LIMIT]
    )
