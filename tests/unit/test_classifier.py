"""Unit tests for ens_analyzer.classifier - confidence, types, rating ladder, summary."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ens_analyzer.classifier import (
    CONFIDENCE_MULTIPLIERS,
    NO_INTEGRATION_SUMMARY,
    RATING_LADDER,
    TOP_EVIDENCE_LIMIT,
    Classifier,
    classify,
)
from ens_analyzer.models import ConfidenceLevel, EvidenceKind, IntegrationType
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry

if TYPE_CHECKING:
    from datetime import datetime

    from ens_analyzer.models import Evidence

VH = ConfidenceLevel.VERY_HIGH
H = ConfidenceLevel.HIGH
M = ConfidenceLevel.MEDIUM
L = ConfidenceLevel.LOW

REPO = "owner/project"
URL = "https://github.com/owner/project"


@pytest.fixture()
def classifier() -> Classifier:
    return Classifier(DEFAULT_REGISTRY)


@pytest.fixture()
def official_dependency(make_evidence):
    """Dependency evidence for the official ENS SDK."""
    return make_evidence(
        "official_sdk",
        kind=EvidenceKind.DEPENDENCY,
        pattern="@ensdomains/ensjs",
        confidence=VH,
        weight=10,
        file="package.json",
        line=0,
    )


# ---------------------------------------------------------------------------
# Empty evidence
# ---------------------------------------------------------------------------


class TestEmptyEvidence:
    """No evidence means no integration, not a failure."""

    def test_empty_list(self, classifier: Classifier) -> None:
        result = classifier.classify(REPO, URL, [])
        assert result.has_integration is False
        assert result.rating == 0
        assert result.confidence is ConfidenceLevel.ERROR
        assert result.integration_types == ()
        assert result.summary == "No integration detected"
        assert result.error_message is None
        assert result.top_evidence == ()

    def test_identity_fields_passed_through(
        self, classifier: Classifier, fixed_timestamp: datetime
    ) -> None:
        result = classifier.classify(
            REPO, URL, [], elapsed_ms=42, timestamp=fixed_timestamp
        )
        assert result.repository_id == REPO
        assert result.source_url == URL
        assert result.elapsed_ms == 42
        assert result.timestamp_iso == fixed_timestamp.isoformat()


# ---------------------------------------------------------------------------
# Overall confidence
# ---------------------------------------------------------------------------


class TestOverallConfidence:
    """Mean ordinal score is thresholded at 3.5 / 2.5 / 1.5."""

    @pytest.mark.parametrize(
        ("levels", "expected"),
        [
            ([VH], ConfidenceLevel.VERY_HIGH),
            ([VH, H], ConfidenceLevel.VERY_HIGH),  # mean 3.5
            ([H, M], ConfidenceLevel.HIGH),  # mean 2.5
            ([VH, M, M], ConfidenceLevel.HIGH),  # mean 2.67
            ([M, L], ConfidenceLevel.MEDIUM),  # mean 1.5
            ([L, L], ConfidenceLevel.LOW),
            ([L, ConfidenceLevel.ERROR], ConfidenceLevel.LOW),
            ([ConfidenceLevel.ERROR], ConfidenceLevel.LOW),
        ],
    )
    def test_thresholds(
        self,
        classifier: Classifier,
        make_evidence,
        levels: list[ConfidenceLevel],
        expected: ConfidenceLevel,
    ) -> None:
        evidence = [make_evidence(confidence=level) for level in levels]
        assert classifier.overall_confidence(evidence) is expected

    def test_nonempty_never_reports_error(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [make_evidence(confidence=ConfidenceLevel.ERROR)]
        assert classifier.classify(REPO, URL, evidence).confidence is ConfidenceLevel.LOW


# ---------------------------------------------------------------------------
# Integration types
# ---------------------------------------------------------------------------


class TestIntegrationTypes:
    """Free-form tags fold onto canonical types through the registry table."""

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("name_resolution", IntegrationType.NAME_RESOLUTION),
            ("ens_domain", IntegrationType.NAME_RESOLUTION),
            ("subdomain_mgmt", IntegrationType.SUBDOMAIN_MGMT),
            ("l2_subdomain", IntegrationType.SUBDOMAIN_MGMT),
            ("custom_resolver", IntegrationType.CUSTOM_RESOLVER),
            ("ai_integration", IntegrationType.AI_INTEGRATION),
            ("text_records", IntegrationType.TEXT_RECORDS),
            ("smart_contract", IntegrationType.SMART_CONTRACT),
            ("ens_registry", IntegrationType.SMART_CONTRACT),
            ("public_resolver", IntegrationType.SMART_CONTRACT),
            ("name_wrapper", IntegrationType.SMART_CONTRACT),
            ("ui_components", IntegrationType.PROFILE_DISPLAY),
        ],
    )
    def test_mapping(
        self, classifier: Classifier, make_evidence, tag: str, expected: IntegrationType
    ) -> None:
        assert classifier.integration_types([make_evidence(tag)]) == (expected,)

    def test_official_sdk_tag_is_unmapped(
        self, classifier: Classifier, official_dependency: Evidence
    ) -> None:
        result = classifier.classify(REPO, URL, [official_dependency])
        assert result.integration_types == ()
        assert result.has_integration is True
        assert result.confidence is ConfidenceLevel.VERY_HIGH
        assert result.rating == 0
        assert result.summary == NO_INTEGRATION_SUMMARY

    @pytest.mark.parametrize(
        "tag", ["modern_library", "react_hooks", "legacy_library", "python_library", ""]
    )
    def test_unknown_tags_dropped(
        self, classifier: Classifier, make_evidence, tag: str
    ) -> None:
        evidence = [make_evidence("name_resolution")]
        if tag:
            evidence.append(make_evidence(tag))
        assert classifier.integration_types(evidence) == (
            IntegrationType.NAME_RESOLUTION,
        )

    def test_deduplicated_in_first_seen_order(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("text_records"),
            make_evidence("ens_domain"),
            make_evidence("name_resolution"),
            make_evidence("text_records"),
        ]
        assert classifier.integration_types(evidence) == (
            IntegrationType.TEXT_RECORDS,
            IntegrationType.NAME_RESOLUTION,
        )


# ---------------------------------------------------------------------------
# Star rating
# ---------------------------------------------------------------------------


class TestRatingLadder:
    """Ordered decision ladder, first matching rule wins."""

    def test_ladder_order(self) -> None:
        assert [stars for stars, _ in RATING_LADDER] == [5, 4, 3, 2, 1]

    def test_multipliers(self) -> None:
        assert CONFIDENCE_MULTIPLIERS[VH] == 1.0
        assert CONFIDENCE_MULTIPLIERS[H] == 0.8
        assert CONFIDENCE_MULTIPLIERS[M] == 0.6
        assert CONFIDENCE_MULTIPLIERS[L] == 0.4
        assert CONFIDENCE_MULTIPLIERS[ConfidenceLevel.ERROR] == 0.0

    def test_five_stars_custom_resolver_ai_name_resolution(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("custom_resolver", confidence=VH, weight=10),
            make_evidence("ai_integration", confidence=VH, weight=9),
            make_evidence("name_resolution", confidence=H, weight=8),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 5

    def test_custom_resolver_needs_three_types_for_five(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("custom_resolver", confidence=VH, weight=10),
            make_evidence("name_resolution", confidence=VH, weight=10),
        ]
        # Two types, score 20: falls through to the score tier.
        assert classifier.classify(REPO, URL, evidence).rating == 2

    def test_four_stars_advanced_without_custom_resolver(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("ai_integration", confidence=VH, weight=9),
            make_evidence("name_resolution"),
            make_evidence("text_records"),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 4

    def test_four_stars_l2_subdomain_counts_as_advanced(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("l2_subdomain"),
            make_evidence("name_resolution"),
            make_evidence("text_records"),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 4

    def test_four_stars_ai_with_official_library(
        self, classifier: Classifier, make_evidence, official_dependency: Evidence
    ) -> None:
        evidence = [official_dependency, make_evidence("ai_integration", weight=9)]
        result = classifier.classify(REPO, URL, evidence)
        assert result.integration_types == (IntegrationType.AI_INTEGRATION,)
        assert result.rating == 4

    def test_official_library_must_be_dependency_kind(
        self, classifier: Classifier, make_evidence
    ) -> None:
        code_mention = make_evidence(
            "name_resolution", kind=EvidenceKind.CODE, pattern="@ensdomains/ensjs"
        )
        evidence = [code_mention, make_evidence("ai_integration", weight=1)]
        assert classifier.rating_facts(evidence, ()).has_official is False

    def test_three_stars_types_and_official(
        self, classifier: Classifier, make_evidence, official_dependency: Evidence
    ) -> None:
        evidence = [
            official_dependency,
            make_evidence("name_resolution"),
            make_evidence("text_records"),
            make_evidence("ens_registry", kind=EvidenceKind.CONTRACT, weight=10),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 3

    def test_three_types_without_official_is_score_tier(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("name_resolution"),
            make_evidence("text_records"),
            make_evidence("ens_registry", weight=10),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 2

    def test_two_stars_at_exact_threshold(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("name_resolution", confidence=VH, weight=10),
            make_evidence("text_records", confidence=VH, weight=5),
        ]
        assert classifier.rating_facts(evidence, ()).total_score == 15
        assert classifier.classify(REPO, URL, evidence).rating == 2

    def test_two_types_below_fifteen_is_one_star(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("name_resolution", confidence=VH, weight=10),
            make_evidence("text_records", confidence=VH, weight=4),
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 1

    def test_one_star_at_exact_threshold(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [make_evidence("name_resolution", confidence=VH, weight=5)]
        assert classifier.classify(REPO, URL, evidence).rating == 1

    def test_below_five_points_is_zero_stars(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [make_evidence("name_resolution", confidence=L, weight=10)]
        result = classifier.classify(REPO, URL, evidence)
        # 10 * 0.4 = 4.0 < 5: a type was found but the score is too weak.
        assert result.rating == 0
        assert result.integration_types == (IntegrationType.NAME_RESOLUTION,)
        assert result.summary == NO_INTEGRATION_SUMMARY

    def test_score_without_types_is_zero_stars(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [
            make_evidence("modern_library", kind=EvidenceKind.DEPENDENCY, weight=50)
        ]
        assert classifier.classify(REPO, URL, evidence).rating == 0

    def test_positive_rating_implies_types(
        self, classifier: Classifier, make_evidence, official_dependency: Evidence
    ) -> None:
        candidates = [
            [official_dependency],
            [official_dependency, make_evidence("ai_integration")],
            [make_evidence("ens_registry", weight=10)],
            [make_evidence("react_hooks", weight=99)],
        ]
        for evidence in candidates:
            result = classifier.classify(REPO, URL, evidence)
            if result.rating > 0:
                assert result.integration_types


class TestRatingMonotonicity:
    """Adding evidence never lowers the rating."""

    @pytest.mark.parametrize(
        ("base_tags", "added_tag"),
        [
            (["name_resolution"], "text_records"),
            (["name_resolution", "text_records"], "ens_registry"),
            (["name_resolution", "text_records", "ens_registry"], "ai_integration"),
            (["ai_integration", "name_resolution", "text_records"], "custom_resolver"),
            (["custom_resolver", "ai_integration", "name_resolution"], "ens_domain"),
            (["name_resolution"], "unmapped_tag"),
        ],
    )
    def test_superset_does_not_decrease(
        self,
        classifier: Classifier,
        make_evidence,
        base_tags: list[str],
        added_tag: str,
    ) -> None:
        base = [make_evidence(tag, confidence=M, weight=6) for tag in base_tags]
        extended = [*base, make_evidence(added_tag, confidence=L, weight=1)]
        assert (
            classifier.classify(REPO, URL, extended).rating
            >= classifier.classify(REPO, URL, base).rating
        )

    def test_official_dependency_lifts_three_types(
        self, classifier: Classifier, make_evidence, official_dependency: Evidence
    ) -> None:
        base = [
            make_evidence("name_resolution", confidence=L, weight=1),
            make_evidence("text_records", confidence=L, weight=1),
            make_evidence("ens_registry", confidence=L, weight=1),
        ]
        assert classifier.classify(REPO, URL, base).rating == 0
        assert classifier.classify(REPO, URL, [*base, official_dependency]).rating == 3

    def test_custom_resolver_lifts_four_to_five(
        self, classifier: Classifier, make_evidence
    ) -> None:
        base = [
            make_evidence("ai_integration"),
            make_evidence("name_resolution"),
            make_evidence("text_records"),
        ]
        assert classifier.classify(REPO, URL, base).rating == 4
        extended = [*base, make_evidence("custom_resolver", confidence=L, weight=1)]
        assert classifier.classify(REPO, URL, extended).rating == 5


# ---------------------------------------------------------------------------
# Top evidence & summary
# ---------------------------------------------------------------------------


class TestTopEvidence:
    """Top evidence is the first ten items in collector order."""

    def test_truncates_in_input_order(
        self, classifier: Classifier, make_evidence
    ) -> None:
        evidence = [make_evidence(line=i, weight=i + 1) for i in range(12)]
        result = classifier.classify(REPO, URL, evidence)
        assert len(result.top_evidence) == TOP_EVIDENCE_LIMIT
        assert [e.location.line for e in result.top_evidence] == list(range(10))

    def test_source_urls_preserved_verbatim(
        self, classifier: Classifier, make_evidence
    ) -> None:
        link = "https://github.com/owner/project/blob/dev/src/app.ts#L9"
        result = classifier.classify(REPO, URL, [make_evidence(source_url=link)])
        assert result.top_evidence[0].source_url == link


class TestSummary:
    """Summary sentence: tier description plus ordered feature phrases."""

    def test_all_features_in_priority_order(self, classifier: Classifier) -> None:
        types = [
            IntegrationType.NAME_RESOLUTION,
            IntegrationType.TEXT_RECORDS,
            IntegrationType.SUBDOMAIN_MGMT,
            IntegrationType.AI_INTEGRATION,
            IntegrationType.CUSTOM_RESOLVER,
        ]
        assert classifier.summary(types, 5) == (
            "Exceptional ENS integration with custom resolver, AI integration, "
            "subdomain management, text records, name resolution"
        )

    def test_no_recognized_feature_omits_with_clause(
        self, classifier: Classifier, make_evidence
    ) -> None:
        result = classifier.classify(
            REPO, URL, [make_evidence("ens_registry", confidence=VH, weight=10)]
        )
        assert result.rating == 1
        assert result.summary == "Basic ENS integration"

    @pytest.mark.parametrize(
        ("rating", "prefix"),
        [
            (1, "Basic"),
            (2, "Good"),
            (3, "Excellent"),
            (4, "Prize-worthy"),
            (5, "Exceptional"),
        ],
    )
    def test_tier_descriptions(
        self, classifier: Classifier, rating: int, prefix: str
    ) -> None:
        assert classifier.summary([], rating) == f"{prefix} ENS integration"

    def test_rating_zero_ignores_types(self, classifier: Classifier) -> None:
        assert (
            classifier.summary([IntegrationType.NAME_RESOLUTION], 0)
            == NO_INTEGRATION_SUMMARY
        )


# ---------------------------------------------------------------------------
# Purity & registry injection
# ---------------------------------------------------------------------------


class TestPurity:
    """Same inputs give the same verdict; the registry is the only config."""

    def test_repeatable(
        self, classifier: Classifier, make_evidence, fixed_timestamp: datetime
    ) -> None:
        evidence = [make_evidence("custom_resolver"), make_evidence("text_records")]
        first = classifier.classify(REPO, URL, evidence, timestamp=fixed_timestamp)
        second = classifier.classify(REPO, URL, evidence, timestamp=fixed_timestamp)
        assert first == second

    def test_module_level_classify_uses_default_registry(
        self, make_evidence, fixed_timestamp: datetime
    ) -> None:
        evidence = [make_evidence("ai_integration"), make_evidence("ens_domain")]
        assert classify(REPO, URL, evidence, timestamp=fixed_timestamp) == Classifier(
            DEFAULT_REGISTRY
        ).classify(REPO, URL, evidence, timestamp=fixed_timestamp)

    def test_custom_tag_table_changes_types(
        self, make_evidence, official_dependency: Evidence
    ) -> None:
        registry = DEFAULT_REGISTRY.merged_with(
            PatternRegistry(
                integration_tags={"official_sdk": IntegrationType.NAME_RESOLUTION}
            )
        )
        result = Classifier(registry).classify(REPO, URL, [official_dependency])
        assert result.integration_types == (IntegrationType.NAME_RESOLUTION,)
        assert result.rating == 1

    def test_serializes_with_camel_case(
        self, classifier: Classifier, make_evidence
    ) -> None:
        data = classifier.classify(REPO, URL, [make_evidence()]).model_dump(
            mode="json", by_alias=True
        )
        assert {
            "repositoryId",
            "sourceUrl",
            "hasIntegration",
            "integrationTypes",
            "topEvidence",
            "elapsedMs",
            "timestampIso",
            "errorMessage",
        } <= data.keys()
        assert data["topEvidence"][0]["integrationType"] == "name_resolution"
