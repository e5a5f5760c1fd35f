"""Pattern registry: the static rule tables behind every detector.

The registry is pure data. It maps dependency names, source-code regular
expressions and contract addresses to a confidence level, a free-form
integration tag and a weight, and carries the versioned table that folds
those free-form tags onto canonical ``IntegrationType`` values. Detectors
and the classifier receive a registry explicitly; new rules can be added
from a YAML file without touching either.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ens_analyzer.exceptions import PatternConfigError
from ens_analyzer.models import ConfidenceLevel, IntegrationType

if TYPE_CHECKING:
    from pathlib import Path

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# Version of the tag -> IntegrationType table below. Bump when a mapping
# changes meaning so reports from different runs can be told apart.
INTEGRATION_TAGS_VERSION = 1


# ---------------------------------------------------------------------------
# Rule models
# ---------------------------------------------------------------------------


class _Rule(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    confidence: ConfidenceLevel
    integration_type: str = Field(min_length=1)
    weight: int = Field(gt=0)
    description: str = ""


class DependencyRule(_Rule):
    """Rule for a package name found in a dependency manifest."""


class CodeRule(_Rule):
    """Rule for a regular expression matched line by line in source files."""

    pattern: str = Field(min_length=1, description="Case-insensitive regex source.")

    @field_validator("pattern")
    @classmethod
    def _check_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            msg = f"invalid regular expression {value!r}: {exc}"
            raise ValueError(msg) from exc
        return value

    @property
    def regex(self) -> re.Pattern[str]:
        return _compile(self.pattern)


class ContractRule(_Rule):
    """Rule for a deployed contract address referenced in source."""

    name: str = Field(min_length=1, description="Display name of the contract.")


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class PatternRegistry(BaseModel):
    """Immutable lookup tables used by detectors and the classifier.

    Attributes:
        dependencies: Dependency name -> rule (``package.json`` entries).
        code_patterns: Category name -> ordered regex rules.
        contract_addresses: Contract address -> rule.
        integration_tags: Free-form tag -> canonical integration type.
            Tags missing from this table are ignored by the classifier.
        official_libraries: Dependency names that count as official SDKs.
        advanced_tags: Tags that mark an advanced integration technique.
        python_libraries: Names looked for in ``requirements.txt``.
        rust_libraries: Names looked for in ``Cargo.toml``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    dependencies: dict[str, DependencyRule] = Field(default_factory=dict)
    code_patterns: dict[str, tuple[CodeRule, ...]] = Field(default_factory=dict)
    contract_addresses: dict[str, ContractRule] = Field(default_factory=dict)
    integration_tags: dict[str, IntegrationType] = Field(default_factory=dict)
    official_libraries: frozenset[str] = frozenset()
    advanced_tags: frozenset[str] = frozenset()
    python_libraries: tuple[str, ...] = ()
    rust_libraries: tuple[str, ...] = ()

    # ---- Lookups -------------------------------------------------------------

    def dependency_rule(self, name: str) -> DependencyRule | None:
        return self.dependencies.get(name)

    def contract_rule(self, address: str) -> ContractRule | None:
        return self.contract_addresses.get(address)

    def code_rules(self) -> list[CodeRule]:
        """All code rules, flattened in category order."""
        return [rule for rules in self.code_patterns.values() for rule in rules]

    def canonical_type(self, tag: str) -> IntegrationType | None:
        """Map a free-form tag to its canonical type, or ``None`` if unknown."""
        return self.integration_tags.get(tag)

    # ---- Construction --------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PatternRegistry:
        """Build a registry from plain data (e.g. parsed YAML).

        Raises:
            PatternConfigError: If any rule is malformed.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise PatternConfigError(f"Invalid pattern configuration: {exc}") from exc

    def merged_with(self, other: PatternRegistry) -> PatternRegistry:
        """Overlay ``other`` on this registry.

        Rules in ``other`` replace same-keyed rules here; a code pattern
        category in ``other`` replaces the whole category.
        """
        return PatternRegistry(
            dependencies={**self.dependencies, **other.dependencies},
            code_patterns={**self.code_patterns, **other.code_patterns},
            contract_addresses={**self.contract_addresses, **other.contract_addresses},
            integration_tags={**self.integration_tags, **other.integration_tags},
            official_libraries=self.official_libraries | other.official_libraries,
            advanced_tags=self.advanced_tags | other.advanced_tags,
            python_libraries=_merge_names(self.python_libraries, other.python_libraries),
            rust_libraries=_merge_names(self.rust_libraries, other.rust_libraries),
        )


def _merge_names(first: tuple[str, ...], second: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys((*first, *second)))


def load_registry(
    path: Path, base: PatternRegistry | None = None
) -> PatternRegistry:
    """Load extra rules from a YAML file and overlay them on ``base``.

    Args:
        path: YAML file with any subset of the registry sections.
        base: Registry to extend (defaults to ``DEFAULT_REGISTRY``).

    Returns:
        The merged registry.

    Raises:
        PatternConfigError: If the file cannot be read or is malformed.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise PatternConfigError(f"Cannot load pattern file {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise PatternConfigError(
            f"Pattern file {path} must contain a mapping, got {type(raw).__name__}"
        )

    overlay = PatternRegistry.from_mapping(raw)
    registry = (base or DEFAULT_REGISTRY).merged_with(overlay)
    logger.info(
        "pattern_registry_loaded",
        path=str(path),
        dependencies=len(registry.dependencies),
        code_rules=len(registry.code_rules()),
        contracts=len(registry.contract_addresses),
    )
    return registry


# ---------------------------------------------------------------------------
# Default rules
# ---------------------------------------------------------------------------

_VH = ConfidenceLevel.VERY_HIGH
_H = ConfidenceLevel.HIGH
_M = ConfidenceLevel.MEDIUM

DEFAULT_REGISTRY = PatternRegistry(
    dependencies={
        "@ensdomains/ensjs": DependencyRule(
            confidence=_VH, integration_type="official_sdk", weight=10
        ),
        "@ensdomains/thorin": DependencyRule(
            confidence=_VH, integration_type="ui_components", weight=8
        ),
        "@ensdomains/durin": DependencyRule(
            confidence=_VH, integration_type="l2_subdomain", weight=9
        ),
        "viem": DependencyRule(confidence=_H, integration_type="modern_library", weight=7),
        "wagmi": DependencyRule(confidence=_H, integration_type="react_hooks", weight=7),
        "ethers": DependencyRule(
            confidence=_M, integration_type="legacy_library", weight=5
        ),
    },
    code_patterns={
        "name_resolution": (
            CodeRule(pattern=r"resolveName\(", confidence=_H, integration_type="name_resolution", weight=8),
            CodeRule(pattern=r"\.eth['\"`\s\)]", confidence=_M, integration_type="ens_domain", weight=5),
            CodeRule(pattern=r"namehash\(", confidence=_H, integration_type="name_resolution", weight=8),
            CodeRule(pattern=r"resolver\.getText\(", confidence=_H, integration_type="name_resolution", weight=7),
            CodeRule(pattern=r"resolver\.getAddress\(", confidence=_H, integration_type="name_resolution", weight=7),
        ),
        "advanced": (
            CodeRule(pattern=r"CCIP-Read", confidence=_VH, integration_type="custom_resolver", weight=10),
            CodeRule(pattern=r"OffchainLookup", confidence=_VH, integration_type="custom_resolver", weight=10),
            CodeRule(pattern=r"setText\(", confidence=_H, integration_type="text_records", weight=7),
            CodeRule(pattern=r"ai\.(bio|context|style)", confidence=_VH, integration_type="ai_integration", weight=9),
        ),
        "subdomains": (
            CodeRule(pattern=r"(subdomain|subname)", confidence=_M, integration_type="subdomain_mgmt", weight=6),
            CodeRule(pattern=r"NameWrapper", confidence=_H, integration_type="subdomain_mgmt", weight=8),
            CodeRule(pattern=r"\bdurin\b", confidence=_H, integration_type="l2_subdomain", weight=8),
            CodeRule(pattern=r"@ensdomains/durin", confidence=_VH, integration_type="l2_subdomain", weight=9),
            CodeRule(pattern=r"durin\.register", confidence=_VH, integration_type="l2_subdomain", weight=9),
            CodeRule(pattern=r"DurinRegistrar", confidence=_VH, integration_type="l2_subdomain", weight=9),
        ),
    },
    contract_addresses={
        "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e": ContractRule(
            name="ENS Registry", confidence=_VH, integration_type="ens_registry", weight=10
        ),
        "0x231b0Ee14048e9dCcD1d247744d114a4EB5E8E63": ContractRule(
            name="Public Resolver", confidence=_VH, integration_type="public_resolver", weight=9
        ),
        "0xD4416b13d2b3a9aBae7AcD5D6C2BbDBE25686401": ContractRule(
            name="NameWrapper", confidence=_VH, integration_type="name_wrapper", weight=9
        ),
    },
    integration_tags={
        "name_resolution": IntegrationType.NAME_RESOLUTION,
        "ens_domain": IntegrationType.NAME_RESOLUTION,
        "subdomain_mgmt": IntegrationType.SUBDOMAIN_MGMT,
        "l2_subdomain": IntegrationType.SUBDOMAIN_MGMT,
        "ai_integration": IntegrationType.AI_INTEGRATION,
        "custom_resolver": IntegrationType.CUSTOM_RESOLVER,
        "text_records": IntegrationType.TEXT_RECORDS,
        "smart_contract": IntegrationType.SMART_CONTRACT,
        "ens_registry": IntegrationType.SMART_CONTRACT,
        "public_resolver": IntegrationType.SMART_CONTRACT,
        "name_wrapper": IntegrationType.SMART_CONTRACT,
        "ui_components": IntegrationType.PROFILE_DISPLAY,
    },
    official_libraries=frozenset(
        {"@ensdomains/ensjs", "@ensdomains/thorin", "@ensdomains/durin"}
    ),
    advanced_tags=frozenset({"custom_resolver", "ai_integration", "l2_subdomain"}),
    python_libraries=("ens", "web3", "eth-ens"),
    rust_libraries=("ethers", "web3"),
)
