"""Detect references to deployed ENS contract addresses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ens_analyzer.models import Evidence, EvidenceKind, EvidenceLocation
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry

if TYPE_CHECKING:
    from ens_analyzer.scanner import FileInfo


class ContractDetector:
    """One evidence per known address per file, at the first line it appears."""

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY) -> None:
        self._registry = registry

    def detect(self, files: list[FileInfo]) -> list[Evidence]:
        evidence: list[Evidence] = []
        for file in files:
            evidence.extend(self._scan(file))
        return evidence

    def _scan(self, file: FileInfo) -> list[Evidence]:
        found: list[Evidence] = []
        for address, rule in self._registry.contract_addresses.items():
            if address not in file.content:
                continue
            line = next(
                i
                for i, text in enumerate(file.content.split("\n"), start=1)
                if address in text
            )
            found.append(
                Evidence(
                    kind=EvidenceKind.CONTRACT,
                    pattern=address,
                    location=EvidenceLocation(file=file.path, line=line),
                    confidence=rule.confidence,
                    integration_type=rule.integration_type,
                    weight=rule.weight,
                    context=rule.name,
                    matched_text=address,
                )
            )
        return found
