"""Evidence detectors: dependency manifests, source patterns, contract addresses."""

from __future__ import annotations

from ens_analyzer.detectors.code import CodeDetector
from ens_analyzer.detectors.contract import ContractDetector
from ens_analyzer.detectors.dependency import DependencyDetector

__all__ = [
    "CodeDetector",
    "ContractDetector",
    "DependencyDetector",
]
