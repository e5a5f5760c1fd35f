"""Detect ENS-related libraries declared in dependency manifests.

Supported manifests:
    - ``package.json`` (dependencies, devDependencies, peerDependencies)
    - ``requirements.txt``
    - ``Cargo.toml`` (dependencies, dev-dependencies, build-dependencies,
      workspace.dependencies)

Manifest matches are file-level, so evidence is reported at line 0.
"""

from __future__ import annotations

import json
import re
import tomllib
from typing import TYPE_CHECKING, Any

import structlog

from ens_analyzer.models import ConfidenceLevel, Evidence, EvidenceKind, EvidenceLocation
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry

if TYPE_CHECKING:
    from ens_analyzer.scanner import FileInfo

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_NPM_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")
_CARGO_SECTIONS = ("dependencies", "dev-dependencies", "build-dependencies")

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")

# Rules for libraries found outside package.json.
_MANIFEST_LIBRARY_CONFIDENCE = ConfidenceLevel.MEDIUM
_MANIFEST_LIBRARY_WEIGHT = 5


def _normalize_requirement(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


class DependencyDetector:
    """Turn manifest entries into dependency evidence."""

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY) -> None:
        self._registry = registry

    def detect(self, files: list[FileInfo]) -> list[Evidence]:
        evidence: list[Evidence] = []
        for file in files:
            name = file.path.rsplit("/", 1)[-1]
            try:
                if name == "package.json":
                    evidence.extend(self._package_json(file))
                elif name == "requirements.txt":
                    evidence.extend(self._requirements_txt(file))
                elif name == "Cargo.toml":
                    evidence.extend(self._cargo_toml(file))
            except (ValueError, TypeError) as exc:
                # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors
                logger.warning("manifest_malformed", path=file.path, error=str(exc))
        return evidence

    # ---- package.json ----------------------------------------------------------

    def _package_json(self, file: FileInfo) -> list[Evidence]:
        manifest = json.loads(file.content)
        if not isinstance(manifest, dict):
            return []

        declared: dict[str, Any] = {}
        for section in _NPM_SECTIONS:
            deps = manifest.get(section)
            if isinstance(deps, dict):
                declared.update(deps)

        found: list[Evidence] = []
        for dep_name, version in declared.items():
            rule = self._registry.dependency_rule(dep_name)
            if rule is None:
                continue
            found.append(
                Evidence(
                    kind=EvidenceKind.DEPENDENCY,
                    pattern=dep_name,
                    location=EvidenceLocation(file=file.path, line=0),
                    confidence=rule.confidence,
                    integration_type=rule.integration_type,
                    weight=rule.weight,
                    context=f"{dep_name}: {version}",
                )
            )
        return found

    # ---- requirements.txt ------------------------------------------------------

    def _requirements_txt(self, file: FileInfo) -> list[Evidence]:
        declared: set[str] = set()
        for line in file.content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith(("#", "-")):
                continue
            match = _REQUIREMENT_NAME.match(stripped)
            if match:
                declared.add(_normalize_requirement(match.group(1)))

        return [
            self._library_evidence(file, lib, "python_library", "Python")
            for lib in self._registry.python_libraries
            if _normalize_requirement(lib) in declared
        ]

    # ---- Cargo.toml ------------------------------------------------------------

    def _cargo_toml(self, file: FileInfo) -> list[Evidence]:
        manifest = tomllib.loads(file.content)

        tables: list[Any] = [manifest.get(section) for section in _CARGO_SECTIONS]
        workspace = manifest.get("workspace")
        if isinstance(workspace, dict):
            tables.append(workspace.get("dependencies"))

        declared = {
            name for table in tables if isinstance(table, dict) for name in table
        }
        return [
            self._library_evidence(file, lib, "rust_library", "Rust")
            for lib in self._registry.rust_libraries
            if lib in declared
        ]

    def _library_evidence(
        self, file: FileInfo, lib: str, tag: str, language: str
    ) -> Evidence:
        return Evidence(
            kind=EvidenceKind.DEPENDENCY,
            pattern=lib,
            location=EvidenceLocation(file=file.path, line=0),
            confidence=_MANIFEST_LIBRARY_CONFIDENCE,
            integration_type=tag,
            weight=_MANIFEST_LIBRARY_WEIGHT,
            context=f"{language} dependency: {lib}",
        )
