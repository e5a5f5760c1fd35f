"""Shared pytest fixtures for the ens-analyzer test suite."""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from ens_analyzer.models import (
    ConfidenceLevel,
    Evidence,
    EvidenceKind,
    EvidenceLocation,
)

EvidenceFactory = Callable[..., Evidence]


# ---------------------------------------------------------------------------
# Evidence helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_evidence() -> EvidenceFactory:
    """Return a factory for Evidence records with overridable defaults."""

    def _make(
        integration_type: str = "name_resolution",
        *,
        kind: EvidenceKind = EvidenceKind.CODE,
        pattern: str = r"resolveName\(",
        confidence: ConfidenceLevel = ConfidenceLevel.HIGH,
        weight: int = 8,
        file: str = "src/app.ts",
        line: int = 1,
        context: str = "",
        source_url: str | None = None,
    ) -> Evidence:
        return Evidence(
            kind=kind,
            pattern=pattern,
            location=EvidenceLocation(file=file, line=line),
            confidence=confidence,
            integration_type=integration_type,
            weight=weight,
            context=context,
            source_url=source_url,
        )

    return _make


@pytest.fixture()
def fixed_timestamp() -> datetime:
    """A stable timestamp so results compare equal across calls."""
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def write_sample_repo(root: Path) -> Path:
    """Populate ``root`` with a small ENS-integrated project."""
    (root / "src").mkdir(parents=True, exist_ok=True)
    (root / "contracts").mkdir(parents=True, exist_ok=True)
    (root / "node_modules" / "viem").mkdir(parents=True, exist_ok=True)

    (root / "package.json").write_text(
        json.dumps(
            {
                "name": "sample-dapp",
                "dependencies": {"@ensdomains/ensjs": "^3.0.0", "react": "^18.0.0"},
                "devDependencies": {"viem": "^2.0.0"},
            }
        ),
        encoding="utf-8",
    )
    (root / "src" / "resolve.ts").write_text(
        "import { createEnsPublicClient } from '@ensdomains/ensjs'\n"
        "// resolveName( is documented here\n"
        "const address = await client.resolveName('vitalik.eth')\n"
        "const bio = records.ai.bio\n"
        "const gateway = 'CCIP-Read gateway'\n",
        encoding="utf-8",
    )
    (root / "contracts" / "Registry.sol").write_text(
        "pragma solidity ^0.8.0;\n"
        "address constant REGISTRY = 0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e;\n",
        encoding="utf-8",
    )
    # Ignored directory: must never produce evidence.
    (root / "node_modules" / "viem" / "index.js").write_text(
        "resolveName(name)\n", encoding="utf-8"
    )
    return root


@pytest.fixture()
def sample_repo(tmp_path: Path) -> Path:
    """A checked-out looking repository with dependency, code and contract hits."""
    return write_sample_repo(tmp_path / "sample")


@pytest.fixture()
def copy_clone(sample_repo: Path) -> Callable[[str, Path], None]:
    """A clone function that copies ``sample_repo`` instead of running git."""

    def _clone(url: str, target: Path) -> None:
        shutil.copytree(sample_repo, target)

    return _clone
