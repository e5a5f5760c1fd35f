"""Filesystem scanning for cloned repositories.

Finds the three groups of files the detectors consume (dependency
manifests, source files, contract files) and loads their text. Paths in
the returned ``FileInfo`` records are relative to the repository root,
POSIX-style, so evidence locations never leak temporary clone paths.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MANIFEST_NAMES = frozenset({"package.json", "requirements.txt", "Cargo.toml", "go.mod"})

CODE_SUFFIXES = frozenset(
    {".ts", ".tsx", ".js", ".jsx", ".py", ".sol", ".go", ".rs", ".vue", ".svelte"}
)

CONTRACT_SUFFIXES = frozenset({".sol", ".vy"})
_CONTRACT_DIR_SUFFIXES = frozenset({".js", ".ts"})

DEFAULT_IGNORE_DIRS = ("node_modules", "target", ".git", "dist", "build")
_MANIFEST_IGNORE_DIRS = ("node_modules", "target", ".git")
_CONTRACT_IGNORE_DIRS = ("node_modules", ".git")

_BINARY_SNIFF_BYTES = 8192


@dataclass(slots=True)
class FileInfo:
    """A loaded source file."""

    path: str
    content: str
    size: int
    extension: str


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class FileScanner:
    """Locate and read the files each detector needs.

    Attributes:
        ignore_dirs: Directory names pruned when looking for code files.
        max_file_size: Code files at or above this many bytes are skipped.
        max_files_per_repo: Cap on code files read per repository.
        skip_binary_files: Skip files whose leading bytes contain NUL.
    """

    def __init__(
        self,
        ignore_dirs: tuple[str, ...] | list[str] = DEFAULT_IGNORE_DIRS,
        max_file_size: int = 100 * 1024,
        max_files_per_repo: int = 50,
        skip_binary_files: bool = True,
    ) -> None:
        self.ignore_dirs = tuple(ignore_dirs)
        self.max_file_size = max_file_size
        self.max_files_per_repo = max_files_per_repo
        self.skip_binary_files = skip_binary_files

    def find_package_files(self, root: Path) -> list[FileInfo]:
        paths = [
            p for p in _walk(root, _MANIFEST_IGNORE_DIRS) if p.name in MANIFEST_NAMES
        ]
        return self._read_all(root, paths)

    def find_code_files(self, root: Path) -> list[FileInfo]:
        paths = [
            p
            for p in _walk(root, self.ignore_dirs)
            if p.suffix in CODE_SUFFIXES and _size(p) < self.max_file_size
        ]
        if len(paths) > self.max_files_per_repo:
            logger.debug(
                "code_files_capped",
                found=len(paths),
                limit=self.max_files_per_repo,
            )
            paths = paths[: self.max_files_per_repo]
        return self._read_all(root, paths)

    def find_contract_files(self, root: Path) -> list[FileInfo]:
        paths = [
            p
            for p in _walk(root, _CONTRACT_IGNORE_DIRS)
            if p.suffix in CONTRACT_SUFFIXES
            or (
                p.suffix in _CONTRACT_DIR_SUFFIXES
                and "contracts" in p.relative_to(root).parts[:-1]
            )
        ]
        return self._read_all(root, paths)

    # ---- Reading -------------------------------------------------------------

    def _read_all(self, root: Path, paths: list[Path]) -> list[FileInfo]:
        files: list[FileInfo] = []
        for path in paths:
            info = self._read(root, path)
            if info is not None:
                files.append(info)
        return files

    def _read(self, root: Path, path: Path) -> FileInfo | None:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            logger.debug("file_unreadable", path=str(path), error=str(exc))
            return None

        if self.skip_binary_files and b"\0" in raw[:_BINARY_SNIFF_BYTES]:
            return None

        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("file_not_utf8", path=str(path))
            return None

        return FileInfo(
            path=str(PurePosixPath(*path.relative_to(root).parts)),
            content=content,
            size=len(raw),
            extension=path.suffix,
        )


def _walk(root: Path, ignore_dirs: tuple[str, ...]) -> list[Path]:
    """All regular files under ``root``, sorted, pruning ``ignore_dirs``."""
    ignored = set(ignore_dirs)
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        base = Path(dirpath)
        found.extend(base / name for name in sorted(filenames))
    return found


def _size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0
