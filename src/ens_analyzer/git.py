"""Repository acquisition via shallow ``git clone``."""

from __future__ import annotations

import re
import shutil
import subprocess
from typing import TYPE_CHECKING

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ens_analyzer.exceptions import RepositoryAcquisitionError

if TYPE_CHECKING:
    from pathlib import Path

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_GITHUB_REPO_RE = re.compile(r"github\.com/([^/]+)/([^/?#]+)")

_MAX_BACKOFF_SECONDS = 10


def extract_repo_name(url: str) -> str:
    """Return ``owner/name`` for a GitHub URL, or the URL itself otherwise."""
    match = _GITHUB_REPO_RE.search(url)
    if not match:
        return url
    owner, name = match.groups()
    return f"{owner}/{name.removesuffix('.git')}"


def shallow_clone(
    url: str,
    target: Path,
    *,
    timeout: float = 20.0,
    attempts: int = 2,
    backoff_seconds: float = 1.0,
) -> None:
    """Clone the latest commit of a single branch into ``target``.

    Failed attempts remove whatever was written to ``target`` and are
    retried with exponential backoff.

    Args:
        url: Repository URL.
        target: Destination directory (must not exist or be empty).
        timeout: Seconds allowed per clone attempt.
        attempts: Total clone attempts.
        backoff_seconds: Base delay between attempts.

    Raises:
        RepositoryAcquisitionError: If every attempt fails.
    """

    @retry(
        retry=retry_if_exception_type(RepositoryAcquisitionError),
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(multiplier=backoff_seconds, max=_MAX_BACKOFF_SECONDS),
        reraise=True,
    )
    def _attempt() -> None:
        try:
            subprocess.run(
                ["git", "clone", "--depth", "1", "--single-branch", "--", url, str(target)],
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            shutil.rmtree(target, ignore_errors=True)
            logger.warning("clone_timeout", url=url, timeout=timeout)
            raise RepositoryAcquisitionError(
                f"Failed to clone repository: timed out after {timeout:g}s"
            ) from exc
        except subprocess.CalledProcessError as exc:
            shutil.rmtree(target, ignore_errors=True)
            detail = (exc.stderr or "").strip() or f"git exited with {exc.returncode}"
            logger.warning("clone_failed", url=url, error=detail)
            raise RepositoryAcquisitionError(
                f"Failed to clone repository: {detail}"
            ) from exc
        except OSError as exc:
            raise RepositoryAcquisitionError(
                f"Failed to clone repository: {exc}"
            ) from exc

    _attempt()
    logger.debug("clone_ok", url=url, target=str(target))
