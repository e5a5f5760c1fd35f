"""Per-repository analysis and concurrent batch orchestration.

Clones each repository into a temporary directory, runs the three
detectors over the scanned files, attaches source links to the evidence
and classifies it. Batches fan out under a concurrency ceiling; each
repository has its own timeout, and a repository that fails or times
out is recorded as a failed result without disturbing its siblings.
"""

from __future__ import annotations

import asyncio
import tempfile
import time
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ens_analyzer.aggregator import summarize
from ens_analyzer.classifier import Classifier
from ens_analyzer.config import AnalyzerSettings
from ens_analyzer.detectors import CodeDetector, ContractDetector, DependencyDetector
from ens_analyzer.git import extract_repo_name, shallow_clone
from ens_analyzer.logging import repository_logging_context
from ens_analyzer.models import BatchResult, ClassificationResult, Evidence, utc_now
from ens_analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry, load_registry
from ens_analyzer.scanner import FileScanner

if TYPE_CHECKING:
    from ens_analyzer.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

CloneFn = Callable[[str, Path], None]
ResultCallback = Callable[[ClassificationResult], None]

TIMEOUT_MESSAGE = "Analysis timeout"


# ---------------------------------------------------------------------------
# Source URL resolution
# ---------------------------------------------------------------------------


def resolve_source_url(repo_url: str, relative_path: str, line: int) -> str:
    """Build a browsable link to an evidence location.

    ``<repo url without .git>/blob/main/<path>#L<line>``; the ``#L``
    anchor is omitted for file-level evidence (line 0).
    """
    base = repo_url.rstrip("/").removesuffix(".git")
    url = f"{base}/blob/main/{relative_path.lstrip('/')}"
    if line > 0:
        return f"{url}#L{line}"
    return url


def attach_source_urls(evidence: Sequence[Evidence], repo_url: str) -> list[Evidence]:
    """Attach source links; evidence that already carries one is kept verbatim."""
    return [
        item.with_source_url(
            resolve_source_url(repo_url, item.location.file, item.location.line)
        )
        for item in evidence
    ]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class RepositoryAnalyzer:
    """Clone, scan, detect and classify repositories.

    Attributes:
        settings: Acquisition and scanning limits.
        registry: Pattern rules shared by the detectors and classifier.
    """

    def __init__(
        self,
        settings: AnalyzerSettings | None = None,
        registry: PatternRegistry = DEFAULT_REGISTRY,
        clone: CloneFn | None = None,
    ) -> None:
        self.settings = settings or AnalyzerSettings()
        self.registry = registry
        self._clone: CloneFn = clone or partial(
            shallow_clone,
            timeout=self.settings.clone_timeout_seconds,
            attempts=self.settings.clone_attempts,
        )
        self._scanner = FileScanner(
            ignore_dirs=self.settings.ignore_dirs,
            max_file_size=self.settings.max_file_size,
            max_files_per_repo=self.settings.max_files_per_repo,
            skip_binary_files=self.settings.skip_binary_files,
        )
        self._dependency_detector = DependencyDetector(registry)
        self._code_detector = CodeDetector(registry)
        self._contract_detector = ContractDetector(registry)
        self._classifier = Classifier(registry)

    @classmethod
    def from_settings(cls, settings: Settings) -> RepositoryAnalyzer:
        """Build an analyzer, loading extra pattern rules if configured."""
        registry = DEFAULT_REGISTRY
        if settings.analyzer.patterns_file is not None:
            registry = load_registry(settings.analyzer.patterns_file)
        return cls(settings=settings.analyzer, registry=registry)

    # ---- Synchronous steps -----------------------------------------------------

    def collect_evidence(self, root: Path) -> list[Evidence]:
        """Run every detector over a checked-out repository.

        Evidence order is dependency, then code, then contract.
        """
        package_files = self._scanner.find_package_files(root)
        code_files = self._scanner.find_code_files(root)
        contract_files = self._scanner.find_contract_files(root)
        return [
            *self._dependency_detector.detect(package_files),
            *self._code_detector.detect(code_files),
            *self._contract_detector.detect(contract_files),
        ]

    def _acquire_and_scan(self, url: str) -> list[Evidence]:
        with tempfile.TemporaryDirectory(prefix="ens-analysis-") as tmp:
            checkout = Path(tmp) / "repo"
            self._clone(url, checkout)
            evidence = self.collect_evidence(checkout)
        return attach_source_urls(evidence, url)

    # ---- Async orchestration ---------------------------------------------------

    async def analyze_single(
        self, url: str, *, executor: Executor | None = None
    ) -> ClassificationResult:
        """Analyze one repository; failures become failed results.

        Cloning and scanning run on ``executor``, or on the loop's default
        executor when none is given.
        """
        start = time.monotonic()
        repository_id = extract_repo_name(url)
        loop = asyncio.get_running_loop()

        with repository_logging_context(repository_id) as log:
            try:
                evidence = await loop.run_in_executor(
                    executor, self._acquire_and_scan, url
                )
            except Exception as exc:
                elapsed = _elapsed_ms(start)
                log.warning("analysis_failed", error=str(exc), elapsed_ms=elapsed)
                return ClassificationResult.from_failure(
                    repository_id, url, str(exc), elapsed_ms=elapsed
                )

            result = self._classifier.classify(
                repository_id, url, evidence, elapsed_ms=_elapsed_ms(start)
            )
            log.info(
                "analysis_complete",
                rating=result.rating,
                confidence=str(result.confidence),
                evidence=len(evidence),
                elapsed_ms=result.elapsed_ms,
            )
            return result

    async def analyze_with_timeout(
        self, url: str, *, executor: Executor | None = None
    ) -> ClassificationResult:
        return await self._bounded(url, self.analyze_single(url, executor=executor))

    async def _bounded(
        self, url: str, work: Awaitable[ClassificationResult]
    ) -> ClassificationResult:
        start = time.monotonic()
        try:
            return await asyncio.wait_for(work, timeout=self.settings.timeout_seconds)
        except TimeoutError:
            logger.warning(
                "analysis_timeout", url=url, timeout=self.settings.timeout_seconds
            )
            return ClassificationResult.from_failure(
                extract_repo_name(url),
                url,
                TIMEOUT_MESSAGE,
                elapsed_ms=_elapsed_ms(start),
            )

    async def analyze_batch(
        self,
        urls: Sequence[str],
        on_result: ResultCallback | None = None,
    ) -> BatchResult:
        """Analyze many repositories concurrently.

        At most ``settings.max_concurrent`` repositories are in flight, each
        on a thread from a pool of the same size. A repository's slot is
        held until its thread finishes, even after its timeout has fired,
        so the timeout only ever runs while the repository is actually
        being worked on. Every repository settles: timeouts and errors are
        recorded as failed results and never abort the batch. Results keep
        the order of ``urls``.

        Args:
            urls: Repository URLs to analyze.
            on_result: Optional callback invoked as each repository settles.

        Returns:
            The batch envelope with per-repository results and summary.
        """
        start = time.monotonic()
        semaphore = asyncio.Semaphore(self.settings.max_concurrent)
        workers: list[asyncio.Future[ClassificationResult]] = []
        logger.info(
            "batch_start",
            total=len(urls),
            max_concurrent=self.settings.max_concurrent,
        )

        with ThreadPoolExecutor(
            max_workers=self.settings.max_concurrent,
            thread_name_prefix="ens-analyzer",
        ) as executor:

            async def _limited(url: str) -> ClassificationResult:
                await semaphore.acquire()
                worker = asyncio.ensure_future(
                    self.analyze_single(url, executor=executor)
                )
                # Released when the worker finishes, not when the timeout fires.
                worker.add_done_callback(lambda _: semaphore.release())
                workers.append(worker)
                result = await self._bounded(url, asyncio.shield(worker))
                if on_result is not None:
                    on_result(result)
                return result

            outcomes = await asyncio.gather(
                *(_limited(url) for url in urls), return_exceptions=True
            )
            # Timed-out workers may still be cloning.
            await asyncio.gather(*workers, return_exceptions=True)

        results: list[ClassificationResult] = []
        for url, outcome in zip(urls, outcomes, strict=True):
            if isinstance(outcome, ClassificationResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error("analysis_crashed", url=url, error=str(outcome))
                results.append(
                    ClassificationResult.from_failure(
                        extract_repo_name(url), url, str(outcome)
                    )
                )
            else:
                raise outcome

        failed = sum(1 for r in results if r.failed)
        duration = time.monotonic() - start
        if failed:
            logger.warning("batch_failures", failed=failed, total=len(urls))
        logger.info(
            "batch_complete",
            processed=len(results) - failed,
            total=len(urls),
            duration_seconds=round(duration, 1),
        )

        return BatchResult(
            results=tuple(results),
            summary=summarize(results),
            duration_seconds=duration,
            processed=len(results) - failed,
            total=len(urls),
            timestamp_iso=utc_now().isoformat(),
        )
