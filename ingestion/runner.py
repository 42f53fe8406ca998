# ============================================================================
# File: ingestion/runner.py
# Description: Ingestion orchestrator with per-package failure isolation
# ============================================================================
"""
Ingestion Runner - Orchestrates Select → Fetch → Cache README → Merge → Status.

This module drives one ingestion run:
- Select candidates (one package by id, or up to N eligible packages)
- Process every candidate concurrently as an independent unit of work
- Fetch metadata, license and README concurrently within a unit
- Isolate failures: a unit always ends in an outcome, never an exception
- Advance each package's status and record run metrics
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.exceptions import (
    IngestionException,
    MetadataFetchError,
    MissingRepositoryMetadataError
)
from ingestion.candidates import Candidate, fetch_candidate, fetch_candidates
from ingestion.github_client import GitHubClient
from ingestion.merger import find_or_create_repository, merge_repository, save_repository
from ingestion.metrics import IngestionMetrics
from ingestion.readme_cache import S3ReadmeStore, resolve_readme_cache
from models.base import PackageStatus, ProcessingStage
from models.package import Package
from schemas.github import GithubMetadata, GithubLicense, GithubReadme
from schemas.repository import load_readme_cache
import logging

logger = logging.getLogger(__name__)


@dataclass
class IngestionOutcome:
    """Terminal result of one unit of work"""
    package_id: int
    url: str
    error: Optional[IngestionException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class IngestionSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    outcomes: List[IngestionOutcome] = field(default_factory=list)


def status_for(outcome: IngestionOutcome) -> PackageStatus:
    """Package status recorded after an ingestion attempt"""
    if outcome.succeeded:
        return PackageStatus.OK
    if isinstance(outcome.error, MetadataFetchError):
        return PackageStatus.METADATA_REQUEST_FAILED
    if isinstance(outcome.error, MissingRepositoryMetadataError):
        return PackageStatus.NOT_FOUND
    return PackageStatus.INGESTION_FAILED


class IngestionRunner:
    """
    Ingestion orchestrator

    Responsibilities:
    - Select candidates
    - Fan out one unit of work per candidate
    - Convert every per-package error into a failure outcome
    - Update package status after each unit
    - Record candidate, success, failure and duration metrics per run
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client: GitHubClient,
        readme_store: Optional[S3ReadmeStore] = None,
        metrics: Optional[IngestionMetrics] = None
    ):
        self.session_factory = session_factory
        self.client = client
        self.readme_store = readme_store
        self.metrics = metrics or IngestionMetrics()

    async def run(self, package_id: Optional[int] = None, limit: Optional[int] = None) -> IngestionSummary:
        """
        Run one ingestion, either for a single package id or a limited batch.

        Args:
            package_id: Ingest exactly this package
            limit: Ingest up to this many eligible packages
                   (default: settings.INGEST_DEFAULT_LIMIT)

        Returns:
            IngestionSummary with per-run counts and outcomes

        Raises:
            NotFoundError: If package_id does not resolve to a package
        """
        self.metrics.reset()
        start = time.perf_counter()

        try:
            candidates = await self._select(package_id, limit)
            summary = await self.ingest(candidates)
        finally:
            duration = time.perf_counter() - start
            self.metrics.duration.set(duration)

        summary.duration_seconds = duration
        logger.info(
            f"Ingestion run completed - Candidates: {summary.total}, "
            f"Succeeded: {summary.succeeded}, Failed: {summary.failed}, "
            f"Duration: {duration:.2f}s"
        )
        return summary

    async def _select(self, package_id: Optional[int], limit: Optional[int]) -> List[Candidate]:
        async with self.session_factory() as session:
            if package_id is not None:
                logger.info(f"Ingesting (id: {package_id}) ...")
                return [await fetch_candidate(session, package_id)]

            limit = limit if limit is not None else settings.INGEST_DEFAULT_LIMIT
            logger.info(f"Ingesting (limit: {limit}) ...")
            return await fetch_candidates(session, limit)

    async def ingest(self, candidates: Sequence[Candidate]) -> IngestionSummary:
        """Process all candidates concurrently and wait for every unit to finish"""
        packages = [package for package, _ in candidates]
        logger.debug(f"Ingesting package ids {[p.id for p in packages]}")
        self.metrics.candidates.set(len(packages))

        outcomes = await asyncio.gather(*(self._process(package) for package in packages))

        succeeded = sum(1 for o in outcomes if o.succeeded)
        return IngestionSummary(
            total=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            outcomes=list(outcomes)
        )

    async def _process(self, package: Package) -> IngestionOutcome:
        outcome = await self._ingest_package(package)

        if outcome.succeeded:
            self.metrics.success.inc()
        else:
            self.metrics.failure.inc()

        await self._update_package(outcome)
        return outcome

    async def _ingest_package(self, package: Package) -> IngestionOutcome:
        """Fetch, cache README, merge and save one package; never raises"""
        try:
            metadata, license_info, readme = await self._fetch(package.url)

            async with self.session_factory() as session:
                repository = await find_or_create_repository(session, package.id)
                readme_cache = await resolve_readme_cache(
                    load_readme_cache(repository.readme_cache),
                    readme,
                    metadata.repository_owner,
                    metadata.repository_name,
                    self.readme_store
                )
                merge_repository(repository, metadata, license_info, readme, readme_cache)
                await save_repository(session, repository)

        except IngestionException as e:
            logger.error(
                f"Ingestion failed for package {package.id} ({package.url}): {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return IngestionOutcome(package_id=package.id, url=package.url, error=e)

        except Exception as e:
            logger.exception(f"Unexpected error ingesting package {package.id} ({package.url})")
            error = IngestionException(
                "Unexpected error during ingestion",
                context={"package_id": package.id, "url": package.url},
                original_exception=e
            )
            return IngestionOutcome(package_id=package.id, url=package.url, error=error)

        logger.info(f"Ingested package {package.id} ({package.url})")
        return IngestionOutcome(package_id=package.id, url=package.url)

    async def _fetch(self, url: str) -> Tuple[GithubMetadata, Optional[GithubLicense], Optional[GithubReadme]]:
        """
        Issue the three fetches concurrently.

        Metadata failure is fatal for the package; license and README failures
        degrade to None.
        """
        metadata, license_info, readme = await asyncio.gather(
            self.client.fetch_metadata(url),
            self.client.fetch_license(url),
            self.client.fetch_readme(url),
            return_exceptions=True
        )

        for result in (metadata, license_info, readme):
            if isinstance(result, asyncio.CancelledError):
                raise result

        if isinstance(metadata, MetadataFetchError):
            raise metadata
        if isinstance(metadata, BaseException):
            raise MetadataFetchError(
                "Metadata request failed",
                context={"url": url},
                original_exception=metadata
            )

        if isinstance(license_info, BaseException):
            logger.warning(f"License fetch failed for {url}: {str(license_info)}")
            license_info = None
        if isinstance(readme, BaseException):
            logger.warning(f"README fetch failed for {url}: {str(readme)}")
            readme = None

        return metadata, license_info, readme

    async def _update_package(self, outcome: IngestionOutcome) -> None:
        """Record the attempt on the package; failures are logged, not raised"""
        status = status_for(outcome)
        try:
            async with self.session_factory() as session:
                package = await session.get(Package, outcome.package_id)
                if package is None:
                    logger.warning(f"Package {outcome.package_id} disappeared before status update")
                    return
                package.status = status
                if outcome.succeeded:
                    package.processing_stage = ProcessingStage.INGESTION
                package.updated_at = datetime.utcnow()
                await session.commit()
        except Exception:
            logger.exception(f"Failed to update status of package {outcome.package_id}")
