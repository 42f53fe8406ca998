"""
Integration tests for the complete ingestion pipeline
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from core.exceptions import (
    MetadataFetchError,
    MissingRepositoryMetadataError,
    NotFoundError,
    PersistenceError
)
from ingestion.metrics import IngestionMetrics
from ingestion.runner import IngestionOutcome, IngestionRunner, status_for
from models.base import PackageStatus, ProcessingStage
from models.package import Package
from models.repository import Repository
from schemas.github import GithubMetadata

URL_A = "https://github.com/apple/swift-nio.git"
URL_B = "https://github.com/vapor/vapor.git"
URL_C = "https://github.com/pointfreeco/swift-composable-architecture.git"

REPOSITORY_FIELDS = [
    "package_id", "name", "summary", "default_branch", "homepage_url", "is_archived",
    "is_in_organization", "keywords", "owner", "owner_name", "owner_avatar_url", "forks",
    "stars", "open_issues", "open_pull_requests", "last_issue_closed_at",
    "last_pull_request_closed_at", "license", "license_url", "readme_html_url",
    "readme_cache", "releases",
]


async def load_repository(session_factory, package_id):
    async with session_factory() as session:
        result = await session.execute(select(Repository).where(Repository.package_id == package_id))
        return result.scalar_one_or_none()


async def load_package(session_factory, package_id):
    async with session_factory() as session:
        return await session.get(Package, package_id)


def make_runner(session_factory, github_client, readme_store, metrics=None):
    return IngestionRunner(
        session_factory,
        github_client,
        readme_store=readme_store,
        metrics=metrics or IngestionMetrics()
    )


@pytest.mark.asyncio
async def test_full_ingestion_by_id(session_factory, add_packages, github_client, readme_store):
    """
    Integration test: Select → Fetch → Cache README → Merge → Status
    """
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(package_id=package.id)

    assert summary.total == 1
    assert summary.succeeded == 1
    assert summary.failed == 0
    assert summary.duration_seconds >= 0

    repository = await load_repository(session_factory, package.id)
    assert repository.owner == "apple"
    assert repository.name == "swift-nio"
    assert repository.keywords == ["cli", "swift"]
    assert repository.license_url == "https://github.com/apple/swift-nio/blob/main/LICENSE"
    assert repository.readme_html_url == "https://github.com/apple/swift-nio/blob/main/README.md"
    assert repository.readme_cache == {
        "kind": "cached",
        "object_url": "https://readmes.s3.us-east-2.amazonaws.com/apple/swift-nio/readme.html",
        "etag": '"etag-1"'
    }

    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.OK
    assert stored.processing_stage == ProcessingStage.INGESTION

    assert runner.metrics.value("ingest_candidates_count") == 1
    assert runner.metrics.value("ingest_metadata_success_count") == 1
    assert runner.metrics.value("ingest_metadata_failure_count") == 0
    assert runner.metrics.value("ingest_duration_seconds") >= 0


@pytest.mark.asyncio
async def test_metadata_failure_leaves_repository_unmodified(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)
    await runner.run(package_id=package.id)
    before = await load_repository(session_factory, package.id)

    github_client.failing_urls.add(URL_A)
    github_client.metadata[URL_A] = None
    summary = await runner.run(package_id=package.id)

    after = await load_repository(session_factory, package.id)
    assert {f: getattr(after, f) for f in REPOSITORY_FIELDS} == {f: getattr(before, f) for f in REPOSITORY_FIELDS}
    assert summary.failed == 1
    assert summary.succeeded == 0
    assert isinstance(summary.outcomes[0].error, MetadataFetchError)
    assert runner.metrics.value("ingest_metadata_failure_count") == 1
    assert runner.metrics.value("ingest_metadata_success_count") == 0

    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.METADATA_REQUEST_FAILED


@pytest.mark.asyncio
async def test_missing_repository_payload_writes_nothing(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    github_client.metadata[URL_A] = GithubMetadata(repository=None)
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(package_id=package.id)

    assert summary.failed == 1
    assert isinstance(summary.outcomes[0].error, MissingRepositoryMetadataError)
    assert await load_repository(session_factory, package.id) is None
    assert readme_store.calls == []

    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_ingestion_is_idempotent(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)

    await runner.run(package_id=package.id)
    first = await load_repository(session_factory, package.id)
    await runner.run(package_id=package.id)
    second = await load_repository(session_factory, package.id)

    assert first.id == second.id
    assert {f: getattr(second, f) for f in REPOSITORY_FIELDS} == {f: getattr(first, f) for f in REPOSITORY_FIELDS}
    # Same ETag on the second run: no second upload
    assert len(readme_store.calls) == 1


@pytest.mark.asyncio
async def test_changed_readme_etag_stores_again(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)
    await runner.run(package_id=package.id)

    readme = await github_client.fetch_readme(URL_A)
    github_client.readmes[URL_A] = readme.model_copy(update={"etag": '"etag-2"'})
    await runner.run(package_id=package.id)

    repository = await load_repository(session_factory, package.id)
    assert len(readme_store.calls) == 2
    assert repository.readme_cache["etag"] == '"etag-2"'


@pytest.mark.asyncio
async def test_readme_store_failure_does_not_fail_ingestion(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    readme_store.fail = True
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(package_id=package.id)

    assert summary.succeeded == 1
    repository = await load_repository(session_factory, package.id)
    assert repository.name == "swift-nio"
    assert repository.readme_cache == {"kind": "error", "message": "S3 unavailable"}

    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.OK


@pytest.mark.asyncio
async def test_license_and_readme_failures_degrade_to_absent(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    github_client.fetch_license = AsyncMock(side_effect=RuntimeError("license endpoint down"))
    github_client.fetch_readme = AsyncMock(side_effect=RuntimeError("readme endpoint down"))
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(package_id=package.id)

    assert summary.succeeded == 1
    repository = await load_repository(session_factory, package.id)
    assert repository.license_url is None
    assert repository.readme_html_url is None
    assert repository.readme_cache is None
    assert readme_store.calls == []


@pytest.mark.asyncio
async def test_unknown_id_raises_not_found_without_side_effects(session_factory, github_client, readme_store):
    runner = make_runner(session_factory, github_client, readme_store)

    with pytest.raises(NotFoundError):
        await runner.run(package_id=999)

    assert github_client.calls == []
    assert readme_store.calls == []
    assert runner.metrics.value("ingest_duration_seconds") >= 0


@pytest.mark.asyncio
async def test_limit_processes_exactly_limit_packages(session_factory, add_packages, github_client, readme_store):
    urls = [f"https://github.com/owner/repo-{i}.git" for i in range(5)]
    packages = await add_packages(*urls)
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(limit=3)

    assert summary.total == 3
    assert summary.succeeded + summary.failed == 3
    assert sorted(o.package_id for o in summary.outcomes) == [p.id for p in packages[:3]]
    assert runner.metrics.value("ingest_candidates_count") == 3
    assert (
        runner.metrics.value("ingest_metadata_success_count")
        + runner.metrics.value("ingest_metadata_failure_count")
    ) == 3


@pytest.mark.asyncio
async def test_one_failure_does_not_affect_others(session_factory, add_packages, github_client, readme_store):
    packages = await add_packages(URL_A, URL_B, URL_C)
    github_client.failing_urls.add(URL_B)
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(limit=3)

    outcomes = {o.url: o for o in summary.outcomes}
    assert outcomes[URL_A].succeeded
    assert not outcomes[URL_B].succeeded
    assert outcomes[URL_C].succeeded
    assert summary.succeeded == 2
    assert summary.failed == 1

    statuses = {
        p.url: (await load_package(session_factory, p.id)).status for p in packages
    }
    assert statuses == {
        URL_A: PackageStatus.OK,
        URL_B: PackageStatus.METADATA_REQUEST_FAILED,
        URL_C: PackageStatus.OK,
    }
    assert await load_repository(session_factory, packages[1].id) is None


@pytest.mark.asyncio
async def test_counters_reset_between_runs(session_factory, add_packages, github_client, readme_store):
    packages = await add_packages(URL_A, URL_B)
    runner = make_runner(session_factory, github_client, readme_store)

    await runner.run(limit=2)
    await runner.run(package_id=packages[0].id)

    assert runner.metrics.value("ingest_candidates_count") == 1
    assert runner.metrics.value("ingest_metadata_success_count") == 1


@pytest.mark.asyncio
async def test_empty_selection_completes(session_factory, github_client, readme_store):
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(limit=5)

    assert summary.total == 0
    assert summary.outcomes == []
    assert github_client.calls == []


@pytest.mark.asyncio
async def test_persistence_failure_marks_package_failed(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)

    with patch(
        "ingestion.runner.save_repository",
        AsyncMock(side_effect=PersistenceError(
            "Failed to save repository",
            original_exception=OperationalError("INSERT", {}, Exception("database is locked"))
        ))
    ):
        summary = await runner.run(package_id=package.id)

    assert summary.failed == 1
    assert isinstance(summary.outcomes[0].error, PersistenceError)
    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.INGESTION_FAILED


@pytest.mark.asyncio
async def test_unexpected_error_is_isolated(session_factory, add_packages, github_client, readme_store):
    [package] = await add_packages(URL_A)
    runner = make_runner(session_factory, github_client, readme_store)

    with patch("ingestion.runner.merge_repository", side_effect=KeyError("owner")):
        summary = await runner.run(package_id=package.id)

    assert summary.failed == 1
    assert isinstance(summary.outcomes[0].error.original_exception, KeyError)
    stored = await load_package(session_factory, package.id)
    assert stored.status == PackageStatus.INGESTION_FAILED


def test_status_for_outcomes():
    assert status_for(IngestionOutcome(1, URL_A)) == PackageStatus.OK
    assert status_for(IngestionOutcome(1, URL_A, MetadataFetchError("x"))) == PackageStatus.METADATA_REQUEST_FAILED
    assert status_for(IngestionOutcome(1, URL_A, MissingRepositoryMetadataError("x"))) == PackageStatus.NOT_FOUND
    assert status_for(IngestionOutcome(1, URL_A, PersistenceError("x"))) == PackageStatus.INGESTION_FAILED


@pytest.mark.asyncio
async def test_status_update_failure_does_not_abort_run(session_factory, add_packages, github_client, readme_store):
    packages = await add_packages(URL_A, URL_B)
    runner = make_runner(session_factory, github_client, readme_store)
    original_get = AsyncSession.get

    async def flaky_get(self, entity, ident, *args, **kwargs):
        if ident == packages[0].id:
            raise ConnectionRefusedError(111, "Connect call failed")
        return await original_get(self, entity, ident, *args, **kwargs)

    with patch.object(AsyncSession, "get", flaky_get):
        summary = await runner.run(limit=2)

    assert summary.total == 2
    assert summary.succeeded == 2
    assert runner.metrics.value("ingest_metadata_success_count") == 2

    first = await load_package(session_factory, packages[0].id)
    second = await load_package(session_factory, packages[1].id)
    assert first.status == PackageStatus.NEW
    assert second.status == PackageStatus.OK


@pytest.mark.asyncio
async def test_units_run_concurrently(session_factory, add_packages, github_client, readme_store):
    [first] = await add_packages(URL_A)
    [second] = await add_packages(URL_B)
    second_started = asyncio.Event()
    fetch_metadata = github_client.fetch_metadata

    async def fetch_after_other_unit_started(url):
        if url == URL_A:
            await asyncio.wait_for(second_started.wait(), timeout=2)
        else:
            second_started.set()
        return await fetch_metadata(url)

    github_client.fetch_metadata = fetch_after_other_unit_started
    runner = make_runner(session_factory, github_client, readme_store)

    summary = await runner.run(limit=2)

    assert {o.package_id for o in summary.outcomes} == {first.id, second.id}
    assert summary.succeeded == 2
    assert summary.failed == 0
