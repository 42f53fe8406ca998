"""
Merge fetched GitHub data into Repository records.

Merging replaces every field from the latest fetch (never a partial patch),
so ingesting identical metadata twice yields identical records.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from models.repository import Repository
from schemas.github import GithubMetadata, GithubLicense, GithubReadme
from schemas.repository import Release, dump_readme_cache
from ingestion.readme_cache import ReadmeState
from core.exceptions import MissingRepositoryMetadataError, PersistenceError
import logging

logger = logging.getLogger(__name__)


async def find_or_create_repository(session: AsyncSession, package_id: int) -> Repository:
    """
    Load the Repository of a package, or add a new empty one to the session.

    Raises:
        PersistenceError: If the lookup fails
    """
    try:
        result = await session.execute(
            select(Repository).where(Repository.package_id == package_id)
        )
        repository = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise PersistenceError(
            "Failed to load repository",
            context={"operation": "SELECT", "table_name": "repositories", "package_id": package_id},
            original_exception=e
        )

    if repository is None:
        repository = Repository(package_id=package_id)
        session.add(repository)
    return repository


def normalize_keywords(topics) -> list:
    return sorted({topic.lower() for topic in topics})


def merge_repository(
    repository: Repository,
    metadata: GithubMetadata,
    license_info: Optional[GithubLicense],
    readme_info: Optional[GithubReadme],
    readme_cache: ReadmeState
) -> Repository:
    """
    Overwrite every Repository field from one ingestion's fetch results.

    Raises:
        MissingRepositoryMetadataError: If metadata has no repository payload
    """
    repo_metadata = metadata.repository
    if repo_metadata is None:
        raise MissingRepositoryMetadataError(
            f"repository metadata is missing for package {repository.package_id}",
            context={"package_id": repository.package_id, "name": repository.name or "unknown"}
        )

    repository.default_branch = repo_metadata.default_branch
    repository.forks = repo_metadata.fork_count
    repository.homepage_url = repo_metadata.homepage_url.strip() if repo_metadata.homepage_url else None
    repository.is_archived = repo_metadata.is_archived
    repository.is_in_organization = repo_metadata.is_in_organization
    repository.keywords = normalize_keywords(repo_metadata.topics)
    repository.last_issue_closed_at = repo_metadata.last_issue_closed_at
    repository.last_pull_request_closed_at = repo_metadata.last_pull_request_closed_at
    repository.license = repo_metadata.license_info.key if repo_metadata.license_info else "none"
    repository.license_url = license_info.html_url if license_info else None
    repository.name = repo_metadata.repository_name
    repository.open_issues = repo_metadata.open_issues
    repository.open_pull_requests = repo_metadata.open_pull_requests
    repository.owner = repo_metadata.repository_owner
    repository.owner_name = repo_metadata.owner.name
    repository.owner_avatar_url = repo_metadata.owner.avatar_url
    repository.readme_cache = dump_readme_cache(readme_cache)
    repository.readme_html_url = readme_info.html_url if readme_info else None
    repository.releases = [
        Release.from_node(node).model_dump(mode="json") for node in repo_metadata.releases
    ]
    repository.stars = repo_metadata.stargazer_count
    repository.summary = repo_metadata.description

    return repository


async def save_repository(session: AsyncSession, repository: Repository) -> Repository:
    """
    Commit the repository (insert or update) in one transaction.

    Raises:
        PersistenceError: If the commit fails; the session is rolled back
    """
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(
            "Failed to save repository",
            context={"operation": "UPSERT", "table_name": "repositories", "package_id": repository.package_id},
            original_exception=e
        )

    logger.debug(f"Saved repository {repository.owner}/{repository.name} (package {repository.package_id})")
    return repository
