"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, Dict, Optional, Set
from core.database import create_session_factory
from core.exceptions import MetadataFetchError, ReadmeCacheError
from ingestion.github_client import parse_github_url
from ingestion.readme_cache import readme_object_key
from models import Base, Package
from models.base import PackageStatus
from schemas.github import GithubMetadata, GithubLicense, GithubReadme


def repository_payload(owner: str = "apple", name: str = "swift-argument-parser", **overrides) -> dict:
    """`repository` object as returned by the metadata GraphQL query"""
    payload = {
        "closedIssues": {"nodes": [{"closedAt": "2024-01-10T12:00:00Z"}]},
        "closedPullRequests": {"nodes": [{"closedAt": "2024-01-12T08:30:00Z"}]},
        "defaultBranchRef": {"name": "main"},
        "description": "Straightforward, type-safe argument parsing for Swift",
        "forkCount": 12,
        "homepageUrl": " https://example.com/docs ",
        "isArchived": False,
        "isInOrganization": True,
        "licenseInfo": {"key": "apache-2.0", "name": "Apache License 2.0"},
        "name": name,
        "openIssues": {"totalCount": 3},
        "openPullRequests": {"totalCount": 2},
        "owner": {"login": owner, "name": "Apple", "avatarUrl": f"https://avatars.example.com/{owner}.png"},
        "releases": {
            "nodes": [
                {
                    "description": "Bug fixes",
                    "descriptionHTML": "<p>Bug fixes</p>",
                    "isDraft": False,
                    "publishedAt": "2024-01-05T00:00:00Z",
                    "tagName": "1.3.0",
                    "url": f"https://github.com/{owner}/{name}/releases/tag/1.3.0"
                },
                {
                    "description": "Initial release",
                    "descriptionHTML": "<p>Initial release</p>",
                    "isDraft": False,
                    "publishedAt": "2023-06-01T00:00:00Z",
                    "tagName": "1.2.0",
                    "url": f"https://github.com/{owner}/{name}/releases/tag/1.2.0"
                }
            ]
        },
        "repositoryTopics": {
            "nodes": [
                {"topic": {"name": "Swift"}},
                {"topic": {"name": "swift"}},
                {"topic": {"name": "CLI"}}
            ]
        },
        "stargazerCount": 3100,
    }
    payload.update(overrides)
    return payload


def metadata_for_url(url: str, **overrides) -> GithubMetadata:
    owner, name = parse_github_url(url)
    return GithubMetadata.model_validate({"repository": repository_payload(owner, name, **overrides)})


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient with per-URL overrides"""

    def __init__(self):
        self.metadata: Dict[str, GithubMetadata] = {}
        self.licenses: Dict[str, Optional[GithubLicense]] = {}
        self.readmes: Dict[str, Optional[GithubReadme]] = {}
        self.failing_urls: Set[str] = set()
        self.calls = []

    async def fetch_metadata(self, url: str) -> GithubMetadata:
        self.calls.append(("metadata", url))
        if url in self.failing_urls:
            raise MetadataFetchError("Metadata request failed", context={"url": url})
        return self.metadata.get(url) or metadata_for_url(url)

    async def fetch_license(self, url: str) -> Optional[GithubLicense]:
        self.calls.append(("license", url))
        if url in self.licenses:
            return self.licenses[url]
        return GithubLicense(html_url=f"{url.removesuffix('.git')}/blob/main/LICENSE")

    async def fetch_readme(self, url: str) -> Optional[GithubReadme]:
        self.calls.append(("readme", url))
        if url in self.readmes:
            return self.readmes[url]
        return GithubReadme(
            html="<h1>README</h1>",
            html_url=f"{url.removesuffix('.git')}/blob/main/README.md",
            etag='"etag-1"'
        )


class FakeReadmeStore:
    """Records store calls; raises ReadmeCacheError when `fail` is set"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def store(self, owner: str, repository: str, html: str) -> str:
        self.calls.append((owner, repository, html))
        key = readme_object_key(owner, repository)
        if self.fail:
            raise ReadmeCacheError("S3 unavailable", context={"bucket": "readmes", "key": key})
        return f"https://readmes.s3.us-east-2.amazonaws.com/{key}"


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine shared by all sessions of a test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ingest_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_packages(session_factory):
    """Insert packages and return them (detached, attributes loaded)"""

    async def _add(*urls: str, status: PackageStatus = PackageStatus.NEW, **fields):
        packages = [Package(url=url, status=status, **fields) for url in urls]
        async with session_factory() as session:
            session.add_all(packages)
            await session.commit()
        return packages

    return _add


@pytest.fixture
def github_client():
    return FakeGitHubClient()


@pytest.fixture
def readme_store():
    return FakeReadmeStore()


@pytest.fixture
def graphql_repository():
    """Factory for GraphQL `repository` payloads"""
    return repository_payload


@pytest.fixture
def make_metadata():
    """Factory for GithubMetadata built from a repository URL"""
    return metadata_for_url
