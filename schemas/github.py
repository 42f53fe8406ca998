"""
Pydantic schemas for GitHub API payloads.

Field aliases follow the GraphQL/REST names so responses validate directly;
`populate_by_name` lets tests and callers build them with snake_case names.
Pre-validators flatten GraphQL connection shapes ({"nodes": [...]},
{"totalCount": n}) into plain values.
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Any
from datetime import datetime


class GithubModel(BaseModel):
    class Config:
        populate_by_name = True


def _first_node_value(v: Any, key: str) -> Any:
    if isinstance(v, dict):
        nodes = v.get("nodes") or []
        return nodes[0].get(key) if nodes else None
    return v


def _total_count(v: Any) -> Any:
    if isinstance(v, dict):
        return v.get("totalCount", 0)
    return v if v is not None else 0


class Owner(GithubModel):
    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")


class LicenseInfo(GithubModel):
    key: str
    name: Optional[str] = None


class ReleaseNode(GithubModel):
    description: Optional[str] = None
    description_html: Optional[str] = Field(None, alias="descriptionHTML")
    is_draft: bool = Field(False, alias="isDraft")
    published_at: Optional[datetime] = Field(None, alias="publishedAt")
    tag_name: str = Field(..., alias="tagName")
    url: str


class RepositoryMetadata(GithubModel):
    """The `repository` object of the metadata GraphQL query"""

    name: str
    owner: Owner
    description: Optional[str] = None
    default_branch: Optional[str] = Field(None, alias="defaultBranchRef")
    fork_count: int = Field(0, alias="forkCount")
    homepage_url: Optional[str] = Field(None, alias="homepageUrl")
    is_archived: bool = Field(False, alias="isArchived")
    is_in_organization: bool = Field(False, alias="isInOrganization")
    license_info: Optional[LicenseInfo] = Field(None, alias="licenseInfo")
    stargazer_count: int = Field(0, alias="stargazerCount")
    last_issue_closed_at: Optional[datetime] = Field(None, alias="closedIssues")
    last_pull_request_closed_at: Optional[datetime] = Field(None, alias="closedPullRequests")
    open_issues: int = Field(0, alias="openIssues")
    open_pull_requests: int = Field(0, alias="openPullRequests")
    releases: List[ReleaseNode] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list, alias="repositoryTopics")

    @validator("default_branch", pre=True)
    def flatten_default_branch(cls, v):
        if isinstance(v, dict):
            return v.get("name")
        return v

    @validator("last_issue_closed_at", "last_pull_request_closed_at", pre=True)
    def flatten_closed_at(cls, v):
        return _first_node_value(v, "closedAt")

    @validator("open_issues", "open_pull_requests", pre=True)
    def flatten_total_count(cls, v):
        return _total_count(v)

    @validator("releases", pre=True)
    def flatten_releases(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            return v.get("nodes") or []
        return v

    @validator("topics", pre=True)
    def flatten_topics(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            return [
                node["topic"]["name"]
                for node in v.get("nodes") or []
                if node.get("topic", {}).get("name")
            ]
        return v

    @property
    def repository_owner(self) -> str:
        return self.owner.login

    @property
    def repository_name(self) -> str:
        return self.name


class GithubMetadata(GithubModel):
    """Result of a metadata fetch; `repository` is None when GitHub returned no repository"""

    repository: Optional[RepositoryMetadata] = None

    @property
    def repository_owner(self) -> Optional[str]:
        return self.repository.repository_owner if self.repository else None

    @property
    def repository_name(self) -> Optional[str]:
        return self.repository.repository_name if self.repository else None


class GithubLicense(GithubModel):
    html_url: Optional[str] = None


class GithubReadme(GithubModel):
    """Rendered README plus the ETag GitHub served it with"""

    html: str
    html_url: Optional[str] = None
    etag: Optional[str] = None
