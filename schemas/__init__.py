"""
Pydantic schemas for data validation and serialization.

Schemas:
    github: GitHub GraphQL/REST payloads (metadata, license, README)
    repository: Values stored on Repository rows (releases, README cache state)
    api: API endpoint response schemas

Usage:
    from schemas.github import GithubMetadata, GithubReadme
    from schemas.repository import CachedReadme, ReadmeError, load_readme_cache
    from schemas.api import HealthCheckResponse, StatsResponse

Example:
    metadata = GithubMetadata.model_validate(graphql_response["data"])
    if metadata.repository is not None:
        print(metadata.repository.stargazer_count)
"""

__all__ = [
    "GithubMetadata",
    "GithubLicense",
    "GithubReadme",
    "Release",
    "CachedReadme",
    "ReadmeError",
    "HealthCheckResponse",
    "StatsResponse",
]
