"""
GitHub client for repository metadata, license and README.

This module provides the three fetches ingestion issues per package:
- fetch_metadata: GraphQL query for repository fields (fatal on failure)
- fetch_license: REST license lookup (best-effort, None on failure)
- fetch_readme: REST README as rendered HTML plus ETag (best-effort)

Requests share one httpx.AsyncClient and retry transient failures with
exponential backoff.
"""

import httpx
import asyncio
import re
from typing import Dict, Any, Optional, Tuple
from core.config import settings
from core.exceptions import (
    FetchError,
    MetadataFetchError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
    ResourceNotFoundError
)
from schemas.github import GithubMetadata, GithubLicense, GithubReadme
import logging

logger = logging.getLogger(__name__)

_GITHUB_URL = re.compile(r"^https?://(?:www\.)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$", re.IGNORECASE)

METADATA_QUERY = """
query($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    closedIssues: issues(states: CLOSED, first: 1, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes { closedAt }
    }
    closedPullRequests: pullRequests(states: [CLOSED, MERGED], first: 1, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes { closedAt }
    }
    defaultBranchRef { name }
    description
    forkCount
    homepageUrl
    isArchived
    isInOrganization
    licenseInfo { key name }
    name
    openIssues: issues(states: OPEN) { totalCount }
    openPullRequests: pullRequests(states: OPEN) { totalCount }
    owner {
      login
      avatarUrl
      ... on User { name }
      ... on Organization { name }
    }
    releases(first: 20, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes { description descriptionHTML isDraft publishedAt tagName url }
    }
    repositoryTopics(first: 20) {
      nodes { topic { name } }
    }
    stargazerCount
  }
}
"""


def parse_github_url(url: str) -> Tuple[str, str]:
    """
    Split a GitHub repository URL into (owner, name).

    Raises:
        ValueError: If the URL does not point at a GitHub repository
    """
    match = _GITHUB_URL.match(url.strip())
    if not match:
        raise ValueError(f"Not a GitHub repository URL: {url}")
    return match.group(1), match.group(2)


def _retry_after(response: httpx.Response, default: float) -> float:
    """Seconds to wait from a Retry-After header; HTTP-date values fall back to `default`"""
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class GitHubClient:
    """
    Async GitHub API client used by the ingestion runner.

    Use as an async context manager, or pass an existing httpx.AsyncClient
    (which the caller then owns).

    Attributes:
        max_retries: Maximum number of attempts per request
        retry_delay: Initial retry delay in seconds, doubled per attempt
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        graphql_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.token = token if token is not None else settings.GITHUB_TOKEN
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self.graphql_url = graphql_url or settings.GITHUB_GRAPHQL_URL
        self.max_retries = max_retries if max_retries is not None else settings.MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_DELAY
        self.timeout = timeout if timeout is not None else settings.GITHUB_TIMEOUT

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, accept: str = "application/vnd.github+json") -> Dict[str, str]:
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Raises:
            AuthenticationError: HTTP 401/403 (not retried)
            ResourceNotFoundError: HTTP 404 (not retried)
            RateLimitError: HTTP 429 or exhausted rate limit after max retries
            NetworkError: 5xx, timeouts or transport errors after max retries
        """
        for attempt in range(self.max_retries):
            delay = self.retry_delay * (2 ** attempt)
            last_attempt = attempt >= self.max_retries - 1

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {method} {url}")
                response = await self._client.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    timeout=self.timeout
                )
            except httpx.TimeoutException as e:
                if last_attempt:
                    raise NetworkError(
                        f"Request timeout after {self.max_retries} attempts",
                        context={"url": url, "timeout": self.timeout, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Request timeout for {url}. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue
            except httpx.TransportError as e:
                if last_attempt:
                    raise NetworkError(
                        f"Network error after {self.max_retries} attempts",
                        context={"url": url, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Network error for {url}. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue

            rate_limited = response.status_code == 429 or (
                response.status_code == 403
                and response.headers.get("X-RateLimit-Remaining") == "0"
            )

            if rate_limited:
                retry_after = _retry_after(response, delay)
                if last_attempt:
                    raise RateLimitError(
                        f"Rate limit exceeded for {url}",
                        context={
                            "status_code": response.status_code,
                            "url": url,
                            "retry_count": attempt + 1
                        },
                        retry_after=retry_after
                    )
                logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
                await asyncio.sleep(retry_after)
                continue

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={"status_code": response.status_code, "url": url}
                )

            if response.status_code == 404:
                raise ResourceNotFoundError(
                    f"Resource not found: {url}",
                    context={"status_code": 404, "url": url}
                )

            if response.status_code >= 500:
                if last_attempt:
                    raise NetworkError(
                        f"Server error after {self.max_retries} attempts",
                        context={
                            "status_code": response.status_code,
                            "url": url,
                            "retry_count": attempt + 1,
                            "response_body": response.text[:500]
                        }
                    )
                logger.warning(
                    f"Server error {response.status_code}. "
                    f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            if response.is_error:
                raise FetchError(
                    f"Unexpected status {response.status_code} for {url}",
                    context={"status_code": response.status_code, "url": url}
                )

            return response

        raise NetworkError(
            "Max retries exceeded",
            context={"url": url, "max_retries": self.max_retries}
        )

    async def fetch_metadata(self, url: str) -> GithubMetadata:
        """
        Fetch repository metadata via GraphQL.

        A repository GitHub does not know about comes back as
        GithubMetadata(repository=None), not as an error.

        Raises:
            MetadataFetchError: For any request, parsing or GraphQL error
        """
        try:
            owner, name = parse_github_url(url)
        except ValueError as e:
            raise MetadataFetchError(
                "Invalid repository URL",
                context={"url": url},
                original_exception=e
            )

        try:
            response = await self._request_with_retry(
                "POST",
                self.graphql_url,
                headers=self._headers("application/json"),
                json={"query": METADATA_QUERY, "variables": {"owner": owner, "name": name}}
            )
        except FetchError as e:
            raise MetadataFetchError(
                f"Metadata request failed for {owner}/{name}",
                context={"url": url},
                original_exception=e
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MetadataFetchError(
                "Failed to parse metadata response",
                context={"url": url, "response_body": response.text[:500]},
                original_exception=e
            )

        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            raise MetadataFetchError(
                "Metadata response contained no data",
                context={"url": url, "errors": payload.get("errors") if isinstance(payload, dict) else None}
            )

        try:
            return GithubMetadata.model_validate(data)
        except ValueError as e:
            raise MetadataFetchError(
                "Metadata response failed validation",
                context={"url": url},
                original_exception=e
            )

    async def fetch_license(self, url: str) -> Optional[GithubLicense]:
        """Fetch license info; returns None on any failure"""
        try:
            owner, name = parse_github_url(url)
            response = await self._request_with_retry(
                "GET",
                f"{self.api_url}/repos/{owner}/{name}/license",
                headers=self._headers()
            )
            return GithubLicense.model_validate(response.json())
        except ResourceNotFoundError:
            return None
        except (FetchError, ValueError) as e:
            logger.warning(f"License fetch failed for {url}: {str(e)}")
            return None

    async def fetch_readme(self, url: str) -> Optional[GithubReadme]:
        """Fetch README as rendered HTML with its ETag; returns None on any failure"""
        try:
            owner, name = parse_github_url(url)
            readme_url = f"{self.api_url}/repos/{owner}/{name}/readme"
            info_response, html_response = await asyncio.gather(
                self._request_with_retry("GET", readme_url, headers=self._headers()),
                self._request_with_retry("GET", readme_url, headers=self._headers("application/vnd.github.html+json"))
            )
            return GithubReadme(
                html=html_response.text,
                html_url=info_response.json().get("html_url"),
                etag=html_response.headers.get("ETag")
            )
        except ResourceNotFoundError:
            return None
        except (FetchError, ValueError) as e:
            logger.warning(f"README fetch failed for {url}: {str(e)}")
            return None
