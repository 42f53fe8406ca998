"""
README object cache.

READMEs are rendered once by GitHub and copied into S3 so pages can be served
without hitting the API. Whether a fresh copy is written is decided by
comparing the ETag stored with the cached object against the ETag of the
README just fetched. Failures to write are recorded on the repository as an
error state and never fail ingestion.
"""

import asyncio
import logging
from typing import Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.exceptions import ReadmeCacheError
from schemas.github import GithubReadme
from schemas.repository import CachedReadme, ReadmeError

logger = logging.getLogger(__name__)

ReadmeState = Optional[Union[CachedReadme, ReadmeError]]


def readme_object_key(owner: str, repository: str) -> str:
    return f"{owner}/{repository}/readme.html".lower()


class S3ReadmeStore:
    """Writes rendered README HTML to an S3 bucket"""

    def __init__(self, bucket: str, region: str, client=None):
        self.bucket = bucket
        self.region = region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def object_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def store(self, owner: str, repository: str, html: str) -> str:
        """
        Upload README HTML and return the object URL.

        Raises:
            ReadmeCacheError: If the upload fails
        """
        key = readme_object_key(owner, repository)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=html.encode("utf-8"),
                ContentType="text/html; charset=utf-8"
            )
        except (BotoCoreError, ClientError) as e:
            raise ReadmeCacheError(
                f"Failed to store README for {owner}/{repository}",
                context={"bucket": self.bucket, "key": key},
                original_exception=e
            )
        return self.object_url(key)


async def resolve_readme_cache(
    existing: ReadmeState,
    readme: Optional[GithubReadme],
    owner: Optional[str],
    repository: Optional[str],
    store: Optional[S3ReadmeStore]
) -> ReadmeState:
    """
    Decide the README cache state for a repository after a fetch.

    - nothing fetched (or nothing storable): existing state is kept
    - no state, an error state, or a cached copy with a different ETag:
      store the README, returning `cached` on success or `error` on failure
    - cached copy with the same ETag: existing state is kept, no write
    """
    if store is None or readme is None or not readme.etag or not readme.html:
        return existing
    if not owner or not repository:
        return existing
    if existing is not None and not existing.needs_update(readme.etag):
        return existing

    try:
        object_url = await store.store(owner, repository, readme.html)
    except Exception as e:
        logger.warning(f"README store failed for {owner}/{repository}: {str(e)}")
        message = e.message if isinstance(e, ReadmeCacheError) else str(e)
        return ReadmeError(message=message)

    return CachedReadme(object_url=object_url, etag=readme.etag)
