"""
Pydantic schemas for values stored on a Repository record
"""

from pydantic import BaseModel, Field, TypeAdapter
from typing import Optional, Union, Literal, Dict, Any
from typing_extensions import Annotated
from datetime import datetime
from schemas.github import ReleaseNode


class Release(BaseModel):
    """Release as persisted in Repository.releases"""
    description: Optional[str] = None
    description_html: Optional[str] = None
    is_draft: bool = False
    published_at: Optional[datetime] = None
    tag_name: str
    url: str

    @classmethod
    def from_node(cls, node: ReleaseNode) -> "Release":
        return cls(
            description=node.description,
            description_html=node.description_html,
            is_draft=node.is_draft,
            published_at=node.published_at,
            tag_name=node.tag_name,
            url=node.url
        )


# ============================================================================
# README cache state
# ============================================================================

class CachedReadme(BaseModel):
    """README stored in the object cache, tagged with the ETag it was fetched with"""
    kind: Literal["cached"] = "cached"
    object_url: str
    etag: str

    def needs_update(self, upstream_etag: str) -> bool:
        return self.etag != upstream_etag


class ReadmeError(BaseModel):
    """Last attempt to store the README failed"""
    kind: Literal["error"] = "error"
    message: str

    def needs_update(self, upstream_etag: str) -> bool:
        return True


ReadmeCacheState = Annotated[Union[CachedReadme, ReadmeError], Field(discriminator="kind")]

_readme_cache_adapter = TypeAdapter(ReadmeCacheState)


def load_readme_cache(value: Optional[Dict[str, Any]]) -> Optional[Union[CachedReadme, ReadmeError]]:
    """Parse the JSON column value into a cache state"""
    if value is None:
        return None
    return _readme_cache_adapter.validate_python(value)


def dump_readme_cache(state: Optional[Union[CachedReadme, ReadmeError]]) -> Optional[Dict[str, Any]]:
    """Serialize a cache state for the JSON column"""
    if state is None:
        return None
    return state.model_dump(mode="json")
