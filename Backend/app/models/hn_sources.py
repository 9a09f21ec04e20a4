from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ListCategory(str, Enum):
    """Hacker News story lists served by the item-graph API."""

    TOP = "top"
    NEW = "new"
    BEST = "best"
    ASK = "ask"
    SHOW = "show"
    JOB = "job"


TopicMode = Literal["list", "search"]


class ResolvedTopic(BaseModel):
    model_config = ConfigDict(frozen=True)

    cache_key: str
    mode: TopicMode
    list_category: Optional[ListCategory] = None
    query: Optional[str] = None


class SourceRecord(BaseModel):
    """
    Normalized unit of retrieved content.

    Instances are frozen: cached record sequences are shared between callers
    and must not be mutated after normalization.
    """

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    url: str
    content: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[datetime] = None


class SearchHit(BaseModel):
    """Hit from the search-index (Algolia) API; story and comment hits share this shape."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: Optional[Any] = None
    story_title: Optional[Any] = None
    url: Optional[Any] = None
    story_url: Optional[Any] = None
    text: Optional[Any] = None
    story_text: Optional[Any] = None
    comment_text: Optional[Any] = None
    author: Optional[Any] = None
    created_at: Optional[Any] = None
    object_id: Optional[Any] = Field(default=None, alias="objectID")


class GraphItem(BaseModel):
    """Item from the item-graph (Firebase) API."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[Any] = None
    title: Optional[Any] = None
    url: Optional[Any] = None
    text: Optional[Any] = None
    by: Optional[Any] = None
    time: Optional[Any] = None


RawUpstreamItem = Union[SearchHit, GraphItem]


@dataclass
class FetchResult:
    items: List[RawUpstreamItem] = field(default_factory=list)
    item_failures: int = 0


@dataclass(frozen=True)
class CacheEntry:
    key: str
    expires_at: float
    records: Tuple[SourceRecord, ...]


class SourcesResponse(BaseModel):
    """Payload for /api/v1/sources."""

    topic: str
    mode: TopicMode
    count: int
    items: List[SourceRecord]
