from __future__ import annotations

from typing import Dict, Optional

from app.models.hn_sources import ListCategory, ResolvedTopic

# Upstream item-graph list endpoints, one per known category keyword.
LIST_ENDPOINTS: Dict[ListCategory, str] = {
    ListCategory.TOP: "topstories",
    ListCategory.NEW: "newstories",
    ListCategory.BEST: "beststories",
    ListCategory.ASK: "askstories",
    ListCategory.SHOW: "showstories",
    ListCategory.JOB: "jobstories",
}

_CATEGORY_BY_KEYWORD: Dict[str, ListCategory] = {c.value: c for c in ListCategory}


class UnknownEndpointError(KeyError):
    """Raised when a caller asks for a list alias that has no upstream endpoint."""

    def __init__(self, alias: str):
        super().__init__(alias)
        self.alias = alias

    def __str__(self) -> str:
        return f"Unknown Hacker News list endpoint: {self.alias!r}"


def normalize_topic_key(topic: Optional[str]) -> str:
    return (topic or "").strip().lower()


def resolve_topic(topic: Optional[str]) -> ResolvedTopic:
    """
    Map a caller topic onto a list category or a free-text search.

    The six category keywords (top, new, best, ask, show, job) select list
    mode; everything else is searched verbatim.
    """
    key = normalize_topic_key(topic)
    category = _CATEGORY_BY_KEYWORD.get(key)
    if category is not None:
        return ResolvedTopic(cache_key=key, mode="list", list_category=category)
    return ResolvedTopic(cache_key=key, mode="search", query=topic or "")


def list_endpoint_for(category: ListCategory | str | None) -> str:
    """Return the upstream list endpoint name; undefined aliases fail fast."""
    if isinstance(category, ListCategory):
        return LIST_ENDPOINTS[category]
    resolved = _CATEGORY_BY_KEYWORD.get(normalize_topic_key(category))
    if resolved is None:
        raise UnknownEndpointError(str(category))
    return LIST_ENDPOINTS[resolved]
