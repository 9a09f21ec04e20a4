from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

from app.core.config import get_settings
from app.models.hn_sources import GraphItem, RawUpstreamItem, SearchHit, SourceRecord


def _first_not_none(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _is_absolute_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def build_permalink(item_id: Any) -> Optional[str]:
    """Discussion page URL for an item id, or None without a usable id."""
    if item_id is None or isinstance(item_id, bool):
        return None
    text = str(item_id).strip()
    if not text:
        return None
    base = get_settings().HN_PERMALINK_BASE_URL.rstrip("?")
    return f"{base}?id={text}"


def _pick_url(candidates: Iterable[Any], item_id: Any) -> Optional[str]:
    for candidate in candidates:
        text = _as_text(candidate)
        if text and text.strip():
            text = text.strip()
            if _is_absolute_http_url(text):
                return text
    return build_permalink(item_id)


def _parse_iso_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _epoch_to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_search_hit(hit: SearchHit) -> SourceRecord | None:
    title = _as_text(_first_not_none(hit.title, hit.story_title))
    url = _pick_url((hit.url, hit.story_url), hit.object_id)
    if url is None:
        return None
    # story hits carry story_text, comment hits carry comment_text
    content = _as_text(_first_not_none(hit.text, hit.story_text, hit.comment_text))
    return SourceRecord(
        title=title,
        url=url,
        content=content,
        author=_as_text(hit.author),
        created_at=_parse_iso_timestamp(hit.created_at),
    )


def normalize_graph_item(item: GraphItem) -> SourceRecord | None:
    url = _pick_url((item.url,), item.id)
    if url is None:
        return None
    return SourceRecord(
        title=_as_text(item.title),
        url=url,
        content=_as_text(item.text),
        author=_as_text(item.by),
        created_at=_epoch_to_datetime(item.time),
    )


def normalize_item(item: RawUpstreamItem) -> SourceRecord | None:
    if isinstance(item, SearchHit):
        return normalize_search_hit(item)
    if isinstance(item, GraphItem):
        return normalize_graph_item(item)
    return None


def normalize_items(items: Iterable[RawUpstreamItem]) -> List[SourceRecord]:
    """
    Normalize raw upstream items, keeping only records with a non-empty
    title and url. Upstream order is preserved.
    """
    records: List[SourceRecord] = []
    for item in items:
        record = normalize_item(item)
        if record is None or not record.title or not record.url:
            continue
        records.append(record)
    return records
