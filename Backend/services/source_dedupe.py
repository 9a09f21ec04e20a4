from __future__ import annotations

from typing import Iterable, List, Set

from app.models.hn_sources import SourceRecord


def dedupe_by_url(records: Iterable[SourceRecord]) -> List[SourceRecord]:
    """Drop records whose url was already seen; the first occurrence wins."""
    seen: Set[str] = set()
    unique: List[SourceRecord] = []
    for record in records:
        if record.url in seen:
            continue
        seen.add(record.url)
        unique.append(record)
    return unique
