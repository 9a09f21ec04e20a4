# Backend/app/workers/hn_sources_probe.py
"""
Hacker News sources probe.

Fetches sources for a topic once and prints them, either as a readable list or
as JSON. Useful to check upstream reachability and normalization by hand:

    python -m app.workers.hn_sources_probe --topic startup --count 3
    python -m app.workers.hn_sources_probe --topic top --count 10 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import re
import sys
from typing import List, Optional, Sequence

from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from app.models.hn_sources import SourceRecord
from services.hn_client import UpstreamListError
from services.hn_sources_service import HackerNewsSourceService

_SNIPPET_LENGTH = 300
_WHITESPACE_RE = re.compile(r"\s+")


def format_source(index: int, record: SourceRecord) -> str:
    created = record.created_at.isoformat() if record.created_at else "unknown"
    author = record.author or "unknown"
    content = _WHITESPACE_RE.sub(" ", record.content or "").strip()
    lines = [
        f"{index}. {record.title}",
        f"    url: {record.url}",
        f"    author: {author}",
        f"    created: {created}",
    ]
    if content:
        snippet = content[:_SNIPPET_LENGTH]
        if len(content) > _SNIPPET_LENGTH:
            snippet += "…"
        lines.append(f"    {snippet}")
    return "\n".join(lines)


def format_sources(records: Sequence[SourceRecord]) -> str:
    return "\n\n".join(format_source(i, r) for i, r in enumerate(records, start=1))


async def run_once(topic: str, count: int, service: Optional[HackerNewsSourceService] = None) -> List[SourceRecord]:
    service = service or HackerNewsSourceService()
    logger = get_logger(worker="hn_sources_probe")
    with with_run_id():
        logger.info("hn_sources_probe_started", topic=topic, count=count)
        records = await service.get_sources(topic, count)
        logger.info("hn_sources_probe_finished", topic=topic, returned=len(records))
    return records


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch Hacker News sources for a topic")
    parser.add_argument("--topic", default="startup", help="Free-text topic or top/new/best/ask/show/job")
    parser.add_argument("--count", type=int, default=settings.SOURCES_DEFAULT_COUNT, help="Number of sources to print")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a readable list")
    args = parser.parse_args(argv)

    if args.count < 0:
        parser.error("--count must be >= 0")

    configure_logging(service_name="worker", level=settings.LOG_LEVEL)

    try:
        records = asyncio.run(run_once(args.topic, args.count))
    except UpstreamListError as exc:
        print(f"Error fetching Hacker News sources: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in records], indent=2, ensure_ascii=False))
    else:
        print("Fetched Hacker News sources:\n" + format_sources(records))
    return 0


if __name__ == "__main__":
    sys.exit(main())
