"""
RSS feed parser implementation.

This module provides the RSSParser class for parsing Substack RSS feeds.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging
import time

import feedparser  # type: ignore
from latest_posts.models import RawEntry
from latest_posts.parsers.base import FeedParser
from latest_posts.services.fetcher import FetchError

logger = logging.getLogger(__name__)


class RSSParser(FeedParser):
    """Parses the RSS feed served at /feed."""

    origin = "RSS feed"
    feeds_origin = "RSS feeds"
    accept = "application/rss+xml, application/xml, text/xml"

    def url_for(self, source_id: str) -> str:
        return f"https://{source_id}.substack.com/feed"

    def parse(self, content: bytes) -> List[RawEntry]:
        """Parses an RSS document into raw entries."""
        feed = feedparser.parse(content)
        if feed.bozo and not feed.entries:
            raise FetchError(f"Malformed feed: {feed.get('bozo_exception')}")
        if feed.bozo:
            logger.debug("Feed parsed with warnings: %s", feed.get("bozo_exception"))

        items: List[RawEntry] = []
        for entry in feed.entries:
            items.append(
                RawEntry(
                    title=entry.get("title"),
                    link=entry.get("link"),
                    guid=entry.get("id"),
                    published=entry.get("published"),
                    published_at=_parse_datetime(entry.get("published_parsed")),
                    description=entry.get("summary") or entry.get("description"),
                )
            )
        return items


def _parse_datetime(struct_time: Optional[time.struct_time]) -> Optional[datetime]:
    # feedparser normalizes published_parsed to UTC
    if not struct_time:
        return None
    return datetime(*struct_time[:6], tzinfo=timezone.utc)
