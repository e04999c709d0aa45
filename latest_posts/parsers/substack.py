"""
Substack archive API parser.

This module provides the SubstackArchiveParser class for parsing the JSON
post listing Substack serves at /api/v1/archive.
"""

import json
from typing import List, Any

from latest_posts.models import RawEntry
from latest_posts.parsers.base import FeedParser
from latest_posts.services.fetcher import FetchError


class SubstackArchiveParser(FeedParser):
    """
    Parses the Substack archive endpoint.

    The endpoint returns a JSON array of post objects; only `title`,
    `canonical_url`, `post_date` and `subtitle` are used.
    """

    origin = "Substack API"
    feeds_origin = "Substack feeds"
    accept = "application/json"

    def url_for(self, source_id: str) -> str:
        return f"https://{source_id}.substack.com/api/v1/archive"

    def parse(self, content: bytes) -> List[RawEntry]:
        """Parses the archive JSON into raw entries."""
        try:
            posts: Any = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchError(f"Invalid JSON: {e}") from e

        if not isinstance(posts, list):
            raise FetchError(f"Expected a JSON array, got {type(posts).__name__}")

        items: List[RawEntry] = []
        for post in posts:
            if not isinstance(post, dict):
                continue
            items.append(
                RawEntry(
                    title=post.get("title"),
                    link=post.get("canonical_url"),
                    guid=None,
                    published=post.get("post_date"),
                    published_at=None,
                    description=post.get("subtitle"),
                )
            )
        return items
