"""
Base classes and interfaces for feed parsers.

This module defines the contract that all feed parsers must follow.
"""

from typing import Protocol, List
from latest_posts.models import RawEntry


class FeedParser(Protocol):
    """
    Protocol for feed parsers.

    A parser knows which endpoint of a Substack publication to request and
    how to turn the response body into a list of RawEntry objects. Parsers
    raise FetchError when the body cannot be understood.
    """

    origin: str  # shown in the component's marker comments
    feeds_origin: str  # shown in the auto-updated timestamp comment
    accept: str  # value of the Accept request header

    def url_for(self, source_id: str) -> str:
        """Returns the endpoint URL for a publication."""

    def parse(self, content: bytes) -> List[RawEntry]:
        """Parses a response body into raw entries."""
