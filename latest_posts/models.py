"""
Data models for the latest posts refresher.
"""

import datetime
from typing import TypedDict, Optional


class PostRecord(TypedDict):
    """A normalized post, ready to be written into the site component."""

    title: str
    link: str
    date: str  # "Month Day, Year"
    description: str


class RawEntry(TypedDict):
    """A post as extracted from a feed or API response, before normalization."""

    title: Optional[str]
    link: Optional[str]
    guid: Optional[str]
    published: Optional[str]
    published_at: Optional[datetime.datetime]  # set when the transport already parsed it
    description: Optional[str]


class SourceConfig(TypedDict):
    """Type definition for a configured Substack publication."""

    id: str  # Substack subdomain
    name: str  # short name used in log lines
    label: str  # heading of the marker comment
    variable: str  # array identifier in the target file
