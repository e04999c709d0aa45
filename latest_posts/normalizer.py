"""
Normalization of raw feed entries into PostRecords.

Every transport produces RawEntry dicts; this module turns them into the
four-field records written to the site, applying the title, link, date and
description fallbacks.
"""

import datetime
import html
import re
from email.utils import parsedate_to_datetime
from typing import Optional

from latest_posts.models import PostRecord, RawEntry, SourceConfig

UNTITLED = "Untitled Post"
READ_MORE = "Click to read more..."
INVALID_DATE = "Invalid Date"
MAX_DESCRIPTION_LENGTH = 120

_TAG_RE = re.compile(r"<[^>]*>")


def home_page(source_id: str) -> str:
    """Returns the home page URL of a Substack publication."""
    return f"https://{source_id}.substack.com"


def clean_html(raw_html: Optional[str]) -> str:
    """Removes HTML tags and entities from a string."""
    if not raw_html:
        return ""
    text = html.unescape(_TAG_RE.sub("", raw_html))
    return " ".join(text.split())


def _parse_timestamp(value: str) -> datetime.datetime:
    value = value.strip()
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass
    # fromisoformat() only learned the "Z" suffix in 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(value)


def _format(when: datetime.datetime) -> str:
    return f"{when:%B} {when.day}, {when.year}"


def format_date(value: Optional[str]) -> str:
    """Formats an RFC 822 or ISO 8601 timestamp as "Month Day, Year"."""
    if not value:
        return INVALID_DATE
    try:
        parsed = _parse_timestamp(value)
    except ValueError:
        return INVALID_DATE
    return _format(parsed)


def _entry_date(entry: RawEntry) -> str:
    published_at = entry.get("published_at")
    if published_at is not None:
        return _format(published_at)
    return format_date(entry.get("published"))


def normalize_entry(entry: RawEntry, source: SourceConfig) -> PostRecord:
    """Maps one raw entry to a PostRecord with every field populated."""
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or entry.get("guid") or "").strip()
    description = clean_html(entry.get("description"))[:MAX_DESCRIPTION_LENGTH]

    return PostRecord(
        title=title or UNTITLED,
        link=link or home_page(source["id"]),
        date=_entry_date(entry),
        description=description.strip() or READ_MORE,
    )
