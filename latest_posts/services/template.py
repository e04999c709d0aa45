"""
Template patching service.

The site's WritingSection component holds the latest posts as static array
literals, each introduced by a marker comment, plus a comment recording when
the data was last refreshed. TemplateDocument parses the component into
literal text and named slots, lets the caller replace slot contents, and
renders everything back with the literal text untouched.
"""

import datetime
import logging
import pathlib
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from latest_posts.models import PostRecord, SourceConfig

logger = logging.getLogger(__name__)

TIMESTAMP_SLOT = "timestamp"

_TIMESTAMP_RE = re.compile(
    r"^// Static post data from [^\r\n]*?(?: \(auto-updated: [^\r\n]*\))?(?=\r?$)",
    re.MULTILINE,
)


def _posts_pattern(variable: str) -> "re.Pattern[str]":
    # The array body is a run of double-quoted strings (with backslash escapes)
    # and any other characters except quotes and "]", so a "];" inside a title
    # does not end the match.
    return re.compile(
        r"^// [^\r\n]* from [^\r\n]*(?P<newline>\r?\n)"
        rf"const {re.escape(variable)}: BlogPost\[\] = "
        r'\[(?:"(?:\\.|[^"\\])*"|[^"\]])*\];',
        re.MULTILINE,
    )


def escape_string(value: str) -> str:
    """Escapes a value for use inside a double-quoted string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


def format_timestamp(when: datetime.datetime) -> str:
    """Formats a datetime as ISO 8601 UTC with milliseconds, e.g. 2024-01-05T10:00:00.000Z."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=datetime.timezone.utc)
    when = when.astimezone(datetime.timezone.utc)
    return when.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_posts(variable: str, label: str, posts: Sequence[PostRecord], origin: str) -> str:
    """Renders the marker comment and array literal for one source."""
    entries = ",\n".join(
        "  {\n"
        f'    title: "{escape_string(post["title"])}",\n'
        f'    date: "{escape_string(post["date"])}",\n'
        f'    link: "{escape_string(post["link"])}",\n'
        f'    description: "{escape_string(post["description"])}"\n'
        "  }"
        for post in posts
    )
    return f"// {label} from {origin}\nconst {variable}: BlogPost[] = [\n{entries}\n];"


def render_timestamp(when: datetime.datetime, feeds_origin: str) -> str:
    return f"// Static post data from {feeds_origin} (auto-updated: {format_timestamp(when)})"


@dataclass
class Slot:
    """A replaceable span of the document."""

    name: str
    original: str
    newline: str = "\n"
    replacement: Optional[str] = None

    def render(self) -> str:
        return self.original if self.replacement is None else self.replacement


class TemplateDocument:
    """
    In-memory model of the component file.

    The document is an ordered list of literal strings and Slots. Slots are
    found once at parse time: one per posts variable and one for the
    timestamp comment. Markers missing from the file simply produce no slot,
    and updates aimed at them are ignored.
    """

    def __init__(self, segments: List[Union[str, Slot]]):
        self.segments = segments
        self.slots: Dict[str, Slot] = {
            seg.name: seg for seg in segments if isinstance(seg, Slot)
        }

    @classmethod
    def parse(cls, text: str, variables: Sequence[str]) -> "TemplateDocument":
        """Splits `text` into literal segments and the slots it contains."""
        spans: List[Tuple[int, int, str, str]] = []
        for variable in variables:
            match = _posts_pattern(variable).search(text)
            if match:
                spans.append((match.start(), match.end(), variable, match.group("newline")))
            else:
                logger.warning("Marker for %s not found; leaving it as is.", variable)

        match = _TIMESTAMP_RE.search(text)
        if match:
            spans.append((match.start(), match.end(), TIMESTAMP_SLOT, "\n"))
        else:
            logger.warning("Timestamp marker not found; leaving it as is.")

        segments: List[Union[str, Slot]] = []
        pos = 0
        for start, end, name, newline in sorted(spans):
            if start < pos:
                logger.warning("Marker for %s overlaps another marker; skipping.", name)
                continue
            if start > pos:
                segments.append(text[pos:start])
            segments.append(Slot(name=name, original=text[start:end], newline=newline))
            pos = end
        if pos < len(text):
            segments.append(text[pos:])
        return cls(segments)

    def has_slot(self, name: str) -> bool:
        return name in self.slots

    def set_posts(
        self, variable: str, label: str, posts: Sequence[PostRecord], origin: str
    ) -> bool:
        """Replaces a source's posts block. Returns False if the marker is missing."""
        slot = self.slots.get(variable)
        if slot is None:
            return False
        rendered = render_posts(variable, label, posts, origin)
        slot.replacement = rendered.replace("\n", slot.newline)
        return True

    def set_timestamp(self, when: datetime.datetime, feeds_origin: str) -> bool:
        """Replaces the auto-updated comment. Returns False if the marker is missing."""
        slot = self.slots.get(TIMESTAMP_SLOT)
        if slot is None:
            return False
        slot.replacement = render_timestamp(when, feeds_origin)
        return True

    def render(self) -> str:
        return "".join(
            seg.render() if isinstance(seg, Slot) else seg for seg in self.segments
        )


def patch_file(
    path: Union[str, pathlib.Path],
    updates: Sequence[Tuple[SourceConfig, Sequence[PostRecord]]],
    origin: str,
    feeds_origin: str,
    now: Optional[datetime.datetime] = None,
) -> str:
    """
    Rewrites the posts blocks and timestamp comment of a component file.

    The whole file is read before anything is written, and the result is
    written back in a single call. Returns the new content.
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        content = f.read()

    document = TemplateDocument.parse(content, [source["variable"] for source, _ in updates])
    for source, posts in updates:
        document.set_posts(source["variable"], source["label"], posts, origin)
    document.set_timestamp(now or datetime.datetime.now(datetime.timezone.utc), feeds_origin)

    updated = document.render()
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(updated)
    return updated
