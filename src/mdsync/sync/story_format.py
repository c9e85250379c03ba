"""Encoding of (story id, title) into card display names and file names.

Card names carry the story id as a prefix:
    STORY-123 Fix login bug

Older boards used a legacy prefix, still recognized when matching:
    ID: STORY-123 Fix login bug
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models.story import Story
from ..utils.slug import slugify, strip_unsafe_chars, truncate_filename

STORY_NAME_PATTERN = re.compile(r"^(STORY-\S+)(?:\s+(.+))?$", re.IGNORECASE)
LEGACY_NAME_PATTERN = re.compile(r"^ID:\s*(\S+)(?:\s+(.+))?$", re.IGNORECASE)

UNTITLED = "untitled"


@dataclass(frozen=True)
class ParsedStoryName:
    """Story id and title decoded from a display name."""

    story_id: str
    title: str


def _clean(value: str | None) -> str:
    return (value or "").strip()


def format_story_name(story_id: str, title: str) -> str:
    """Build the display name for a story.

    Examples:
        >>> format_story_name("STORY-1", "Fix bug")
        'STORY-1 Fix bug'
        >>> format_story_name("", "Fix bug")
        'Fix bug'
    """
    sid = _clean(story_id)
    clean_title = _clean(title)
    if sid and clean_title:
        return f"{sid} {clean_title}"
    return sid or clean_title


def format_legacy_story_name(story_id: str, title: str) -> str:
    """Build the legacy "ID: <id> <title>" display name."""
    sid = _clean(story_id)
    clean_title = _clean(title)
    if sid and clean_title:
        return f"ID: {sid} {clean_title}"
    if sid:
        return f"ID: {sid}"
    return clean_title


def parse_story_name(name: str) -> ParsedStoryName:
    """Decode a display name into story id and title.

    Tries the current encoding, then the legacy one. If neither matches the
    whole string is the title.

    Examples:
        >>> parse_story_name("ID: STORY-9 Legacy")
        ParsedStoryName(story_id='STORY-9', title='Legacy')
        >>> parse_story_name("Plain title")
        ParsedStoryName(story_id='', title='Plain title')
    """
    raw = _clean(name)
    for pattern in (STORY_NAME_PATTERN, LEGACY_NAME_PATTERN):
        match = pattern.match(raw)
        if match:
            return ParsedStoryName(story_id=_clean(match.group(1)), title=_clean(match.group(2)))
    return ParsedStoryName(story_id="", title=raw)


def strip_story_id(title: str, story_id: str) -> str:
    """Drop a leading story id that is repeated in a title.

    Examples:
        >>> strip_story_id("ABC-1 Custom scheme", "ABC-1")
        'Custom scheme'
        >>> strip_story_id("ABC-1", "abc-1")
        ''
        >>> strip_story_id("ABC-10 Other", "ABC-1")
        'ABC-10 Other'
    """
    prefix = _clean(story_id).lower()
    if not prefix:
        return title
    if title.lower() == prefix:
        return ""
    if title.lower().startswith(prefix) and title[len(prefix) : len(prefix) + 1].isspace():
        return title[len(prefix) :].strip()
    return title


def card_name_for_story(story: Story) -> str:
    """Display name a card should carry for a story."""
    return format_story_name(story.story_id, story.title)


def story_file_name(story: Story, max_length: int = 120) -> str:
    """Filesystem-safe markdown file name for a story.

    The id keeps its casing; the title portion is lower-kebab-cased.

    Examples:
        STORY-100 / "Alpha"      -> STORY-100-alpha.md
        ""        / "Fix Bug!"   -> fix-bug.md
        ""        / ""           -> untitled.md
    """
    sid = strip_unsafe_chars(story.story_id).replace(" ", "-")
    title_slug = slugify(strip_unsafe_chars(story.title))

    if sid and title_slug:
        base = f"{sid}-{title_slug}"
    else:
        base = sid or title_slug or UNTITLED

    return truncate_filename(f"{base}.md", max_length)
