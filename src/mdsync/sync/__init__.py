"""Markdown <-> board reconciliation.

Planner, executor and engines live in their own modules
(mdsync.sync.planner, mdsync.sync.executor, mdsync.sync.engine).
"""

from .card_index import CardLookupIndex
from .errors import (
    STATUS_NOT_MAPPED,
    STORY_ID_MISSING,
    DuplicateStoryIdError,
    MarkdownParseError,
    SyncError,
    UnmappedStatusError,
)
from .parser import MarkdownParser, ParseOptions, parse_markdown
from .renderer import render_story
from .status import DEFAULT_STATUS_MAP, StatusMap, extend_status_map, normalize_status
from .story_format import (
    ParsedStoryName,
    format_legacy_story_name,
    format_story_name,
    parse_story_name,
    story_file_name,
)

__all__ = [
    "DEFAULT_STATUS_MAP",
    "STATUS_NOT_MAPPED",
    "STORY_ID_MISSING",
    "CardLookupIndex",
    "DuplicateStoryIdError",
    "MarkdownParseError",
    "MarkdownParser",
    "ParseOptions",
    "ParsedStoryName",
    "StatusMap",
    "SyncError",
    "UnmappedStatusError",
    "extend_status_map",
    "format_legacy_story_name",
    "format_story_name",
    "normalize_status",
    "parse_markdown",
    "parse_story_name",
    "render_story",
    "story_file_name",
]
