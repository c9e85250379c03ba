"""Error taxonomy for sync runs.

Parse and ambiguity errors abort the whole run. Per-story execution failures
never surface as exceptions from the engine; they are recorded on the result.
"""

from __future__ import annotations

from typing import Any

STORY_ID_MISSING = "STORY_ID_MISSING"
STATUS_NOT_MAPPED = "STATUS_NOT_MAPPED"


class SyncError(Exception):
    """Base exception for sync errors."""

    pass


class MarkdownParseError(SyncError):
    """Malformed markdown input, located by file and line."""

    def __init__(
        self,
        message: str,
        code: str,
        file: str | None = None,
        line: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.file = file
        self.line = line
        self.details = details or {}
        location = f"{file or '<string>'}:{line}"
        super().__init__(f"{message} ({location})")


class UnmappedStatusError(SyncError):
    """A story status has no target list and strict status is enabled."""

    def __init__(self, status: str, story_id: str = "", title: str = "") -> None:
        self.status = status
        self.story_id = story_id
        self.title = title
        who = story_id or title or "(untitled)"
        super().__init__(f'Status "{status}" is not mapped (story {who})')


class DuplicateStoryIdError(SyncError):
    """More than one card (or local story) claims the same story id."""

    def __init__(self, story_id: str, card_ids: list[str] | None = None) -> None:
        self.story_id = story_id
        self.card_ids = card_ids or []
        if self.card_ids:
            message = f"Multiple cards share story id {story_id}: {', '.join(self.card_ids)}"
        else:
            message = f"Multiple stories share story id {story_id}"
        super().__init__(message)
