"""Markdown parser for story backlogs.

Two dialects are recognized, and may be mixed in one document.

Section style, one story per ``## Story:`` heading::

    ## Story: STORY-12 Login form

    ### Story ID
    STORY-12

    ### Status
    In progress

    ### Description
    Users can sign in.

    ### Acceptance Criteria
    - [x] Form renders
    - [ ] Errors are shown

A Description runs until a known section heading or the next ``## Story:``.
Other ``##`` and ``###`` lines inside it are kept as body text, unless the
``##`` line opens a status column of block stories.

Block style, where a ``##`` heading names the status column::

    ## Ready
    - Story: STORY-13 Password reset
      description: Send a reset link
      priority: high
      labels: auth, email
      acceptance_criteria:
      - [ ] Link expires
"""

from __future__ import annotations

import logging
import re
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..models.story import SourceLocation, Story, Todo
from .errors import STATUS_NOT_MAPPED, STORY_ID_MISSING, MarkdownParseError
from .status import StatusMap, normalize_status
from .story_format import parse_story_name, strip_story_id

logger = logging.getLogger(__name__)

SECTION_STORY_RE = re.compile(r"^##\s+Story:\s*(.*?)\s*$", re.IGNORECASE)
COLUMN_HEADER_RE = re.compile(r"^##\s+(?!Story:)(.+?)\s*$", re.IGNORECASE)
BLOCK_STORY_RE = re.compile(r"^-\s*Story:\s*(.*?)\s*$", re.IGNORECASE)
H2_RE = re.compile(r"^##\s+")
H3_RE = re.compile(r"^###\s+(.+?)\s*$")
KEY_VALUE_RE = re.compile(
    r"^\s{0,2}[-*]?\s*(story\s+id|acceptance\s+criteria|\w[\w-]*):(?!//)\s*(.*)$", re.IGNORECASE
)
TODO_RE = re.compile(r"^\s*[-*]?\s*\[\s*([xX ])\s*\]\s*(.*)$")
LIST_SPLIT_RE = re.compile(r"[,;]")

# Block keys, canonicalized with _block_key()
ID_KEYS = frozenset({"id", "story_id"})
BODY_KEYS = frozenset({"description", "desc", "body"})
TODO_KEYS = frozenset({"acceptance_criteria", "todos"})

# Headings that close a Description section; any other heading is body text
SECTION_HEADINGS = frozenset(
    {
        "story id",
        "status",
        "description",
        "acceptance criteria",
        "acceptance",
        "criteria",
        "todos",
        "assignees",
        "assignee",
        "labels",
        "label",
        "priority",
    }
)


@dataclass
class ParseOptions:
    """Options controlling how a document is parsed.

    status_map: Caller status -> list map. When given, statuses must resolve
        against it (or are kept as-is unless strict_status is set).
    strict_status: Fail on statuses the map does not cover.
    require_story_id: Fail on stories with no id.
    file_path: Document identifier recorded on each story.
    """

    status_map: Mapping[str, str] | None = None
    strict_status: bool = False
    require_story_id: bool = False
    file_path: str | None = None


@dataclass
class _StoryDraft:
    """Mutable accumulator for a story while its lines are read."""

    name: str
    line: int
    story_id: str = ""
    status: str = ""
    body_lines: list[str] = field(default_factory=list)
    todos: list[Todo] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)


def split_list(value: str) -> list[str]:
    """Split a comma/semicolon separated value, dropping empties.

    Example: "alice, bob;; carol" -> ["alice", "bob", "carol"]
    """
    return [part.strip() for part in LIST_SPLIT_RE.split(value or "") if part.strip()]


def parse_todo_line(line: str) -> Todo | None:
    """Parse a checkbox list item, or return None for any other line.

    Items with no text are ignored.
    """
    match = TODO_RE.match(line)
    if not match or not match.group(2).strip():
        return None
    return Todo(text=match.group(2).strip(), done=match.group(1).lower() == "x")


def _block_key(raw: str) -> str:
    """Canonical block key: lowercase, spaces and underscores interchangeable."""
    return re.sub(r"[\s_]+", "_", raw.strip().lower())


def _trim_body(text: str) -> str:
    """Drop leading and trailing blank lines, keep inner formatting."""
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def _is_section_heading(text: str) -> bool:
    return re.sub(r"\s+", " ", text.strip().lower()) in SECTION_HEADINGS


def _opens_column(lines: list[str], start: int) -> bool:
    """Whether the ## line at start is a status column with block stories under it."""
    for line in lines[start + 1 :]:
        if line.strip():
            return bool(BLOCK_STORY_RE.match(line))
    return False


class MarkdownParser:
    """Parses markdown documents into Story records."""

    def __init__(self, options: ParseOptions | None = None) -> None:
        self.options = options or ParseOptions()
        self._status_map = (
            StatusMap.coerce(self.options.status_map)
            if self.options.status_map is not None
            else None
        )

    def parse(self, text: str) -> list[Story]:
        """Parse a whole document.

        Raises:
            MarkdownParseError: On a missing required id or, in strict mode,
                an unmapped status. Parsing of the document stops there.
        """
        lines = text.splitlines()
        stories: list[Story] = []

        i = 0
        while i < len(lines):
            line = lines[i]

            section = SECTION_STORY_RE.match(line)
            if section:
                story, i = self._parse_section_story(lines, i, section.group(1))
                stories.append(story)
                continue

            column = COLUMN_HEADER_RE.match(line)
            if column:
                column_name = column.group(1)
                i += 1
                while i < len(lines) and not H2_RE.match(lines[i]):
                    block = BLOCK_STORY_RE.match(lines[i])
                    if block:
                        story, i = self._parse_block_story(lines, i, block.group(1), column_name)
                        stories.append(story)
                        continue
                    i += 1
                continue

            i += 1

        logger.debug(
            "Parsed %d stories from %s", len(stories), self.options.file_path or "<string>"
        )
        return stories

    # --- Section style ---

    def _parse_section_story(self, lines: list[str], start: int, name: str) -> tuple[Story, int]:
        draft = _StoryDraft(name=name, line=start + 1)
        section = ""

        i = start + 1
        while i < len(lines):
            line = lines[i]
            in_description = "description" in section

            if H2_RE.match(line):
                if SECTION_STORY_RE.match(line) or not in_description or _opens_column(lines, i):
                    break
                draft.body_lines.append(line)
                i += 1
                continue

            heading = H3_RE.match(line)
            if heading and (not in_description or _is_section_heading(heading.group(1))):
                section = heading.group(1).lower()
                i += 1
                continue

            stripped = line.strip()
            if "story id" in section:
                if stripped:
                    draft.story_id = stripped
            elif "status" in section:
                if stripped:
                    draft.status = stripped
            elif "description" in section:
                draft.body_lines.append(line)
            elif "acceptance" in section or "criteria" in section or "todos" in section:
                todo = parse_todo_line(line)
                if todo is not None:
                    draft.todos.append(todo)
            elif "assignee" in section:
                draft.assignees.extend(split_list(line))
            elif "label" in section:
                draft.labels.extend(split_list(line))
            elif "priority" in section:
                if stripped:
                    draft.meta["priority"] = stripped

            i += 1

        return self._finish(draft), i

    # --- Block style ---

    def _parse_block_story(
        self, lines: list[str], start: int, name: str, column: str
    ) -> tuple[Story, int]:
        draft = _StoryDraft(name=name, line=start + 1, status=column)

        i = start + 1
        while i < len(lines):
            line = lines[i]
            if BLOCK_STORY_RE.match(line) or H2_RE.match(line):
                break

            kv = KEY_VALUE_RE.match(line)
            if not kv:
                i += 1
                continue

            raw_key, value = kv.group(1), kv.group(2)
            key = _block_key(raw_key)

            if key in ID_KEYS:
                draft.story_id = value.strip()
            elif key in BODY_KEYS:
                continuation, i = self._collect_continuation(lines, i + 1)
                parts = [value.strip()] if value.strip() else []
                if continuation:
                    parts.append(textwrap.dedent("\n".join(continuation)))
                draft.body_lines.append("\n".join(parts))
                continue
            elif key in TODO_KEYS:
                continuation, i = self._collect_continuation(lines, i + 1)
                for todo_line in continuation:
                    todo = parse_todo_line(todo_line)
                    if todo is not None:
                        draft.todos.append(todo)
                continue
            elif key == "priority":
                draft.meta["priority"] = value.strip()
            elif key == "labels":
                draft.labels.extend(split_list(value))
            elif key == "assignees":
                draft.assignees.extend(split_list(value))
            else:
                draft.meta[raw_key.strip()] = value.strip()

            i += 1

        return self._finish(draft), i

    @staticmethod
    def _collect_continuation(lines: list[str], start: int) -> tuple[list[str], int]:
        """Collect lines up to the next key, story item or ## heading."""
        collected: list[str] = []
        i = start
        while i < len(lines):
            line = lines[i]
            if KEY_VALUE_RE.match(line) or BLOCK_STORY_RE.match(line) or H2_RE.match(line):
                break
            collected.append(line)
            i += 1
        return collected, i

    # --- Shared ---

    def _finish(self, draft: _StoryDraft) -> Story:
        """Resolve id, title and status, then freeze the draft into a Story."""
        parsed = parse_story_name(draft.name)
        story_id = draft.story_id or parsed.story_id
        title = parsed.title
        if draft.story_id and not parsed.story_id:
            # "## Story: SID-1 Title" with an explicit "SID-1" id section
            title = strip_story_id(title, draft.story_id)

        location = SourceLocation(file=self.options.file_path, line=draft.line)

        if not story_id and self.options.require_story_id:
            raise MarkdownParseError(
                "Story ID is required",
                STORY_ID_MISSING,
                file=location.file,
                line=location.line,
                details={"title": title},
            )

        status = self._resolve_status(draft.status, location, title)

        meta = dict(draft.meta)
        meta["source"] = {"file": location.file, "line": location.line}

        return Story(
            story_id=story_id,
            title=title,
            status=status,
            body=_trim_body("\n".join(draft.body_lines)),
            todos=draft.todos,
            assignees=draft.assignees,
            labels=draft.labels,
            meta=meta,
        )

    def _resolve_status(self, raw: str, location: SourceLocation, title: str) -> str:
        """Normalize a status and, with a map, match it against the map."""
        normalized = normalize_status(raw, self._status_map)
        plain = re.sub(r"\s+", " ", normalized).strip()
        if self._status_map is None or not plain:
            return plain

        hit = self._status_map.resolve(plain)
        if hit is not None:
            return hit
        if self.options.strict_status:
            raise MarkdownParseError(
                f'Status "{raw.strip()}" is not mapped',
                STATUS_NOT_MAPPED,
                file=location.file,
                line=location.line,
                details={"status": raw, "context": title or raw},
            )
        return plain


def parse_markdown(
    text: str,
    status_map: Mapping[str, str] | None = None,
    *,
    strict_status: bool = False,
    require_story_id: bool = False,
    file_path: str | None = None,
) -> list[Story]:
    """Parse a markdown document into stories (convenience wrapper)."""
    options = ParseOptions(
        status_map=status_map,
        strict_status=strict_status,
        require_story_id=require_story_id,
        file_path=file_path,
    )
    return MarkdownParser(options).parse(text)
