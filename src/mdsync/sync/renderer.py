"""Render stories back to the section-style markdown dialect.

The output is what MarkdownParser reads, so parse(render(story)) gives back
the story's id, title, status, body and todos.
"""

from __future__ import annotations

from ..models.story import Story, Todo
from .story_format import format_story_name, story_file_name

DEFAULT_STATUS = "Backlog"


def _render_todo(todo: Todo) -> str:
    mark = "x" if todo.done else " "
    return f"- [{mark}] {todo.text.strip()}"


def render_story(story: Story) -> str:
    """Render a single story as a markdown document.

    Section order is fixed: heading, Story ID (omitted when empty), Status,
    Description, Acceptance Criteria. The result ends with one newline.
    """
    name = format_story_name(story.story_id, story.title)
    lines = [f"## Story: {name}" if name else "## Story:", ""]

    if story.story_id.strip():
        lines += ["### Story ID", story.story_id.strip(), ""]

    lines += ["### Status", story.status.strip() or DEFAULT_STATUS, ""]

    lines.append("### Description")
    body = story.body.strip("\n")
    if body:
        lines.append(body)
    lines.append("")

    lines.append("### Acceptance Criteria")
    lines.extend(_render_todo(todo) for todo in story.todos if todo.text.strip())

    return "\n".join(lines).rstrip("\n") + "\n"


def render_stories(stories: list[Story]) -> str:
    """Render several stories into one document, separated by blank lines."""
    return "\n".join(render_story(story) for story in stories)


def render_file(story: Story, max_length: int = 120) -> tuple[str, str]:
    """Return (file name, markdown) for a story snapshot."""
    return story_file_name(story, max_length), render_story(story)
