"""Story domain model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Todo(BaseModel):
    """A single checklist entry."""

    model_config = ConfigDict(frozen=True)

    text: str
    done: bool = False


class SourceLocation(BaseModel):
    """Where a story was found in its markdown document."""

    model_config = ConfigDict(frozen=True)

    file: str | None = None
    line: int = 0

    def __str__(self) -> str:
        return f"{self.file or '<string>'}:{self.line}"


class Story(BaseModel):
    """A task record parsed from markdown (or mapped from a remote card).

    Stories are read-only once built: the planner consumes them as input and
    never mutates them.
    """

    model_config = ConfigDict(frozen=True)

    story_id: str = ""  # e.g., "STORY-123"; empty when the markdown carries no id
    title: str = ""
    status: str = ""  # Canonical status, after normalization
    body: str = ""
    todos: list[Todo] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)

    # priority, unrecognized block keys and the "source" location
    meta: dict[str, Any] = Field(default_factory=dict)

    @property
    def priority(self) -> str | None:
        """Priority from metadata, if any."""
        value = self.meta.get("priority")
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def source(self) -> SourceLocation | None:
        """Source location recorded by the parser."""
        source = self.meta.get("source")
        if isinstance(source, SourceLocation):
            return source
        if isinstance(source, dict):
            return SourceLocation(**source)
        return None

    @property
    def key(self) -> str:
        """Short identifier for logs and summaries."""
        return self.story_id or self.title or "(untitled)"
