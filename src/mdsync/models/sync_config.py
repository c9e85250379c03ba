"""Configuration model for mdsync.yml."""

import json
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..sync.status import DEFAULT_STATUS_MAP, StatusMap, extend_status_map


def _parse_map(value: Any, name: str) -> dict[str, str]:
    """Normalize a mapping given as dict, JSON object string or "k:v,k:v".

    Keys are trimmed and lowercased; values are trimmed.
    """
    if value is None:
        return {}

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return {}
        if text.startswith("{"):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"{name} is not valid JSON: {e.msg}") from e
        else:
            pairs: dict[str, str] = {}
            for part in text.split(","):
                if not part.strip():
                    continue
                key, sep, val = part.partition(":")
                if not sep or not key.strip():
                    raise ValueError(f"{name} entry '{part.strip()}' must look like key:value")
                pairs[key] = val
            value = pairs

    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping")

    result: dict[str, str] = {}
    for key, val in value.items():
        clean_key = str(key).strip().lower()
        if not clean_key:
            raise ValueError(f"{name} keys cannot be empty")
        result[clean_key] = "" if val is None else str(val).strip()
    return result


def _parse_list(value: Any, name: str) -> list[str]:
    """Normalize a list given as list, JSON array string or comma string."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"{name} is not valid JSON: {e.msg}") from e
        else:
            value = text.split(",")
    if not isinstance(value, list | tuple):
        raise ValueError(f"{name} must be a list")
    return [str(item).strip() for item in value if str(item).strip()]


class SyncConfig(BaseModel):
    """Run configuration for both sync directions.

    Loaded from mdsync.yml; CLI flags override individual fields.
    """

    model_config = ConfigDict(validate_assignment=True)

    CONFIG_FILE: ClassVar[str] = "mdsync.yml"
    STORY_ID_FIELD_DEFAULT: ClassVar[str] = "Story ID"

    input_dir: str = "md"
    output_dir: str = "items"
    checklist_name: str = Field(default="Todos", min_length=1)
    status_map: dict[str, str] = Field(
        default_factory=lambda: extend_status_map(DEFAULT_STATUS_MAP)
    )
    priority_label_map: dict[str, str] = Field(default_factory=dict)
    member_alias_map: dict[str, str] = Field(default_factory=dict)
    required_labels: list[str] = Field(default_factory=list)
    story_id_field: str = STORY_ID_FIELD_DEFAULT  # Custom field id or name; "" disables
    concurrency: int = Field(default=4, ge=1)
    dry_run: bool = False
    strict_status: bool = False
    write_local: bool = False
    ensure_labels: bool = False
    require_story_id: bool = False
    label_color: str = "sky"

    @field_validator("status_map", mode="before")
    @classmethod
    def validate_status_map(cls, v: Any) -> dict[str, str]:
        """Normalize the status map, falling back to the default list map."""
        parsed = _parse_map(v, "status_map")
        return extend_status_map(parsed or DEFAULT_STATUS_MAP)

    @field_validator("priority_label_map", mode="before")
    @classmethod
    def validate_priority_label_map(cls, v: Any) -> dict[str, str]:
        """Normalize the priority -> label map."""
        return _parse_map(v, "priority_label_map")

    @field_validator("member_alias_map", mode="before")
    @classmethod
    def validate_member_alias_map(cls, v: Any) -> dict[str, str]:
        """Normalize the assignee alias -> member map."""
        return _parse_map(v, "member_alias_map")

    @field_validator("required_labels", mode="before")
    @classmethod
    def validate_required_labels(cls, v: Any) -> list[str]:
        """Normalize required labels into a list of names."""
        return _parse_list(v, "required_labels")

    @field_validator("story_id_field", mode="before")
    @classmethod
    def validate_story_id_field(cls, v: Any) -> str:
        """None and blanks disable the story id field."""
        return "" if v is None else str(v).strip()

    @classmethod
    def default(cls) -> "SyncConfig":
        """Create default configuration."""
        return cls()

    @property
    def status_lookup(self) -> StatusMap:
        """Status map with pre-canonicalized keys."""
        return StatusMap(self.status_map)

    def label_for_priority(self, priority: str | None) -> str | None:
        """Label a priority maps to, or None."""
        if not priority:
            return None
        return self.priority_label_map.get(priority.strip().lower()) or None

    def alias_member(self, name: str) -> str:
        """Rewrite an assignee name through the member alias map."""
        return self.member_alias_map.get(name.strip().lower(), name)

    def with_overrides(self, **overrides: Any) -> "SyncConfig":
        """Copy with non-None overrides applied and revalidated."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return SyncConfig.model_validate({**self.model_dump(), **updates})
