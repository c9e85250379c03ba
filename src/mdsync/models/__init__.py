"""Data models."""

from .board import (
    BoardList,
    Card,
    CheckItem,
    Checklist,
    CustomField,
    CustomFieldItem,
    Label,
    Member,
)
from .story import SourceLocation, Story, Todo
from .sync import (
    DryRunStats,
    DryRunSummary,
    LabelDefinition,
    LabelEnsureResult,
    MissingNamesWarning,
    NameResolution,
    Plan,
    PlanDiagnostics,
    PriorityWarning,
    PullResult,
    StoryError,
    SyncResult,
    WrittenFile,
)
from .sync_config import SyncConfig

__all__ = [
    "BoardList",
    "Card",
    "CheckItem",
    "Checklist",
    "CustomField",
    "CustomFieldItem",
    "DryRunStats",
    "DryRunSummary",
    "Label",
    "LabelDefinition",
    "LabelEnsureResult",
    "Member",
    "MissingNamesWarning",
    "NameResolution",
    "Plan",
    "PlanDiagnostics",
    "PriorityWarning",
    "PullResult",
    "SourceLocation",
    "Story",
    "StoryError",
    "SyncConfig",
    "SyncResult",
    "Todo",
    "WrittenFile",
]
