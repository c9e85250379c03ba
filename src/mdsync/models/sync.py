"""Sync-related data models for markdown <-> board reconciliation."""

from dataclasses import dataclass, field
from typing import Any

from .board import Card
from .story import Story, Todo


@dataclass
class NameResolution:
    """Result of resolving label or member names to board ids."""

    ids: dict[str, str] = field(default_factory=dict)  # requested name -> remote id
    missing: list[str] = field(default_factory=list)  # names with no match on the board


@dataclass
class LabelDefinition:
    """A label to make sure exists on the board."""

    name: str
    color: str | None = None


@dataclass
class LabelEnsureResult:
    """Result of an ensure_labels call."""

    created: list[str] = field(default_factory=list)  # Label ids created
    existing: list[str] = field(default_factory=list)  # Label ids already present
    missing: list[str] = field(default_factory=list)  # Names absent and not created


@dataclass
class Plan:
    """Intended remote mutations for a single story in a single run.

    Built by the planner, consumed once by the executor. At most one plan
    references a given card.
    """

    story: Story
    card: Card | None = None
    target_list: str = ""
    desired_name: str = ""

    create: bool = False
    name_needs_update: bool = False
    content_changed: bool = False
    move: bool = False
    checklist_changed: bool = False
    labels_changed: bool = False
    members_changed: bool = False
    story_id_needs_update: bool = False

    desired_checklist: list[Todo] = field(default_factory=list)
    label_ids: list[str] = field(default_factory=list)
    member_ids: list[str] = field(default_factory=list)
    missing_labels: list[str] = field(default_factory=list)
    missing_members: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Whether any remote call is needed for this story."""
        return (
            self.create
            or self.content_changed
            or self.move
            or self.checklist_changed
            or self.labels_changed
            or self.members_changed
        )

    @property
    def card_id(self) -> str | None:
        return self.card.id if self.card is not None else None


@dataclass
class StoryError:
    """A per-story failure recorded during execution."""

    story_id: str
    title: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"storyId": self.story_id, "title": self.title, "message": self.message}


@dataclass
class PriorityWarning:
    """A story priority whose mapped label is not on the board."""

    story_id: str
    title: str
    priority: str
    label: str


@dataclass
class MissingNamesWarning:
    """Labels or members of a story that could not be resolved."""

    story_id: str
    title: str
    names: list[str] = field(default_factory=list)


@dataclass
class DryRunStats:
    """Aggregate diagnostic counters collected during planning."""

    priorities_with_mappings: int = 0
    priorities_missing_labels: int = 0
    stories_with_missing_labels: int = 0
    stories_with_alias_issues: int = 0


@dataclass
class PlanDiagnostics:
    """Diagnostics gathered while planning; reported, never applied."""

    priority_warnings: list[PriorityWarning] = field(default_factory=list)
    missing_labels: list[MissingNamesWarning] = field(default_factory=list)
    alias_warnings: list[MissingNamesWarning] = field(default_factory=list)
    stats: DryRunStats = field(default_factory=DryRunStats)


@dataclass
class DryRunSummary:
    """What a live run would have done, derived purely from the plan set."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    moved: list[str] = field(default_factory=list)
    checklist_changes: list[str] = field(default_factory=list)
    label_changes: list[str] = field(default_factory=list)
    member_changes: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    priority_warnings: list[PriorityWarning] = field(default_factory=list)
    missing_labels: list[MissingNamesWarning] = field(default_factory=list)
    alias_warnings: list[MissingNamesWarning] = field(default_factory=list)
    stats: DryRunStats = field(default_factory=DryRunStats)

    @classmethod
    def from_plans(cls, plans: list[Plan], diagnostics: PlanDiagnostics) -> "DryRunSummary":
        """Build a summary from plans and planning diagnostics."""
        summary = cls(
            priority_warnings=list(diagnostics.priority_warnings),
            missing_labels=list(diagnostics.missing_labels),
            alias_warnings=list(diagnostics.alias_warnings),
            stats=diagnostics.stats,
        )
        for plan in plans:
            key = plan.story.key
            if not plan.has_changes:
                summary.skipped.append(key)
                continue
            if plan.create:
                summary.created.append(key)
            else:
                summary.updated.append(key)
            if plan.move:
                summary.moved.append(key)
            if plan.checklist_changed:
                summary.checklist_changes.append(key)
            if plan.labels_changed:
                summary.label_changes.append(key)
            if plan.members_changed:
                summary.member_changes.append(key)
        return summary


@dataclass
class SyncResult:
    """Result of a markdown -> board run."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[StoryError] = field(default_factory=list)
    dry_run: bool = False
    processed_files: int = 0
    story_count: int = 0
    written_files: list[str] = field(default_factory=list)  # Local snapshot files
    dry_run_summary: DryRunSummary | None = None

    @property
    def has_errors(self) -> bool:
        """Whether any story failed."""
        return self.failed > 0

    def to_dict(self) -> dict[str, Any]:
        """Summary suitable for JSON output."""
        data: dict[str, Any] = {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
            "dryRun": self.dry_run,
            "processedFiles": self.processed_files,
            "storyCount": self.story_count,
            "writtenFiles": list(self.written_files),
        }
        if self.dry_run_summary is not None:
            summary = self.dry_run_summary
            data["dryRunSummary"] = {
                "created": summary.created,
                "updated": summary.updated,
                "moved": summary.moved,
                "checklistChanges": summary.checklist_changes,
                "labelChanges": summary.label_changes,
                "memberChanges": summary.member_changes,
                "skipped": summary.skipped,
                "stats": {
                    "prioritiesWithMappings": summary.stats.priorities_with_mappings,
                    "prioritiesMissingLabels": summary.stats.priorities_missing_labels,
                    "storiesWithMissingLabels": summary.stats.stories_with_missing_labels,
                    "storiesWithAliasIssues": summary.stats.stories_with_alias_issues,
                },
            }
        return data


@dataclass
class WrittenFile:
    """A markdown file produced from a card."""

    file: str
    card_id: str
    story_id: str
    title: str
    status: str


@dataclass
class PullResult:
    """Result of a board -> markdown run."""

    files: list[WrittenFile] = field(default_factory=list)
    total_cards: int = 0
    filtered_cards: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def written(self) -> int:
        return len(self.files)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
