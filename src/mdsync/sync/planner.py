"""Reconciliation planner: computes per-story Plans against the board."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from ..models.board import Card
from ..models.story import Story, Todo
from ..models.sync import (
    MissingNamesWarning,
    Plan,
    PlanDiagnostics,
    PriorityWarning,
)
from ..models.sync_config import SyncConfig
from ..repositories.protocol import BoardProvider
from .card_index import CardLookupIndex, normalize_key
from .errors import DuplicateStoryIdError, UnmappedStatusError
from .renderer import DEFAULT_STATUS
from .status import StatusMap
from .story_format import card_name_for_story, parse_story_name

logger = logging.getLogger(__name__)

LABEL_GUIDANCE = "run with --ensure-labels to create missing labels"
MEMBER_GUIDANCE = "configure --member-alias-map to map assignees to board members"


def _checklist_key(items: Iterable[tuple[str, bool]]) -> list[tuple[str, bool]]:
    """Comparable checklist: stripped text and state, blank entries dropped."""
    return [(text.strip(), done) for text, done in items if text.strip()]


class _NameCache:
    """Name -> id resolutions shared by every story in a run."""

    def __init__(self) -> None:
        self.ids: dict[str, str] = {}
        self.missing: set[str] = set()

    def unknown(self, names: Iterable[str]) -> list[str]:
        """Names not resolved yet, deduplicated case-insensitively."""
        pending: dict[str, str] = {}
        for name in names:
            key = name.strip().lower()
            if key and key not in self.ids and key not in self.missing:
                pending.setdefault(key, name.strip())
        return list(pending.values())

    def record(self, requested: list[str], ids: Mapping[str, str], missing: list[str]) -> None:
        resolved = {name.strip().lower(): value for name, value in ids.items()}
        for name in requested:
            key = name.lower()
            if key in resolved:
                self.ids[key] = resolved[key]
            else:
                self.missing.add(key)
        self.missing.update(name.strip().lower() for name in missing)

    def split(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Partition names into (ids, missing names), keeping first-seen order."""
        ids: list[str] = []
        missing: list[str] = []
        for name in names:
            key = name.strip().lower()
            if not key:
                continue
            value = self.ids.get(key)
            if value is None:
                if name.strip() not in missing:
                    missing.append(name.strip())
            elif value not in ids:
                ids.append(value)
        return ids, missing


class ReconciliationPlanner:
    """Builds one Plan per story.

    Matching consumes a CardLookupIndex; every card is claimed by at most one
    plan. Label and member names are resolved in one batched call per kind
    and cached for the lifetime of the planner.
    """

    def __init__(
        self,
        provider: BoardProvider,
        config: SyncConfig,
        story_id_field_id: str | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.status_map: StatusMap = config.status_lookup
        self.story_id_field_id = story_id_field_id
        self._labels = _NameCache()
        self._members = _NameCache()

    # --- Status ---

    def target_list(self, story: Story) -> str:
        """List name the story belongs in.

        Raises:
            UnmappedStatusError: In strict mode, when the status is not mapped.
        """
        status = story.status.strip() or DEFAULT_STATUS
        resolved = self.status_map.resolve(status)
        if resolved is not None:
            return resolved
        if self.config.strict_status:
            raise UnmappedStatusError(status, story.story_id, story.title)
        return status

    def check_stories(self, stories: list[Story]) -> dict[int, str]:
        """Validate the story set before any remote write.

        Returns:
            Target list name per story, keyed by position.

        Raises:
            UnmappedStatusError: In strict mode, on the first unmapped status.
            DuplicateStoryIdError: If two stories share a story id.
        """
        seen: dict[str, Story] = {}
        for story in stories:
            key = normalize_key(story.story_id)
            if not key:
                continue
            if key in seen:
                raise DuplicateStoryIdError(story.story_id)
            seen[key] = story

        return {i: self.target_list(story) for i, story in enumerate(stories)}

    # --- Name resolution ---

    def desired_members(self, story: Story) -> list[str]:
        """Assignee names after alias rewriting."""
        return [self.config.alias_member(name) for name in story.assignees if name.strip()]

    async def resolve_names(self, stories: list[Story]) -> None:
        """Resolve every label and member name used by stories, batched."""
        label_names: list[str] = []
        member_names: list[str] = []
        for story in stories:
            label_names.extend(story.labels)
            priority_label = self.config.label_for_priority(story.priority)
            if priority_label:
                label_names.append(priority_label)
            member_names.extend(self.desired_members(story))

        pending = self._labels.unknown(label_names)
        if pending:
            logger.debug("Resolving %d label names", len(pending))
            result = await self.provider.resolve_label_ids(pending)
            self._labels.record(pending, result.ids, result.missing)

        pending = self._members.unknown(member_names)
        if pending:
            logger.debug("Resolving %d member names", len(pending))
            result = await self.provider.resolve_member_ids(pending)
            self._members.record(pending, result.ids, result.missing)

    # --- Planning ---

    def match_cards(self, stories: list[Story], index: CardLookupIndex) -> list[Card | None]:
        """Match stories to cards: every id match first, then name fallbacks.

        Raises:
            DuplicateStoryIdError: If a story id resolves to several cards.
        """
        matches: list[Card | None] = [None] * len(stories)
        for i, story in enumerate(stories):
            if story.story_id:
                matches[i] = index.take_by_story_id(story.story_id)
        for i, story in enumerate(stories):
            if matches[i] is None:
                matches[i] = index.take_by_name(story.story_id, story.title)
        return matches

    async def plan(
        self,
        stories: list[Story],
        index: CardLookupIndex,
        list_names: Mapping[str, str],
    ) -> tuple[list[Plan], PlanDiagnostics]:
        """Compute plans for stories.

        Args:
            stories: Parsed stories, in document order.
            index: Lookup index over the board's cards; drained by this call.
            list_names: List id -> list name, for the cards' current lists.

        Returns:
            (plans in story order, diagnostics)
        """
        targets = self.check_stories(stories)
        matches = self.match_cards(stories, index)
        self._report_unmatched(index)
        await self.resolve_names(stories)

        diagnostics = PlanDiagnostics()
        plans = []
        for i, story in enumerate(stories):
            card = matches[i]
            plan = self._plan_story(story, card, targets[i], list_names, diagnostics)
            plans.append(plan)
            if card is None:
                logger.debug("%s: create in %s", story.key, plan.target_list)
            elif plan.has_changes:
                logger.debug("%s: update card %s", story.key, card.id)
        return plans, diagnostics

    @staticmethod
    def _report_unmatched(index: CardLookupIndex) -> None:
        """Log board cards that no story claimed; they are left untouched."""
        leftover = index.remaining()
        if not leftover:
            return
        tracked = sorted(
            {story_id for card in leftover for story_id in index.story_ids_of(card)}
        )
        logger.info(
            "%d cards have no matching story (%d with story ids: %s)",
            len(leftover),
            len(tracked),
            ", ".join(tracked) or "none",
        )

    def _plan_story(
        self,
        story: Story,
        card: Card | None,
        target: str,
        list_names: Mapping[str, str],
        diagnostics: PlanDiagnostics,
    ) -> Plan:
        desired_name = card_name_for_story(story)
        desired_checklist = [
            Todo(text=todo.text.strip(), done=todo.done)
            for todo in story.todos
            if todo.text.strip()
        ]
        label_ids, missing_labels = self._labels.split(story.labels)
        member_ids, missing_members = self._members.split(self.desired_members(story))

        plan = Plan(
            story=story,
            card=card,
            target_list=target,
            desired_name=desired_name,
            desired_checklist=desired_checklist,
            label_ids=label_ids,
            member_ids=member_ids,
            missing_labels=missing_labels,
            missing_members=missing_members,
        )

        if card is None:
            plan.create = True
            plan.content_changed = True
            plan.checklist_changed = bool(desired_checklist)
            plan.labels_changed = bool(label_ids)
            plan.members_changed = bool(member_ids)
            plan.story_id_needs_update = bool(story.story_id and self.story_id_field_id)
        else:
            plan.name_needs_update = self._name_differs(story, card, desired_name)
            desc_differs = story.body.strip() != card.desc.strip()
            plan.content_changed = plan.name_needs_update or desc_differs

            current_list = list_names.get(card.id_list, "")
            plan.move = normalize_key(current_list) != normalize_key(target)

            existing = card.checklist_named(self.config.checklist_name)
            current_items = (
                [(item.name, item.done) for item in existing.ordered_items] if existing else []
            )
            plan.checklist_changed = _checklist_key(current_items) != _checklist_key(
                (todo.text, todo.done) for todo in desired_checklist
            )

            plan.labels_changed = set(label_ids) != card.label_ids
            plan.members_changed = set(member_ids) != set(card.id_members)

            if story.story_id and self.story_id_field_id:
                current_id = card.custom_field_text(self.story_id_field_id)
                plan.story_id_needs_update = current_id != story.story_id

        self._report(story, plan, diagnostics)
        return plan

    @staticmethod
    def _name_differs(story: Story, card: Card, desired_name: str) -> bool:
        if story.story_id:
            return normalize_key(desired_name) != normalize_key(card.name)
        return normalize_key(story.title) != normalize_key(parse_story_name(card.name).title)

    def _report(self, story: Story, plan: Plan, diagnostics: PlanDiagnostics) -> None:
        """Record resolution warnings and priority cross-checks."""
        stats = diagnostics.stats

        if plan.missing_labels:
            stats.stories_with_missing_labels += 1
            diagnostics.missing_labels.append(
                MissingNamesWarning(story.story_id, story.title, list(plan.missing_labels))
            )
            logger.warning(
                "%s: labels not found on board: %s (%s)",
                story.key,
                ", ".join(plan.missing_labels),
                LABEL_GUIDANCE,
            )

        if plan.missing_members:
            stats.stories_with_alias_issues += 1
            diagnostics.alias_warnings.append(
                MissingNamesWarning(story.story_id, story.title, list(plan.missing_members))
            )
            logger.warning(
                "%s: members not found on board: %s (%s)",
                story.key,
                ", ".join(plan.missing_members),
                MEMBER_GUIDANCE,
            )

        priority = story.priority
        label = self.config.label_for_priority(priority)
        if priority and label:
            stats.priorities_with_mappings += 1
            if label.strip().lower() not in self._labels.ids:
                stats.priorities_missing_labels += 1
                diagnostics.priority_warnings.append(
                    PriorityWarning(story.story_id, story.title, priority, label)
                )
                logger.warning(
                    "%s: priority %s maps to label %s, which is not on the board (%s)",
                    story.key,
                    priority,
                    label,
                    LABEL_GUIDANCE,
                )
