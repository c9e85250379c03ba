"""Concurrent plan executor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ..models.sync import Plan, StoryError
from ..repositories.protocol import BoardProvider

logger = logging.getLogger(__name__)


@dataclass
class ExecutionReport:
    """Tallies from applying a plan set."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[StoryError] = field(default_factory=list)


class PlanExecutor:
    """Applies plans with a bounded pool of worker tasks.

    Workers pull plans from a shared queue until it is empty, so a slow card
    never holds up plans another worker could finish. A failing step aborts
    only the remaining steps of its own plan.
    """

    def __init__(
        self,
        provider: BoardProvider,
        checklist_name: str,
        story_id_field_id: str | None = None,
        concurrency: int = 4,
    ) -> None:
        self.provider = provider
        self.checklist_name = checklist_name
        self.story_id_field_id = story_id_field_id
        self.concurrency = max(1, concurrency)

    async def execute(self, plans: list[Plan]) -> ExecutionReport:
        """Apply every plan that has changes; count the rest as skipped."""
        report = ExecutionReport()
        queue: asyncio.Queue[Plan] = asyncio.Queue()
        for plan in plans:
            if plan.has_changes:
                queue.put_nowait(plan)
            else:
                report.skipped += 1

        if queue.empty():
            return report

        workers = min(self.concurrency, queue.qsize())
        logger.debug("Executing %d plans with %d workers", queue.qsize(), workers)
        await asyncio.gather(*(self._worker(queue, report) for _ in range(workers)))
        return report

    async def _worker(self, queue: asyncio.Queue[Plan], report: ExecutionReport) -> None:
        while True:
            try:
                plan = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self.apply(plan)
            except Exception as e:
                story = plan.story
                report.failed += 1
                report.errors.append(StoryError(story.story_id, story.title, str(e)))
                logger.error("Failed to sync %s: %s", story.key, e)
            else:
                if plan.create:
                    report.created += 1
                else:
                    report.updated += 1

    async def apply(self, plan: Plan) -> str:
        """Apply one plan's steps in order.

        Returns:
            The id of the created or updated card.
        """
        story = plan.story

        if plan.create:
            card = await self.provider.create_item(plan.desired_name, story.body, plan.target_list)
            card_id = card.id
            logger.info("Created %s (%s) in %s", story.key, card_id, plan.target_list)
        else:
            card_id = plan.card_id or ""

        if plan.story_id_needs_update and self.story_id_field_id:
            await self.provider.set_story_id(card_id, self.story_id_field_id, story.story_id)

        if not plan.create and plan.content_changed:
            name = plan.desired_name if plan.name_needs_update else None
            await self.provider.update_item(card_id, name=name, desc=story.body)
            logger.info("Updated %s (%s)", story.key, card_id)

        if plan.labels_changed:
            await self.provider.set_card_labels(card_id, plan.label_ids)

        if plan.members_changed:
            await self.provider.set_card_members(card_id, plan.member_ids)

        if plan.move and not plan.create:
            await self.provider.move_item_to_status(card_id, plan.target_list)
            logger.info("Moved %s to %s", story.key, plan.target_list)

        if plan.checklist_changed:
            await self.provider.ensure_checklist(
                card_id, self.checklist_name, plan.desired_checklist
            )

        return card_id
