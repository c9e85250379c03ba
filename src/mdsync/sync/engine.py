"""Sync engines for both directions.

MarkdownToBoardEngine: markdown files -> stories -> plans -> board mutations.
BoardToMarkdownEngine: board cards -> stories -> rendered markdown files.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..models.board import BoardList, Card
from ..models.story import Story, Todo
from ..models.sync import DryRunSummary, LabelDefinition, PullResult, SyncResult, WrittenFile
from ..models.sync_config import SyncConfig
from ..repositories.protocol import BoardProvider
from .card_index import CardLookupIndex
from .executor import PlanExecutor
from .parser import MarkdownParser, ParseOptions
from .planner import ReconciliationPlanner
from .renderer import DEFAULT_STATUS, render_story
from .status import normalize_status
from .story_format import parse_story_name, story_file_name, strip_story_id

logger = logging.getLogger(__name__)

CUSTOM_FIELD_ID_RE = re.compile(r"^[0-9a-f]{24}$")


def load_stories(input_dir: Path, config: SyncConfig) -> tuple[list[Story], int]:
    """Parse every markdown file under input_dir, in path order.

    Returns:
        (stories, number of files read)

    Raises:
        MarkdownParseError: On the first malformed document.
    """
    if not input_dir.exists():
        logger.warning("Input directory %s does not exist", input_dir)
        return [], 0

    files = sorted(p for p in input_dir.rglob("*.md") if p.is_file())
    stories: list[Story] = []
    for path in files:
        options = ParseOptions(
            status_map=config.status_lookup,
            strict_status=config.strict_status,
            require_story_id=config.require_story_id,
            file_path=path.relative_to(input_dir).as_posix(),
        )
        stories.extend(MarkdownParser(options).parse(path.read_text(encoding="utf-8")))
    return stories, len(files)


def write_story_files(stories: list[Story], output_dir: Path) -> list[str]:
    """Render stories to one file each; returns the paths written."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[str] = []
    used: set[str] = set()
    for story in stories:
        name = _unique_name(story_file_name(story), used, str(len(used)))
        path = output_dir / name
        path.write_text(render_story(story), encoding="utf-8")
        written.append(str(path))
    return written


def _unique_name(name: str, used: set[str], suffix: str) -> str:
    """Return name, or name with -suffix before the extension if taken."""
    candidate = name
    if candidate.lower() in used:
        stem, dot, ext = name.rpartition(".")
        candidate = f"{stem}-{suffix}{dot}{ext}" if dot else f"{name}-{suffix}"
    used.add(candidate.lower())
    return candidate


async def resolve_story_id_field(provider: BoardProvider, field: str) -> str | None:
    """Resolve a configured story id field (id or name) to a custom field id."""
    field = field.strip()
    if not field:
        return None
    if CUSTOM_FIELD_ID_RE.match(field):
        return field

    wanted = field.lower()
    for custom_field in await provider.get_custom_fields():
        if custom_field.name.strip().lower() == wanted:
            logger.debug("Story id field %r is %s", field, custom_field.id)
            return custom_field.id
    logger.debug("Custom field %r not found; story ids will not be written", field)
    return None


def _list_names(lists: list[BoardList]) -> dict[str, str]:
    return {board_list.id: board_list.name for board_list in lists}


class MarkdownToBoardEngine:
    """Pushes a directory of markdown stories to the board."""

    def __init__(self, provider: BoardProvider, config: SyncConfig) -> None:
        """Initialize the engine.

        Args:
            provider: Remote board backend
            config: Run configuration (already merged with CLI overrides)
        """
        self.provider = provider
        self.config = config

    def label_definitions(self, stories: list[Story]) -> list[LabelDefinition]:
        """Labels to ensure: story labels, required labels and priority labels.

        Deduplicated case-insensitively, sorted by name.
        """
        names: dict[str, str] = {}
        candidates: list[str] = list(self.config.required_labels)
        candidates.extend(self.config.priority_label_map.values())
        for story in stories:
            candidates.extend(story.labels)
        for name in candidates:
            if name.strip():
                names.setdefault(name.strip().lower(), name.strip())
        return [
            LabelDefinition(name=name, color=self.config.label_color)
            for name in sorted(names.values(), key=str.lower)
        ]

    async def run(self, input_dir: Path, output_dir: Path | None = None) -> SyncResult:
        """Run a markdown -> board sync.

        Args:
            input_dir: Directory of markdown files
            output_dir: Where local snapshots go when write_local is set

        Returns:
            SyncResult with per-story tallies and errors

        Raises:
            MarkdownParseError: Malformed input (nothing is written remotely)
            UnmappedStatusError: Unmapped status under strict mode
            DuplicateStoryIdError: Ambiguous story ids, locally or on the board
        """
        config = self.config
        logger.info(
            "Sync init: input=%s concurrency=%d dry_run=%s strict_status=%s",
            input_dir,
            config.concurrency,
            config.dry_run,
            config.strict_status,
        )

        stories, file_count = load_stories(input_dir, config)
        result = SyncResult(
            dry_run=config.dry_run, processed_files=file_count, story_count=len(stories)
        )
        logger.info("Parsed %d stories from %d files", len(stories), file_count)

        if config.write_local:
            target = output_dir or Path(config.output_dir)
            result.written_files = write_story_files(stories, target)
            logger.info("Wrote %d local snapshots to %s", len(result.written_files), target)

        field_id = await resolve_story_id_field(self.provider, config.story_id_field)
        planner = ReconciliationPlanner(self.provider, config, field_id)
        planner.check_stories(stories)

        if config.ensure_labels:
            definitions = self.label_definitions(stories)
            ensured = await self.provider.ensure_labels(definitions, create=not config.dry_run)
            logger.info(
                "Labels: %d created, %d existing, %d missing",
                len(ensured.created),
                len(ensured.existing),
                len(ensured.missing),
            )

        lists = await self.provider.get_lists()
        cards = await self.provider.list_items()
        index = CardLookupIndex(cards, field_id)
        plans, diagnostics = await planner.plan(stories, index, _list_names(lists))

        if config.dry_run:
            summary = DryRunSummary.from_plans(plans, diagnostics)
            result.dry_run_summary = summary
            result.created = len(summary.created)
            result.updated = len(summary.updated)
            result.skipped = len(summary.skipped)
            logger.info(
                "Dry run: %d to create, %d to update, %d unchanged",
                result.created,
                result.updated,
                result.skipped,
            )
            return result

        executor = PlanExecutor(
            self.provider, config.checklist_name, field_id, config.concurrency
        )
        report = await executor.execute(plans)
        result.created = report.created
        result.updated = report.updated
        result.skipped = report.skipped
        result.failed = report.failed
        result.errors = report.errors
        logger.info(
            "Sync done: created=%d updated=%d skipped=%d failed=%d",
            result.created,
            result.updated,
            result.skipped,
            result.failed,
        )
        return result


def _split_filter(value: str | None) -> set[str]:
    """Comma-separated filter -> lowercased set (empty means no filter)."""
    return {part.strip().lower() for part in (value or "").split(",") if part.strip()}


def card_to_story(
    card: Card,
    list_name: str,
    checklist_name: str,
    story_id_field_id: str | None = None,
) -> Story:
    """Map a card to a Story.

    The id comes from the story id field, else the first non-empty custom
    field value, else the card name.
    """
    parsed = parse_story_name(card.name)
    story_id = ""
    if story_id_field_id:
        story_id = card.custom_field_text(story_id_field_id)
    if not story_id:
        story_id = card.first_custom_field_text() or parsed.story_id

    checklist = card.checklist_named(checklist_name)
    todos = (
        [Todo(text=item.name.strip(), done=item.done) for item in checklist.ordered_items]
        if checklist
        else []
    )

    title = parsed.title
    if story_id and not parsed.story_id:
        title = strip_story_id(title, story_id)

    return Story(
        story_id=story_id.strip(),
        title=title,
        status=list_name,
        body=card.desc.strip(),
        todos=[todo for todo in todos if todo.text],
        labels=card.label_names,
        meta={"card_id": card.id},
    )


def roundtrip_mismatches(story: Story, parsed: list[Story]) -> list[str]:
    """Fields that did not survive render -> parse (empty when faithful)."""
    if len(parsed) != 1:
        return [f"expected 1 story, parsed {len(parsed)}"]
    back = parsed[0]
    expected_status = normalize_status(story.status.strip() or DEFAULT_STATUS)
    mismatches = []
    if back.story_id != story.story_id:
        mismatches.append("story_id")
    if back.title != story.title:
        mismatches.append("title")
    if back.status != re.sub(r"\s+", " ", expected_status).strip():
        mismatches.append("status")
    if back.body != story.body:
        mismatches.append("body")
    if back.todos != story.todos:
        mismatches.append("todos")
    return mismatches


class BoardToMarkdownEngine:
    """Pulls board cards into one markdown file per story."""

    def __init__(self, provider: BoardProvider, config: SyncConfig) -> None:
        self.provider = provider
        self.config = config

    async def run(
        self,
        output_dir: Path,
        lists: str | None = None,
        labels: str | None = None,
        story_ids: str | None = None,
    ) -> PullResult:
        """Render matching cards to output_dir.

        Args:
            output_dir: Destination directory (created if missing)
            lists: Comma-separated list names to include
            labels: Comma-separated label names; a card needs any one of them
            story_ids: Comma-separated story ids to include

        Returns:
            PullResult listing the written files and any round-trip errors
        """
        list_filter = _split_filter(lists)
        label_filter = _split_filter(labels)
        id_filter = _split_filter(story_ids)

        board_lists = await self.provider.get_lists()
        list_names = _list_names(board_lists)
        cards = await self.provider.list_items()
        field_id = await resolve_story_id_field(self.provider, self.config.story_id_field)

        result = PullResult(total_cards=len(cards))
        selected: list[tuple[Story, Card]] = []
        for card in cards:
            list_name = list_names.get(card.id_list, "")
            story = card_to_story(card, list_name, self.config.checklist_name, field_id)
            if list_filter and list_name.strip().lower() not in list_filter:
                continue
            if label_filter and not any(n.lower() in label_filter for n in story.labels):
                continue
            if id_filter and story.story_id.lower() not in id_filter:
                continue
            selected.append((story, card))

        selected.sort(key=lambda pair: (pair[0].story_id, pair[0].title, pair[1].id))
        result.filtered_cards = len(selected)
        logger.info("Pulling %d of %d cards into %s", len(selected), len(cards), output_dir)

        output_dir.mkdir(parents=True, exist_ok=True)
        parser = MarkdownParser()
        used: set[str] = set()
        for story, card in selected:
            name = _unique_name(story_file_name(story), used, card.id[:8])
            markdown = render_story(story)

            mismatches = roundtrip_mismatches(story, parser.parse(markdown))
            if mismatches:
                message = f"{name}: round-trip mismatch in {', '.join(mismatches)}"
                logger.warning(message)
                result.errors.append(message)

            path = output_dir / name
            path.write_text(markdown, encoding="utf-8")
            result.files.append(
                WrittenFile(
                    file=str(path),
                    card_id=card.id,
                    story_id=story.story_id,
                    title=story.title,
                    status=story.status,
                )
            )

        logger.info("Wrote %d files", result.written)
        return result
