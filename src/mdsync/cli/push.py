"""Push command: markdown stories -> Trello board."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import Settings
from ..models.sync import SyncResult
from ..models.sync_config import SyncConfig
from ..repositories.protocol import BoardProvider
from ..repositories.trello import TrelloProvider
from ..services.config_service import ConfigService
from ..sync.engine import MarkdownToBoardEngine
from ..sync.errors import SyncError
from ..trello.client import TrelloClient, TrelloClientError
from .output import error, header, info, print_json, success, warning

logger = logging.getLogger(__name__)


def load_config(project_root: Path, overrides: dict[str, Any]) -> SyncConfig | None:
    """Load mdsync.yml and apply CLI overrides; prints and returns None on error."""
    config_service = ConfigService(project_root)
    config = config_service.get_config()
    if config_service.has_config_error:
        error(config_service.config_error or "Invalid configuration")
        return None
    try:
        return config.with_overrides(**overrides)
    except ValidationError as e:
        error(f"Invalid option: {e}")
        return None


async def _push(
    settings: Settings,
    config: SyncConfig,
    input_dir: Path,
    output_dir: Path,
    provider: BoardProvider | None,
) -> SyncResult:
    if provider is not None:
        return await MarkdownToBoardEngine(provider, config).run(input_dir, output_dir)

    async with TrelloClient(settings.trello_key, settings.trello_token) as client:
        trello = TrelloProvider(
            client, settings.trello_board_id, default_label_color=config.label_color
        )
        return await MarkdownToBoardEngine(trello, config).run(input_dir, output_dir)


def run_push(
    settings: Settings,
    overrides: dict[str, Any] | None = None,
    json_output: bool = False,
    provider: BoardProvider | None = None,
) -> int:
    """Sync markdown stories to the board.

    Args:
        settings: Application settings (project root, credentials)
        overrides: SyncConfig fields set from the command line
        json_output: Print a JSON summary instead of text
        provider: Board backend to use instead of Trello

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    project_root = settings.project_root
    config = load_config(project_root, overrides or {})
    if config is None:
        return 1

    if provider is None and not settings.has_credentials:
        error("Missing Trello credentials")
        info("Set TRELLO_KEY, TRELLO_TOKEN and TRELLO_BOARD_ID environment variables")
        return 1

    input_dir = project_root / config.input_dir
    output_dir = project_root / config.output_dir

    if not json_output:
        header(f"{'[DRY RUN] ' if config.dry_run else ''}Syncing {input_dir} to board...")

    try:
        result = asyncio.run(_push(settings, config, input_dir, output_dir, provider))
    except SyncError as e:
        error(str(e))
        return 1
    except TrelloClientError as e:
        error(f"Trello error: {e}")
        return 1

    if json_output:
        print_json(result.to_dict())
    else:
        _display_result(result)

    return 1 if result.has_errors else 0


def _display_result(result: SyncResult) -> None:
    """Print a text summary of a push."""
    for path in result.written_files:
        info(f"Wrote {path}")

    summary = result.dry_run_summary
    if summary is not None:
        for key in summary.created:
            info(f"Would create: {key}")
        for key in summary.updated:
            info(f"Would update: {key}")
        for key in summary.moved:
            info(f"Would move: {key}")
        for item in summary.missing_labels:
            warning(f"Missing labels for {item.story_id or item.title}: {', '.join(item.names)}")
        for item in summary.alias_warnings:
            warning(f"Unknown members for {item.story_id or item.title}: {', '.join(item.names)}")
        for item in summary.priority_warnings:
            warning(f"Priority {item.priority} label {item.label!r} is not on the board")
        if summary.missing_labels or summary.priority_warnings:
            info("Run with --ensure-labels to create missing labels")
        if summary.alias_warnings:
            info("Use --member-alias-map to map assignees to board members")

    for err in result.errors:
        error(f"{err.story_id or err.title}: {err.message}")

    print()
    verb = "Would sync" if result.dry_run else "Synced"
    message = (
        f"{verb} {result.story_count} stories from {result.processed_files} files: "
        f"{result.created} created, {result.updated} updated, {result.skipped} unchanged"
    )
    if result.failed:
        error(f"{message}, {result.failed} failed")
    else:
        success(message)
