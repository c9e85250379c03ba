"""Pull command: Trello board -> markdown files."""

import asyncio
import logging
from pathlib import Path

from ..config import Settings
from ..models.sync import PullResult
from ..models.sync_config import SyncConfig
from ..repositories.protocol import BoardProvider
from ..repositories.trello import TrelloProvider
from ..sync.engine import BoardToMarkdownEngine
from ..sync.errors import SyncError
from ..trello.client import TrelloClient, TrelloClientError
from .output import error, header, info, print_json, success, warning
from .push import load_config

logger = logging.getLogger(__name__)


async def _pull(
    settings: Settings,
    config: SyncConfig,
    output_dir: Path,
    filters: dict[str, str | None],
    provider: BoardProvider | None,
) -> PullResult:
    if provider is not None:
        return await BoardToMarkdownEngine(provider, config).run(output_dir, **filters)

    async with TrelloClient(settings.trello_key, settings.trello_token) as client:
        trello = TrelloProvider(client, settings.trello_board_id)
        return await BoardToMarkdownEngine(trello, config).run(output_dir, **filters)


def run_pull(
    settings: Settings,
    output_dir: Path | None = None,
    lists: str | None = None,
    labels: str | None = None,
    story_ids: str | None = None,
    json_output: bool = False,
    provider: BoardProvider | None = None,
) -> int:
    """Write board cards to markdown files.

    Args:
        settings: Application settings (project root, credentials)
        output_dir: Destination directory (default: output_dir from mdsync.yml)
        lists: Comma-separated list names to include
        labels: Comma-separated label names to include
        story_ids: Comma-separated story ids to include
        json_output: Print a JSON summary instead of text
        provider: Board backend to use instead of Trello

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    config = load_config(settings.project_root, {})
    if config is None:
        return 1

    if provider is None and not settings.has_credentials:
        error("Missing Trello credentials")
        info("Set TRELLO_KEY, TRELLO_TOKEN and TRELLO_BOARD_ID environment variables")
        return 1

    target = output_dir or settings.project_root / config.output_dir
    filters = {"lists": lists, "labels": labels, "story_ids": story_ids}

    if not json_output:
        header(f"Pulling board into {target}...")

    try:
        result = asyncio.run(_pull(settings, config, target, filters, provider))
    except SyncError as e:
        error(str(e))
        return 1
    except TrelloClientError as e:
        error(f"Trello error: {e}")
        return 1

    if json_output:
        print_json(
            {
                "written": result.written,
                "totalCards": result.total_cards,
                "filteredCards": result.filtered_cards,
                "files": [
                    {
                        "file": f.file,
                        "cardId": f.card_id,
                        "storyId": f.story_id,
                        "title": f.title,
                        "status": f.status,
                    }
                    for f in result.files
                ],
                "errors": result.errors,
            }
        )
    else:
        for written in result.files:
            info(f"{written.status}: {Path(written.file).name}")
        for message in result.errors:
            warning(message)
        print()
        success(
            f"Wrote {result.written} files "
            f"({result.filtered_cards} of {result.total_cards} cards matched)"
        )

    return 1 if result.has_errors else 0
