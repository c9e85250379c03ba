"""Application settings."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, read from MDSYNC_* environment variables.

    Trello credentials also fall back to the conventional TRELLO_* names.
    """

    project_root: Path = Field(
        default=Path(),
        description="Path to project root containing mdsync.yml",
    )

    trello_key: str = Field(
        default="",
        validation_alias=AliasChoices("trello_key", "MDSYNC_TRELLO_KEY", "TRELLO_KEY"),
        description="Trello API key",
    )

    trello_token: str = Field(
        default="",
        validation_alias=AliasChoices("trello_token", "MDSYNC_TRELLO_TOKEN", "TRELLO_TOKEN"),
        description="Trello API token",
    )

    trello_board_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "trello_board_id", "MDSYNC_TRELLO_BOARD_ID", "TRELLO_BOARD_ID"
        ),
        description="Id of the board to sync with",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    model_config = {
        "env_prefix": "MDSYNC_",
        "populate_by_name": True,
    }

    @property
    def has_credentials(self) -> bool:
        """Whether key, token and board id are all set."""
        return bool(self.trello_key and self.trello_token and self.trello_board_id)
