"""Protocol for remote board backends."""

from typing import Protocol

from ..models.board import BoardList, Card, CustomField
from ..models.story import Todo
from ..models.sync import LabelDefinition, LabelEnsureResult, NameResolution


class BoardProvider(Protocol):
    """Interface for a remote kanban board bound to a single board.

    All operations are coroutines and may be retried by the implementation's
    backoff policy. Arguments and results are plain ids and name strings (or
    the board models wrapping them).

    Lists are addressed by name; the provider resolves names to list ids.
    """

    async def get_lists(self) -> list[BoardList]:
        """Open lists (status columns) on the board, in board order."""
        ...

    async def list_items(self) -> list[Card]:
        """All open cards with labels, checklists and custom field values.

        Used as the single bulk fetch a sync run matches against.
        """
        ...

    async def get_custom_fields(self) -> list[CustomField]:
        """Custom field definitions on the board."""
        ...

    async def find_item_by_story_id_or_title(
        self, story_id: str, title: str, story_id_field_id: str | None = None
    ) -> Card | None:
        """Find one card by story id, falling back to its title.

        Returns:
            The matching card, or None.
        """
        ...

    async def create_item(self, name: str, desc: str, list_name: str) -> Card:
        """Create a card in the named list.

        Raises:
            TrelloClientError: If the list does not exist or the call fails.
        """
        ...

    async def update_item(
        self, card_id: str, name: str | None = None, desc: str | None = None
    ) -> None:
        """Update a card's name and/or description. None leaves a field as is."""
        ...

    async def move_item_to_status(self, card_id: str, list_name: str) -> None:
        """Move a card to the named list."""
        ...

    async def set_story_id(self, card_id: str, field_id: str, story_id: str) -> None:
        """Write the story id into the card's custom field."""
        ...

    async def ensure_checklist(self, card_id: str, name: str, items: list[Todo]) -> None:
        """Replace the card's checklist called name with items, in order."""
        ...

    async def resolve_label_ids(self, names: list[str]) -> NameResolution:
        """Resolve label names to ids (case-insensitive)."""
        ...

    async def set_card_labels(self, card_id: str, label_ids: list[str]) -> None:
        """Set the card's labels to exactly label_ids."""
        ...

    async def resolve_member_ids(self, names: list[str]) -> NameResolution:
        """Resolve usernames or full names to member ids (case-insensitive)."""
        ...

    async def set_card_members(self, card_id: str, member_ids: list[str]) -> None:
        """Set the card's members to exactly member_ids."""
        ...

    async def ensure_labels(
        self, labels: list[LabelDefinition], create: bool = True
    ) -> LabelEnsureResult:
        """Make sure labels exist on the board.

        Args:
            labels: Labels to check.
            create: When False only report; nothing is created.
        """
        ...
