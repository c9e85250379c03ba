"""Trello implementation of the BoardProvider protocol."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..models.board import BoardList, Card, CustomField, Label, Member
from ..models.story import Todo
from ..models.sync import LabelDefinition, LabelEnsureResult, NameResolution
from ..sync.card_index import CardLookupIndex
from ..trello.client import TrelloClient, TrelloNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 30.0
DEFAULT_LABEL_COLOR = "sky"


class _TimedCache:
    """A single cached value that expires after ttl seconds."""

    def __init__(self, ttl: float) -> None:
        self.ttl = ttl
        self._value: Any = None
        self._created_at: float | None = None

    def get(self) -> Any:
        if self._created_at is None or time.monotonic() - self._created_at >= self.ttl:
            return None
        return self._value

    def set(self, value: Any) -> None:
        self._value = value
        self._created_at = time.monotonic()

    def clear(self) -> None:
        self._created_at = None


class TrelloProvider:
    """Board provider backed by the Trello REST API.

    Bound to a single board. Lists, labels and members are cached for
    cache_ttl seconds; label and member name lookups are cached for the
    provider's lifetime.
    """

    def __init__(
        self,
        client: TrelloClient,
        board_id: str,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        default_label_color: str = DEFAULT_LABEL_COLOR,
    ) -> None:
        self.client = client
        self.board_id = board_id
        self.default_label_color = default_label_color
        self._lists = _TimedCache(cache_ttl)
        self._labels = _TimedCache(cache_ttl)
        self._members = _TimedCache(cache_ttl)
        self._label_ids: dict[str, str] = {}  # lowercased name -> label id
        self._member_ids: dict[str, str] = {}  # lowercased username/full name -> member id
        self._story_card_ids: dict[str, str] = {}  # lowercased story id -> card id

    async def _cached(self, cache: _TimedCache, loader: Callable[[], Awaitable[Any]]) -> Any:
        value = cache.get()
        if value is None:
            value = await loader()
            cache.set(value)
        return value

    # --- Board reads ---

    async def get_lists(self) -> list[BoardList]:
        async def load() -> list[BoardList]:
            data = await self.client.get(
                f"/boards/{self.board_id}/lists", cards="none", filter="open"
            )
            return [BoardList.model_validate(item) for item in data]

        return await self._cached(self._lists, load)

    async def list_items(self) -> list[Card]:
        data = await self.client.get(
            f"/boards/{self.board_id}/cards",
            customFieldItems="true",
            checklists="all",
        )
        cards = [Card.model_validate(item) for item in data]
        logger.debug("Fetched %d cards from board %s", len(cards), self.board_id)
        return cards

    async def get_custom_fields(self) -> list[CustomField]:
        data = await self.client.get(f"/boards/{self.board_id}/customFields")
        return [CustomField.model_validate(item) for item in data]

    async def _board_labels(self) -> list[Label]:
        async def load() -> list[Label]:
            data = await self.client.get(f"/boards/{self.board_id}/labels", limit="1000")
            return [Label.model_validate(item) for item in data]

        return await self._cached(self._labels, load)

    async def _board_members(self) -> list[Member]:
        async def load() -> list[Member]:
            data = await self.client.get(f"/boards/{self.board_id}/members")
            return [Member.model_validate(item) for item in data]

        return await self._cached(self._members, load)

    async def _list_id(self, list_name: str) -> str:
        wanted = list_name.strip().lower()
        for board_list in await self.get_lists():
            if board_list.name.strip().lower() == wanted:
                return board_list.id
        raise TrelloNotFoundError(f"List not found for status {list_name}")

    async def find_item_by_story_id_or_title(
        self, story_id: str, title: str, story_id_field_id: str | None = None
    ) -> Card | None:
        cached_id = self._story_card_ids.get(story_id.strip().lower()) if story_id else None
        if cached_id:
            try:
                data = await self.client.get(
                    f"/cards/{cached_id}", customFieldItems="true", checklists="all"
                )
                return Card.model_validate(data)
            except TrelloNotFoundError:
                logger.debug("Cached card %s for %s is gone", cached_id, story_id)
                self._story_card_ids.pop(story_id.strip().lower(), None)

        index = CardLookupIndex(await self.list_items(), story_id_field_id)
        card = index.take_for(story_id, title)
        if card is not None and story_id:
            self._story_card_ids[story_id.strip().lower()] = card.id
        return card

    # --- Card writes ---

    async def create_item(self, name: str, desc: str, list_name: str) -> Card:
        list_id = await self._list_id(list_name)
        data = await self.client.post(
            "/cards", data={"idList": list_id, "name": name, "desc": desc}
        )
        return Card.model_validate(data)

    async def update_item(
        self, card_id: str, name: str | None = None, desc: str | None = None
    ) -> None:
        fields = {k: v for k, v in (("name", name), ("desc", desc)) if v is not None}
        if fields:
            await self.client.put(f"/cards/{card_id}", data=fields)

    async def move_item_to_status(self, card_id: str, list_name: str) -> None:
        list_id = await self._list_id(list_name)
        await self.client.put(f"/cards/{card_id}", data={"idList": list_id})

    async def set_story_id(self, card_id: str, field_id: str, story_id: str) -> None:
        await self.client.put(
            f"/cards/{card_id}/customField/{field_id}/item",
            json={"value": {"text": story_id}},
        )
        self._story_card_ids[story_id.strip().lower()] = card_id

    async def ensure_checklist(self, card_id: str, name: str, items: list[Todo]) -> None:
        wanted = name.strip().lower()
        for checklist in await self.client.get(f"/cards/{card_id}/checklists"):
            if str(checklist.get("name", "")).strip().lower() == wanted:
                await self.client.delete(f"/checklists/{checklist['id']}")

        created = await self.client.post("/checklists", data={"idCard": card_id, "name": name})
        for item in items:
            await self.client.post(
                f"/checklists/{created['id']}/checkItems",
                data={"name": item.text, "checked": "true" if item.done else "false"},
            )

    async def set_card_labels(self, card_id: str, label_ids: list[str]) -> None:
        await self.client.put(f"/cards/{card_id}", data={"idLabels": ",".join(label_ids)})

    async def set_card_members(self, card_id: str, member_ids: list[str]) -> None:
        await self.client.put(f"/cards/{card_id}", data={"idMembers": ",".join(member_ids)})

    # --- Name resolution ---

    async def resolve_label_ids(self, names: list[str]) -> NameResolution:
        result = NameResolution()
        if not names:
            return result

        for label in await self._board_labels():
            if label.name:
                self._label_ids.setdefault(label.name.strip().lower(), label.id)

        for name in names:
            label_id = self._label_ids.get(name.strip().lower())
            if label_id:
                result.ids[name] = label_id
            else:
                result.missing.append(name)
        if result.missing:
            logger.debug("Labels missing on board: %s", result.missing)
        return result

    async def resolve_member_ids(self, names: list[str]) -> NameResolution:
        result = NameResolution()
        if not names:
            return result

        for member in await self._board_members():
            for key in member.lookup_keys:
                self._member_ids.setdefault(key, member.id)

        for name in names:
            member_id = self._member_ids.get(name.strip().lower())
            if member_id:
                result.ids[name] = member_id
            else:
                result.missing.append(name)
        if result.missing:
            logger.debug("Members missing on board: %s", result.missing)
        return result

    async def ensure_labels(
        self, labels: list[LabelDefinition], create: bool = True
    ) -> LabelEnsureResult:
        result = LabelEnsureResult()
        if not labels:
            return result

        by_name = {
            label.name.strip().lower(): label for label in await self._board_labels() if label.name
        }
        for definition in labels:
            key = definition.name.strip().lower()
            if not key:
                continue
            existing = by_name.get(key)
            if existing is not None:
                result.existing.append(existing.id)
                self._label_ids[key] = existing.id
                continue
            if not create:
                result.missing.append(definition.name)
                continue

            data = await self.client.post(
                "/labels",
                data={
                    "idBoard": self.board_id,
                    "name": definition.name,
                    "color": definition.color or self.default_label_color,
                },
            )
            label = Label.model_validate(data)
            result.created.append(label.id)
            self._label_ids[key] = label.id
            by_name[key] = label
            logger.info("Created label %s", definition.name)

        if result.created:
            self._labels.clear()
        return result
