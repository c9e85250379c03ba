"""Single-use lookup index over the remote card set.

Cards are registered under every key they could plausibly be addressed by.
Taking a card removes it from all of its keys, so no card can be matched
twice in one run.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ..models.board import Card
from .errors import DuplicateStoryIdError
from .story_format import format_legacy_story_name, format_story_name, parse_story_name

logger = logging.getLogger(__name__)


def normalize_key(text: str) -> str:
    """Lowercase, trim and collapse inner whitespace."""
    return re.sub(r"\s+", " ", (text or "").strip().lower())


class CardLookupIndex:
    """Take-once index of cards by story id and by title keys.

    Build one per run from a single bulk fetch, drain it during planning,
    then discard it.
    """

    def __init__(self, cards: Iterable[Card], story_id_field_id: str | None = None) -> None:
        self._by_id: dict[str, list[Card]] = {}
        self._by_title: dict[str, list[Card]] = {}
        self._keys: dict[str, list[tuple[dict[str, list[Card]], str]]] = {}
        self._card_story_ids: dict[str, set[str]] = {}
        self._size = 0

        for card in cards:
            self._add(card, story_id_field_id)

    def __len__(self) -> int:
        return self._size

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._keys

    def _add(self, card: Card, story_id_field_id: str | None) -> None:
        if card.id in self._keys:
            return
        self._keys[card.id] = []
        self._size += 1

        parsed = parse_story_name(card.name)

        story_ids: set[str] = set()
        if story_id_field_id:
            field_value = card.custom_field_text(story_id_field_id)
            if field_value:
                story_ids.add(normalize_key(field_value))
        if parsed.story_id:
            story_ids.add(normalize_key(parsed.story_id))
        if len(story_ids) > 1:
            logger.debug("Card %s carries conflicting story ids: %s", card.id, sorted(story_ids))
        self._card_story_ids[card.id] = story_ids

        for key in story_ids:
            self._register(self._by_id, key, card)

        title_keys = {
            normalize_key(card.name),
            normalize_key(format_story_name(parsed.story_id, parsed.title)),
            normalize_key(parsed.title),
        }
        for key in title_keys:
            if key:
                self._register(self._by_title, key, card)

    def _register(self, table: dict[str, list[Card]], key: str, card: Card) -> None:
        table.setdefault(key, []).append(card)
        self._keys[card.id].append((table, key))

    def _remove(self, card: Card) -> None:
        """Drop a card from every key it was registered under."""
        for table, key in self._keys.pop(card.id, []):
            bucket = table.get(key)
            if not bucket:
                continue
            bucket[:] = [c for c in bucket if c.id != card.id]
            if not bucket:
                del table[key]
        self._card_story_ids.pop(card.id, None)
        self._size -= 1

    def story_ids_of(self, card: Card) -> set[str]:
        """Normalized story ids a (still indexed) card was registered under."""
        return set(self._card_story_ids.get(card.id, set()))

    def take_by_story_id(self, story_id: str) -> Card | None:
        """Remove and return the card carrying story_id.

        Raises:
            DuplicateStoryIdError: If more than one remaining card carries it.
        """
        key = normalize_key(story_id)
        if not key:
            return None
        bucket = self._by_id.get(key)
        if not bucket:
            return None
        if len(bucket) > 1:
            raise DuplicateStoryIdError(story_id, [c.id for c in bucket])
        card = bucket[0]
        self._remove(card)
        return card

    def take_by_title(self, title: str, story_id: str | None = None) -> Card | None:
        """Remove and return the first card registered under a title key.

        With story_id set, cards that carry a different story id are skipped so
        "STORY-2 Fix" never claims the card of "STORY-1 Fix".
        """
        key = normalize_key(title)
        if not key:
            return None
        bucket = self._by_title.get(key)
        if not bucket:
            return None

        wanted = normalize_key(story_id or "")
        for card in bucket:
            known = self._card_story_ids.get(card.id, set())
            if wanted and known and wanted not in known:
                continue
            self._remove(card)
            return card
        return None

    def take_for(self, story_id: str, title: str) -> Card | None:
        """Match in precedence order: id, canonical name, legacy name, bare title."""
        card = self.take_by_story_id(story_id) if story_id else None
        if card is None:
            card = self.take_by_name(story_id, title)
        return card

    def take_by_name(self, story_id: str, title: str) -> Card | None:
        """Name-based fallbacks only: canonical name, legacy name, bare title."""
        candidates = [format_story_name(story_id, title)]
        if story_id:
            candidates.append(format_legacy_story_name(story_id, title))
        candidates.append(title)

        for candidate in candidates:
            card = self.take_by_title(candidate, story_id or None)
            if card is not None:
                return card
        return None

    def remaining(self) -> list[Card]:
        """Cards not yet taken."""
        seen: dict[str, Card] = {}
        for table in (self._by_id, self._by_title):
            for bucket in table.values():
                for card in bucket:
                    seen.setdefault(card.id, card)
        return list(seen.values())
