"""Shared fixtures: an in-memory board provider that records every call."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdsync.models import (
    BoardList,
    Card,
    CheckItem,
    Checklist,
    CustomField,
    CustomFieldItem,
    Label,
    LabelDefinition,
    LabelEnsureResult,
    Member,
    NameResolution,
    SyncConfig,
    Todo,
)

STORY_ID_FIELD = "cf-story-id"

MUTATIONS = frozenset(
    {
        "create_item",
        "update_item",
        "move_item_to_status",
        "set_story_id",
        "ensure_checklist",
        "set_card_labels",
        "set_card_members",
    }
)


def make_card(
    card_id: str,
    name: str,
    list_id: str = "list-backlog",
    desc: str = "",
    story_id: str | None = None,
    label_ids: list[str] | None = None,
    member_ids: list[str] | None = None,
    todos: list[tuple[str, bool]] | None = None,
    checklist_name: str = "Todos",
) -> Card:
    """Build a card the way the Trello API would return it."""
    items = []
    if story_id is not None:
        items.append(
            CustomFieldItem(
                id=f"cfi-{card_id}", id_custom_field=STORY_ID_FIELD, value={"text": story_id}
            )
        )
    checklists = []
    if todos is not None:
        checklists.append(
            Checklist(
                id=f"cl-{card_id}",
                name=checklist_name,
                check_items=[
                    CheckItem(
                        id=f"ci-{card_id}-{i}",
                        name=text,
                        state="complete" if done else "incomplete",
                        pos=i,
                    )
                    for i, (text, done) in enumerate(todos)
                ],
            )
        )
    return Card(
        id=card_id,
        name=name,
        desc=desc,
        id_list=list_id,
        id_labels=list(label_ids or []),
        id_members=list(member_ids or []),
        custom_field_items=items,
        checklists=checklists,
    )


class FakeBoardProvider:
    """BoardProvider double that keeps cards in memory and records calls."""

    def __init__(
        self,
        lists: list[str] | None = None,
        cards: list[Card] | None = None,
        labels: dict[str, str] | None = None,
        members: list[Member] | None = None,
        custom_fields: list[CustomField] | None = None,
    ) -> None:
        names = lists or ["Backlog", "Ready", "Doing", "In review", "Done"]
        self.lists = [
            BoardList(id=f"list-{name.lower().replace(' ', '-')}", name=name, pos=i)
            for i, name in enumerate(names)
        ]
        self.cards: dict[str, Card] = {card.id: card for card in cards or []}
        self.labels: dict[str, str] = dict(labels or {})  # name -> id
        self.members = list(members or [])
        self.custom_fields = (
            custom_fields
            if custom_fields is not None
            else [CustomField(id=STORY_ID_FIELD, name="Story ID", type="text")]
        )
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, Exception] = {}  # method name -> error to raise
        self._next_id = 1

    # --- helpers ---

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        error = self.failures.get(name)
        if error is not None:
            raise error

    def calls_to(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    @property
    def mutation_calls(self) -> list[tuple[str, tuple]]:
        return [(name, args) for name, args in self.calls if name in MUTATIONS]

    def list_id(self, name: str) -> str:
        for board_list in self.lists:
            if board_list.name.lower() == name.strip().lower():
                return board_list.id
        raise KeyError(f"List not found for status {name}")

    def list_name(self, list_id: str) -> str:
        return next(bl.name for bl in self.lists if bl.id == list_id)

    def _update(self, card_id: str, **fields) -> None:
        self.cards[card_id] = self.cards[card_id].model_copy(update=fields)

    # --- reads ---

    async def get_lists(self) -> list[BoardList]:
        self._record("get_lists")
        return list(self.lists)

    async def list_items(self) -> list[Card]:
        self._record("list_items")
        return list(self.cards.values())

    async def get_custom_fields(self) -> list[CustomField]:
        self._record("get_custom_fields")
        return list(self.custom_fields)

    async def find_item_by_story_id_or_title(self, story_id, title, story_id_field_id=None):
        self._record("find_item_by_story_id_or_title", story_id, title)
        for card in self.cards.values():
            if story_id and card.name.lower().startswith(story_id.lower()):
                return card
        return None

    async def resolve_label_ids(self, names: list[str]) -> NameResolution:
        self._record("resolve_label_ids", list(names))
        by_name = {k.lower(): v for k, v in self.labels.items()}
        result = NameResolution()
        for name in names:
            if name.lower() in by_name:
                result.ids[name] = by_name[name.lower()]
            else:
                result.missing.append(name)
        return result

    async def resolve_member_ids(self, names: list[str]) -> NameResolution:
        self._record("resolve_member_ids", list(names))
        result = NameResolution()
        for name in names:
            hit = next((m for m in self.members if name.lower() in m.lookup_keys), None)
            if hit is not None:
                result.ids[name] = hit.id
            else:
                result.missing.append(name)
        return result

    async def ensure_labels(
        self, labels: list[LabelDefinition], create: bool = True
    ) -> LabelEnsureResult:
        self._record("ensure_labels", [label.name for label in labels], create)
        result = LabelEnsureResult()
        by_name = {k.lower(): v for k, v in self.labels.items()}
        for label in labels:
            if label.name.lower() in by_name:
                result.existing.append(by_name[label.name.lower()])
            elif create:
                label_id = f"label-{label.name.lower()}"
                self.labels[label.name] = label_id
                result.created.append(label_id)
            else:
                result.missing.append(label.name)
        return result

    # --- writes ---

    async def create_item(self, name: str, desc: str, list_name: str) -> Card:
        self._record("create_item", name, desc, list_name)
        list_id = self.list_id(list_name)
        card = Card(id=f"new-{self._next_id}", name=name, desc=desc, id_list=list_id)
        self._next_id += 1
        self.cards[card.id] = card
        return card

    async def update_item(self, card_id: str, name=None, desc=None) -> None:
        self._record("update_item", card_id, name, desc)
        fields = {}
        if name is not None:
            fields["name"] = name
        if desc is not None:
            fields["desc"] = desc
        self._update(card_id, **fields)

    async def move_item_to_status(self, card_id: str, list_name: str) -> None:
        self._record("move_item_to_status", card_id, list_name)
        self._update(card_id, id_list=self.list_id(list_name))

    async def set_story_id(self, card_id: str, field_id: str, story_id: str) -> None:
        self._record("set_story_id", card_id, field_id, story_id)
        items = [i for i in self.cards[card_id].custom_field_items if i.id_custom_field != field_id]
        items.append(CustomFieldItem(id_custom_field=field_id, value={"text": story_id}))
        self._update(card_id, custom_field_items=items)

    async def ensure_checklist(self, card_id: str, name: str, items: list[Todo]) -> None:
        self._record("ensure_checklist", card_id, name, [(t.text, t.done) for t in items])
        kept = [c for c in self.cards[card_id].checklists if c.name.lower() != name.lower()]
        kept.append(
            Checklist(
                id=f"cl-{card_id}-{len(self.calls)}",
                name=name,
                check_items=[
                    CheckItem(name=t.text, state="complete" if t.done else "incomplete", pos=i)
                    for i, t in enumerate(items)
                ],
            )
        )
        self._update(card_id, checklists=kept)

    async def set_card_labels(self, card_id: str, label_ids: list[str]) -> None:
        self._record("set_card_labels", card_id, list(label_ids))
        by_id = {v: k for k, v in self.labels.items()}
        self._update(
            card_id,
            id_labels=list(label_ids),
            labels=[Label(id=i, name=by_id.get(i, "")) for i in label_ids],
        )

    async def set_card_members(self, card_id: str, member_ids: list[str]) -> None:
        self._record("set_card_members", card_id, list(member_ids))
        self._update(card_id, id_members=list(member_ids))


@pytest.fixture
def provider() -> FakeBoardProvider:
    """Empty board with the default lists and a "Story ID" custom field."""
    return FakeBoardProvider()


@pytest.fixture
def config() -> SyncConfig:
    """Default configuration."""
    return SyncConfig()


@pytest.fixture
def md_dir(tmp_path: Path) -> Path:
    """Directory for markdown input files."""
    path = tmp_path / "md"
    path.mkdir()
    return path
