"""Remote board models, parsed from Trello REST payloads."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _TrelloModel(BaseModel):
    """Base for Trello payloads: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BoardList(_TrelloModel):
    """A status column on the board."""

    id: str
    name: str = ""
    closed: bool = False
    pos: float = 0


class Label(_TrelloModel):
    """A board label."""

    id: str
    name: str = ""
    color: str | None = None


class Member(_TrelloModel):
    """A board member."""

    id: str
    username: str = ""
    full_name: str = Field(default="", alias="fullName")

    @property
    def lookup_keys(self) -> list[str]:
        """Lowercased names this member can be addressed by."""
        return [k.lower() for k in (self.username, self.full_name) if k]


class CheckItem(_TrelloModel):
    """An item in a card checklist."""

    id: str = ""
    name: str = ""
    state: str = "incomplete"  # "complete" or "incomplete"
    pos: float = 0

    @property
    def done(self) -> bool:
        return self.state.lower() == "complete"


class Checklist(_TrelloModel):
    """A named checklist attached to a card."""

    id: str = ""
    name: str = ""
    pos: float = 0
    check_items: list[CheckItem] = Field(default_factory=list, alias="checkItems")

    @property
    def ordered_items(self) -> list[CheckItem]:
        """Items in board order."""
        return sorted(self.check_items, key=lambda item: item.pos)


class CustomField(_TrelloModel):
    """A custom field definition on the board."""

    id: str
    name: str = ""
    type: str = "text"


class CustomFieldItem(_TrelloModel):
    """A custom field value set on a card."""

    id: str = ""
    id_custom_field: str = Field(default="", alias="idCustomField")
    value: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """The stored value as text (Trello keeps numbers and dates as strings)."""
        if not self.value:
            return ""
        for kind in ("text", "number", "date", "checked"):
            raw = self.value.get(kind)
            if isinstance(raw, str) and raw.strip():
                return raw.strip()
        return ""


class Card(_TrelloModel):
    """A card on the board."""

    id: str
    name: str = ""
    desc: str = ""
    id_list: str = Field(default="", alias="idList")
    id_labels: list[str] = Field(default_factory=list, alias="idLabels")
    labels: list[Label] = Field(default_factory=list)
    id_members: list[str] = Field(default_factory=list, alias="idMembers")
    custom_field_items: list[CustomFieldItem] = Field(
        default_factory=list, alias="customFieldItems"
    )
    checklists: list[Checklist] = Field(default_factory=list)

    @property
    def label_ids(self) -> set[str]:
        """Ids of labels currently on the card."""
        ids = set(self.id_labels)
        ids.update(label.id for label in self.labels)
        return ids

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels if label.name]

    def custom_field_text(self, field_id: str) -> str:
        """Text value of a specific custom field, or empty string."""
        for item in self.custom_field_items:
            if item.id_custom_field == field_id:
                return item.text
        return ""

    def first_custom_field_text(self) -> str:
        """First non-empty custom field value, or empty string."""
        for item in self.custom_field_items:
            if item.text:
                return item.text
        return ""

    def checklist_named(self, name: str) -> Checklist | None:
        """Find a checklist by name (case-insensitive)."""
        wanted = name.strip().lower()
        for checklist in self.checklists:
            if checklist.name.strip().lower() == wanted:
                return checklist
        return None
