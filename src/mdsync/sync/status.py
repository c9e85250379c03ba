"""Status vocabulary normalization.

Free-text statuses ("doing", "Completed", "in-review") are mapped to canonical
board list names. Caller-supplied maps are canonicalized once, when a
StatusMap is built, so lookups never scan keys.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping

# Default status -> list map used when none is configured
DEFAULT_STATUS_MAP: dict[str, str] = {
    "backlog": "Backlog",
    "ready": "Ready",
    "doing": "Doing",
    "in progress": "Doing",
    "in review": "In review",
    "review": "In review",
    "done": "Done",
    "todo": "Backlog",
}

# Built-in aliases: canonical alias -> (configured key to prefer, fallback name)
_ALIASES: dict[str, tuple[str, str]] = {
    "backlog": ("backlog", "Backlog"),
    "todo": ("backlog", "Backlog"),
    "ready": ("ready", "Ready"),
    "readytostart": ("ready", "Ready"),
    "readyfordevelopment": ("ready", "Ready"),
    "doing": ("inprogress", "In progress"),
    "inprogress": ("inprogress", "In progress"),
    "progress": ("inprogress", "In progress"),
    "review": ("inreview", "In review"),
    "inreview": ("inreview", "In review"),
    "done": ("done", "Done"),
    "completed": ("done", "Done"),
    "complete": ("done", "Done"),
    "finished": ("done", "Done"),
}

# Synonym keys filled in by extend_status_map: key -> keys it may be copied from
_SYNONYMS: dict[str, tuple[str, ...]] = {
    "todo": ("backlog",),
    "doing": ("in progress",),
    "in progress": ("doing",),
    "review": ("in review",),
    "in review": ("review",),
}


def canonical_key(text: str) -> str:
    """Case and punctuation insensitive form of a status or map key.

    Example: "In-Review " -> "inreview"
    """
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


class StatusMap(Mapping[str, str]):
    """Status -> list name map with canonicalized keys.

    Iterating yields the original keys; lookups accept any spelling that
    canonicalizes to a known key.
    """

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._keys: dict[str, str] = {}
        self._by_value: dict[str, str] = {}
        for key, value in (mapping or {}).items():
            canon = canonical_key(key)
            if not canon or canon in self._values:
                continue
            self._values[canon] = value
            self._keys[canon] = key
            self._by_value.setdefault(canonical_key(value), value)

    @classmethod
    def coerce(cls, mapping: Mapping[str, str] | None) -> StatusMap:
        """Return mapping as a StatusMap, wrapping plain mappings."""
        if isinstance(mapping, StatusMap):
            return mapping
        return cls(mapping)

    def __getitem__(self, key: str) -> str:
        return self._values[canonical_key(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys.values())

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_key(key) in self._values

    def lookup(self, text: str) -> str | None:
        """List name for a status key, or None."""
        return self._values.get(canonical_key(text))

    def lookup_value(self, text: str) -> str | None:
        """Configured list name equal (canonically) to text, or None."""
        return self._by_value.get(canonical_key(text))

    def resolve(self, text: str) -> str | None:
        """Resolve text as a key first, then as an already-mapped list name."""
        hit = self.lookup(text)
        if hit is not None:
            return hit
        return self.lookup_value(text)


def normalize_status(text: str, status_map: Mapping[str, str] | None = None) -> str:
    """Normalize free-text status to a canonical name.

    - Empty input returns empty.
    - A direct (case-insensitive) hit in status_map wins.
    - Built-in aliases come next; an alias prefers the configured name for
      its group ("todo" -> status_map["backlog"]) when one exists.
    - Unknown text is returned unchanged, original casing preserved.
    """
    value = (text or "").strip()
    if not value:
        return value

    mapping = StatusMap.coerce(status_map)
    direct = mapping.lookup(value)
    if direct is not None:
        return direct

    alias = _ALIASES.get(canonical_key(value))
    if alias is not None:
        preferred_key, fallback = alias
        configured = mapping.lookup(preferred_key)
        return configured if configured is not None else fallback

    return value


def extend_status_map(base: Mapping[str, str]) -> dict[str, str]:
    """Copy a status map, filling in synonym keys that are missing.

    Example: {"backlog": "Queue"} -> {"backlog": "Queue", "todo": "Queue"}
    """
    extended = {key.strip().lower(): value for key, value in base.items()}
    for key, sources in _SYNONYMS.items():
        if key in extended:
            continue
        for source in sources:
            if source in extended:
                extended[key] = extended[source]
                break
    return extended
