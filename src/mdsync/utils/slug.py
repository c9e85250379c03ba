"""Utilities for generating filesystem-safe slugs."""

import re
import unicodedata

# Characters that are not allowed in filenames on common filesystems
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')

DEFAULT_MAX_FILENAME_LENGTH = 120


def slugify(text: str) -> str:
    """Lower-kebab-case ASCII slug.

    Example: "Fix Login Bug!" -> "fix-login-bug"
    """
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[\s_]+", "-", ascii_text.lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")


def strip_unsafe_chars(text: str) -> str:
    """Replace filesystem-unsafe characters with hyphens and collapse whitespace.

    Example: 'STORY-1: a/b' -> 'STORY-1- a-b'
    """
    text = UNSAFE_FILENAME_CHARS.sub("-", text)
    return re.sub(r"\s+", " ", text).strip()


def truncate_filename(name: str, max_length: int = DEFAULT_MAX_FILENAME_LENGTH) -> str:
    """Truncate a filename to max_length characters, keeping its extension."""
    if len(name) <= max_length:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        return name[:max_length]
    suffix = f".{ext}"
    keep = max(1, max_length - len(suffix))
    return stem[:keep].rstrip("-") + suffix
