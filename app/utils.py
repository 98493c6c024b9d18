"""Utility helpers for the oshilist service."""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Iterable

WHITESPACE_RE = re.compile(r"\s+")


def normalize_search_text(text: object) -> str:
    """Fold width, case and whitespace so titles compare loosely."""

    if text is None:
        return ""
    value = unicodedata.normalize("NFKC", str(text)).casefold()
    return WHITESPACE_RE.sub(" ", value).strip()


def title_matches(title: object, query: object) -> bool:
    """Return ``True`` when the normalised query occurs inside the title."""

    normalized_query = normalize_search_text(query)
    if not normalized_query:
        return False
    return normalized_query in normalize_search_text(title)


def clean_id(value: object) -> str:
    """Return a trimmed identifier, or an empty string for unusable input."""

    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, int):
        return str(value)
    if not isinstance(value, str):
        return ""
    return value.strip()


def unique_ids(values: Iterable[Any]) -> list[str]:
    """Stringify identifiers, dropping blanks and keeping first-seen order."""

    seen: dict[str, None] = {}
    for value in values:
        cleaned = clean_id(value)
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def id_sort_key(value: str) -> tuple[int, int, str]:
    """Order numeric identifiers numerically and the rest lexically."""

    if value.isdigit():
        return (0, int(value), "")
    return (1, 0, value)
