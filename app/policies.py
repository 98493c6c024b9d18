"""Sort order and visibility normalisation rules."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Literal, TypeVar

T = TypeVar("T")

SortOrder = Literal["popular", "favorite_asc", "latest", "oldest"]
Visibility = Literal["public", "private"]

SORT_ORDER_QUERY_KEY = "sortOrder"
DEFAULT_SORT_ORDER: SortOrder = "popular"
SORT_ORDERS: tuple[SortOrder, ...] = ("popular", "favorite_asc", "latest", "oldest")

LEGACY_SORT_ORDERS: dict[str, SortOrder] = {
    "favorite_desc": "popular",
    "popular_desc": "popular",
    "popular_asc": "favorite_asc",
}


def normalize_sort_order(value: object) -> SortOrder:
    """Return the canonical sort order for any input, defaulting to ``popular``."""

    if not isinstance(value, str):
        return DEFAULT_SORT_ORDER
    candidate = value.strip()
    if candidate in SORT_ORDERS:
        return candidate  # type: ignore[return-value]
    return LEGACY_SORT_ORDERS.get(candidate, DEFAULT_SORT_ORDER)


def apply_sort_order(
    items: Iterable[T],
    order: object,
    *,
    count: Callable[[T], Any],
    recency: Callable[[T], Any],
) -> list[T]:
    """Sort items client-side according to a (possibly legacy) sort order.

    ``popular`` orders by count descending with newer items first on ties;
    ``favorite_asc`` flips both keys. ``latest``/``oldest`` use recency only.
    Items without a recency value always go last.
    """

    normalized = normalize_sort_order(order)
    present = [item for item in items if recency(item) is not None]
    missing = [item for item in items if recency(item) is None]
    if normalized in ("latest", "oldest"):
        present.sort(key=recency, reverse=normalized == "latest")
        return present + missing

    ascending = normalized == "favorite_asc"
    present.sort(key=recency, reverse=not ascending)
    ordered = present + missing
    ordered.sort(key=count, reverse=not ascending)
    return ordered


def visibility_from_flag(flag: object) -> Visibility:
    """Only a literal ``True`` flag is public; anything else stays private."""

    return "public" if flag is True else "private"


def visibility_to_flag(visibility: object) -> bool:
    return visibility == "public"


def parse_visibility(value: object) -> Visibility | None:
    """Validate a visibility supplied by a caller; ``None`` means invalid."""

    if value == "public" or value == "private":
        return value  # type: ignore[return-value]
    return None


def coerce_visibility(value: object) -> Visibility:
    """Read a stored text visibility, treating unknown values as private."""

    return "public" if value == "public" else "private"
