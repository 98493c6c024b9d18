"""Pydantic models describing provider payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ErrorKind
from .policies import Visibility

T = TypeVar("T")

LinkCategory = Literal["x", "youtube", "other"]
ListStatus = Literal["not_found", "none", "private", "public"]


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys for the view layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Uniform outcome of every provider call."""

    ok: bool
    data: T | None = None
    error: ErrorKind | None = None

    @classmethod
    def success(cls, data: T) -> "Result[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ErrorKind) -> "Result[T]":
        return cls(ok=False, error=error)

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{ok, data}`` / ``{ok, error}`` JSON shape."""

        if self.ok:
            return {"ok": True, "data": _dump(self.data)}
        return {"ok": False, "error": self.error}


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    return value


class FavoriteState(CamelModel):
    is_favorited: bool


class OshiState(CamelModel):
    is_oshi: bool


class VisibilityState(CamelModel):
    visibility: Visibility


class CatalogEntry(CamelModel):
    """A list as shown in the public catalog, enriched for the viewer."""

    list_id: str
    user_id: str
    name: str = ""
    favorite_count: int = 0
    is_favorited: bool = False
    is_own: bool = False
    visibility: Visibility = "private"


class FavoriteListEntry(CamelModel):
    list_id: str
    user_id: str
    name: str = ""
    favorite_count: int = 0
    is_favorited: bool = True


class ListSummary(CamelModel):
    list_id: str
    user_id: str
    name: str = ""
    favorite_count: int = 0
    is_favorited: bool = False
    is_own: bool = False
    visibility: Visibility = "private"


class MovieItem(CamelModel):
    id: str
    title: str
    thumbnail_url: str | None = None
    published_at: str | None = None
    video_url: str | None = None
    series_id: str | None = None
    is_oshi: bool = False


class ListPage(CamelModel):
    summary: ListSummary
    items: list[MovieItem] = Field(default_factory=list)


class ListItemPreview(CamelModel):
    movie_id: str
    title: str


class UserListSummary(CamelModel):
    """Another user's primary list as seen from their profile page."""

    list_id: str | None = None
    status: ListStatus
    favorite_count: int | None = None
    is_favorited: bool = False
    items: list[ListItemPreview] = Field(default_factory=list)


class SeriesItem(CamelModel):
    series_id: str
    title: str
    favorite_count: int | None = None
    updated_at: str | None = None
    thumbnail_url: str | None = None


class SeriesSummary(CamelModel):
    items: list[SeriesItem] = Field(default_factory=list)


class SeriesOverview(CamelModel):
    id: str
    title: str
    favorite_count: int = 0
    is_favorited: bool = False


class Episode(CamelModel):
    id: str
    title: str
    thumbnail_url: str | None = None
    published_at: str | None = None
    video_url: str | None = None
    favorite_count: int = 0
    is_oshi: bool = False


class WeekdayItem(CamelModel):
    id: str
    title: str
    popularity_score: int = 0
    detail_path: str = ""
    published_at: str | None = None
    weekday: str
    series_id: str | None = None


class WeekdayList(CamelModel):
    weekday: str
    items: list[WeekdayItem] = Field(default_factory=list)


class HistoryReceipt(CamelModel):
    history_id: str | None = None
    suppressed: bool = False


class HistoryEntry(CamelModel):
    history_id: str | None = None
    movie_id: str
    series_id: str | None = None
    title: str
    thumbnail_url: str | None = None
    clicked_at: str | None = None
    favorite_count: int = 0
    is_oshi: bool = False


class ExternalLink(CamelModel):
    category: LinkCategory
    url: str
    label: str | None = None


class UserProfile(CamelModel):
    user_id: str
    name: str = ""
    icon_url: str | None = None
    links: list[ExternalLink] = Field(default_factory=list)


class ProfileUpdate(CamelModel):
    """Editable profile fields; blank strings clear a field."""

    name: str | None = None
    icon_url: str | None = None
    x_url: str | None = None
    x_label: str | None = None
    youtube_url: str | None = None
    youtube_label: str | None = None
    other_url: str | None = None
    other_label: str | None = None


class ProfileVisibilityState(CamelModel):
    oshi_list: Visibility = "private"
    oshi_series: Visibility = "private"


class SearchItem(CamelModel):
    id: str
    title: str
    thumbnail_url: str | None = None
    series_id: str | None = None
    published_at: str | None = None
    favorite_count: int = 0
