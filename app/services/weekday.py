"""Episodes released in the last week, grouped by broadcast weekday."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ..models import Result, WeekdayItem, WeekdayList
from ..store import Order, Row, gte
from ..utils import clean_id, parse_timestamp
from .base import BaseProvider, provider_operation
from .lists import count_of

WEEKDAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
WEEK_RANGE = timedelta(days=7)

WEEKDAY_COLUMNS = (
    "movie_id",
    "movie_title",
    "url",
    "favorite_count",
    "update",
    "series_id",
    "weekday",
)


def _weekday_item(row: Row) -> WeekdayItem:
    return WeekdayItem(
        id=clean_id(row.get("movie_id")),
        title=str(row.get("movie_title") or ""),
        popularity_score=count_of(row.get("favorite_count")),
        detail_path=str(row.get("url") or ""),
        published_at=row.get("update"),
        weekday=str(row.get("weekday")),
        series_id=clean_id(row.get("series_id")) or None,
    )


class WeekdayProvider(BaseProvider):
    """Top page feed: one bucket per weekday, most favourited first."""

    @provider_operation
    async def fetch_weekday_lists(
        self, now: datetime | None = None
    ) -> Result[list[WeekdayList]]:
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        threshold = current - WEEK_RANGE

        rows = await self.store.select(
            "movie",
            WEEKDAY_COLUMNS,
            filters=(gte("update", threshold.isoformat()),),
            order=(Order("favorite_count", ascending=False),),
        )

        buckets: dict[str, list[WeekdayItem]] = {key: [] for key in WEEKDAY_KEYS}
        for row in rows:
            bucket = buckets.get(str(row.get("weekday") or ""))
            if bucket is None:
                continue
            # The store filter is repeated locally for rows with unparsable dates.
            published = parse_timestamp(row.get("update"))
            if published is None or published < threshold:
                continue
            bucket.append(_weekday_item(row))

        return Result.success(
            [WeekdayList(weekday=key, items=buckets[key]) for key in WEEKDAY_KEYS]
        )
