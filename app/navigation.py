"""Navigation helpers that record history before moving to a movie."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, Protocol
from urllib.parse import quote, urlencode

from .models import HistoryReceipt, Result
from .policies import normalize_sort_order
from .utils import clean_id

logger = logging.getLogger(__name__)

NAVIGATE_SOURCE = "navigate"
LOGIN_PATH = "/login/"

Navigate = Callable[[str], Awaitable[Any] | Any]


class ViewRecorder(Protocol):
    async def record_view(
        self, movie_id: object, clicked_at: object, source: object = ""
    ) -> Result[HistoryReceipt]: ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def series_path(series_id: str, movie_id: str | None = None) -> str:
    if movie_id:
        return f"/series/{series_id}/?{urlencode({'selectedMovieId': movie_id})}"
    return f"/series/{series_id}/"


class NavigationOrchestrator:
    """Record a view (best effort) and then navigate to the series page.

    Recording never gates navigation: failed results and raised exceptions
    are logged and the navigation still happens.
    """

    def __init__(
        self,
        navigate: Navigate,
        history_recorder: ViewRecorder | None = None,
        *,
        now: Callable[[], str] = _utc_now_iso,
    ) -> None:
        self._navigate = navigate
        self._history_recorder = history_recorder
        self._now = now

    async def _record(self, movie_id: str) -> None:
        if self._history_recorder is None:
            return
        try:
            result = await self._history_recorder.record_view(
                movie_id, self._now(), NAVIGATE_SOURCE
            )
        except Exception:
            logger.exception("Recording view of %s failed; navigating anyway", movie_id)
            return
        if not result.ok:
            logger.warning(
                "Recording view of %s failed (%s); navigating anyway",
                movie_id,
                result.error,
            )

    async def navigate_to_movie(
        self, series_id: object, movie_id: object = None
    ) -> str | None:
        """Navigate to ``series_id``, selecting ``movie_id`` when given.

        Returns the path navigated to, or ``None`` when there is no series.
        """

        target_series = clean_id(series_id)
        if not target_series:
            return None
        target_movie = clean_id(movie_id)
        if target_movie:
            await self._record(target_movie)

        path = series_path(target_series, target_movie or None)
        outcome = self._navigate(path)
        if inspect.isawaitable(outcome):
            await outcome
        return path


def build_login_redirect_path(context: Mapping[str, Any] | None) -> str:
    """Login URL that returns the user to the series page they came from."""

    series_id = clean_id((context or {}).get("series_id"))
    if not series_id:
        return LOGIN_PATH

    params: dict[str, str] = {}
    selected = clean_id(context.get("selected_movie_id"))  # type: ignore[union-attr]
    if selected:
        params["selectedMovieId"] = selected
    sort_order = context.get("sort_order")  # type: ignore[union-attr]
    params["sortOrder"] = (
        normalize_sort_order(sort_order) if sort_order else "latest"
    )
    redirect = f"/series/{series_id}/?{urlencode(params)}"
    return f"{LOGIN_PATH}?redirect={quote(redirect, safe='')}"
