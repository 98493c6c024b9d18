"""HTTP surface exposing the oshilist providers as JSON endpoints."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .database import Database
from .errors import error_message
from .events import EventBus, Topic
from .models import CamelModel, ProfileUpdate, Result
from .navigation import NavigationOrchestrator, build_login_redirect_path
from .search import TitleSearchDataProvider
from .services.catalog import OshiFavoritesProvider, OshiListCatalogProvider
from .services.history import HistoryRecorder, ViewingHistoryProvider
from .services.list_page import OshiListPageProvider
from .services.my_list import MyOshiListProvider
from .services.profile import ProfileVisibilityProvider, UserPageProvider
from .services.user_list import UserOshiListProvider
from .services.user_series import UserSeriesProvider
from .services.weekday import WeekdayProvider
from .services.work_page import WorkPageProvider
from .session import SessionResolver, StaticSessionResolver, TokenSessionResolver
from .store import RestStoreClient, SqlStoreClient, StoreClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[str, int] = {
    "invalid_input": 400,
    "auth_required": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "unknown": 500,
    "network": 502,
    "not_configured": 503,
}

USER_ID_HEADER = "X-User-Id"

app: FastAPI


class VisibilityBody(CamelModel):
    visibility: str


class ProfileVisibilityBody(CamelModel):
    oshi_list: str | None = None
    oshi_series: str | None = None


class ViewBody(CamelModel):
    movie_id: str
    clicked_at: str
    source: str = ""


class NavigateBody(CamelModel):
    series_id: str
    movie_id: str | None = None


@dataclass(slots=True)
class RequestContext:
    """Collaborators for one request; identity is resolved at most once."""

    settings: Settings
    store: StoreClient | None
    session: SessionResolver
    events: EventBus
    recent_views: dict[Any, float]

    @property
    def deps(self) -> tuple[StoreClient | None, SessionResolver, EventBus]:
        return self.store, self.session, self.events


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    app_settings: Settings = fastapi_app.state.settings
    exit_stack = AsyncExitStack()
    http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    )
    database: Database | None = None
    sql_store: SqlStoreClient | None = None
    if app_settings.store_backend == "sql":
        database = Database(app_settings.database_url)
        await database.create_all()
        sql_store = SqlStoreClient(database.session_factory)

    events = EventBus()
    for topic in Topic:
        events.subscribe(topic, lambda topic=topic: logger.info("Published %s", topic.value))

    fastapi_app.state.http_client = http_client
    fastapi_app.state.database = database
    fastapi_app.state.sql_store = sql_store
    fastapi_app.state.events = events
    fastapi_app.state.recent_views = {}

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        events.clear()
        if database is not None:
            await database.dispose()
        await exit_stack.aclose()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    fastapi_app = FastAPI(
        title=(app_settings or settings).app_name,
        description="Oshi list catalog, favourites and viewing history",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = app_settings or settings

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_context(request: Request) -> RequestContext:
    state = request.app.state
    app_settings: Settings = state.settings
    if app_settings.store_backend == "rest":
        token = _bearer_token(request)
        store: StoreClient | None = RestStoreClient(app_settings, state.http_client, token)
        session: SessionResolver = TokenSessionResolver(
            app_settings, state.http_client, token
        )
    else:
        store = state.sql_store
        session = StaticSessionResolver(request.headers.get(USER_ID_HEADER))
    return RequestContext(
        settings=app_settings,
        store=store,
        session=session,
        events=state.events,
        recent_views=state.recent_views,
    )


def respond(result: Result[Any]) -> JSONResponse:
    """Translate a provider result into a JSON response."""

    if result.ok:
        return JSONResponse(result.to_payload())
    kind = result.error or "unknown"
    payload = result.to_payload()
    payload["message"] = error_message(kind)
    return JSONResponse(payload, status_code=STATUS_BY_KIND.get(kind, 500))


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # Catalog and favourites

    @fastapi_app.get("/api/lists")
    async def list_catalog(
        sort_order: str | None = Query(default=None, alias="sortOrder"),
        ctx: RequestContext = Depends(get_context),
    ) -> JSONResponse:
        provider = OshiListCatalogProvider(*ctx.deps)
        return respond(await provider.fetch_catalog(sort_order))

    @fastapi_app.get("/api/favorites")
    async def list_favorites(ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await OshiFavoritesProvider(*ctx.deps).fetch_favorites())

    @fastapi_app.post("/api/lists/{list_id}/favorite")
    async def toggle_list_favorite(
        list_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await OshiListCatalogProvider(*ctx.deps).toggle_favorite(list_id))

    # List page

    @fastapi_app.get("/api/lists/{list_id}")
    async def list_page(list_id: str, ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await OshiListPageProvider(*ctx.deps).fetch_list_page(list_id))

    @fastapi_app.get("/api/lists/{list_id}/summary")
    async def list_summary(
        list_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await OshiListPageProvider(*ctx.deps).fetch_list_summary(list_id))

    @fastapi_app.get("/api/lists/{list_id}/items")
    async def list_items(list_id: str, ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await OshiListPageProvider(*ctx.deps).fetch_list_items(list_id))

    @fastapi_app.get("/api/lists/{list_id}/visibility")
    async def list_visibility(
        list_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await OshiListPageProvider(*ctx.deps).fetch_visibility(list_id))

    @fastapi_app.put("/api/lists/{list_id}/visibility")
    async def update_list_visibility(
        list_id: str, body: VisibilityBody, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = OshiListPageProvider(*ctx.deps)
        return respond(await provider.update_visibility(list_id, body.visibility))

    # The viewer's own list

    @fastapi_app.get("/api/me/list")
    async def my_list(ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await MyOshiListProvider(*ctx.deps).fetch_oshi_list())

    @fastapi_app.post("/api/me/list/movies/{movie_id}")
    async def toggle_my_list_movie(
        movie_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await MyOshiListProvider(*ctx.deps).toggle_movie_oshi(movie_id))

    @fastapi_app.get("/api/me/list/visibility")
    async def my_list_visibility(ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await MyOshiListProvider(*ctx.deps).fetch_visibility())

    @fastapi_app.put("/api/me/list/visibility")
    async def update_my_list_visibility(
        body: VisibilityBody, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = MyOshiListProvider(*ctx.deps)
        return respond(await provider.update_visibility(body.visibility))

    # User page

    @fastapi_app.get("/api/users/{user_id}")
    async def user_profile(user_id: str, ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await UserPageProvider(*ctx.deps).fetch_user_profile(user_id))

    @fastapi_app.put("/api/me/profile")
    async def update_profile(
        body: ProfileUpdate, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await UserPageProvider(*ctx.deps).update_user_profile(body))

    @fastapi_app.get("/api/users/{user_id}/visibility")
    async def profile_visibility(
        user_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = ProfileVisibilityProvider(*ctx.deps)
        return respond(await provider.fetch_visibility(user_id))

    @fastapi_app.put("/api/me/visibility")
    async def update_profile_visibility(
        body: ProfileVisibilityBody, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = ProfileVisibilityProvider(*ctx.deps)
        return respond(
            await provider.update_visibility(
                oshi_list=body.oshi_list, oshi_series=body.oshi_series
            )
        )

    @fastapi_app.get("/api/users/{user_id}/list")
    async def user_list_summary(
        user_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = UserOshiListProvider(
            *ctx.deps, summary_item_count=ctx.settings.summary_item_count
        )
        return respond(await provider.fetch_list_summary(user_id))

    @fastapi_app.get("/api/users/{user_id}/series")
    async def user_series(
        user_id: str,
        sort_key: str | None = Query(default=None, alias="sortKey"),
        order: str = Query(default="desc"),
        ctx: RequestContext = Depends(get_context),
    ) -> JSONResponse:
        provider = UserSeriesProvider(*ctx.deps)
        if sort_key is None:
            return respond(await provider.fetch_series(user_id))
        return respond(
            await provider.fetch_series_list(
                user_id, sort_key=sort_key, descending=order != "asc"
            )
        )

    @fastapi_app.get("/api/users/{user_id}/series/summary")
    async def user_series_summary(
        user_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = UserSeriesProvider(
            *ctx.deps, summary_item_count=ctx.settings.summary_item_count
        )
        return respond(await provider.fetch_series_summary(user_id))

    @fastapi_app.put("/api/me/series/{series_id}")
    async def register_series(
        series_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await UserSeriesProvider(*ctx.deps).register_series(series_id))

    @fastapi_app.delete("/api/me/series/{series_id}")
    async def unregister_series(
        series_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await UserSeriesProvider(*ctx.deps).unregister_series(series_id))

    # Work page

    @fastapi_app.get("/api/series/{series_id}")
    async def series_overview(
        series_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await WorkPageProvider(*ctx.deps).fetch_series_overview(series_id))

    @fastapi_app.get("/api/series/{series_id}/episodes")
    async def series_episodes(
        series_id: str,
        sort_order: str | None = Query(default=None, alias="sortOrder"),
        ctx: RequestContext = Depends(get_context),
    ) -> JSONResponse:
        provider = WorkPageProvider(*ctx.deps)
        return respond(await provider.fetch_episodes(series_id, sort_order))

    @fastapi_app.post("/api/series/{series_id}/favorite")
    async def toggle_series_favorite(
        series_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        provider = WorkPageProvider(*ctx.deps)
        return respond(await provider.toggle_series_favorite(series_id))

    @fastapi_app.post("/api/movies/{movie_id}/oshi")
    async def toggle_episode_oshi(
        movie_id: str, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        return respond(await WorkPageProvider(*ctx.deps).toggle_episode_oshi(movie_id))

    # Top page, history, search and navigation

    @fastapi_app.get("/api/weekday")
    async def weekday_lists(ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await WeekdayProvider(*ctx.deps).fetch_weekday_lists())

    def _history_recorder(ctx: RequestContext) -> HistoryRecorder:
        return HistoryRecorder(
            *ctx.deps,
            suppress_window_ms=ctx.settings.history_suppress_window_ms,
            recent_views=ctx.recent_views,
        )

    @fastapi_app.post("/api/history")
    async def record_view(
        body: ViewBody, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        recorder = _history_recorder(ctx)
        return respond(
            await recorder.record_view(body.movie_id, body.clicked_at, body.source)
        )

    @fastapi_app.get("/api/history")
    async def viewing_history(
        limit: int | None = Query(default=None),
        ctx: RequestContext = Depends(get_context),
    ) -> JSONResponse:
        provider = ViewingHistoryProvider(
            *ctx.deps, page_limit=ctx.settings.history_page_limit
        )
        return respond(await provider.fetch_history(limit))

    @fastapi_app.get("/api/search/corpus")
    async def search_corpus(ctx: RequestContext = Depends(get_context)) -> JSONResponse:
        return respond(await TitleSearchDataProvider(*ctx.deps).fetch_all_items())

    @fastapi_app.post("/api/navigate")
    async def navigate_to_movie(
        body: NavigateBody, ctx: RequestContext = Depends(get_context)
    ) -> JSONResponse:
        orchestrator = NavigationOrchestrator(lambda path: None, _history_recorder(ctx))
        path = await orchestrator.navigate_to_movie(body.series_id, body.movie_id)
        if path is None:
            return respond(Result.failure("invalid_input"))
        return JSONResponse({"ok": True, "data": {"path": path}})

    @fastapi_app.get("/api/login-redirect")
    async def login_redirect(
        series_id: str | None = Query(default=None, alias="seriesId"),
        selected_movie_id: str | None = Query(default=None, alias="selectedMovieId"),
        sort_order: str | None = Query(default=None, alias="sortOrder"),
    ) -> dict[str, Any]:
        path = build_login_redirect_path(
            {
                "series_id": series_id,
                "selected_movie_id": selected_movie_id,
                "sort_order": sort_order,
            }
        )
        return {"ok": True, "data": {"path": path}}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
