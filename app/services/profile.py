"""User profile page and per-section profile visibility."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from ..errors import ProviderError, StoreError
from ..events import Topic
from ..models import (
    ExternalLink,
    LinkCategory,
    ProfileUpdate,
    ProfileVisibilityState,
    Result,
    UserProfile,
)
from ..policies import coerce_visibility, parse_visibility
from ..session import Identity
from ..store import Row, eq
from ..utils import clean_id
from .base import BaseProvider, provider_operation, require_id

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "user_id",
    "name",
    "icon_url",
    "x_url",
    "x_label",
    "youtube_url",
    "youtube_label",
    "other_url",
    "other_label",
)
LINK_FIELDS = (("x_url", "x_label"), ("youtube_url", "youtube_label"), ("other_url", "other_label"))


def _domain_match(hostname: str, domain: str) -> bool:
    return hostname == domain or hostname.endswith(f".{domain}")


def link_category(hostname: str) -> LinkCategory:
    host = hostname.lower()
    if _domain_match(host, "x.com") or _domain_match(host, "twitter.com"):
        return "x"
    if _domain_match(host, "youtube.com") or _domain_match(host, "youtu.be"):
        return "youtube"
    return "other"


def _clean_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def external_link(url: object, label: object = None) -> ExternalLink | None:
    """Build a categorised link, or ``None`` for anything but http(s) URLs."""

    cleaned = _clean_text(url)
    if cleaned is None:
        return None
    try:
        parts = urlsplit(cleaned)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    return ExternalLink(
        category=link_category(parts.hostname), url=cleaned, label=_clean_text(label)
    )


def external_links(row: Row) -> list[ExternalLink]:
    links = (external_link(row.get(url), row.get(label)) for url, label in LINK_FIELDS)
    return [link for link in links if link is not None]


class UserPageProvider(BaseProvider):
    @provider_operation
    async def fetch_user_profile(self, user_id: object) -> Result[UserProfile]:
        target = require_id(user_id)
        rows = await self.store.select(
            "users", USER_COLUMNS, filters=(eq("user_id", target),), limit=1
        )
        if not rows:
            raise ProviderError("not_found")
        row = rows[0]
        return Result.success(
            UserProfile(
                user_id=clean_id(row.get("user_id")) or target,
                name=str(row.get("name") or ""),
                icon_url=row.get("icon_url"),
                links=external_links(row),
            )
        )

    @provider_operation
    async def update_user_profile(
        self,
        update: ProfileUpdate,
        *,
        user_id: object = None,
        identity: Identity | None = None,
    ) -> Result[None]:
        """Overwrite the viewer's profile; blank values clear a field."""

        viewer = await self._require_identity(identity)
        if user_id is not None and not viewer.is_user(require_id(user_id)):
            raise ProviderError("forbidden")

        values: dict[str, str | None] = {"name": (update.name or "").strip()}
        for column in USER_COLUMNS[2:]:
            values[column] = _clean_text(getattr(update, column))

        updated = await self.store.update(
            "users", values, filters=(eq("user_id", viewer.user_id),)
        )
        if not updated:
            raise ProviderError("not_found")
        self._publish(Topic.USER_PROFILE_CHANGED)
        return Result.success(None)


class ProfileVisibilityProvider(BaseProvider):
    """Which profile sections a user shows to other people."""

    @provider_operation
    async def fetch_visibility(
        self, target_user_id: object
    ) -> Result[ProfileVisibilityState]:
        """Missing rows and read failures both fall back to fully private."""

        target = require_id(target_user_id)
        try:
            rows = await self.store.select(
                "profile_visibility",
                ("oshi_list_visibility", "oshi_series_visibility"),
                filters=(eq("user_id", target),),
                limit=1,
            )
        except StoreError as exc:
            logger.warning("Falling back to private visibility for %s: %s", target, exc)
            return Result.success(ProfileVisibilityState())
        if not rows:
            return Result.success(ProfileVisibilityState())
        row = rows[0]
        return Result.success(
            ProfileVisibilityState(
                oshi_list=coerce_visibility(row.get("oshi_list_visibility")),
                oshi_series=coerce_visibility(row.get("oshi_series_visibility")),
            )
        )

    @provider_operation
    async def update_visibility(
        self,
        *,
        oshi_list: object = None,
        oshi_series: object = None,
        identity: Identity | None = None,
    ) -> Result[ProfileVisibilityState]:
        values: dict[str, str] = {}
        for column, value in (
            ("oshi_list_visibility", oshi_list),
            ("oshi_series_visibility", oshi_series),
        ):
            if value is None:
                continue
            parsed = parse_visibility(value)
            if parsed is None:
                raise ProviderError("invalid_input")
            values[column] = parsed
        if not values:
            raise ProviderError("invalid_input")

        viewer = await self._require_identity(identity)
        rows = await self.store.upsert(
            "profile_visibility",
            {"user_id": viewer.user_id, **values},
            on_conflict=("user_id",),
        )
        row = rows[0] if rows else values
        self._publish(Topic.USER_PROFILE_CHANGED)
        return Result.success(
            ProfileVisibilityState(
                oshi_list=coerce_visibility(row.get("oshi_list_visibility")),
                oshi_series=coerce_visibility(row.get("oshi_series_visibility")),
            )
        )
