"""Plumbing shared by every provider."""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from ..errors import ProviderError, classify
from ..events import EventBus, Topic
from ..models import Result
from ..session import Identity, SessionResolver
from ..store import Order, StoreClient, eq
from ..utils import clean_id

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Result[Any]]])


def provider_operation(func: F) -> F:
    """Make a provider coroutine total.

    Returns ``not_configured`` when no store is wired and converts every raised
    exception into a classified :class:`Result` failure.
    """

    @functools.wraps(func)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Result[Any]:
        if getattr(self, "_store", None) is None:
            return Result.failure("not_configured")
        try:
            return await func(self, *args, **kwargs)
        except ProviderError as exc:
            return Result.failure(exc.kind)
        except Exception as exc:
            kind = classify(exc)
            logger.warning("%s failed (%s): %r", func.__qualname__, kind, exc)
            return Result.failure(kind)

    return wrapper  # type: ignore[return-value]


def require_id(value: object) -> str:
    """Return a trimmed identifier or raise ``invalid_input``."""

    cleaned = clean_id(value)
    if not cleaned:
        raise ProviderError("invalid_input")
    return cleaned


class BaseProvider:
    """Holds the collaborators every provider needs."""

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self._events = events

    @property
    def store(self) -> StoreClient:
        if self._store is None:
            raise ProviderError("not_configured")
        return self._store

    async def _require_identity(self, identity: Identity | None) -> Identity:
        """Use the identity passed in, resolving the session only if absent."""

        if identity is not None:
            return identity
        if self._session is None:
            raise ProviderError("not_configured")
        resolved = await self._session.resolve()
        if resolved is None:
            raise ProviderError("auth_required")
        return resolved

    async def _optional_identity(self, identity: Identity | None) -> Identity | None:
        if identity is not None or self._session is None:
            return identity
        return await self._session.resolve()

    def _publish(self, topic: Topic) -> None:
        if self._events is not None:
            self._events.publish(topic)


class PrimaryListCache:
    """Remember the signed-in user's primary list id for one provider instance.

    Only found ids are cached, so a list created later is picked up on the next
    lookup. The cache never expires on mutation; recreate the provider to drop it.
    """

    def __init__(self) -> None:
        self._user_id: str | None = None
        self._list_id: str | None = None

    async def resolve(self, store: StoreClient, user_id: str) -> str | None:
        if self._list_id is not None and self._user_id == user_id:
            return self._list_id
        rows = await store.select(
            "list",
            ("list_id",),
            filters=(eq("user_id", user_id),),
            order=(Order("list_id"),),
            limit=1,
        )
        list_id = clean_id(rows[0].get("list_id")) if rows else ""
        if list_id:
            self._user_id = user_id
            self._list_id = list_id
        return list_id or None

    def clear(self) -> None:
        self._user_id = None
        self._list_id = None
