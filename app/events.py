"""In-process refresh signals shared between independently mounted views."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

Handler = Callable[[], object]


class Topic(str, Enum):
    """Change signals published after successful mutations."""

    LIST_CATALOG_CHANGED = "oshi-list-updated"
    USER_SERIES_CHANGED = "user-series-updated"
    USER_PROFILE_CHANGED = "user-profile-updated"


class EventBus:
    """Synchronous publish/subscribe channel keyed by :class:`Topic`.

    Events carry no payload; subscribers are expected to re-run their own
    fetches when notified.
    """

    def __init__(self) -> None:
        self._subscribers: dict[Topic, list[tuple[int, Handler]]] = {}
        self._next_token = 0

    def subscribe(self, topic: Topic, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it again."""

        if not callable(handler):
            raise TypeError("handler must be callable")
        token = self._next_token
        self._next_token += 1
        self._subscribers.setdefault(topic, []).append((token, handler))

        def _unsubscribe() -> None:
            entries = self._subscribers.get(topic)
            if not entries:
                return
            self._subscribers[topic] = [
                entry for entry in entries if entry[0] != token
            ]

        return _unsubscribe

    def publish(self, topic: Topic) -> int:
        """Notify every handler subscribed when the publish started."""

        handlers = [handler for _, handler in self._subscribers.get(topic, [])]
        for handler in handlers:
            try:
                handler()
            except Exception:
                logger.exception("Subscriber for %s raised", topic.value)
        return len(handlers)

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers.get(topic, []))

    def clear(self) -> None:
        """Drop every subscription."""

        self._subscribers.clear()
