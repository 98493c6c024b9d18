"""Failure taxonomy shared by every provider.

Store backends, the session resolvers and the providers all fail in their own
way: HTTP status codes from the REST store, SQLSTATE codes from the database
driver, transport exceptions from httpx, or plain messages. ``classify``
collapses every one of those shapes into the closed :data:`ErrorKind` set so
the view layer only has to render eight outcomes.
"""

from __future__ import annotations

from typing import Any, Literal, get_args

import httpx

ErrorKind = Literal[
    "invalid_input",
    "not_configured",
    "not_found",
    "auth_required",
    "forbidden",
    "conflict",
    "network",
    "unknown",
]

ERROR_KINDS: tuple[str, ...] = get_args(ErrorKind)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"
AUTH_ERROR_CODES = frozenset({"PGRST301", "PGRST302"})
AUTH_MESSAGE_MARKERS = ("JWT", "auth", "Authentication")
NETWORK_MESSAGE_MARKERS = ("Failed to fetch", "NetworkError")

ERROR_MESSAGES: dict[str, str] = {
    "invalid_input": "The request could not be processed. Check the input and try again.",
    "not_configured": "The service is not available right now.",
    "not_found": "The requested item could not be found.",
    "auth_required": "Please sign in to continue.",
    "forbidden": "You do not have permission to do that.",
    "conflict": "This item was changed elsewhere. Reload to see the latest state.",
    "network": "A network problem occurred. Check your connection and try again.",
    "unknown": "An unexpected problem occurred.",
}


class StoreError(Exception):
    """Raised by store backends when a request to the relational store fails."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"StoreError(message={self.message!r}, status={self.status!r}, "
            f"code={self.code!r})"
        )


class ProviderError(Exception):
    """Raised inside a provider when it has already decided the failure kind."""

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind)
        self.kind = kind


def _status_of(error: Any) -> int | None:
    for attribute in ("status", "status_code"):
        value = getattr(error, attribute, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def _code_of(error: Any) -> str:
    code = getattr(error, "code", None)
    if code is None:
        # SQLAlchemy wraps the DBAPI exception; asyncpg/psycopg expose sqlstate.
        original = getattr(error, "orig", None)
        code = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    return str(code) if code is not None else ""


def _message_of(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(getattr(error, "message", None) or error)
    if isinstance(error, dict):
        return str(error.get("message") or "")
    return str(getattr(error, "message", "") or "")


def _lookup(error: Any, key: str) -> Any:
    if isinstance(error, dict):
        return error.get(key)
    return None


def is_conflict_error(error: Any) -> bool:
    status = _status_of(error) or _lookup(error, "status")
    code = _code_of(error) or str(_lookup(error, "code") or "")
    return code == UNIQUE_VIOLATION or status == 409


def is_auth_error(error: Any) -> bool:
    status = _status_of(error) or _lookup(error, "status")
    if status == 401:
        return True
    code = _code_of(error) or str(_lookup(error, "code") or "")
    if code in AUTH_ERROR_CODES:
        return True
    message = _message_of(error)
    return any(marker in message for marker in AUTH_MESSAGE_MARKERS)


def is_forbidden_error(error: Any) -> bool:
    status = _status_of(error) or _lookup(error, "status")
    code = _code_of(error) or str(_lookup(error, "code") or "")
    return code == INSUFFICIENT_PRIVILEGE or status == 403


def is_network_error(error: Any) -> bool:
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    cause = getattr(error, "__cause__", None)
    if isinstance(cause, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    message = _message_of(error)
    return any(marker in message for marker in NETWORK_MESSAGE_MARKERS)


def classify(error: Any) -> ErrorKind:
    """Map any failure shape onto a single :data:`ErrorKind`.

    Precedence is conflict, then authentication, then permission, then network.
    A generic transport failure is only reported as ``auth_required`` when it
    also carries a real authentication signal.
    """

    if error is None:
        return "unknown"
    if isinstance(error, ProviderError):
        return error.kind
    if is_conflict_error(error):
        return "conflict"
    if is_auth_error(error):
        return "auth_required"
    if is_forbidden_error(error):
        return "forbidden"
    if is_network_error(error):
        return "network"
    return "unknown"


def error_message(kind: str) -> str:
    """Return the user-facing message for a failure kind."""

    return ERROR_MESSAGES.get(kind, ERROR_MESSAGES["unknown"])
