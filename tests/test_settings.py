"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults_use_local_sql_backend() -> None:
    """Without configuration the service runs against a local sqlite file."""

    settings = Settings(_env_file=None)

    assert settings.store_backend == "sql"
    assert settings.database_url.startswith("sqlite+aiosqlite://")
    assert settings.history_suppress_window_ms == 400
    assert settings.history_page_limit == 30
    assert settings.summary_item_count == 3
    assert settings.store_base_url is None


def test_rest_backend_requires_url_and_key() -> None:
    with pytest.raises(ValueError, match="STORE_URL and STORE_ANON_KEY are required"):
        Settings(_env_file=None, STORE_BACKEND="rest", STORE_URL="https://store.example.com")


def test_blank_optional_values_become_none() -> None:
    settings = Settings(_env_file=None, STORE_ANON_KEY="  ", STORE_TOGGLE_RPC="")

    assert settings.store_anon_key is None
    assert settings.store_toggle_rpc is None


def test_store_base_url_strips_trailing_slash() -> None:
    settings = Settings(
        _env_file=None,
        STORE_BACKEND="rest",
        STORE_URL="https://store.example.com/",
        STORE_ANON_KEY="anon",
    )

    assert settings.store_base_url == "https://store.example.com"


def test_history_window_is_bounded() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, HISTORY_SUPPRESS_WINDOW_MS=-1)
    with pytest.raises(ValueError):
        Settings(_env_file=None, HISTORY_PAGE_LIMIT=0)
