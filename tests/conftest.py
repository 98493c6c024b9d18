"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import AsyncIterator

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import Database  # noqa: E402
from app.store import SqlStoreClient  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
async def sql_store(tmp_path) -> AsyncIterator[SqlStoreClient]:
    """A store backed by a fresh sqlite database with every table created."""

    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'oshilist.db'}")
    await database.create_all()
    try:
        yield SqlStoreClient(database.session_factory)
    finally:
        await database.dispose()
