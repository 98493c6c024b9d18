"""Store clients for the remote relational store."""

from __future__ import annotations

from .base import Filter, Order, Row, StoreClient, eq, gte, in_, match_filters
from .rest import RestStoreClient
from .sql import SqlStoreClient

__all__ = [
    "Filter",
    "Order",
    "RestStoreClient",
    "Row",
    "SqlStoreClient",
    "StoreClient",
    "eq",
    "gte",
    "in_",
    "match_filters",
]
