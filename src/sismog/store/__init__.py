from __future__ import annotations

from sismog import config as _config
from sismog.store.base import (
    Filter,
    Row,
    RowStore,
    eq,
    gt,
    gte,
    is_null,
    lt,
    lte,
    neq,
)

__all__ = [
    "Filter",
    "Row",
    "RowStore",
    "eq",
    "gt",
    "gte",
    "is_null",
    "lt",
    "lte",
    "neq",
    "open_store",
]


def open_store(backend: str | None = None) -> RowStore:
    """Build the configured row store ("local" JSON file or "rest" PostgREST)."""
    backend = backend or _config.get_store_backend()
    if backend == "rest":
        from sismog.store.rest import RestStore

        return RestStore(_config.get_store_url(), _config.get_api_key())
    from sismog.store.local import LocalStore

    return LocalStore(_config.get_store_path())
