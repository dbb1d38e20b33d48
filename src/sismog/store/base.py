"""Row-store contract shared by the local JSON store and the REST store.

Rows are plain dicts keyed by column name. Every row carries a string ``id``
assigned by the store on insert.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

Row = dict[str, Any]

_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "is")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Operador de filtro desconhecido: '{self.op}'")

    def matches(self, row: Row) -> bool:
        """Evaluate the filter against an in-memory row."""
        actual = row.get(self.column)
        if self.op == "is":
            return actual is None
        if self.op == "eq":
            return actual == self.value
        if self.op == "neq":
            return actual != self.value
        if actual is None:
            return False
        match self.op:
            case "gt":
                return actual > self.value
            case "gte":
                return actual >= self.value
            case "lt":
                return actual < self.value
            case _:
                return actual <= self.value


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def is_null(column: str) -> Filter:
    return Filter(column, "is")


class RowStore(ABC):
    """Minimal table-oriented persistence used by the service layer."""

    @abstractmethod
    def insert(self, table: str, row: Row) -> Row:
        """Insert one row and return it with its assigned ``id``."""

    @abstractmethod
    def insert_many(self, table: str, rows: list[Row]) -> list[Row]:
        """Insert several rows in one request."""

    @abstractmethod
    def get(self, table: str, row_id: str) -> Row | None:
        """Return the row with *row_id*, or None."""

    @abstractmethod
    def update(self, table: str, row_id: str, changes: Row) -> Row:
        """Apply *changes* to one row. Raises StoreError when the row is missing."""

    @abstractmethod
    def delete(self, table: str, row_id: str) -> None:
        """Delete one row by id (missing rows are ignored)."""

    @abstractmethod
    def select(
        self,
        table: str,
        *filters: Filter,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        """Return rows matching every filter."""

    @abstractmethod
    def delete_where(self, table: str, *filters: Filter) -> int:
        """Delete rows matching every filter and return how many were removed."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Group writes so they commit together where the backend supports it."""

    def first(self, table: str, *filters: Filter) -> Row | None:
        rows = self.select(table, *filters)
        return rows[0] if rows else None


def sort_rows(rows: list[Row], order_by: str | None, descending: bool) -> list[Row]:
    """Sort rows by a column with nulls last, as PostgREST orders them."""
    if not order_by:
        return rows
    present = [r for r in rows if r.get(order_by) is not None]
    missing = [r for r in rows if r.get(order_by) is None]
    present.sort(key=lambda r: r[order_by], reverse=descending)
    return present + missing
