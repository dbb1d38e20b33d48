"""Local JSON row store — every table in one file under the data dir.

Read-modify-write cycles hold an exclusive file lock, saves go through a
temp file and ``os.replace``, and a corrupt file is backed up before it can
be overwritten.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from filelock import FileLock

from sismog.services.exceptions import StoreError
from sismog.store.base import Filter, Row, RowStore, sort_rows

logger = logging.getLogger(__name__)

Tables = dict[str, list[Row]]


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


class LocalStore(RowStore):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = FileLock(self.path.with_suffix(".lock"))
        # Per-thread: only the thread that opened atomic() writes into its tables
        self._local = threading.local()

    @property
    def _pending(self) -> Tables | None:
        return getattr(self._local, "pending", None)

    @_pending.setter
    def _pending(self, tables: Tables | None) -> None:
        self._local.pending = tables

    # --- file I/O ---

    def _load(self) -> Tables:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, ValueError):
            _backup_corrupt(self.path)
            return {}
        if not isinstance(data, dict):
            _backup_corrupt(self.path)
            return {}
        return data

    def _save(self, tables: Tables) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(tables, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, self.path)

    @contextmanager
    def _tables(self, *, write: bool) -> Iterator[Tables]:
        """Yield the table dict, inside the current atomic block or under a fresh lock."""
        if self._pending is not None:
            yield self._pending
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            tables = self._load()
            yield tables
            if write:
                self._save(tables)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Hold the lock for the whole block and commit once; discard on exception."""
        if self._pending is not None:
            yield
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._pending = self._load()
            try:
                yield
            except BaseException:
                logger.debug("Atomic block aborted, discarding pending writes")
                raise
            else:
                self._save(self._pending)
            finally:
                self._pending = None

    # --- RowStore ---

    def insert(self, table: str, row: Row) -> Row:
        return self.insert_many(table, [row])[0]

    def insert_many(self, table: str, rows: list[Row]) -> list[Row]:
        created = [{**row, "id": row.get("id") or uuid.uuid4().hex} for row in rows]
        with self._tables(write=True) as tables:
            tables.setdefault(table, []).extend(created)
        return copy.deepcopy(created)

    def get(self, table: str, row_id: str) -> Row | None:
        with self._tables(write=False) as tables:
            for row in tables.get(table, []):
                if row.get("id") == row_id:
                    return copy.deepcopy(row)
        return None

    def update(self, table: str, row_id: str, changes: Row) -> Row:
        with self._tables(write=True) as tables:
            for row in tables.get(table, []):
                if row.get("id") == row_id:
                    row.update({k: v for k, v in changes.items() if k != "id"})
                    return copy.deepcopy(row)
        raise StoreError(f"Registro {row_id} não encontrado em '{table}'", status_code=404)

    def delete(self, table: str, row_id: str) -> None:
        with self._tables(write=True) as tables:
            rows = tables.get(table, [])
            tables[table] = [r for r in rows if r.get("id") != row_id]

    def select(
        self,
        table: str,
        *filters: Filter,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        with self._tables(write=False) as tables:
            rows = [
                copy.deepcopy(r)
                for r in tables.get(table, [])
                if all(f.matches(r) for f in filters)
            ]
        return sort_rows(rows, order_by, descending)

    def delete_where(self, table: str, *filters: Filter) -> int:
        with self._tables(write=True) as tables:
            rows = tables.get(table, [])
            kept = [r for r in rows if not all(f.matches(r) for f in filters)]
            tables[table] = kept
        return len(rows) - len(kept)
