"""PostgREST / Supabase row store over ``requests``.

Reads are retried with exponential backoff on connection errors, timeouts
and 429/502/503/504 answers. Writes are sent exactly once.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import requests
import requests.exceptions

from sismog.config import STORE_TIMEOUT
from sismog.services.exceptions import StoreError
from sismog.store.base import Filter, Row, RowStore

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 502, 503, 504})


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Transient HTTP answer on an idempotent read."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.25


STORE_READ = RetryPolicy()


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy = STORE_READ,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Run *func()* until it succeeds or the policy's attempts are used up."""
    attempt = 0
    while True:
        try:
            return func()
        except (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
            RetryableHTTPError,
        ) as exc:
            attempt += 1
            if attempt >= policy.max_attempts:
                raise
            delay = min(policy.base_delay * 2 ** (attempt - 1), policy.max_delay)
            delay = max(0.0, delay + random.uniform(-1, 1) * delay * policy.jitter)
            logger.warning(
                "Store read failed (%s), attempt %d/%d, retrying in %.1fs",
                type(exc).__name__,
                attempt,
                policy.max_attempts,
                delay,
            )
            sleep_func(delay)


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def filter_params(filters: tuple[Filter, ...] | list[Filter]) -> list[tuple[str, str]]:
    """Translate filters to PostgREST query parameters (``col=op.value``)."""
    params: list[tuple[str, str]] = []
    for f in filters:
        if f.op == "is":
            params.append((f.column, "is.null"))
        elif f.op == "eq" and f.value is None:
            params.append((f.column, "is.null"))
        else:
            params.append((f.column, f"{f.op}.{_encode(f.value)}"))
    return params


class RestStore(RowStore):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        session: requests.Session | None = None,
        timeout: float = STORE_TIMEOUT,
        retry_policy: RetryPolicy = STORE_READ,
        sleep_func: Callable[[float], object] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._sleep = sleep_func
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
        )

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _check(self, resp: Any, action: str, table: str) -> None:
        if resp.ok:
            return
        body = resp.text[:500] if resp.text else ""
        msg = f"Erro no armazenamento ({action} {table}, {resp.status_code}): {body}"
        if resp.status_code in _RETRYABLE_STATUS and action == "select":
            raise RetryableHTTPError(msg)
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        raise StoreError(
            msg,
            status_code=resp.status_code,
            response=payload if isinstance(payload, dict) else None,
        )

    def _send(self, method: str, table: str, *, params=None, json=None) -> list[Row]:
        try:
            resp = self.session.request(
                method, self._url(table), params=params, json=json, timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"Falha de comunicação com o armazenamento: {exc}") from exc
        self._check(resp, method.lower(), table)
        if not resp.text:
            return []
        return resp.json()

    # --- RowStore ---

    def insert(self, table: str, row: Row) -> Row:
        created = self.insert_many(table, [row])
        if not created:
            raise StoreError(f"Inserção em '{table}' não retornou registro")
        return created[0]

    def insert_many(self, table: str, rows: list[Row]) -> list[Row]:
        if not rows:
            return []
        logger.debug("POST %s (%d rows)", table, len(rows))
        return self._send("POST", table, json=rows)

    def get(self, table: str, row_id: str) -> Row | None:
        rows = self.select(table, Filter("id", "eq", row_id))
        return rows[0] if rows else None

    def update(self, table: str, row_id: str, changes: Row) -> Row:
        payload = {k: v for k, v in changes.items() if k != "id"}
        rows = self._send("PATCH", table, params=[("id", f"eq.{row_id}")], json=payload)
        if not rows:
            raise StoreError(f"Registro {row_id} não encontrado em '{table}'", status_code=404)
        return rows[0]

    def delete(self, table: str, row_id: str) -> None:
        self._send("DELETE", table, params=[("id", f"eq.{row_id}")])

    def select(
        self,
        table: str,
        *filters: Filter,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        params = [("select", "*"), *filter_params(filters)]
        if order_by:
            direction = "desc" if descending else "asc"
            params.append(("order", f"{order_by}.{direction}.nullslast"))

        def _do_get() -> list[Row]:
            resp = self.session.get(self._url(table), params=params, timeout=self.timeout)
            self._check(resp, "select", table)
            return resp.json()

        try:
            return retry_call(_do_get, self.retry_policy, sleep_func=self._sleep)
        except RetryableHTTPError as exc:
            raise StoreError(str(exc)) from exc
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"Falha de comunicação com o armazenamento: {exc}") from exc

    def delete_where(self, table: str, *filters: Filter) -> int:
        if not filters:
            raise ValueError("delete_where exige ao menos um filtro")
        return len(self._send("DELETE", table, params=filter_params(filters)))

    @contextmanager
    def atomic(self) -> Iterator[None]:
        # PostgREST offers no client-side transaction; callers compensate.
        yield
