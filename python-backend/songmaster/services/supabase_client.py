"""HTTP client for a Supabase project's PostgREST API.

Only the table operations the backend needs:
  1. Select: GET    /rest/v1/{table}?select=*&col=eq.value
  2. Insert: POST   /rest/v1/{table}
  3. Update: PATCH  /rest/v1/{table}?col=eq.value
  4. Delete: DELETE /rest/v1/{table}?col=eq.value
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filters_to_params(filters: dict[str, Any] | None) -> dict[str, str]:
    return {column: f"eq.{_filter_value(v)}" for column, v in (filters or {}).items()}


class SupabaseClient:
    """Async client for Supabase table CRUD.

    ``transport`` lets tests substitute ``httpx.MockTransport``.
    """

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.transport = transport

    def _headers(self, returning: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    # ── 1. Select ───────────────────────────────────────

    async def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", **_filters_to_params(filters)}
        if order:
            params["order"] = order
        async with self._client() as client:
            resp = await client.get(
                self._table_url(table), params=params, headers=self._headers()
            )
            resp.raise_for_status()
            return resp.json()

    # ── 2. Insert ───────────────────────────────────────

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                self._table_url(table),
                json=record,
                headers=self._headers(returning=True),
            )
            resp.raise_for_status()
            rows = resp.json()
            log.info("Inserted into %s (%d row(s))", table, len(rows))
            return rows[0] if rows else record

    # ── 3. Update ───────────────────────────────────────

    async def update(
        self,
        table: str,
        filters: dict[str, Any],
        values: dict[str, Any],
    ) -> list[dict[str, Any]]:
        async with self._client() as client:
            resp = await client.patch(
                self._table_url(table),
                params=_filters_to_params(filters),
                json=values,
                headers=self._headers(returning=True),
            )
            resp.raise_for_status()
            return resp.json()

    # ── 4. Delete ───────────────────────────────────────

    async def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        async with self._client() as client:
            resp = await client.delete(
                self._table_url(table),
                params=_filters_to_params(filters),
                headers=self._headers(returning=True),
            )
            resp.raise_for_status()
            return resp.json()
