"""Persistent record sink for songs, artists, agents and prompts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import httpx

from songmaster.services.supabase_client import SupabaseClient

log = logging.getLogger(__name__)

SONGS_TABLE = "songs"
ARTISTS_TABLE = "artists"
AGENTS_TABLE = "agents"
PROMPTS_TABLE = "system_prompts"


class RecordStoreError(Exception):
    """The persistent store could not be reached or rejected the request."""


@runtime_checkable
class RecordStore(Protocol):
    """Interface for the persistent store.

    Records are plain dicts keyed by an ``id`` column; ``filters`` match
    columns by equality.
    """

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def select(
        self, table: str, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...

    async def get(self, table: str, record_id: str) -> dict[str, Any] | None: ...

    async def update(
        self, table: str, filters: dict[str, Any], values: dict[str, Any]
    ) -> list[dict[str, Any]]: ...

    async def delete(self, table: str, record_id: str) -> bool: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRecordStore:
    """In-memory store used when no Supabase project is configured."""

    def __init__(self):
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        return self.tables.setdefault(table, {})

    @staticmethod
    def _matches(record: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        return all(record.get(column) == value for column, value in (filters or {}).items())

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        stored = dict(record)
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", _now())
        self._table(table)[stored["id"]] = stored
        log.info(f"Saved {table} record {stored['id']}")
        return dict(stored)

    async def select(
        self, table: str, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        return [dict(r) for r in self._table(table).values() if self._matches(r, filters)]

    async def get(self, table: str, record_id: str) -> dict[str, Any] | None:
        record = self._table(table).get(record_id)
        return dict(record) if record is not None else None

    async def update(
        self, table: str, filters: dict[str, Any], values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        updated = []
        for record in self._table(table).values():
            if self._matches(record, filters):
                record.update(values)
                updated.append(dict(record))
        return updated

    async def delete(self, table: str, record_id: str) -> bool:
        removed = self._table(table).pop(record_id, None)
        if removed is not None:
            log.info(f"Deleted {table} record {record_id}")
        return removed is not None


class SupabaseRecordStore:
    """``RecordStore`` over Supabase's REST API."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.client.insert(table, record)
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Insert into {table} failed: {e}") from e

    async def select(
        self, table: str, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            return await self.client.select(table, filters)
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Select from {table} failed: {e}") from e

    async def get(self, table: str, record_id: str) -> dict[str, Any] | None:
        rows = await self.select(table, {"id": record_id})
        return rows[0] if rows else None

    async def update(
        self, table: str, filters: dict[str, Any], values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        try:
            return await self.client.update(table, filters, values)
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Update of {table} failed: {e}") from e

    async def delete(self, table: str, record_id: str) -> bool:
        try:
            rows = await self.client.delete(table, {"id": record_id})
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Delete from {table} failed: {e}") from e
        return bool(rows)
