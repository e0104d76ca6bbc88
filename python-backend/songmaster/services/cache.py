from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """Per-key expiring cache owned by whoever composes the services.

    ``None`` results are never cached, so a failed fetch is retried on the
    next lookup instead of pinning a fallback for the whole TTL.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        entry = self._entries.get(key)
        now = self._clock()
        if entry is not None and now < entry.expires_at:
            return entry.value

        value = await fetch()
        if value is not None and ttl > 0:
            self._entries[key] = _Entry(value=value, expires_at=now + ttl)
            log.debug("Cached %s for %.0fs", key, ttl)
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at
