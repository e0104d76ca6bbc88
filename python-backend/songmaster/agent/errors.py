"""Failure types raised inside the generation workflow.

The coordinator and orchestrator catch these and record them as data.
"""

from __future__ import annotations


class SongMasterError(Exception):
    """Base class for workflow failures."""


class TransportError(SongMasterError):
    """The upstream completion call failed outright."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(SongMasterError):
    """Completion text was not JSON and could not be repaired."""

    def __init__(self, message: str, raw_preview: str = ""):
        super().__init__(f"{message} (raw: {raw_preview!r})" if raw_preview else message)
        self.reason = message
        self.raw_preview = raw_preview


class IncompleteResultError(SongMasterError):
    """The completion parsed but lacked required fields."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Incomplete result, missing: {', '.join(missing)}")
        self.missing = missing
