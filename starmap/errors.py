"""Error taxonomy for the starmap scanner.

Item-level failures (``FetchError``, ``CacheReadError``) are absorbed where
they occur and turned into "no record" outcomes. ``ParseError`` and
``ConfigError`` always propagate to the caller before any network work.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class StarmapError(Exception):
    """Base exception for starmap."""


class FetchError(StarmapError):
    """Retrieving a single system from the remote service failed."""

    def __init__(self, system_id: int, message: str) -> None:
        super().__init__(f"system {system_id}: {message}")
        self.system_id = system_id


class CacheReadError(StarmapError):
    """A cached entry exists but cannot be decoded."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ParseError(StarmapError):
    """A filter clause does not match ``<property> <operator> <value>``."""

    def __init__(self, clause: str, reason: Optional[str] = None) -> None:
        message = f"Invalid filter clause: {clause!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.clause = clause


class ConfigError(StarmapError):
    """Structural misconfiguration such as a non-positive chunk size."""
