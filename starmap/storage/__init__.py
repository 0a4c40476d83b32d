"""Storage package exposing the on-disk record cache."""

from .record_cache import RecordCache

__all__ = ["RecordCache"]
