"""Retrieval package combining the cache, fetcher and criteria engine."""

from .system_search import SystemSearch

__all__ = ["SystemSearch"]
