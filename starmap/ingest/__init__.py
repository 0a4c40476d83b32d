"""Ingestion package providing access to the ESI solar-system catalogue."""

from .esi import EsiClient

__all__ = ["EsiClient"]
