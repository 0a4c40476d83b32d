"""Cached, concurrent retrieval and filtering of EVE Online solar systems."""

from .config import ScanSettings
from .errors import CacheReadError, ConfigError, FetchError, ParseError, StarmapError
from .filtering import Criterion, parse_filter
from .ingest import EsiClient
from .orchestrator import DispatchMode, JobOrchestrator, partition
from .retrieval import SystemSearch
from .storage import RecordCache

__all__ = [
    "ScanSettings",
    "StarmapError",
    "FetchError",
    "CacheReadError",
    "ParseError",
    "ConfigError",
    "Criterion",
    "parse_filter",
    "EsiClient",
    "DispatchMode",
    "JobOrchestrator",
    "partition",
    "SystemSearch",
    "RecordCache",
]
