"""Runtime settings shared by the cache, fetcher and orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from .errors import ConfigError


DEFAULT_CHUNK_SIZE = 100
DEFAULT_TTL = timedelta(hours=24)
ESI_BASE_URL = "https://esi.evetech.net/latest"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class ScanSettings:
    """Configuration for a scan over the ESI solar-system catalogue.

    Every value can be supplied directly or, via :meth:`from_env`, through
    ``STARMAP_*`` / ``ESI_*`` environment variables.
    """

    cache_dir: Path = field(default_factory=lambda: Path("cache") / "systems")
    cache_ttl: timedelta = DEFAULT_TTL
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_workers: int = 8
    poll_interval: float = 0.1
    base_url: str = ESI_BASE_URL
    datasource: str = "tranquility"
    user_agent: str = "starmap-scanner/0.1"
    request_timeout: int = 30
    retry_attempts: int = 3
    backoff_seconds: float = 1.0

    @classmethod
    def from_env(cls) -> "ScanSettings":
        """Build settings from the process environment, falling back to defaults."""

        defaults = cls()
        settings = cls(
            cache_dir=Path(os.getenv("STARMAP_CACHE_DIR") or defaults.cache_dir),
            cache_ttl=timedelta(
                hours=_env_float("STARMAP_CACHE_TTL_HOURS", defaults.cache_ttl.total_seconds() / 3600)
            ),
            chunk_size=_env_int("STARMAP_CHUNK_SIZE", defaults.chunk_size),
            max_workers=_env_int("STARMAP_MAX_WORKERS", defaults.max_workers),
            poll_interval=_env_float("STARMAP_POLL_INTERVAL", defaults.poll_interval),
            base_url=os.getenv("ESI_BASE_URL") or defaults.base_url,
            datasource=os.getenv("ESI_DATASOURCE") or defaults.datasource,
            user_agent=os.getenv("ESI_USER_AGENT") or defaults.user_agent,
            request_timeout=_env_int("STARMAP_REQUEST_TIMEOUT", defaults.request_timeout),
            retry_attempts=_env_int("STARMAP_RETRY_ATTEMPTS", defaults.retry_attempts),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_workers <= 0:
            raise ConfigError(f"max_workers must be positive, got {self.max_workers}")
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.cache_ttl.total_seconds() <= 0:
            raise ConfigError("cache_ttl must be a positive duration")
        if self.retry_attempts <= 0:
            raise ConfigError(f"retry_attempts must be positive, got {self.retry_attempts}")
