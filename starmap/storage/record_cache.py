"""On-disk, freshness-bounded cache of fetched system records.

Each record lives in its own JSON file named after the system id. Freshness
is taken from the file's modification time, so a write is the only thing
that renews an entry. Stale entries are purged lazily when read.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import DEFAULT_TTL
from ..errors import CacheReadError


logger = logging.getLogger(__name__)


@dataclass
class RecordCache:
    """Keyed record storage with a time-to-live.

    Keys are independent: writes go through a temporary file in the cache
    directory followed by ``os.replace``, so concurrent writers on different
    keys never observe each other's partial files.
    """

    base_path: Path
    ttl: timedelta = DEFAULT_TTL
    clock: Callable[[], float] = field(default=time.time, repr=False)

    def __post_init__(self) -> None:
        self.base_path = Path(self.base_path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key: int) -> Optional[dict]:
        """Return the cached record for ``key`` or ``None`` on a miss.

        Expired and unreadable entries are deleted and reported as misses.
        """

        path = self._path_for(key)
        try:
            modified = path.stat().st_mtime
        except FileNotFoundError:
            return None

        age = self.clock() - modified
        if age > self.ttl.total_seconds():
            logger.debug(
                "cache.entry.expired",
                extra={"key": key, "age_seconds": round(age, 1)},
            )
            self.invalidate(key)
            return None

        try:
            return self._load(path)
        except CacheReadError as exc:
            logger.warning(
                "cache.entry.corrupt",
                extra={"key": key, "error": str(exc)},
            )
            self.invalidate(key)
            return None

    def put(self, key: int, record: dict) -> Path:
        """Persist ``record`` under ``key``, replacing any previous entry."""

        self.base_path.mkdir(parents=True, exist_ok=True)
        target = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.base_path, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, ensure_ascii=False)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target

    def invalidate(self, key: int) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def split(self, keys: Iterable[int]) -> Tuple[List[dict], List[int]]:
        """Partition ``keys`` into fresh cached records and ids that need fetching."""

        hits: List[dict] = []
        misses: List[int] = []
        for key in keys:
            record = self.get(key)
            if record is None:
                misses.append(key)
            else:
                hits.append(record)
        logger.info(
            "cache.split",
            extra={"hits": len(hits), "misses": len(misses)},
        )
        return hits, misses

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _path_for(self, key: int) -> Path:
        return self.base_path / f"{int(key)}.json"

    def _load(self, path: Path) -> dict:
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            raise CacheReadError(path, "entry vanished during read") from None
        except (OSError, ValueError) as exc:
            raise CacheReadError(path, str(exc)) from exc
        if not isinstance(payload, dict):
            raise CacheReadError(path, f"expected an object, found {type(payload).__name__}")
        return payload
