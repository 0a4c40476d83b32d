"""Cache-aware retrieval and search over the solar-system catalogue.

Fresh cache entries are served directly; only the misses are chunked and
fetched concurrently. Searches are parsed up front so a malformed filter
fails before any network traffic, and first-match searches stop fetching as
soon as one chunk reports a hit.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Union

from ..config import DEFAULT_CHUNK_SIZE, ScanSettings
from ..errors import ConfigError, FetchError
from ..filtering import QueryPlan, evaluate_all, match_all, match_first, parse_filter, plan_from_triple
from ..filtering.criteria import Operand
from ..ingest import EsiClient
from ..orchestrator import Chunk, DispatchMode, JobOrchestrator, partition
from ..storage import RecordCache


logger = logging.getLogger(__name__)


@dataclass
class SystemSearch:
    """Loads system records through the cache and answers filter queries."""

    client: EsiClient
    cache: RecordCache
    orchestrator: JobOrchestrator = field(default_factory=JobOrchestrator)
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ScanSettings] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> "SystemSearch":
        """Wire a client, cache and orchestrator from one settings object."""

        settings = settings or ScanSettings.from_env()
        settings.validate()
        return cls(
            client=EsiClient.from_settings(settings),
            cache=RecordCache(base_path=settings.cache_dir, ttl=settings.cache_ttl),
            orchestrator=JobOrchestrator(
                max_workers=settings.max_workers,
                poll_interval=settings.poll_interval,
                progress=progress,
            ),
            chunk_size=settings.chunk_size,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def load(self, ids: Optional[Iterable[int]] = None) -> List[dict]:
        """Return records for ``ids`` (all systems when omitted).

        Records whose fetch failed are absent from the result. The result
        follows the order of ``ids``.
        """

        system_ids = self._resolve_ids(ids)
        hits, misses = self.cache.split(system_ids)
        fetched = self.orchestrator.dispatch(
            partition(misses, self.chunk_size),
            self._chunk_worker(),
            DispatchMode.COLLECT_ALL,
        )
        return self._in_id_order(system_ids, hits + fetched)

    def search(
        self,
        expression: Optional[str] = None,
        *,
        prop: Optional[str] = None,
        operator: Optional[str] = None,
        value: Union[str, Operand, None] = None,
        ids: Optional[Iterable[int]] = None,
        first_only: bool = False,
    ) -> List[dict]:
        """Return the records matching a filter expression or a single triple.

        Raises:
            ParseError: when the filter is malformed; raised before any
                records are loaded.
        """

        plan = self.build_plan(expression, prop=prop, operator=operator, value=value)
        system_ids = self._resolve_ids(ids)
        hits, misses = self.cache.split(system_ids)

        if not first_only:
            fetched = self.orchestrator.dispatch(
                partition(misses, self.chunk_size),
                self._chunk_worker(),
                DispatchMode.COLLECT_ALL,
            )
            matches = match_all(self._in_id_order(system_ids, hits + fetched), plan)
            logger.info("search.complete", extra={"plan": [str(c) for c in plan], "matches": len(matches)})
            return matches

        cached_match = match_first(self._in_id_order(system_ids, hits), plan)
        if cached_match is not None:
            logger.info("search.first_match.cached", extra={"system_id": cached_match.get("system_id")})
            return [cached_match]

        found = self.orchestrator.dispatch(
            partition(misses, self.chunk_size),
            self._chunk_worker(plan, stop_at_first=True),
            DispatchMode.STOP_ON_FIRST_MATCH,
        )
        match = match_first(found, plan)
        logger.info(
            "search.first_match.complete",
            extra={"system_id": match.get("system_id") if match else None},
        )
        return [match] if match is not None else []

    def find_first(self, expression: Optional[str] = None, **kwargs) -> Optional[dict]:
        results = self.search(expression, first_only=True, **kwargs)
        return results[0] if results else None

    @staticmethod
    def build_plan(
        expression: Optional[str] = None,
        *,
        prop: Optional[str] = None,
        operator: Optional[str] = None,
        value: Union[str, Operand, None] = None,
    ) -> QueryPlan:
        """Build a query plan from either a filter string or one explicit triple."""

        triple_given = any(part is not None for part in (prop, operator, value))
        if expression is not None and triple_given:
            raise ValueError("Pass either a filter expression or a (prop, operator, value) triple, not both")
        if triple_given:
            return plan_from_triple(prop or "", operator or "", value if value is not None else "")
        return parse_filter(expression)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve_ids(self, ids: Optional[Iterable[int]]) -> List[int]:
        if ids is None:
            ids = self.client.list_system_ids()
        return list(dict.fromkeys(int(system_id) for system_id in ids))

    def _chunk_worker(
        self, plan: Optional[QueryPlan] = None, stop_at_first: bool = False
    ) -> Callable[[Chunk, threading.Event], List[dict]]:
        def work(chunk: Chunk, cancel_event: threading.Event) -> List[dict]:
            records: List[dict] = []
            for system_id in chunk:
                if cancel_event.is_set():
                    logger.debug("search.chunk.cancelled", extra={"chunk": chunk.index, "system_id": system_id})
                    break
                # A failure on one item yields no record for it; the rest of
                # the chunk still runs.
                try:
                    record = self.client.fetch_system(system_id, cancel_event=cancel_event)
                except FetchError as exc:
                    logger.warning("search.fetch.failed", extra={"system_id": system_id, "error": str(exc)})
                    continue
                except Exception as exc:
                    logger.warning(
                        "search.fetch.failed",
                        extra={"system_id": system_id, "error": f"{type(exc).__name__}: {exc}"},
                        exc_info=True,
                    )
                    continue
                try:
                    self.cache.put(system_id, record)
                except Exception as exc:
                    logger.warning("search.cache.write_failed", extra={"system_id": system_id, "error": str(exc)})
                if plan is None or evaluate_all(record, plan):
                    records.append(record)
                    if stop_at_first:
                        break
            return records

        return work

    @staticmethod
    def _in_id_order(system_ids: Sequence[int], records: Iterable[dict]) -> List[dict]:
        by_id = {record.get("system_id"): record for record in records}
        return [by_id[system_id] for system_id in system_ids if system_id in by_id]
