"""Client for the solar-system endpoints of EVE Online's ESI API."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import requests

from ..config import ESI_BASE_URL, ScanSettings
from ..errors import FetchError


logger = logging.getLogger(__name__)

# Status codes that signal "slow down" rather than a broken request. ESI uses
# 420 for its error-rate limiter.
THROTTLE_STATUSES = frozenset({420, 429})


class RequestCancelled(requests.RequestException):
    """The caller cancelled the work this request belonged to."""


@dataclass
class EsiClient:
    """Read-only access to ``/universe/systems/``.

    The client shares one :class:`requests.Session` across threads, retries
    transient failures with linear backoff, and honours ``Retry-After`` on
    throttling responses. Anything it cannot recover from surfaces as a
    :class:`FetchError` for the system concerned.
    """

    base_url: str = ESI_BASE_URL
    datasource: str = "tranquility"
    user_agent: str = "starmap-scanner/0.1"
    request_timeout: int = 30
    retry_attempts: int = 3
    backoff_seconds: float = 1.0
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self.session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": self.user_agent,
            }
        )

    @classmethod
    def from_settings(cls, settings: ScanSettings) -> "EsiClient":
        return cls(
            base_url=settings.base_url,
            datasource=settings.datasource,
            user_agent=settings.user_agent,
            request_timeout=settings.request_timeout,
            retry_attempts=settings.retry_attempts,
            backoff_seconds=settings.backoff_seconds,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_system_ids(self) -> List[int]:
        """Return every solar-system id known to ESI."""

        url = f"{self.base_url}/universe/systems/"
        try:
            payload = self._request_with_retry(url)
        except requests.RequestException as exc:
            raise FetchError(0, f"listing systems failed: {exc}") from exc
        if not isinstance(payload, list):
            raise FetchError(0, f"unexpected listing payload of type {type(payload).__name__}")
        ids = [int(system_id) for system_id in payload]
        logger.info("esi.systems.listed", extra={"count": len(ids)})
        return ids

    def fetch_system(self, system_id: int, cancel_event: Optional[threading.Event] = None) -> dict:
        """Fetch one system record, including planets, moons and belts.

        When ``cancel_event`` is set, no further attempts are made and the
        fetch fails with :class:`FetchError`.
        """

        url = f"{self.base_url}/universe/systems/{int(system_id)}/"
        try:
            payload = self._request_with_retry(url, cancel_event=cancel_event)
        except Exception as exc:
            raise FetchError(system_id, str(exc) or type(exc).__name__) from exc
        if not isinstance(payload, dict):
            raise FetchError(system_id, f"unexpected payload of type {type(payload).__name__}")
        payload.setdefault("system_id", int(system_id))
        return payload

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _request_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        params = {"datasource": self.datasource, **(params or {})}

        for attempt in range(1, self.retry_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelled(f"cancelled before attempt {attempt} for url: {url}")
            try:
                response = self.session.get(url, params=params, timeout=self.request_timeout)
                logger.debug(
                    "esi.request",
                    extra={
                        "url": url,
                        "status_code": response.status_code,
                        "attempt": attempt,
                    },
                )
                if response.status_code in THROTTLE_STATUSES and attempt < self.retry_attempts:
                    retry_after = self._retry_after(response)
                    logger.warning(
                        "esi.request.throttled",
                        extra={"url": url, "status_code": response.status_code, "sleep_for": retry_after},
                    )
                    self._pause(retry_after, cancel_event)
                    continue
                if 400 <= response.status_code < 500 and response.status_code not in THROTTLE_STATUSES:
                    # Client errors will not improve on retry.
                    response.raise_for_status()
                if response.status_code >= 500 and attempt < self.retry_attempts:
                    raise requests.HTTPError(
                        f"{response.status_code} Server Error for url: {url}", response=response
                    )
                response.raise_for_status()
                return response.json()
            except requests.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                if status is not None and status < 500 and status not in THROTTLE_STATUSES:
                    logger.error(
                        "esi.request.failed",
                        extra={"url": url, "status_code": status, "error": str(exc)},
                    )
                    raise
                self._backoff_or_raise(url, attempt, exc, cancel_event)
            except requests.RequestException as exc:
                self._backoff_or_raise(url, attempt, exc, cancel_event)

        raise RuntimeError("ESI request retries exhausted")

    def _backoff_or_raise(
        self,
        url: str,
        attempt: int,
        exc: requests.RequestException,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if attempt >= self.retry_attempts:
            logger.error(
                "esi.request.failed",
                extra={"url": url, "attempt": attempt, "error": str(exc)},
            )
            raise exc
        sleep_for = self.backoff_seconds * attempt
        logger.warning(
            "esi.request.retry",
            extra={
                "url": url,
                "error": str(exc),
                "attempt": attempt,
                "sleep_for": sleep_for,
            },
        )
        self._pause(sleep_for, cancel_event)

    def _retry_after(self, response: requests.Response) -> float:
        """Seconds to wait from a ``Retry-After`` header (delta-seconds or HTTP-date)."""

        raw = response.headers.get("Retry-After")
        if raw is None:
            return self.backoff_seconds
        try:
            return max(0.0, float(raw))
        except ValueError:
            pass
        try:
            until = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return self.backoff_seconds
        if until.tzinfo is None:
            return self.backoff_seconds
        return max(0.0, until.timestamp() - time.time())

    @staticmethod
    def _pause(seconds: float, cancel_event: Optional[threading.Event]) -> None:
        # Waiting on the event lets cancellation cut a backoff short.
        if cancel_event is None:
            time.sleep(seconds)
        else:
            cancel_event.wait(seconds)
