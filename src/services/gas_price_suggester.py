from __future__ import annotations

import logging
import math
import threading
import time
from datetime import timedelta
from typing import Callable, Protocol

from domain.gas import GasPriceQuotes, GasPriority, suggested_wei

logger = logging.getLogger(__name__)


class GasQuotesSource(Protocol):
    def fetch_quotes(self) -> GasPriceQuotes: ...


class GasPriceSuggester:
    """Suggests gas prices in wei, reusing the last quotes until they exceed max_result_age.

    The quotes are fetched once on construction, so a suggester always holds a
    valid snapshot. A refresh happens lazily on the first call that finds the
    snapshot too old. The fetch runs while holding the lock: concurrent callers
    wait for the in-flight refresh instead of starting their own. A failed
    refresh raises to the caller that triggered it and keeps the previous
    snapshot and its timestamp.
    """

    def __init__(
        self,
        client: GasQuotesSource,
        max_result_age: timedelta | float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        max_age_seconds = max_result_age.total_seconds() if isinstance(max_result_age, timedelta) else max_result_age
        if not math.isfinite(max_age_seconds) or max_age_seconds < 0:
            msg = "max_result_age must be a finite number >= 0"
            raise ValueError(msg)

        self.client = client
        self.max_age_seconds = float(max_age_seconds)
        self._clock = clock
        self._lock = threading.Lock()

        self._quotes = client.fetch_quotes()
        self._fetched_at = clock()

    def __call__(self, priority: GasPriority | str) -> int:
        return self.suggest(priority)

    def suggest(self, priority: GasPriority | str) -> int:
        with self._lock:
            if self._is_stale_locked():
                self._refresh_locked()
            quotes = self._quotes

        return suggested_wei(priority, quotes)

    @property
    def fetched_at(self) -> float:
        with self._lock:
            return self._fetched_at

    def age(self) -> float:
        with self._lock:
            return self._clock() - self._fetched_at

    def is_stale(self) -> bool:
        with self._lock:
            return self._is_stale_locked()

    def _is_stale_locked(self) -> bool:
        return self._clock() - self._fetched_at > self.max_age_seconds

    def _refresh_locked(self) -> None:
        logger.debug("Gas price quotes older than %.3fs, refreshing", self.max_age_seconds)
        try:
            quotes = self.client.fetch_quotes()
        except Exception:
            logger.warning(
                "Gas price refresh failed, keeping quotes fetched %.3fs ago",
                self._clock() - self._fetched_at,
            )
            raise
        self._quotes = quotes
        self._fetched_at = self._clock()


__all__ = ["GasPriceSuggester", "GasQuotesSource"]
