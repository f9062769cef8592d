r"""Per-endpoint latency recording.

``LatencyRecorder.record`` is called exactly once per call, on every
exit path. It logs the measurement, folds it into per-endpoint
statistics and forwards it to the optional sinks. It never raises: a
broken sink is logged and otherwise ignored.
"""

from __future__ import annotations

__all__ = ["DEFAULT_MAX_ENDPOINTS", "LatencyRecorder", "LatencyStats"]

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sharedhttp.core.validation import validate_positive
from sharedhttp.utils.structured_logging import LATENCY_EVENT, log_structured

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_MAX_ENDPOINTS = 1024


@dataclass(frozen=True)
class LatencyStats:
    """Aggregated latency of one endpoint, in milliseconds."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, elapsed_ms: float) -> LatencyStats:
        if self.count == 0:
            return LatencyStats(1, elapsed_ms, elapsed_ms, elapsed_ms, elapsed_ms)
        return LatencyStats(
            count=self.count + 1,
            total_ms=self.total_ms + elapsed_ms,
            min_ms=min(self.min_ms, elapsed_ms),
            max_ms=max(self.max_ms, elapsed_ms),
            last_ms=elapsed_ms,
        )


class LatencyRecorder:
    r"""Record elapsed time per logical endpoint.

    Thread-safe implementation using a lock, so the blocking façade and
    the event loop may both read the statistics.

    Args:
        sinks: Optional callables receiving ``(endpoint, elapsed_ms)``
            after each measurement.
        max_endpoints: Number of endpoints whose statistics are kept.
            The least recently measured endpoint is dropped beyond it,
            so paths carrying ids do not grow the map without bound.

    Example:
        ```pycon
        >>> from sharedhttp.latency import LatencyRecorder
        >>> recorder = LatencyRecorder()
        >>> recorder.record("/orders", 12.0)
        >>> recorder.record("/orders", 18.0)
        >>> recorder.stats("/orders").count, recorder.stats("/orders").mean_ms
        (2, 15.0)

        ```
    """

    def __init__(
        self,
        sinks: Iterable[Callable[[str, float], None]] = (),
        *,
        max_endpoints: int = DEFAULT_MAX_ENDPOINTS,
    ) -> None:
        validate_positive("max_endpoints", max_endpoints)
        self._sinks = tuple(sinks)
        self._max_endpoints = max_endpoints
        self._stats: OrderedDict[str, LatencyStats] = OrderedDict()
        self._lock = threading.Lock()

    def record(self, endpoint: str, elapsed_ms: float) -> None:
        """Record one measurement.

        Args:
            endpoint: The logical endpoint, i.e. the request path.
            elapsed_ms: The elapsed time of the call in milliseconds.
        """
        with self._lock:
            self._stats[endpoint] = self._stats.pop(endpoint, LatencyStats()).add(elapsed_ms)
            if len(self._stats) > self._max_endpoints:
                self._stats.popitem(last=False)
        try:
            log_structured(
                logger,
                logging.INFO,
                LATENCY_EVENT,
                endpoint=endpoint,
                elapsed_ms=round(elapsed_ms, 3),
            )
        except Exception:
            logger.exception(f"failed to log the latency of {endpoint}")
        for sink in self._sinks:
            try:
                sink(endpoint, elapsed_ms)
            except Exception:
                logger.exception(f"latency sink {sink!r} failed for {endpoint}")

    def stats(self, endpoint: str) -> LatencyStats:
        with self._lock:
            return self._stats.get(endpoint, LatencyStats())

    def snapshot(self) -> dict[str, LatencyStats]:
        """Return the statistics of every endpoint seen so far."""
        with self._lock:
            return dict(self._stats)
