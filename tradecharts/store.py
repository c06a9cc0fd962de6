"""
In-memory rolling price history.

One bounded deque per symbol. Appends come from the event loop while analysis
reads from worker threads, so every series has its own lock. The registry lock
is only taken when a symbol is seen for the first time; unrelated symbols never
contend with each other.

Readers always receive a tuple copy, never the live deque.
"""

import logging
import threading
from collections import deque
from typing import Iterable

from tradecharts.entities import PricePoint
from tradecharts.errors import InvalidTickError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20_000


class _Series:
    __slots__ = ("lock", "points")

    def __init__(self, capacity: int) -> None:
        self.lock = threading.Lock()
        self.points: deque[PricePoint] = deque(maxlen=capacity)


class PriceSeriesCache:
    """Thread-safe per-symbol store of recent PricePoints.

    Oldest points are evicted first once a series reaches ``capacity``.
    Timestamps within a series are non-decreasing.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._series: dict[str, _Series] = {}
        self._registry_lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, symbol: str, point: PricePoint) -> None:
        """Append one point, evicting the oldest when full.

        Raises:
            InvalidTickError: If the point is older than the latest one held.
        """
        series = self._get_or_create(symbol)
        with series.lock:
            if series.points and point.timestamp < series.points[-1].timestamp:
                raise InvalidTickError(
                    symbol,
                    f"timestamp {point.timestamp} precedes latest "
                    f"{series.points[-1].timestamp}",
                )
            series.points.append(point)

    def seed(self, symbol: str, points: Iterable[PricePoint]) -> int:
        """Bulk-load historical points in timestamp order.

        Points older than what the series already holds are skipped.
        Returns the number of points stored.
        """
        ordered = sorted(points, key=lambda p: p.timestamp)
        series = self._get_or_create(symbol)
        stored = 0
        with series.lock:
            for point in ordered:
                if series.points and point.timestamp < series.points[-1].timestamp:
                    continue
                series.points.append(point)
                stored += 1
        logger.info("Seeded %d points for %s", stored, symbol)
        return stored

    def clear(self, symbol: str | None = None) -> None:
        with self._registry_lock:
            if symbol is None:
                self._series.clear()
            else:
                self._series.pop(symbol, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, symbol: str, max_points: int | None = None) -> tuple[PricePoint, ...]:
        """Return a copy of the series, optionally only the newest ``max_points``."""
        series = self._series.get(symbol)
        if series is None:
            return ()
        with series.lock:
            if max_points is None or max_points >= len(series.points):
                return tuple(series.points)
            if max_points <= 0:
                return ()
            start = len(series.points) - max_points
            return tuple(series.points[i] for i in range(start, len(series.points)))

    def latest(self, symbol: str) -> PricePoint | None:
        series = self._series.get(symbol)
        if series is None:
            return None
        with series.lock:
            return series.points[-1] if series.points else None

    def count(self, symbol: str) -> int:
        series = self._series.get(symbol)
        if series is None:
            return 0
        with series.lock:
            return len(series.points)

    def symbols(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._series)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_or_create(self, symbol: str) -> _Series:
        series = self._series.get(symbol)
        if series is not None:
            return series
        with self._registry_lock:
            series = self._series.get(symbol)
            if series is None:
                series = _Series(self._capacity)
                self._series[symbol] = series
                logger.debug("Created price series for %s", symbol)
            return series
