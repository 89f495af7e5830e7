"""
Significant-location tracking.

Filters a stream of raw position fixes down to the ones worth recording,
keeps a bounded history of them, counts visits per city and derives a map
viewport around recent visits.
"""

import asyncio
import logging
import math
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from pydantic import TypeAdapter, ValidationError

from .changes import ChangeFeed
from .errors import StoreError
from .models import (
    UNKNOWN_PLACE,
    Coordinate,
    LocationFix,
    LocationRecord,
    Region,
    Span,
    TrackerSnapshot,
)
from .persistence import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "locationHistory"
HISTORY_LIMIT = 100
DISTANCE_THRESHOLD_M = 200.0
TIME_THRESHOLD_S = 600.0

DEFAULT_CENTER = Coordinate(lat=37.7749, lon=-122.4194)
DEFAULT_SPAN = 0.1
CURRENT_FIX_SPAN = 0.05
MIN_PADDING = 0.02
PADDING_RATIO = 0.3

EARTH_RADIUS_M = 6_371_000.0

_history_adapter = TypeAdapter(list[LocationRecord])


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def encode_history(history: list[LocationRecord]) -> bytes:
    return _history_adapter.dump_json(history)


def decode_history(data: bytes) -> list[LocationRecord]:
    return _history_adapter.validate_json(data)


def count_places(history: list[LocationRecord]) -> dict[str, int]:
    """Visit count per city, in first-seen order, ignoring unknown places."""
    frequency: dict[str, int] = {}
    for record in history:
        if record.city != UNKNOWN_PLACE:
            frequency[record.city] = frequency.get(record.city, 0) + 1
    return frequency


class LocationSignificanceTracker:
    """
    Records significant location fixes.

    A fix is significant when there is no previous accepted fix, when it is
    more than 200 m from the previous accepted fix, or when more than 10
    minutes passed since it. The history is written to the store after every
    accepted fix and the per-city frequency map is always derived from it on
    load, never stored.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._last_accepted: LocationFix | None = None
        self._history: list[LocationRecord] = []
        self._frequency: dict[str, int] = {}
        self._changes: ChangeFeed[TrackerSnapshot] = ChangeFeed(self.snapshot)

    @property
    def last_accepted(self) -> LocationFix | None:
        return self._last_accepted

    @property
    def history(self) -> list[LocationRecord]:
        return list(self._history)

    @property
    def frequency(self) -> dict[str, int]:
        return dict(self._frequency)

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            latest=self._history[-1] if self._history else None,
            history_size=len(self._history),
        )

    async def load(self) -> None:
        """
        Replace in-memory state with the persisted history.

        Unreadable or malformed history is logged and treated as empty.
        """
        try:
            data = await self._store.load(HISTORY_KEY)
        except StoreError:
            logger.exception("Could not load location history")
            data = None

        history: list[LocationRecord] = []
        if data:
            try:
                history = decode_history(data)
            except ValidationError:
                logger.exception("Discarding malformed location history")

        async with self._lock:
            self._history = history[-HISTORY_LIMIT:]
            self._frequency = count_places(self._history)
            self._last_accepted = None

        logger.info("Loaded %d location records", len(self._history))
        await self._changes.publish()

    def is_significant(self, fix: LocationFix) -> bool:
        """Whether fix passes the distance/time threshold against the last accepted fix."""
        last = self._last_accepted
        if last is None:
            return True

        distance = haversine_m(last.lat, last.lon, fix.lat, fix.lon)
        elapsed = (fix.timestamp - last.timestamp).total_seconds()
        return distance > DISTANCE_THRESHOLD_M or elapsed > TIME_THRESHOLD_S

    async def ingest(
        self,
        fix: LocationFix,
        city: str = UNKNOWN_PLACE,
        locality: str = UNKNOWN_PLACE,
    ) -> bool:
        """
        Offer a position fix to the tracker.

        Args:
            fix: Raw position fix
            city: City resolved for the fix by the caller's geocoder
            locality: Neighborhood or locality resolved for the fix

        Returns:
            True if the fix was significant and recorded; fixes with NaN,
            infinite or out-of-range coordinates are never recorded
        """
        if not fix.in_range:
            logger.warning("Ignored malformed fix at (%s, %s)", fix.lat, fix.lon)
            return False

        async with self._lock:
            if not self.is_significant(fix):
                logger.debug("Dropped fix at (%.5f, %.5f)", fix.lat, fix.lon)
                return False

            self._last_accepted = fix
            self._history.append(
                LocationRecord(
                    lat=fix.lat,
                    lon=fix.lon,
                    timestamp=fix.timestamp,
                    city=city,
                    locality=locality,
                )
            )
            overflow = len(self._history) - HISTORY_LIMIT
            if overflow > 0:
                del self._history[:overflow]
                logger.debug("Evicted %d oldest location records", overflow)

            if city != UNKNOWN_PLACE:
                self._frequency[city] = self._frequency.get(city, 0) + 1

            try:
                await self._store.save(HISTORY_KEY, encode_history(self._history))
            except StoreError:
                # Kept in memory; the next accepted fix rewrites the full history
                logger.exception("Could not persist location history")

        logger.debug("Recorded fix in %s (%s)", city, locality)
        await self._changes.publish()
        return True

    def top_places(self, limit: int = 5) -> list[tuple[str, int]]:
        """
        Most visited cities.

        Returns:
            (city, count) pairs by count descending; equal counts keep the
            order in which the cities were first visited
        """
        if limit <= 0:
            return []
        ranked = sorted(self._frequency.items(), key=lambda item: item[1], reverse=True)
        return ranked[:limit]

    def recent_viewport(
        self, sample_size: int = 20, current: Coordinate | None = None
    ) -> Region:
        """
        Map region enclosing the most recent visits.

        Args:
            sample_size: How many of the latest records to enclose
            current: Position to center on when there is no history

        Returns:
            A region with a non-zero span on both axes
        """
        recent = self._history[-sample_size:] if sample_size > 0 else []

        if not recent:
            if current is not None:
                return Region(
                    center=current,
                    span=Span(lat_delta=CURRENT_FIX_SPAN, lon_delta=CURRENT_FIX_SPAN),
                )
            return Region(
                center=DEFAULT_CENTER,
                span=Span(lat_delta=DEFAULT_SPAN, lon_delta=DEFAULT_SPAN),
            )

        min_lat = min(record.lat for record in recent)
        max_lat = max(record.lat for record in recent)
        min_lon = min(record.lon for record in recent)
        max_lon = max(record.lon for record in recent)

        lat_padding = max(MIN_PADDING, (max_lat - min_lat) * PADDING_RATIO)
        lon_padding = max(MIN_PADDING, (max_lon - min_lon) * PADDING_RATIO)

        return Region(
            center=Coordinate(lat=(min_lat + max_lat) / 2, lon=(min_lon + max_lon) / 2),
            span=Span(
                lat_delta=max_lat - min_lat + 2 * lat_padding,
                lon_delta=max_lon - min_lon + 2 * lon_padding,
            ),
        )

    def subscribe(
        self, callback: Callable[[TrackerSnapshot], None]
    ) -> Callable[[], None]:
        """Register a callback run after each accepted fix."""
        return self._changes.subscribe(callback)

    @asynccontextmanager
    async def stream(self) -> AsyncGenerator[AsyncGenerator[TrackerSnapshot, None], None]:
        """Stream a snapshot now and after each accepted fix."""
        async with self._changes.stream() as snapshots:
            yield snapshots
