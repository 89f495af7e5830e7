"""
Time-bounded cache of per-city mood records.

Expiry is checked lazily on access. Bulk fetches upsert every returned city
and never clear the cache first, so a city missing from a newer response keeps
its last-known record.
"""

import logging
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from .changes import ChangeFeed
from .errors import CityNotFoundError, ProviderError
from .models import CacheSnapshot, CityMoodRecord
from .providers import SentimentProvider

logger = logging.getLogger(__name__)


class SentimentCache:
    """
    Serves city mood records from a provider with a fixed time-to-live.

    Not internally serialized: two callers missing the cache at the same time
    each trigger their own provider call. State changes happen in a single
    non-suspending block after the provider returns, so no caller observes a
    half-updated entry.
    """

    TTL_SECONDS = 300.0

    def __init__(
        self,
        provider: SentimentProvider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._clock = clock
        self._entries: dict[str, tuple[CityMoodRecord, float]] = {}
        self._last_bulk_fetch: float | None = None
        self._changes: ChangeFeed[CacheSnapshot] = ChangeFeed(self.snapshot)

    @property
    def last_bulk_fetch(self) -> float | None:
        return self._last_bulk_fetch

    def cached(self) -> list[CityMoodRecord]:
        """Last-known-good records, without consulting the provider."""
        return [record for record, _ in self._entries.values()]

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            cities=[record.city for record in self.cached()],
            last_bulk_fetch=self._last_bulk_fetch,
        )

    async def get_all(self) -> list[CityMoodRecord]:
        """
        Get mood records for all cities.

        Returns:
            Cached records while the last bulk fetch is fresh, otherwise the
            records from a new provider call

        Raises:
            ProviderError: The provider failed; the cache is left unchanged
        """
        now = self._clock()
        if (
            self._last_bulk_fetch is not None
            and now - self._last_bulk_fetch < self.TTL_SECONDS
            and self._entries
        ):
            return self.cached()

        try:
            records = await self._provider.fetch_all_cities()
        except ProviderError:
            logger.warning(
                "Sentiment fetch failed, keeping %d cached cities", len(self._entries)
            )
            raise
        except Exception as e:
            logger.warning(
                "Sentiment provider raised %s, keeping %d cached cities",
                type(e).__name__,
                len(self._entries),
            )
            raise ProviderError(str(e) or type(e).__name__) from e

        stored_at = self._clock()
        for record in records:
            self._entries[record.key] = (record, stored_at)
        self._last_bulk_fetch = stored_at
        logger.info("Cached sentiment for %d cities", len(records))

        await self._changes.publish()
        return list(records)

    async def get_one(self, city: str) -> CityMoodRecord:
        """
        Get the mood record for one city, matched case-insensitively.

        Args:
            city: City name

        Returns:
            The city's record

        Raises:
            ProviderError: A refresh was needed and the provider failed
            CityNotFoundError: The city is not in the provider's data
        """
        key = city.lower()
        entry = self._entries.get(key)
        if entry is not None:
            record, stored_at = entry
            if self._clock() - stored_at < self.TTL_SECONDS:
                return record

        for record in await self.get_all():
            if record.key == key:
                return record

        raise CityNotFoundError(city)

    async def force_refresh(self) -> list[CityMoodRecord]:
        """Fetch from the provider regardless of freshness."""
        self._last_bulk_fetch = None
        return await self.get_all()

    def subscribe(self, callback: Callable[[CacheSnapshot], None]) -> Callable[[], None]:
        """Register a callback run after each successful bulk fetch."""
        return self._changes.subscribe(callback)

    @asynccontextmanager
    async def stream(self) -> AsyncGenerator[AsyncGenerator[CacheSnapshot, None], None]:
        """Stream a snapshot now and after each successful bulk fetch."""
        async with self._changes.stream() as snapshots:
            yield snapshots
