"""
Sentiment providers for the moodmap engine.

A provider yields the full set of city mood records in one call. The cache is
the only caller; it owns retry-free staleness handling and never calls a
provider for a single city.
"""

import logging
import random
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx
from pydantic import ValidationError

from .errors import ProviderError
from .models import CityMoodRecord, CitySentimentResponse, MoodSample, Theme

logger = logging.getLogger(__name__)


class SentimentProvider(Protocol):
    async def fetch_all_cities(self) -> list[CityMoodRecord]:
        """Return mood records for every known city or raise ProviderError."""
        ...


# MARK: - Network


class HttpSentimentProvider:
    """Fetches city sentiment from the sentiment API over HTTP."""

    def __init__(
        self,
        base_url: str,
        path: str = "/cities",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{path}"
        self._timeout = timeout
        self._client = client

    async def fetch_all_cities(self) -> list[CityMoodRecord]:
        try:
            if self._client is not None:
                response = await self._client.get(self._url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url)
            response.raise_for_status()
            payload = CitySentimentResponse.model_validate_json(response.content)
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Sentiment API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Sentiment API request failed: {e}") from e
        except ValidationError as e:
            raise ProviderError(f"Malformed sentiment payload: {e}") from e

        logger.debug("Fetched %d cities from %s", len(payload.cities), self._url)
        return payload.cities


# MARK: - Mock


MOCK_THEMES = (
    Theme(
        name="Transport Safety & Transit",
        description="Public transportation and traffic safety issues",
        impact=0.3,
    ),
    Theme(
        name="Local Politics / Policy",
        description="Public opinion on local government decisions",
        impact=0.4,
    ),
    Theme(
        name="Crime & Policing",
        description="Safety concerns and police activity",
        impact=0.2,
    ),
    Theme(
        name="Weather",
        description="Current weather conditions and forecasts",
        impact=0.8,
    ),
)

MOCK_CITY_SCORES = {
    "San Francisco": 0.8,
    "New York": 0.4,
    "Chicago": 0.6,
}

# Base score by hours-ago modulo 6
_HOURLY_PATTERN = (0.8, 0.6, 0.5, 0.4, 0.3, 0.7)


class MockSentimentProvider:
    """
    Deterministic stand-in for the sentiment API.

    Test fixture, not production logic: each city's 24 hourly samples come
    from a random.Random seeded with the city name, so the same city and clock
    always produce the same timeline.
    """

    def __init__(
        self,
        cities: dict[str, float] | None = None,
        clock: Callable[[], float] = time.time,
        hours: int = 24,
    ) -> None:
        self._cities = dict(MOCK_CITY_SCORES if cities is None else cities)
        self._clock = clock
        self._hours = hours
        self.calls = 0

    async def fetch_all_cities(self) -> list[CityMoodRecord]:
        self.calls += 1
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return [
            CityMoodRecord(
                city=city,
                current_score=score,
                as_of=now,
                themes=MOCK_THEMES,
                timeline=self._timeline(city, now),
            )
            for city, score in self._cities.items()
        ]

    def _timeline(self, city: str, now: datetime) -> tuple[MoodSample, ...]:
        rng = random.Random(city.lower())
        samples = []
        for hours_ago in range(self._hours):
            score = _HOURLY_PATTERN[hours_ago % len(_HOURLY_PATTERN)]
            score += rng.uniform(-0.1, 0.1)
            score = min(max(score, 0.0), 1.0)
            samples.append(
                MoodSample(timestamp=now - timedelta(hours=hours_ago), score=score)
            )
        return tuple(samples)
