"""
Shared fixtures for the moodmap tests.

Tests never touch the network or the real clock: providers are stubs and time
comes from a FakeClock advanced by hand.
"""

from datetime import datetime, timedelta, timezone

import pytest

from moodmap.errors import ProviderError
from moodmap.models import CityMoodRecord, LocationFix, MoodSample

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock returning seconds; tests move it with advance()/set()."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def set(self, now: float) -> None:
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider:
    """Sentiment provider returning canned records and counting calls."""

    def __init__(self, records: list[CityMoodRecord] | None = None) -> None:
        self.records = records or []
        self.error: Exception | None = None
        self.calls = 0

    async def fetch_all_cities(self) -> list[CityMoodRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


def make_record(
    city: str,
    score: float = 0.5,
    samples: list[tuple[datetime, float]] | None = None,
) -> CityMoodRecord:
    return CityMoodRecord(
        city=city,
        current_score=score,
        as_of=T0,
        timeline=[MoodSample(timestamp=ts, score=s) for ts, s in samples or []],
    )


def make_fix(lat: float, lon: float, seconds: float = 0.0) -> LocationFix:
    return LocationFix(lat=lat, lon=lon, timestamp=T0 + timedelta(seconds=seconds))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider([make_record("Austin", 0.7), make_record("Chicago", 0.3)])


@pytest.fixture
def failing_provider() -> StubProvider:
    stub = StubProvider()
    stub.error = ProviderError("connection refused")
    return stub
