"""Correlates visited places with their current city mood."""

from .cache import SentimentCache
from .errors import CityNotFoundError
from .tracker import LocationSignificanceTracker


async def mood_by_place(
    tracker: LocationSignificanceTracker, cache: SentimentCache, limit: int = 5
) -> dict[str, float]:
    """
    Current mood score of each of the most visited cities.

    Cities the sentiment provider does not know are left out. Provider
    failures propagate as ProviderError.
    """
    moods: dict[str, float] = {}
    for city, _ in tracker.top_places(limit):
        try:
            record = await cache.get_one(city)
        except CityNotFoundError:
            continue
        moods[city] = record.current_score
    return moods
