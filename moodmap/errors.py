"""Error types raised by the moodmap engine."""


class MoodMapError(Exception):
    """Base class for moodmap errors."""


class ProviderError(MoodMapError):
    """The sentiment provider could not deliver city data (network or parse)."""


class CityNotFoundError(MoodMapError, LookupError):
    """The requested city is absent from the provider's response."""

    def __init__(self, city: str) -> None:
        super().__init__(f"No sentiment data for city: {city}")
        self.city = city


class StoreError(MoodMapError):
    """A persistence store failed to load or save a blob."""
