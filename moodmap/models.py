"""
Shared data models for the moodmap engine.

This module defines the core domain models used across multiple layers
of the application (cache, timeline, location tracking, API, CLI).
"""

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .emotion import Emotion

UNKNOWN_PLACE = "Unknown"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# MARK: - Sentiment


class MoodSample(_Frozen):
    """A single point observation of a city's mood."""

    timestamp: datetime = Field(..., description="When the score was observed")
    score: float = Field(..., description="Normalized mood score in [0, 1]")


class Theme(_Frozen):
    """A topic influencing a city's mood."""

    name: str
    description: str = ""
    impact: float = Field(
        0.5, description="Influence in [0, 1]; 0.5 is neutral, above is positive"
    )


class CityMoodRecord(_Frozen):
    """Mood data for one city as returned by a sentiment provider."""

    city: str = Field(..., description="City name, matched case-insensitively")
    current_score: float = Field(..., alias="currentMoodScore")
    as_of: datetime = Field(..., alias="timestamp")
    themes: tuple[Theme, ...] = ()
    timeline: tuple[MoodSample, ...] = Field(
        (), alias="moodTimeline", description="Samples in no particular order"
    )

    @property
    def key(self) -> str:
        return self.city.lower()

    @property
    def emotion(self) -> Emotion:
        return Emotion.from_score(self.current_score)


class CitySentimentResponse(BaseModel):
    """Payload of the city sentiment endpoint."""

    cities: list[CityMoodRecord]
    timestamp: datetime | None = None


# MARK: - Timeline


class DayLabel(str, Enum):
    YESTERDAY = "Yesterday"
    TODAY = "Today"
    TOMORROW = "Tomorrow"


class Segment(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    NIGHT = "Night"


class TimelineEntry(_Frozen):
    """One daypart of a display timeline."""

    day_label: DayLabel
    segment: Segment
    emotion: Emotion
    is_now: bool = False


# MARK: - Location


def _assume_utc(value: datetime) -> datetime:
    """Naive fix times are taken as UTC so fixes always compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Coordinate(_Frozen):
    lat: float
    lon: float


class LocationFix(_Frozen):
    """A raw, unvalidated position report from a location provider."""

    lat: float
    lon: float
    timestamp: datetime

    normalize_timestamp = field_validator("timestamp")(_assume_utc)

    @property
    def in_range(self) -> bool:
        """Whether both coordinates are finite and within latitude/longitude bounds."""
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lon)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lon <= 180.0
        )

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


class LocationRecord(_Frozen):
    """A significant fix kept in the location history."""

    lat: float
    lon: float
    timestamp: datetime
    city: str = UNKNOWN_PLACE
    locality: str = UNKNOWN_PLACE

    normalize_timestamp = field_validator("timestamp")(_assume_utc)


class Span(_Frozen):
    lat_delta: float
    lon_delta: float


class Region(_Frozen):
    """A map viewport: center point plus latitude/longitude span in degrees."""

    center: Coordinate
    span: Span


# MARK: - Change snapshots


class CacheSnapshot(BaseModel):
    """State published after each successful bulk fetch."""

    cities: list[str] = Field(default_factory=list)
    last_bulk_fetch: float | None = None


class TrackerSnapshot(BaseModel):
    """State published after each accepted location fix."""

    latest: LocationRecord | None = None
    history_size: int = 0
