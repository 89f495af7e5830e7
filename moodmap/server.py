"""
FastAPI relay for the moodmap engine.

This module exposes the sentiment cache, the daypart timeline and the location
tracker to display clients over HTTP, with Server-Sent Events streams for
cache and location changes.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .cache import SentimentCache
from .config import Settings, get_settings
from .errors import CityNotFoundError, ProviderError
from .log import setup_logging
from .models import (
    UNKNOWN_PLACE,
    CityMoodRecord,
    Coordinate,
    LocationFix,
    LocationRecord,
    Region,
    TimelineEntry,
)
from .persistence import FileStore, KeyValueStore, MemoryStore
from .places import mood_by_place
from .providers import HttpSentimentProvider, MockSentimentProvider, SentimentProvider
from .timeline import bucketize
from .tracker import LocationSignificanceTracker

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}


# API Request/Response Schemas
class LocationIngest(BaseModel):
    """Payload for location fix submissions."""

    lat: float = Field(..., description="Latitude in degrees")
    lon: float = Field(..., description="Longitude in degrees")
    timestamp: datetime = Field(..., description="When the fix was taken")
    city: str = Field(UNKNOWN_PLACE, description="City resolved by the geocoder")
    locality: str = Field(UNKNOWN_PLACE, description="Locality resolved by the geocoder")


class IngestResponse(BaseModel):
    accepted: bool


class PlaceCount(BaseModel):
    city: str
    count: int


def _sse_response(
    subscribe: Callable[[], AbstractAsyncContextManager[AsyncGenerator[BaseModel, None]]],
) -> StreamingResponse:
    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            async with subscribe() as snapshots:
                async for snapshot in snapshots:
                    yield f"data: {snapshot.model_dump_json()}\n\n"
        except asyncio.CancelledError:
            # Client disconnected
            pass
        except Exception as e:
            logger.exception("Change stream failed")
            error_data = json.dumps({"error": str(e)})
            yield f"event: error\ndata: {error_data}\n\n"

    return StreamingResponse(
        event_generator(), media_type="text/event-stream", headers=SSE_HEADERS
    )


def create_app(
    cache: SentimentCache,
    tracker: LocationSignificanceTracker,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Create a FastAPI application over the given engine components.

    Args:
        cache: Sentiment cache serving city records
        tracker: Location tracker; its history is loaded on startup
        clock: Returns the current local time for timelines

    Returns:
        Configured FastAPI application
    """
    now = clock or (lambda: datetime.now().astimezone())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await tracker.load()
        yield

    app = FastAPI(
        title="moodmap",
        description="City mood timelines and significant-location tracking",
        version="0.1.0",
        lifespan=lifespan,
    )

    async def _city(city: str) -> CityMoodRecord:
        try:
            return await cache.get_one(city)
        except CityNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=f"Sentiment provider error: {e}")

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "moodmap"}

    # MARK: - Cities

    @app.get("/cities")
    async def list_cities() -> list[CityMoodRecord]:
        """Mood records for every city, served from cache while fresh."""
        try:
            return await cache.get_all()
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=f"Sentiment provider error: {e}")

    @app.post("/cities/refresh")
    async def refresh_cities() -> list[CityMoodRecord]:
        """Refetch all cities regardless of cache freshness."""
        try:
            return await cache.force_refresh()
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=f"Sentiment provider error: {e}")

    # Registered before /cities/{city} so "stream" is not taken as a city name
    @app.get("/cities/stream")
    async def stream_cities() -> StreamingResponse:
        """Stream cache snapshots via Server-Sent Events."""
        return _sse_response(cache.stream)

    @app.get("/cities/{city}")
    async def get_city(city: str) -> CityMoodRecord:
        return await _city(city)

    @app.get("/cities/{city}/timeline")
    async def get_timeline(city: str) -> list[TimelineEntry]:
        """Daypart timeline for a city as of now."""
        record = await _city(city)
        return bucketize(record, now())

    # MARK: - Locations

    @app.post("/locations")
    async def ingest_location(payload: LocationIngest) -> IngestResponse:
        """
        Offer a geocoded position fix to the tracker.

        Returns:
            Whether the fix was significant and recorded
        """
        fix = LocationFix(lat=payload.lat, lon=payload.lon, timestamp=payload.timestamp)
        accepted = await tracker.ingest(fix, payload.city, payload.locality)
        return IngestResponse(accepted=accepted)

    @app.get("/locations/history")
    async def location_history() -> list[LocationRecord]:
        return tracker.history

    @app.get("/locations/top")
    async def top_places(limit: int = Query(5, ge=0)) -> list[PlaceCount]:
        return [PlaceCount(city=city, count=count) for city, count in tracker.top_places(limit)]

    @app.get("/locations/viewport")
    async def viewport(
        sample_size: int = Query(20, ge=1),
        lat: float | None = Query(None, ge=-90, le=90, description="Device latitude"),
        lon: float | None = Query(None, ge=-180, le=180, description="Device longitude"),
    ) -> Region:
        """
        Map region around recent visits.

        With no history, centers on the device position when both lat and
        lon are given.
        """
        if (lat is None) != (lon is None):
            raise HTTPException(status_code=422, detail="lat and lon must be given together")
        current = Coordinate(lat=lat, lon=lon) if lat is not None else None
        return tracker.recent_viewport(sample_size, current)

    @app.get("/locations/moods")
    async def place_moods(limit: int = Query(5, ge=0)) -> dict[str, float]:
        """Current mood score for each of the most visited cities."""
        try:
            return await mood_by_place(tracker, cache, limit)
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=f"Sentiment provider error: {e}")

    @app.get("/locations/stream")
    async def stream_locations() -> StreamingResponse:
        """Stream tracker snapshots via Server-Sent Events."""
        return _sse_response(tracker.stream)

    return app


def build_provider(settings: Settings) -> SentimentProvider:
    if settings.use_mock_provider:
        return MockSentimentProvider()
    return HttpSentimentProvider(
        settings.sentiment_base_url,
        settings.sentiment_path,
        timeout=settings.provider_timeout_s,
    )


def build_store(settings: Settings) -> KeyValueStore:
    if settings.data_dir:
        return FileStore(settings.data_dir)
    return MemoryStore()


def create_app_from_settings(settings: Settings | None = None) -> FastAPI:
    """Wire engine components from configuration."""
    settings = settings or get_settings()
    cache = SentimentCache(build_provider(settings))
    tracker = LocationSignificanceTracker(build_store(settings))
    return create_app(cache, tracker)


def main() -> None:
    """Main entry point for the server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        "moodmap.server:create_app_from_settings",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
