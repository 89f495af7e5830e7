"""
Tests for the sentiment providers.

The HTTP provider is exercised against httpx.MockTransport; nothing here
reaches the network.
"""

import json

import httpx
import pytest

from conftest import T0
from moodmap.errors import ProviderError
from moodmap.providers import (
    MOCK_CITY_SCORES,
    HttpSentimentProvider,
    MockSentimentProvider,
)

PAYLOAD = {
    "cities": [
        {
            "city": "Austin",
            "currentMoodScore": 0.72,
            "timestamp": "2026-03-10T12:00:00Z",
            "themes": [
                {"name": "Weather", "description": "Sunny", "impact": 0.8},
                {"name": "Traffic", "description": "I-35", "impact": 0.2},
            ],
            "moodTimeline": [
                {"timestamp": "2026-03-10T11:00:00Z", "score": 0.6},
                {"timestamp": "2026-03-10T09:00:00Z", "score": 0.4},
            ],
        }
    ],
    "timestamp": "2026-03-10T12:00:00Z",
}


def http_provider(handler) -> HttpSentimentProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSentimentProvider("https://sentiment.test/", "/cities", client=client)


class TestHttpSentimentProvider:
    """Test suite for the network provider."""

    async def test_parses_city_payload(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json=PAYLOAD)

        cities = await http_provider(handler).fetch_all_cities()

        assert requested == ["https://sentiment.test/cities"]
        assert len(cities) == 1
        austin = cities[0]
        assert austin.city == "Austin"
        assert austin.key == "austin"
        assert austin.current_score == 0.72
        assert austin.as_of == T0
        assert [t.name for t in austin.themes] == ["Weather", "Traffic"]
        assert [s.score for s in austin.timeline] == [0.6, 0.4]

    async def test_server_error_raises_provider_error(self):
        provider = http_provider(lambda request: httpx.Response(503))
        with pytest.raises(ProviderError, match="503"):
            await provider.fetch_all_cities()

    async def test_transport_error_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as excinfo:
            await http_provider(handler).fetch_all_cities()
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    async def test_malformed_payload_raises_provider_error(self):
        broken = {"cities": [{"city": "Austin"}]}
        provider = http_provider(lambda request: httpx.Response(200, json=broken))
        with pytest.raises(ProviderError, match="Malformed"):
            await provider.fetch_all_cities()

    async def test_invalid_json_raises_provider_error(self):
        provider = http_provider(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ProviderError):
            await provider.fetch_all_cities()

    async def test_record_serializes_with_wire_names(self):
        provider = http_provider(lambda request: httpx.Response(200, json=PAYLOAD))
        austin = (await provider.fetch_all_cities())[0]
        wire = json.loads(austin.model_dump_json(by_alias=True))
        assert wire["currentMoodScore"] == 0.72
        assert len(wire["moodTimeline"]) == 2


class TestMockSentimentProvider:
    """Test suite for the deterministic mock provider."""

    def setup_method(self):
        self.clock = lambda: T0.timestamp()

    async def test_default_cities(self):
        cities = await MockSentimentProvider(clock=self.clock).fetch_all_cities()
        assert {c.city: c.current_score for c in cities} == MOCK_CITY_SCORES
        for city in cities:
            assert len(city.themes) == 4
            assert len(city.timeline) == 24
            assert all(0.0 <= s.score <= 1.0 for s in city.timeline)
            assert city.as_of == T0

    async def test_timeline_is_deterministic_per_city(self):
        first = await MockSentimentProvider(clock=self.clock).fetch_all_cities()
        second = await MockSentimentProvider(clock=self.clock).fetch_all_cities()
        assert first == second

        by_city = {c.city: c.timeline for c in first}
        assert by_city["Chicago"] != by_city["New York"]

    async def test_hourly_samples_go_back_from_now(self):
        cities = await MockSentimentProvider(
            {"Austin": 0.5}, clock=self.clock, hours=3
        ).fetch_all_cities()
        timestamps = [s.timestamp for s in cities[0].timeline]
        assert timestamps[0] == T0
        assert (timestamps[0] - timestamps[-1]).total_seconds() == 2 * 3600

    async def test_counts_calls(self):
        provider = MockSentimentProvider(clock=self.clock)
        await provider.fetch_all_cities()
        await provider.fetch_all_cities()
        assert provider.calls == 2
