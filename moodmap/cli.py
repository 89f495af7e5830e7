"""
Command-line interface tools for the moodmap relay.
"""

import asyncio
import json
from collections.abc import Coroutine
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import typer
from httpx_sse import ServerSentEvent, aconnect_sse

from .emotion import classify
from .models import CityMoodRecord, Region, TimelineEntry, TrackerSnapshot

DEFAULT_BASE_URL = "http://localhost:8000"

app = typer.Typer(help="moodmap CLI tools")

UrlOption = typer.Option(
    DEFAULT_BASE_URL, "--url", "-u", help="Base URL of the moodmap relay"
)
JsonOption = typer.Option(False, "--json", "-j", help="Output raw JSON")


# MARK: - Commands


@app.command()
def cities(base_url: str = UrlOption, json_output: bool = JsonOption) -> None:
    """List the current mood of every city."""

    async def _cities() -> None:
        result = await _get(base_url, "/cities")
        if json_output:
            print(json.dumps(result, indent=2))
            return

        for raw in result:
            print(_format_city(CityMoodRecord.model_validate(raw)))

    _run_with_error_handling(_cities(), base_url)


@app.command()
def city(
    name: str = typer.Argument(..., help="City name (case-insensitive)"),
    base_url: str = UrlOption,
    json_output: bool = JsonOption,
) -> None:
    """Show a city's current mood and themes."""

    async def _city() -> None:
        result = await _get(base_url, f"/cities/{name}")
        if json_output:
            print(json.dumps(result, indent=2))
            return

        record = CityMoodRecord.model_validate(result)
        print(_format_city(record))
        for theme in record.themes:
            print(f"  {theme.name}: {theme.impact:.2f}")

    _run_with_error_handling(_city(), base_url)


@app.command()
def timeline(
    name: str = typer.Argument(..., help="City name (case-insensitive)"),
    base_url: str = UrlOption,
    json_output: bool = JsonOption,
) -> None:
    """Show a city's daypart mood timeline."""

    async def _timeline() -> None:
        result = await _get(base_url, f"/cities/{name}/timeline")
        if json_output:
            print(json.dumps(result, indent=2))
            return

        for raw in result:
            print(_format_entry(TimelineEntry.model_validate(raw)))

    _run_with_error_handling(_timeline(), base_url)


@app.command()
def ingest(
    lat: float = typer.Argument(..., help="Latitude in degrees"),
    lon: float = typer.Argument(..., help="Longitude in degrees"),
    city_name: str = typer.Option("Unknown", "--city", "-c", help="Resolved city"),
    locality: str = typer.Option("Unknown", "--locality", "-l", help="Resolved locality"),
    base_url: str = UrlOption,
) -> None:
    """Submit a position fix taken now."""

    async def _ingest() -> None:
        payload = {
            "lat": lat,
            "lon": lon,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "city": city_name,
            "locality": locality,
        }
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{base_url}/locations", json=payload)
            response.raise_for_status()
            accepted = response.json()["accepted"]
        print("Recorded" if accepted else "Not significant, dropped")

    _run_with_error_handling(_ingest(), base_url)


@app.command()
def top(
    limit: int = typer.Option(5, "--limit", "-n", help="Number of places"),
    base_url: str = UrlOption,
) -> None:
    """Show the most visited cities."""

    async def _top() -> None:
        result = await _get(base_url, f"/locations/top?limit={limit}")
        if not result:
            print("No places recorded")
        for place in result:
            print(f"{place['count']:>4}  {place['city']}")

    _run_with_error_handling(_top(), base_url)


@app.command()
def viewport(
    sample_size: int = typer.Option(20, "--sample-size", "-s", help="Recent visits to enclose"),
    lat: Optional[float] = typer.Option(None, "--lat", help="Current latitude, used with no history"),
    lon: Optional[float] = typer.Option(None, "--lon", help="Current longitude, used with no history"),
    base_url: str = UrlOption,
) -> None:
    """Show the map region around recent visits."""

    async def _viewport() -> None:
        path = f"/locations/viewport?sample_size={sample_size}"
        if lat is not None and lon is not None:
            path += f"&lat={lat}&lon={lon}"
        result = await _get(base_url, path)
        print(_format_region(Region.model_validate(result)))

    _run_with_error_handling(_viewport(), base_url)


@app.command()
def stream(base_url: str = UrlOption) -> None:
    """Stream recorded locations in real-time."""

    async def _stream() -> None:
        print(f"Streaming from {base_url}/locations/stream... (Ctrl+C to stop)")

        async with httpx.AsyncClient(timeout=None) as client:
            async with aconnect_sse(
                client, "GET", f"{base_url}/locations/stream"
            ) as event_source:
                async for sse in event_source.aiter_sse():
                    _handle_sse_event(sse)

    _run_with_error_handling(_stream(), base_url)


# MARK: - Private Helpers


async def _get(base_url: str, path: str) -> Any:
    async with httpx.AsyncClient() as client:
        response = await client.get(f"{base_url}{path}")
        response.raise_for_status()
        return response.json()


def _format_city(record: CityMoodRecord) -> str:
    emotion = classify(record.current_score)
    return f"{emotion.emoji} {record.city}: {emotion.label} ({record.current_score:.2f})"


def _format_entry(entry: TimelineEntry) -> str:
    marker = "  <- now" if entry.is_now else ""
    label = f"{entry.day_label.value} {entry.segment.value}"
    return f"{label:<20} {entry.emotion.emoji} {entry.emotion.label}{marker}"


def _format_region(region: Region) -> str:
    return (
        f"center ({region.center.lat:.5f}, {region.center.lon:.5f}) "
        f"span {region.span.lat_delta:.4f} x {region.span.lon_delta:.4f}"
    )


def _format_snapshot(snapshot: TrackerSnapshot) -> str:
    """Format a tracker snapshot with the latest record's local time."""
    latest = snapshot.latest
    if latest is None:
        return f"No locations recorded ({snapshot.history_size} in history)"

    timestamp = latest.timestamp.astimezone().strftime("%H:%M:%S")
    return f"{timestamp} > {latest.city} / {latest.locality} ({snapshot.history_size} in history)"


def _handle_sse_event(sse: ServerSentEvent) -> None:
    """Handle a single SSE event."""
    try:
        if sse.event == "error":
            error_data = json.loads(sse.data)
            print(f"Server error: {error_data.get('error', 'Unknown error')}")
            return

        raw_data = json.loads(sse.data)
        if "error" in raw_data:
            print(f"Server error: {raw_data['error']}")
            return

        print(_format_snapshot(TrackerSnapshot.model_validate(raw_data)))

    except json.JSONDecodeError as e:
        print(f"Warning: Could not parse SSE data: {sse.data} - {e}")
    except Exception as e:
        print(f"Warning: Error processing location data: {e}")


def _run_with_error_handling(coro: Coroutine[Any, Any, Any], base_url: str) -> None:
    """Run an async coroutine with standardized error handling."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        print("\nStopped")
        raise typer.Exit(0)
    except httpx.ConnectError:
        print(f"Error: Could not connect to {base_url}")
        raise typer.Exit(1)
    except httpx.HTTPStatusError as e:
        detail = _error_detail(e.response)
        print(f"Error: HTTP {e.response.status_code}{detail}")
        raise typer.Exit(1)
    except Exception as e:
        error_msg = str(e) if str(e) else f"Unknown error of type {type(e).__name__}"
        print(f"Error: {error_msg}")
        raise typer.Exit(1)


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        return ""
    return f" - {detail}" if isinstance(detail, str) else ""


def main() -> None:
    """Entry point for the moodmap command."""
    app()


if __name__ == "__main__":
    main()
