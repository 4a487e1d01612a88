"""Current weather lookup via Open-Meteo (free, no API key).

Accepts a city name, which is geocoded first, or explicit coordinates.
"""

from __future__ import annotations

from typing import Any, Self

import httpx
from pydantic import Field, model_validator

from studybuddy.config import WeatherSettings, get_settings
from studybuddy.core import CapabilityParams, Success, TurnContext, capability
from studybuddy.errors import CapabilityException, ErrorCode

# WMO weather interpretation codes returned by Open-Meteo
WMO_CONDITIONS: dict[int, str] = {
    0: "Clear",
    1: "Mainly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing Rime Fog",
    51: "Light Drizzle",
    53: "Moderate Drizzle",
    55: "Dense Drizzle",
    56: "Freezing Drizzle",
    57: "Heavy Freezing Drizzle",
    61: "Slight Rain",
    63: "Moderate Rain",
    65: "Heavy Rain",
    66: "Freezing Rain",
    67: "Heavy Freezing Rain",
    71: "Slight Snow",
    73: "Moderate Snow",
    75: "Heavy Snow",
    77: "Snow Grains",
    80: "Slight Showers",
    81: "Moderate Showers",
    82: "Violent Showers",
    85: "Slight Snow Showers",
    86: "Heavy Snow Showers",
    95: "Thunderstorms",
    96: "Thunderstorms with Hail",
    99: "Heavy Thunderstorms with Hail",
}


class WeatherParams(CapabilityParams):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    city: str | None = Field(default=None, description="City name (e.g., 'San Francisco', 'New York', 'London')")

    @model_validator(mode="after")
    def _location_given(self) -> Self:
        has_coords = self.latitude is not None and self.longitude is not None
        if not has_coords and not self.city:
            raise ValueError("Provide either a city or both latitude and longitude")
        return self


async def _get_json(client: httpx.AsyncClient, url: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
    response = await client.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    data: dict[str, Any] = response.json()
    return data


async def geocode_city(client: httpx.AsyncClient, city: str, settings: WeatherSettings) -> dict[str, Any]:
    """First geocoding match for a city. Raises CapabilityException(NO_RESULTS) when nothing matches."""
    data = await _get_json(client, settings.geocoding_url,
                           {"name": city, "count": 1, "language": "en", "format": "json"}, settings.timeout)
    if not (results := data.get("results")):
        raise CapabilityException.create(
            "get_weather", f"Could not find a location named '{city}'", ErrorCode.NO_RESULTS,
        )
    return results[0]


async def fetch_forecast(client: httpx.AsyncClient, latitude: float, longitude: float,
                         settings: WeatherSettings) -> dict[str, Any]:
    return await _get_json(client, settings.forecast_url, {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m,weather_code,wind_speed_10m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto",
    }, settings.timeout)


def describe_weather(place: str, current: dict[str, Any], units: dict[str, Any]) -> str:
    temp = current.get("temperature_2m")
    condition = WMO_CONDITIONS.get(current.get("weather_code", -1), "Unknown conditions")
    wind = current.get("wind_speed_10m")
    parts = [f"Current weather in {place}: {temp}{units.get('temperature_2m', '°C')}, {condition}"]
    if wind is not None:
        parts.append(f"wind {wind} {units.get('wind_speed_10m', 'km/h')}")
    return ", ".join(parts) + "."


@capability(
    description="Get the current weather at a location. You can provide either coordinates or a city name.",
    display_name="weather",
    category="external",
    params=WeatherParams,
)
async def get_weather(
    latitude: float | None = None,
    longitude: float | None = None,
    city: str | None = None,
    *,
    ctx: TurnContext,
) -> Success:
    settings = (ctx.settings or get_settings()).weather
    client = ctx.http or httpx.AsyncClient()
    try:
        place = f"{latitude}, {longitude}"
        if city and (latitude is None or longitude is None):
            location = await geocode_city(client, city, settings)
            latitude, longitude = location["latitude"], location["longitude"]
            place = ", ".join(p for p in (location.get("name"), location.get("country")) if p)
        forecast = await fetch_forecast(client, latitude, longitude, settings)  # type: ignore[arg-type]
    finally:
        if ctx.http is None:
            await client.aclose()

    current = forecast.get("current", {})
    return Success(
        agent_name="weather",
        summary=describe_weather(place, current, forecast.get("current_units", {})),
        structured_data={
            "location": place,
            "latitude": latitude,
            "longitude": longitude,
            "current": current,
            "daily": forecast.get("daily", {}),
            "timezone": forecast.get("timezone"),
        },
    )
