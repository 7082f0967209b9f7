from __future__ import annotations

from typing import Any

from nabd.connectors.http import get_json
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.handlers.base import (
    DEFAULT_CITY,
    UNAVAILABLE,
    BaseSkillHandler,
    register_handler,
    to_safe_string,
)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather interpretation codes
WEATHER_CODES: dict[int, str] = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "depositing rime fog",
    51: "light drizzle",
    53: "moderate drizzle",
    55: "dense drizzle",
    56: "light freezing drizzle",
    57: "dense freezing drizzle",
    61: "slight rain",
    63: "moderate rain",
    65: "heavy rain",
    66: "light freezing rain",
    67: "heavy freezing rain",
    71: "slight snowfall",
    73: "moderate snowfall",
    75: "heavy snowfall",
    77: "snow grains",
    80: "slight rain showers",
    81: "moderate rain showers",
    82: "violent rain showers",
    85: "slight snow showers",
    86: "heavy snow showers",
    95: "thunderstorm",
    96: "thunderstorm with slight hail",
    99: "thunderstorm with heavy hail",
}


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class WeatherHandler(BaseSkillHandler):
    name = "weather"

    async def execute(self, args: dict[str, Any]) -> SkillExecutionOutput:
        location = to_safe_string(args.get("location")) or DEFAULT_CITY

        geo = await get_json(
            GEOCODING_URL,
            params={"name": location, "count": 1, "language": "en", "format": "json"},
        )
        results = geo.get("results") if isinstance(geo, dict) else None
        match = results[0] if isinstance(results, list) and results else None
        if not isinstance(match, dict) or _number(match.get("latitude")) is None:
            return SkillExecutionOutput(
                text=f'Could not locate "{location}". Try a clearer city name.',
                metadata={"location": location},
            )

        latitude, longitude = match["latitude"], match.get("longitude")
        forecast = await get_json(
            FORECAST_URL,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,relative_humidity_2m,apparent_temperature,"
                "weather_code,wind_speed_10m",
                "timezone": "auto",
            },
        )
        name = to_safe_string(match.get("name")) or location
        current = forecast.get("current") if isinstance(forecast, dict) else None
        if not isinstance(current, dict):
            return SkillExecutionOutput(
                text=f'Found "{name}" but weather data is not available right now.',
                metadata={"location": name},
            )

        code = current.get("weather_code")
        if isinstance(code, int):
            condition = WEATHER_CODES.get(code, f"weather code {code}")
        else:
            condition = UNAVAILABLE

        temperature = _number(current.get("temperature_2m"))
        feels_like = _number(current.get("apparent_temperature"))
        humidity = _number(current.get("relative_humidity_2m"))
        wind = _number(current.get("wind_speed_10m"))

        label = ", ".join(p for p in (name, to_safe_string(match.get("country"))) if p)
        text = "\n".join(
            [
                f"Current weather in {label}:",
                f"- Condition: {condition}",
                f"- Temperature: {f'{temperature:.1f}°C' if temperature is not None else UNAVAILABLE}",
                f"- Feels like: {f'{feels_like:.1f}°C' if feels_like is not None else UNAVAILABLE}",
                f"- Humidity: {f'{humidity:g}%' if humidity is not None else UNAVAILABLE}",
                f"- Wind speed: {f'{wind:g} km/h' if wind is not None else UNAVAILABLE}",
            ]
        )
        return SkillExecutionOutput(
            text=text,
            metadata={"location": label, "latitude": latitude, "longitude": longitude},
        )


weather = WeatherHandler()

register_handler(weather)
