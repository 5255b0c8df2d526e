"""현재 날씨 조회 플러그인 - Open-Meteo (API 키 불필요)."""

import logging
import re

import httpx

from rag_agent.config import settings
from rag_agent.plugins import PluginResult

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"

TRIGGER_PATTERNS: list[re.Pattern] = [
    re.compile(r"weather\s+(?:like\s+)?(?:in|for|at)\s+([a-zA-Z\s,]+?)(?:\?|$|\.)", re.IGNORECASE),
    re.compile(r"temperature\s+(?:in|for|at)\s+([a-zA-Z\s,]+?)(?:\?|$|\.)", re.IGNORECASE),
]

WEATHER_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    95: "Thunderstorm",
}


def extract_city(text: str) -> str | None:
    for pattern in TRIGGER_PATTERNS:
        match = pattern.search(text)
        if match:
            # "Paris, France" → "Paris"
            city = match.group(1).split(",")[0].strip()
            if 0 < len(city) < 100:
                return city
    return None


def describe_weather(code: int | None) -> str:
    return WEATHER_CODES.get(code, "Unknown weather condition")


class WeatherPlugin:
    name = "weather"
    description = "Get current weather information for a city"

    def __init__(self, client: httpx.AsyncClient | None = None, forecast_url: str | None = None):
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._forecast_url = forecast_url or settings.weather_api_url

    async def run(self, text: str) -> PluginResult | None:
        city = extract_city(text)
        if city is None:
            return None

        report = await self.get_weather(city)
        return PluginResult(
            name=self.name,
            result=report,
            success=True,
            metadata={"city": city},
        )

    async def get_weather(self, city: str) -> str:
        """도시의 현재 날씨 문장을 반환한다. API 실패 시 mock 데이터로 대체한다."""
        try:
            return await self._fetch(city)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.warning("날씨 API 실패, mock 데이터 사용: city=%s (%s)", city, e)
            return f"The current weather in {city} is 22°C with partly cloudy skies (mock data)."

    async def _fetch(self, city: str) -> str:
        geo = await self._client.get(GEOCODING_URL, params={"name": city, "count": 1})
        geo.raise_for_status()
        location = geo.json().get("results", [])
        if not location:
            raise ValueError(f"City not found: {city}")

        resp = await self._client.get(
            self._forecast_url,
            params={
                "latitude": location[0]["latitude"],
                "longitude": location[0]["longitude"],
                "current": "temperature_2m,relative_humidity_2m,weather_code",
                "timezone": "auto",
            },
        )
        resp.raise_for_status()
        data = resp.json()

        current = data["current"]
        unit = data.get("current_units", {}).get("temperature_2m", "°C")
        return (
            f"Current weather in {city}: {current['temperature_2m']}{unit}, "
            f"{describe_weather(current.get('weather_code'))}, "
            f"Humidity: {current['relative_humidity_2m']}%"
        )
