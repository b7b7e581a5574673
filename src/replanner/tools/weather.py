"""Weather lookups through the free Open-Meteo geocoding and forecast APIs."""

import asyncio
import datetime as dt
import logging
from typing import (
    Any,
    Dict,
    Literal,
    Tuple,
)

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from replanner.core.schema import Message
from replanner.tools import register_tool
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


class OpenMeteoInput(BaseModel):
    """Parameters accepted by :class:`OpenMeteoTool`."""

    model_config = ConfigDict(extra="forbid")

    location_name: str = Field(..., description="Name of the city or place, e.g. 'Berlin'.")
    country: str | None = Field(None, description="Optional country name or code to disambiguate.")
    start_date: dt.date | None = Field(
        None, description="First day of the forecast (YYYY-MM-DD). Defaults to today."
    )
    end_date: dt.date | None = Field(
        None, description="Last day of the forecast (YYYY-MM-DD). Defaults to start_date."
    )
    temperature_unit: Literal["celsius", "fahrenheit"] = "celsius"


class LocationNotFoundError(LookupError):
    """Raised when the geocoding API knows no place with the requested name."""


@register_tool("open_meteo")
class OpenMeteoTool(Tool):
    """Current conditions and daily forecast for a named location."""

    name = "OpenMeteo"
    description = (
        "Retrieve current, past, or future weather forecasts for a location. "
        "Returns temperature, precipitation and wind for the requested days."
    )
    input_model = OpenMeteoInput

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def _geocode(self, client: httpx.AsyncClient, params: OpenMeteoInput) -> Dict[str, Any]:
        resp = await client.get(
            GEOCODING_URL,
            params={"name": params.location_name, "count": 10, "format": "json"},
        )
        resp.raise_for_status()
        results = resp.json().get("results") or []
        if params.country:
            wanted = params.country.lower()
            results = [
                r
                for r in results
                if wanted in {str(r.get("country", "")).lower(), str(r.get("country_code", "")).lower()}
            ]
        if not results:
            raise LocationNotFoundError(f"Location '{params.location_name}' was not found.")
        return results[0]

    async def _run(
        self, params: OpenMeteoInput, signal: asyncio.Event | None, memory: Tuple[Message, ...]
    ) -> Dict[str, Any]:
        start = params.start_date or dt.date.today()
        end = params.end_date or start

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            location = await self._geocode(client, params)
            logger.debug("Resolved '%s' to %s", params.location_name, location)

            resp = await client.get(
                FORECAST_URL,
                params={
                    "latitude": location["latitude"],
                    "longitude": location["longitude"],
                    "current": "temperature_2m,rain,relative_humidity_2m,wind_speed_10m",
                    "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum",
                    "timezone": "UTC",
                    "start_date": start.isoformat(),
                    "end_date": end.isoformat(),
                    "temperature_unit": params.temperature_unit,
                },
            )
            resp.raise_for_status()
            forecast = resp.json()

        return {
            "location": {
                "name": location.get("name"),
                "country": location.get("country"),
                "latitude": location["latitude"],
                "longitude": location["longitude"],
            },
            "current": forecast.get("current"),
            "current_units": forecast.get("current_units"),
            "daily": forecast.get("daily"),
            "daily_units": forecast.get("daily_units"),
        }
