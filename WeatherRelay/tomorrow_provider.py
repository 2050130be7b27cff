"""Tomorrow.io weather API provider implementation."""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from weather_data import (
    CurrentConditions,
    DailyForecast,
    HourlyForecast,
    LocationMatch,
    WeatherSnapshot,
    is_coordinates,
)
from weather_provider import ErrorKind, WeatherProviderBase, WeatherProviderError

# Tomorrow.io weather codes: https://docs.tomorrow.io/reference/data-layers-weather-codes
WEATHER_CODES: Dict[int, Tuple[str, str]] = {
    1000: ("Clear sky", "01d"),
    1100: ("Mostly clear", "02d"),
    1101: ("Partly cloudy", "03d"),
    1102: ("Mostly cloudy", "04d"),
    1001: ("Cloudy", "04d"),
    2000: ("Fog", "50d"),
    2100: ("Light fog", "50d"),
    4000: ("Drizzle", "09d"),
    4001: ("Rain", "10d"),
    4200: ("Light rain", "09d"),
    4201: ("Heavy rain", "11d"),
    5000: ("Snow", "13d"),
    5001: ("Flurries", "13d"),
    5100: ("Light snow", "13d"),
    5101: ("Heavy snow", "13d"),
    6000: ("Freezing drizzle", "09d"),
    6001: ("Freezing rain", "09d"),
    6200: ("Light freezing rain", "09d"),
    7000: ("Ice pellets", "11d"),
    7101: ("Heavy ice pellets", "11d"),
    7102: ("Light ice pellets", "11d"),
    8000: ("Thunderstorm", "11d"),
}
UNKNOWN_CONDITIONS = ("Unknown conditions", "01d")

HOURLY_LIMIT = 24
DAILY_LIMIT = 7


def describe_weather_code(code: Optional[int]) -> Tuple[str, str]:
    """Map a weather code to (description, icon)."""
    return WEATHER_CODES.get(code or 1000, UNKNOWN_CONDITIONS)


def extract_city_name(full_name: Optional[str]) -> str:
    """
    Pick the city out of a full provider place name.

    "Old Toronto, Toronto, Golden Horseshoe, Ontario, Canada" -> "Toronto"
    """
    if not full_name or not full_name.strip():
        return ""
    trimmed = full_name.strip()
    parts = [p.strip() for p in trimmed.split(",") if p.strip()]
    # Format is usually [area], [city], [region], [state], [country]
    if len(parts) >= 2:
        return parts[1]
    if parts:
        return parts[0]
    return trimmed


def _kmh(meters_per_second: Optional[float]) -> int:
    return round((meters_per_second or 0) * 3.6)


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TomorrowIOProvider(WeatherProviderBase):
    """
    Weather provider using the Tomorrow.io v4 weather API.

    Realtime conditions come from /realtime; hourly and daily forecasts come
    from /forecast. A failed forecast request degrades to current conditions
    only.
    """

    BASE_URL = "https://api.tomorrow.io/v4/weather"

    def __init__(
        self,
        api_key: Optional[str] = None,
        units: str = "metric",
        timeout: int = 10
    ):
        """
        Initialize Tomorrow.io provider.

        Args:
            api_key: Tomorrow.io API key (may be supplied per call instead)
            units: "metric" or "imperial"
            timeout: HTTP request timeout in seconds
        """
        self.api_key = api_key
        self.units = units
        self.timeout = timeout

    def _resolve_key(self, api_key: Optional[str]) -> str:
        key = api_key or self.api_key
        if not key:
            logging.error("TOMORROW_IO_API_KEY is not configured")
            raise WeatherProviderError(
                "Weather API key is not configured",
                ErrorKind.CREDENTIAL_MISSING,
            )
        return key

    def _request(self, endpoint: str, params: Dict[str, Any]) -> requests.Response:
        url = f"{self.BASE_URL}/{endpoint}"
        logging.info(f"Making Tomorrow.io API request: {url}")
        return requests.get(
            url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

    def get_snapshot(self, location: str, api_key: Optional[str] = None) -> WeatherSnapshot:
        """
        Fetch realtime conditions and forecasts from Tomorrow.io.

        Returns:
            WeatherSnapshot: Current, hourly and daily weather

        Raises:
            WeatherProviderError: If the API request fails or has no usable data
        """
        key = self._resolve_key(api_key)
        query = location.strip() if is_coordinates(location) else location
        params = {"location": query, "units": self.units, "apikey": key}

        try:
            response = self._request("realtime", params)
            logging.info(f"API response status: {response.status_code}")

            if not response.ok:
                logging.error(f"API request failed with status {response.status_code}")
                self._handle_error_response(response)

            realtime = response.json()
            logging.debug(f"API response (truncated): {str(realtime)[:500]}...")

            current_values = self._current_values(realtime)
            if not current_values:
                logging.error("Response has no weather values")
                raise WeatherProviderError("Weather data not available", ErrorKind.DATA_UNAVAILABLE)

            forecast = self._fetch_forecast(params)

            current = self._parse_current(realtime, current_values, location)
            hourly = self._parse_hourly(forecast)
            daily = self._parse_daily(forecast)

            logging.info(
                f"Successfully parsed weather for {current.city}: "
                f"{current.temperature}°C, {current.description}, "
                f"{len(hourly)} hourly / {len(daily)} daily"
            )
            return WeatherSnapshot(current=current, hourly=hourly, daily=daily)

        # JSON decode errors from requests are also RequestExceptions, so check parsing first
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise WeatherProviderError(
                f"Failed to parse response: {str(e)}", ErrorKind.DATA_UNAVAILABLE
            ) from e
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise WeatherProviderError(f"Network error: {str(e)}", ErrorKind.NETWORK_ERROR) from e

    def search_locations(self, query: str, api_key: Optional[str] = None) -> List[LocationMatch]:
        """
        Look up a location by running a realtime query for it.

        Tomorrow.io has no geocoding endpoint, so a successful realtime
        response is taken as proof that the location exists.
        """
        if not query or len(query.strip()) < 2:
            return []
        key = self._resolve_key(api_key)
        try:
            response = self._request("realtime", {"location": query, "units": self.units, "apikey": key})
            if not response.ok:
                logging.info(f"Location search for '{query}' returned HTTP {response.status_code}")
                return []
            place = response.json().get("location")
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logging.warning(f"Location search for '{query}' failed: {e}")
            return []

        if not place:
            return []
        return [
            LocationMatch(
                name=place.get("name") or query,
                country=place.get("country", ""),
                state=place.get("state"),
                lat=place.get("lat") or 0,
                lon=place.get("lon") or 0,
            )
        ]

    def _fetch_forecast(self, params: Dict[str, Any]) -> Optional[dict]:
        forecast_params = dict(params, timesteps="1h,1d")
        try:
            response = self._request("forecast", forecast_params)
        except requests.exceptions.RequestException as e:
            logging.warning(f"Forecast request failed, using realtime data only: {e}")
            return None
        if not response.ok:
            logging.warning(f"Forecast request returned HTTP {response.status_code}, using realtime data only")
            return None
        try:
            return response.json()
        except ValueError as e:
            logging.warning(f"Forecast response was not JSON, using realtime data only: {e}")
            return None

    @staticmethod
    def _current_values(realtime: dict) -> Optional[dict]:
        data = realtime.get("data") or {}
        timelines = data.get("timelines") or realtime.get("timelines") or []
        if timelines and timelines[0].get("values"):
            return timelines[0]["values"]
        return data.get("values") or realtime.get("values")

    @staticmethod
    def _timelines(forecast: Optional[dict]) -> dict:
        if not forecast:
            return {}
        return forecast.get("timelines") or (forecast.get("data") or {}).get("timelines") or {}

    def _parse_current(self, realtime: dict, values: dict, location: str) -> CurrentConditions:
        place = realtime.get("location") or (realtime.get("data") or {}).get("location") or {}
        name = place.get("name") or ""
        # Without a resolved name the caller's string (possibly "lat,lon") is shown
        city = extract_city_name(name) if name.strip() else location
        description, icon = describe_weather_code(values.get("weatherCode"))
        temperature = values.get("temperature") or 0

        return CurrentConditions(
            city=city,
            country=place.get("country", ""),
            temperature=round(temperature),
            feels_like=round(values.get("temperatureApparent") or temperature),
            humidity=round(values.get("humidity") or 0),
            wind_speed=_kmh(values.get("windSpeed")),
            wind_direction=round(values.get("windDirection") or 0),
            uv_index=round(values.get("uvIndex") or 0),
            description=description,
            icon=icon,
            pressure=round(values.get("pressureSurfaceLevel") or values.get("pressureSeaLevel") or 0),
            visibility=round(values.get("visibility") or 0, 1),
            timestamp=int(time.time() * 1000),
        )

    def _parse_hourly(self, forecast: Optional[dict]) -> Tuple[HourlyForecast, ...]:
        items = self._timelines(forecast).get("hourly") or []
        hourly = []
        for item in items[:HOURLY_LIMIT]:
            values = item["values"]
            moment = _parse_time(item["time"])
            description, icon = describe_weather_code(values.get("weatherCode"))
            temperature = values.get("temperature") or 0
            hourly.append(HourlyForecast(
                date=moment.strftime("%Y-%m-%d"),
                time=moment.strftime("%H:%M"),
                temperature=round(temperature),
                feels_like=round(values.get("temperatureApparent") or temperature),
                humidity=round(values.get("humidity") or 0),
                wind_speed=_kmh(values.get("windSpeed")),
                description=description,
                icon=icon,
            ))
        return tuple(hourly)

    def _parse_daily(self, forecast: Optional[dict]) -> Tuple[DailyForecast, ...]:
        items = self._timelines(forecast).get("daily") or []
        daily = []
        for item in items[:DAILY_LIMIT]:
            values = item["values"]
            moment = _parse_time(item["time"])
            description, icon = describe_weather_code(values.get("weatherCode"))
            temperature = values.get("temperature") or 0
            daily.append(DailyForecast(
                date=moment.strftime("%Y-%m-%d"),
                day=moment.strftime("%A"),
                max_temp=round(values.get("temperatureMax") or temperature),
                min_temp=round(values.get("temperatureMin") or temperature),
                description=description,
                icon=icon,
                humidity=round(values.get("humidityAvg") or values.get("humidity") or 0),
                wind_speed=_kmh(values.get("windSpeedAvg") or values.get("windSpeed")),
            ))
        return tuple(daily)

    def _handle_error_response(self, response: requests.Response) -> None:
        """Classify and raise an error from a Tomorrow.io error response."""
        status = response.status_code
        try:
            error_data = response.json()
            message = error_data.get("message") or ""
        except ValueError:
            message = response.text[:200]
        logging.error(f"Tomorrow.io API error response: HTTP {status}: {message}")

        if status in (401, 403):
            raise WeatherProviderError("Invalid API key", ErrorKind.INVALID_CREDENTIAL)
        if status == 429:
            raise WeatherProviderError("Rate limit exceeded", ErrorKind.RATE_LIMITED)
        if status == 400:
            detail = message or "Invalid location"
            lowered = detail.lower()
            if "location" in lowered or "invalid" in lowered:
                raise WeatherProviderError(f"Location not found: {detail}", ErrorKind.LOCATION_NOT_FOUND)
            raise WeatherProviderError(f"Bad request: {detail}", ErrorKind.INVALID_REQUEST)
        raise WeatherProviderError(
            message or f"Error fetching weather data ({status})",
            ErrorKind.PROVIDER_ERROR,
            status_code=status,
        )
