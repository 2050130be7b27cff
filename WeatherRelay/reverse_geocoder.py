"""Reverse geocoding through OpenStreetMap Nominatim."""
import logging
from typing import Optional

import requests

from weather_data import PlaceName

# Preferred address fields, most specific first
PLACE_FIELDS = ("city", "town", "village", "municipality", "county")


class NominatimGeocoder:
    """
    Resolve coordinates to a place name.

    Nominatim needs no API key but requires an identifying User-Agent.
    Lookups are best-effort: any failure yields None so callers can fall
    back to showing the raw coordinates.
    """

    BASE_URL = "https://nominatim.openstreetmap.org/reverse"

    def __init__(
        self,
        user_agent: str = "ClimaDash/1.0 (Weather Dashboard)",
        language: str = "en",
        timeout: int = 10
    ):
        self.user_agent = user_agent
        self.language = language
        self.timeout = timeout

    def reverse(self, lat: float, lon: float) -> Optional[PlaceName]:
        params = {
            "format": "json",
            "lat": lat,
            "lon": lon,
            "addressdetails": 1,
            "accept-language": self.language,
        }
        logging.info(f"Looking up place name for coordinates: {lat}, {lon}")

        try:
            response = requests.get(
                self.BASE_URL,
                params=params,
                headers={"Accept": "application/json", "User-Agent": self.user_agent},
                timeout=self.timeout,
            )
            if not response.ok:
                logging.error(f"Nominatim error: HTTP {response.status_code} - {response.text[:200]}")
                return None
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logging.error(f"Reverse geocoding failed for {lat}, {lon}: {e}")
            return None

        address = data.get("address") or {}
        country = address.get("country", "")
        for field_name in PLACE_FIELDS:
            name = (address.get(field_name) or "").strip()
            if name:
                logging.info(f"Resolved {lat}, {lon} to {name}, {country}")
                return PlaceName(city=name, country=country)

        display_name = data.get("display_name") or ""
        first_part = display_name.split(",")[0].strip()
        if address and first_part:
            logging.info(f"Using display_name for {lat}, {lon}: {first_part}")
            return PlaceName(city=first_part, country=country)

        logging.warning(f"Could not resolve a place name for {lat}, {lon}")
        return None
