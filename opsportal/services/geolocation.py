"""
Reverse geocoding client (OpenStreetMap Nominatim compatible).
Best effort: failures are logged and degrade to raw coordinates.
"""
from typing import Dict, Optional

import httpx
import structlog

from ..config import settings
from ..errors import InvalidArgumentError


logger = structlog.get_logger(__name__)


def validate_coordinates(latitude, longitude) -> bool:
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def parse_coordinates(latitude, longitude) -> tuple:
    """Coerce request values to floats and range-check them."""
    if latitude in (None, "") or longitude in (None, ""):
        raise InvalidArgumentError("Latitude and longitude are required")
    try:
        lat, lng = float(latitude), float(longitude)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("Latitude and longitude must be valid numbers") from exc
    if not validate_coordinates(lat, lng):
        raise InvalidArgumentError(
            "Coordinates out of range: latitude must be between -90 and 90, longitude between -180 and 180"
        )
    return lat, lng


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"


class ReverseGeocoder:
    """Client for the reverse geocoding endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url or settings.geocoder_url
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout or settings.geocoder_timeout_s
        self.transport = transport

    def _request(self, latitude: float, longitude: float) -> dict:
        params = {"format": "json", "lat": latitude, "lon": longitude, "addressdetails": 1}
        headers = {"User-Agent": self.user_agent}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.get(self.base_url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()

    def lookup(self, latitude: float, longitude: float) -> Optional[Dict[str, str]]:
        """
        Resolve coordinates to {address, city, state}.

        Returns:
            Location dict, or None when the service fails or has no address
        """
        try:
            data = self._request(latitude, longitude)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("reverse_geocode_failed", error=str(e), latitude=latitude, longitude=longitude)
            return None
        if not isinstance(data, dict) or not data.get("address"):
            return None
        address = data["address"]
        return {
            "address": data.get("display_name") or "Unknown Address",
            "city": address.get("city") or address.get("town") or address.get("village")
            or address.get("municipality") or "Unknown City",
            "state": address.get("state") or address.get("province") or address.get("region") or "Unknown State",
        }

    def human_readable(self, latitude: float, longitude: float) -> str:
        return describe_location(self.lookup(latitude, longitude), latitude, longitude)


def describe_location(location: Optional[Dict[str, str]], latitude: float, longitude: float) -> str:
    """Join address, city and state; raw coordinates when nothing was resolved."""
    if not location:
        return f"Coordinates: {format_coordinates(latitude, longitude)}"
    parts = [location["address"], location["city"], location["state"]]
    return ", ".join(part for part in parts if part and part.strip())


def get_geocoder() -> ReverseGeocoder:
    return ReverseGeocoder()


def get_location_from_coordinates(latitude: float, longitude: float) -> Optional[Dict[str, str]]:
    return get_geocoder().lookup(latitude, longitude)


def get_human_readable_location(latitude: float, longitude: float) -> str:
    return get_geocoder().human_readable(latitude, longitude)
