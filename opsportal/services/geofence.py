"""
Geofence checks for attendance location verification.
Uses the Haversine formula for point-to-site distance.
"""
import math
from typing import Optional, Tuple
from ..config import settings


EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great circle distance between two points on Earth.

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def inside_geofence(
    point_lat: float,
    point_lng: float,
    site_lat: float,
    site_lng: float,
    radius_m: Optional[float] = None,
    accuracy_m: Optional[float] = None,
) -> Tuple[bool, float, bool]:
    """
    Check whether a reported position falls inside a site's circle.

    Args:
        point_lat: Reported latitude
        point_lng: Reported longitude
        site_lat: Site centre latitude
        site_lng: Site centre longitude
        radius_m: Site radius (default GEO_RADIUS_M_DEFAULT)
        accuracy_m: GPS accuracy reported by the device

    Returns:
        Tuple of (is_inside, distance_m, is_risk)
        is_risk: True if accuracy is poor (accuracy > GPS_ACCURACY_RISK_M)
    """
    radius = float(radius_m or settings.geo_radius_m_default)
    is_risk = accuracy_m is not None and accuracy_m > settings.gps_accuracy_risk_m
    distance = haversine_distance(point_lat, point_lng, site_lat, site_lng)
    return distance <= radius, distance, is_risk
