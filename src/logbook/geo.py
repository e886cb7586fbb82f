"""
Great-circle helpers for the logbook.

All distances are nautical miles on a spherical Earth.
"""

import math
from typing import Optional, Tuple

EARTH_RADIUS_NM = 3440.065


def distance_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance between two points.

    Args:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in nautical miles (exactly 0.0 for identical points)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # Rounding can push a fraction of an ulp outside [0, 1]
    a = min(1.0, max(0.0, a))
    c = 2 * math.asin(math.sqrt(a))

    return EARTH_RADIUS_NM * c


def within_distance(a, b, threshold_nm: float) -> bool:
    """True when positions a and b are closer than threshold_nm."""
    return distance_nm(a.latitude, a.longitude, b.latitude, b.longitude) < threshold_nm


def destination_point(
    lat: float, lon: float, bearing_deg: float, dist_nm: float
) -> Tuple[float, float]:
    """Point reached from (lat, lon) after dist_nm along an initial bearing."""
    delta = dist_nm / EARTH_RADIUS_NM
    theta = math.radians(bearing_deg)
    phi1 = math.radians(lat)
    lam1 = math.radians(lon)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    lon2 = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return math.degrees(phi2), lon2


def format_position(lat: Optional[float], lon: Optional[float]) -> str:
    """Format as degrees and decimal minutes, e.g. 12°30.000'N, 4°15.000'W."""
    if lat is None or lon is None:
        return "Position unavailable"

    lat_dir = "N" if lat >= 0 else "S"
    lon_dir = "E" if lon >= 0 else "W"

    lat_deg = int(abs(lat))
    lat_min = (abs(lat) - lat_deg) * 60
    lon_deg = int(abs(lon))
    lon_min = (abs(lon) - lon_deg) * 60

    return f"{lat_deg}°{lat_min:.3f}'{lat_dir}, {lon_deg}°{lon_min:.3f}'{lon_dir}"
