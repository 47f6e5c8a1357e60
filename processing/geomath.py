"""
Geometry of a flight relative to the fixed home position.

Angles are degrees at the interface and radians internally. Bearings are
normalized to [0, 360). Nothing here touches the network or the clock.
"""

import math
from typing import Optional

from contracts.constants import (
    EARTH_RADIUS_KM,
    OVERHEAD_RADIUS_KM,
    TOWARDS_MAX_DIFF_DEG,
    AWAY_MIN_DIFF_DEG,
    MIN_HEADING_DISPLACEMENT_M,
)
from contracts.validation import Direction


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, clockwise from north."""
    dlon = math.radians(lon2 - lon1)
    lat1r, lat2r = math.radians(lat1), math.radians(lat2)
    y = math.sin(dlon) * math.cos(lat2r)
    x = math.cos(lat1r) * math.sin(lat2r) - math.sin(lat1r) * math.cos(lat2r) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def angular_difference_deg(a: float, b: float) -> float:
    """Absolute difference between two bearings folded into [0, 180]."""
    d = abs(a - b) % 360.0
    return d if d <= 180.0 else 360.0 - d


def classify_direction(
    lat: Optional[float],
    lon: Optional[float],
    heading_deg: Optional[float],
    distance_from_home_km: Optional[float],
    home_lat: float,
    home_lon: float,
) -> Optional[Direction]:
    """
    Classify the flight's motion relative to home.

    Within OVERHEAD_RADIUS_KM the answer is Overhead whatever the heading.
    Otherwise an unknown position or heading yields None.
    """
    if distance_from_home_km is not None and distance_from_home_km <= OVERHEAD_RADIUS_KM:
        return Direction.OVERHEAD

    if lat is None or lon is None or heading_deg is None:
        return None

    bearing_to_home = initial_bearing_deg(lat, lon, home_lat, home_lon)
    diff = angular_difference_deg(heading_deg, bearing_to_home)

    if diff <= TOWARDS_MAX_DIFF_DEG:
        return Direction.TOWARDS
    if diff >= AWAY_MIN_DIFF_DEG:
        return Direction.AWAY
    return Direction.CROSSING


def eta_to_closest_approach_seconds(
    lat: Optional[float],
    lon: Optional[float],
    heading_deg: Optional[float],
    speed_mps: Optional[float],
    home_lat: float,
    home_lon: float,
) -> Optional[float]:
    """
    Seconds until the aircraft reaches the point of its current track nearest home.

    Uses a flat-earth equirectangular projection centred between the aircraft
    and home, accurate to well under 0.1% inside 100 km. Returns None when an
    input is missing, the aircraft is not moving, or the closest point is
    already behind it.
    """
    if lat is None or lon is None or heading_deg is None or speed_mps is None:
        return None
    if speed_mps <= 0:
        return None

    radius_m = EARTH_RADIUS_KM * 1000.0
    mean_lat = math.radians((lat + home_lat) / 2.0)

    # Home relative to the aircraft, metres east / north
    dx = math.radians(home_lon - lon) * math.cos(mean_lat) * radius_m
    dy = math.radians(home_lat - lat) * radius_m

    heading = math.radians(heading_deg)
    along_track_m = dx * math.sin(heading) + dy * math.cos(heading)

    if along_track_m <= 0:
        return None

    return along_track_m / speed_mps


def infer_heading_deg(
    prev_lat: Optional[float],
    prev_lon: Optional[float],
    curr_lat: Optional[float],
    curr_lon: Optional[float],
) -> Optional[float]:
    """Heading implied by two successive fixes, or None if they are too close to trust."""
    if prev_lat is None or prev_lon is None or curr_lat is None or curr_lon is None:
        return None

    moved_m = distance_km(prev_lat, prev_lon, curr_lat, curr_lon) * 1000.0
    if moved_m < MIN_HEADING_DISPLACEMENT_M:
        return None

    return initial_bearing_deg(prev_lat, prev_lon, curr_lat, curr_lon)


def cardinal_direction(degrees: float) -> str:
    """8-point compass abbreviation for a bearing."""
    points = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]
    return points[int(((degrees % 360.0) + 22.5) // 45.0) % 8]
