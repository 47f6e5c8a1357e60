"""
airplanes.live feed client.

Polls the point query endpoint for a radius around home and maps each
aircraft to a FlightFix. Only airborne aircraft with a valid identifier are
returned, optionally limited to a visual range.
"""

import asyncio
import logging
import math
from typing import List, Optional

import aiohttp
from prometheus_client import Counter, Gauge, Histogram

from contracts.constants import (
    CALLSIGN_PLACEHOLDER,
    FEET_TO_METRES,
    FPM_TO_MPS,
    KNOTS_TO_MPS,
    NM_PER_DEGREE,
    PROVIDER_AIRPLANES_LIVE,
)
from contracts.validation import FlightFix, validate_flight_fix
from processing.geomath import distance_km

logger = logging.getLogger(__name__)

FEED_TIMEOUT_SECONDS = 15

# dbFlags bit set by the aggregator for military aircraft
MILITARY_FLAG = 1

# ============================================
# Prometheus Metrics
# ============================================

POLLS_TOTAL = Counter('tracker_polls_total', 'Total feed poll attempts', ['status'])
POLL_LATENCY = Histogram('tracker_poll_latency_seconds', 'Feed poll duration')
API_ERRORS = Counter('tracker_api_errors_total', 'Feed API errors', ['error_type'])
DEADLETTER_TOTAL = Counter('tracker_deadletter_total', 'Feed aircraft records that failed validation')
CURRENT_FLIGHTS = Gauge('tracker_current_flights', 'Airborne flights in last poll')


def search_radius_nm(box_degrees: float) -> int:
    """Bounding-box half-width in degrees as a query radius (1 degree ~ 60 NM)."""
    return int(math.ceil(box_degrees * NM_PER_DEGREE))


def _number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_db_flags(value) -> int:
    """dbFlags as an int; anything non-numeric counts as no flags."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def transform_aircraft(aircraft: dict, home_lat: float, home_lon: float) -> Optional[FlightFix]:
    """Map one airplanes.live ``ac`` entry to a FlightFix, or None if unusable."""
    icao24 = aircraft.get("hex")
    if not icao24:
        return None

    # "~" marks a TIS-B track with a non-ICAO address
    if icao24.startswith("~"):
        logger.debug(f"Skipping non-ICAO track {icao24}")
        return None

    # alt_baro is feet, or the string "ground"
    alt_baro = aircraft.get("alt_baro")
    on_ground = alt_baro == "ground"
    alt_baro_ft = None if on_ground else _number(alt_baro)

    lat = _number(aircraft.get("lat"))
    lon = _number(aircraft.get("lon"))
    gs = _number(aircraft.get("gs"))
    baro_rate = _number(aircraft.get("baro_rate"))
    alt_geom = _number(aircraft.get("alt_geom"))
    nav_alt = _number(aircraft.get("nav_altitude_mcp"))
    track = _number(aircraft.get("track"))
    if track is not None:
        track = track % 360.0

    emergency = aircraft.get("emergency")
    if emergency in ("", "none"):
        emergency = None

    data = {
        "icao24": icao24,
        "callsign": (aircraft.get("flight") or CALLSIGN_PLACEHOLDER).strip(),
        "latitude": lat,
        "longitude": lon,
        "altitude_m": alt_baro_ft * FEET_TO_METRES if alt_baro_ft is not None else None,
        "velocity_mps": gs * KNOTS_TO_MPS if gs is not None else None,
        "heading_deg": track,
        "vertical_rate_mps": baro_rate * FPM_TO_MPS if baro_rate is not None else None,
        "distance_km": distance_km(home_lat, home_lon, lat, lon) if lat is not None and lon is not None else None,
        "on_ground": on_ground,
        "squawk": aircraft.get("squawk"),
        "emergency": emergency,
        "is_military": bool(parse_db_flags(aircraft.get("dbFlags")) & MILITARY_FLAG),
        "geo_altitude_m": alt_geom * FEET_TO_METRES if alt_geom is not None else None,
        "nav_altitude_m": nav_alt * FEET_TO_METRES if nav_alt is not None else None,
        "wind_direction_deg": _number(aircraft.get("wd")),
        "wind_speed_kt": _number(aircraft.get("ws")),
        "outside_air_temp_c": _number(aircraft.get("oat")),
        "aircraft_description": aircraft.get("desc"),
    }

    is_valid, fix, error = validate_flight_fix(data)
    if not is_valid:
        logger.warning(f"Invalid aircraft record {icao24}: {error}")
        DEADLETTER_TOTAL.inc()
        return None
    return fix


def filter_flights(fixes: List[FlightFix], range_km: float) -> List[FlightFix]:
    """Airborne flights inside range_km; unknown distances are kept, 0 disables the range."""
    return [
        f for f in fixes
        if not f.on_ground
        and (range_km <= 0 or f.distance_km is None or f.distance_km <= range_km)
    ]


class AirplanesLiveClient:
    """Client for the airplanes.live REST API (no authentication)."""

    def __init__(self, base_url: str, session: aiohttp.ClientSession):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=FEED_TIMEOUT_SECONDS)

    async def fetch_aircraft(self, home_lat: float, home_lon: float, box_degrees: float) -> list:
        """
        Raw ``ac`` list for the point query.

        A 429 is an empty poll. Any other non-2xx response or transport
        failure raises an aiohttp exception for the caller to handle.
        """
        url = f"{self.base_url}point/{home_lat}/{home_lon}/{search_radius_nm(box_degrees)}"

        try:
            with POLL_LATENCY.time():
                async with self.session.get(url, timeout=self.timeout) as response:
                    status = response.status
                    if status == 429:
                        POLLS_TOTAL.labels(status="rate_limited").inc()
                        API_ERRORS.labels(error_type="rate_limited").inc()
                        logger.warning(f"{PROVIDER_AIRPLANES_LIVE} rate limited; skipping this poll")
                        return []

                    if status >= 400:
                        POLLS_TOTAL.labels(status="error").inc()
                        API_ERRORS.labels(error_type=f"http_{status}").inc()
                        response.raise_for_status()

                    body = await response.json(content_type=None)
        except asyncio.TimeoutError:
            POLLS_TOTAL.labels(status="timeout").inc()
            API_ERRORS.labels(error_type="timeout").inc()
            raise
        except aiohttp.ClientResponseError:
            raise
        except aiohttp.ClientError:
            POLLS_TOTAL.labels(status="connection_error").inc()
            API_ERRORS.labels(error_type="connection").inc()
            raise

        POLLS_TOTAL.labels(status="success").inc()
        return (body or {}).get("ac") or []

    async def poll_flights(
        self,
        home_lat: float,
        home_lon: float,
        box_degrees: float,
        range_km: float,
    ) -> List[FlightFix]:
        raw = await self.fetch_aircraft(home_lat, home_lon, box_degrees)

        fixes = []
        for aircraft in raw:
            fix = transform_aircraft(aircraft, home_lat, home_lon)
            if fix is not None:
                fixes.append(fix)

        flights = filter_flights(fixes, range_km)
        CURRENT_FLIGHTS.set(len(flights))
        logger.debug(f"Polled {len(raw)} aircraft, {len(flights)} airborne in range")
        return flights
