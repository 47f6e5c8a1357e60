"""
Route lookup via the adsbdb.com callsign API (no auth required).

GET https://api.adsbdb.com/v0/callsign/{callsign}
"""

import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from contracts.constants import PROVIDER_ADSBDB
from contracts.validation import Route, validate_route
from processing.geomath import distance_km

logger = logging.getLogger(__name__)

ADSBDB_CALLSIGN_URL = "https://api.adsbdb.com/v0/callsign/"
LOOKUP_TIMEOUT_SECONDS = 10


def _blank_to_none(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coordinate(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_route(payload: dict) -> Optional[Route]:
    """
    Route from an adsbdb callsign response.

    ``response`` is an object with a ``flightroute`` for a known callsign,
    or a plain string such as "unknown callsign" otherwise.
    """
    response = payload.get("response") if isinstance(payload, dict) else None
    if not isinstance(response, dict):
        return None

    flightroute = response.get("flightroute")
    if not isinstance(flightroute, dict):
        return None

    origin = flightroute.get("origin") or {}
    dest = flightroute.get("destination") or {}

    data = {
        "origin_icao": _blank_to_none(origin.get("icao_code")),
        "origin_iata": _blank_to_none(origin.get("iata_code")),
        "origin_name": _blank_to_none(origin.get("name")),
        "origin_lat": _coordinate(origin.get("latitude")),
        "origin_lon": _coordinate(origin.get("longitude")),
        "dest_icao": _blank_to_none(dest.get("icao_code")),
        "dest_iata": _blank_to_none(dest.get("iata_code")),
        "dest_name": _blank_to_none(dest.get("name")),
        "dest_lat": _coordinate(dest.get("latitude")),
        "dest_lon": _coordinate(dest.get("longitude")),
    }

    if None not in (data["origin_lat"], data["origin_lon"], data["dest_lat"], data["dest_lon"]):
        data["route_distance_km"] = distance_km(
            data["origin_lat"], data["origin_lon"], data["dest_lat"], data["dest_lon"]
        )

    if not any(data[k] for k in ("origin_icao", "origin_iata", "dest_icao", "dest_iata")):
        return None

    is_valid, route, error = validate_route(data)
    if not is_valid:
        logger.warning(f"Discarding invalid route: {error}")
        return None
    return route


class RouteLookup:
    def __init__(self, session: aiohttp.ClientSession, base_url: str = ADSBDB_CALLSIGN_URL):
        self.session = session
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=LOOKUP_TIMEOUT_SECONDS)

    async def lookup_route(self, callsign: str) -> Optional[Route]:
        """Route for callsign; None when adsbdb has none. Raises on transport errors."""
        callsign = callsign.strip()
        if not callsign:
            return None

        async with self.session.get(f"{self.base_url}{quote(callsign)}", timeout=self.timeout) as response:
            # 404 (and other client errors) mean an unknown callsign
            if 400 <= response.status < 500:
                logger.debug(f"{PROVIDER_ADSBDB} has no route for {callsign}")
                return None
            response.raise_for_status()
            body = await response.json(content_type=None)

        return parse_route(body)
