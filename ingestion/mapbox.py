"""
Static map snapshots from the Mapbox Static Images API.

The map is centred on home and shows the aircraft, home and a trajectory
line through the aircraft with an arrowhead on its forward end. The zoom
level follows the aircraft's distance from home.
"""

import json
import logging
import math
from typing import Optional
from urllib.parse import quote

import aiohttp
from yarl import URL

from contracts.constants import PROVIDER_MAPBOX
from contracts.validation import EnrichedFlight

logger = logging.getLogger(__name__)

MAPBOX_STYLES_URL = "https://api.mapbox.com/styles/v1/"
DEFAULT_MAP_STYLE = "mapbox/dark-v11"
MAP_IMAGE_SIZE = "600x400@2x"
SNAPSHOT_TIMEOUT_SECONDS = 10

KM_PER_DEGREE = 111.0
TRAJECTORY_COLOR = "#ffaa00"

# Half of the trajectory line length (km) drawn at each zoom level
TRAJECTORY_HALF_KM = {9: 80.0, 11: 20.0, 13: 5.0}

# Arrowhead proportions relative to the half trajectory length
ARROW_DEPTH_RATIO = 0.25
ARROW_HALF_WIDTH_RATIO = 0.15


def approx_distance_km(lat: float, lon: float, home_lat: float, home_lon: float) -> float:
    """Flat-earth distance; only used to pick a zoom level."""
    dlat = (home_lat - lat) * KM_PER_DEGREE
    dlon = (home_lon - lon) * KM_PER_DEGREE * math.cos(math.radians(lat))
    return math.sqrt(dlat * dlat + dlon * dlon)


def zoom_for_distance(distance_km: float) -> int:
    if distance_km > 13:
        return 9
    if distance_km > 3:
        return 11
    return 13


def _offset(lat: float, lon: float, bearing_rad: float, km: float, cos_lat: float) -> tuple[float, float]:
    """(lat, lon) moved km along bearing_rad; negative km moves backwards."""
    return (
        lat + (km / KM_PER_DEGREE) * math.cos(bearing_rad),
        lon + (km / KM_PER_DEGREE) * math.sin(bearing_rad) / cos_lat,
    )


def trajectory_geojson(lat: float, lon: float, heading_deg: float, half_km: float) -> dict:
    """FeatureCollection with the trajectory line and its arrowhead."""
    heading = math.radians(heading_deg)
    perpendicular = heading + math.pi / 2.0
    cos_lat = math.cos(math.radians(lat))

    lat_fwd, lon_fwd = _offset(lat, lon, heading, half_km, cos_lat)
    lat_bwd, lon_bwd = _offset(lat, lon, heading, -half_km, cos_lat)

    lat_base, lon_base = _offset(lat_fwd, lon_fwd, heading, -half_km * ARROW_DEPTH_RATIO, cos_lat)
    half_width = half_km * ARROW_HALF_WIDTH_RATIO
    lat_right, lon_right = _offset(lat_base, lon_base, perpendicular, half_width, cos_lat)
    lat_left, lon_left = _offset(lat_base, lon_base, perpendicular, -half_width, cos_lat)

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {
                    "stroke": TRAJECTORY_COLOR,
                    "stroke-width": 3,
                    "stroke-opacity": 0.9,
                },
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[lon_bwd, lat_bwd], [lon, lat], [lon_fwd, lat_fwd]],
                },
            },
            {
                "type": "Feature",
                "properties": {
                    "fill": TRAJECTORY_COLOR,
                    "fill-opacity": 0.9,
                    "stroke": TRAJECTORY_COLOR,
                    "stroke-width": 1,
                    "stroke-opacity": 0.9,
                },
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[
                        [lon_fwd, lat_fwd],
                        [lon_right, lat_right],
                        [lon_left, lat_left],
                        [lon_fwd, lat_fwd],
                    ]],
                },
            },
        ],
    }


def build_overlays(lat: float, lon: float, home_lat: float, home_lon: float,
                   heading_deg: float, half_km: float) -> str:
    plane = f"pin-s-airport+ff0000({lon:.6f},{lat:.6f})"
    home = f"pin-s-home+4499ff({home_lon:.6f},{home_lat:.6f})"
    geojson = json.dumps(trajectory_geojson(lat, lon, heading_deg, half_km), separators=(",", ":"))
    return f"{plane},{home},geojson({quote(geojson, safe='')})"


class MapSnapshotLookup:
    """Renders a PNG map of one flight relative to home; disabled without a token."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        access_token: Optional[str],
        home_lat: float,
        home_lon: float,
        style: Optional[str] = None,
        base_url: str = MAPBOX_STYLES_URL,
    ):
        self.session = session
        self.access_token = access_token
        self.home_lat = home_lat
        self.home_lon = home_lon
        self.style = style or DEFAULT_MAP_STYLE
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.enabled = bool(access_token)
        self.timeout = aiohttp.ClientTimeout(total=SNAPSHOT_TIMEOUT_SECONDS)

    def build_url(self, flight: EnrichedFlight) -> Optional[str]:
        """Percent-encoded static image URL, or None when the flight can't be drawn."""
        fix = flight.fix
        heading = flight.effective_heading_deg
        if not fix.has_position or heading is None:
            return None

        zoom = zoom_for_distance(approx_distance_km(fix.latitude, fix.longitude, self.home_lat, self.home_lon))
        overlays = build_overlays(
            fix.latitude, fix.longitude, self.home_lat, self.home_lon,
            heading, TRAJECTORY_HALF_KM[zoom],
        )
        return (
            f"{self.base_url}{self.style}/static/{overlays}"
            f"/{self.home_lon:.6f},{self.home_lat:.6f},{zoom},0/{MAP_IMAGE_SIZE}"
            f"?access_token={quote(self.access_token, safe='')}"
        )

    async def snapshot(self, flight: EnrichedFlight) -> Optional[bytes]:
        """PNG bytes, or None when disabled, undrawable or the request fails."""
        if not self.enabled:
            return None
        url = self.build_url(flight)
        if url is None:
            return None

        try:
            # Already percent-encoded; the GeoJSON overlay must reach Mapbox as-is
            async with self.session.get(URL(url, encoded=True), timeout=self.timeout) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.warning(f"{PROVIDER_MAPBOX} error {response.status} for {flight.icao24}: {body[:200]}")
                    return None
                return await response.read()
        except Exception as e:
            logger.warning(f"{PROVIDER_MAPBOX} snapshot failed for {flight.icao24}: {e}")
            return None
