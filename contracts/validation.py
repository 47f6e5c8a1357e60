"""
Validation library for SkyWatch data contracts.

Provides Pydantic models for every record that crosses a component boundary:
feed observations, enrichment results, repeat-visitor lookups and the
aggregate statistics read-model. All optional fields stay optional; consumers
must handle the absent case.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contracts.constants import (
    DIRECTION_OVERHEAD,
    DIRECTION_TOWARDS,
    DIRECTION_AWAY,
    DIRECTION_CROSSING,
)


class Direction(str, Enum):
    OVERHEAD = DIRECTION_OVERHEAD
    TOWARDS = DIRECTION_TOWARDS
    AWAY = DIRECTION_AWAY
    CROSSING = DIRECTION_CROSSING


class TrackState(str, Enum):
    """Notification state of one aircraft identifier across polls."""
    UNSEEN = "UNSEEN"
    SEEN = "SEEN"
    NOTIFIED = "NOTIFIED"


# ============================================================================
# Feed observation
# ============================================================================

class FlightFix(BaseModel):
    """One polled observation of an airborne aircraft."""
    model_config = ConfigDict(frozen=True)

    icao24: str = Field(pattern=r"^[0-9a-fA-F]{6}$", description="ICAO 24-bit address (hex)")
    callsign: str = ""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    altitude_m: Optional[float] = None
    velocity_mps: Optional[float] = Field(None, ge=0, description="Ground speed in m/s")
    heading_deg: Optional[float] = Field(None, ge=0, lt=360, description="True track in degrees [0, 360)")
    vertical_rate_mps: Optional[float] = None
    distance_km: Optional[float] = Field(None, ge=0, description="Great-circle distance from home")
    on_ground: bool = False

    # Extended fields
    squawk: Optional[str] = None
    emergency: Optional[str] = None
    is_military: bool = False
    geo_altitude_m: Optional[float] = None
    nav_altitude_m: Optional[float] = None
    wind_direction_deg: Optional[float] = None
    wind_speed_kt: Optional[float] = None
    outside_air_temp_c: Optional[float] = None
    aircraft_description: Optional[str] = None

    @field_validator("icao24")
    @classmethod
    def validate_icao24(cls, v: str) -> str:
        """Normalize icao24 to lowercase."""
        return v.lower()

    @field_validator("callsign", mode="before")
    @classmethod
    def strip_callsign(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ============================================================================
# Enrichment results
# ============================================================================

class Route(BaseModel):
    """Origin and destination airports for a callsign."""
    model_config = ConfigDict(frozen=True)

    origin_icao: Optional[str] = None
    origin_iata: Optional[str] = None
    origin_name: Optional[str] = None
    origin_lat: Optional[float] = None
    origin_lon: Optional[float] = None
    dest_icao: Optional[str] = None
    dest_iata: Optional[str] = None
    dest_name: Optional[str] = None
    dest_lat: Optional[float] = None
    dest_lon: Optional[float] = None
    route_distance_km: Optional[float] = Field(None, ge=0)

    @property
    def origin_code(self) -> Optional[str]:
        return self.origin_iata or self.origin_icao

    @property
    def dest_code(self) -> Optional[str]:
        return self.dest_iata or self.dest_icao


class AircraftInfo(BaseModel):
    """Static registry metadata for one transponder address."""
    model_config = ConfigDict(frozen=True)

    type_code: Optional[str] = None
    registration: Optional[str] = None
    operator: Optional[str] = None
    category: Optional[str] = None


class EnrichedFlight(BaseModel):
    """A FlightFix decorated with whatever metadata the lookups produced."""
    model_config = ConfigDict(frozen=True)

    fix: FlightFix
    route: Optional[Route] = None
    aircraft: Optional[AircraftInfo] = None
    photo_url: Optional[str] = None
    facts: Optional[str] = None
    inferred_heading_deg: Optional[float] = Field(None, ge=0, lt=360)

    @property
    def icao24(self) -> str:
        return self.fix.icao24

    @property
    def effective_heading_deg(self) -> Optional[float]:
        """Broadcast heading when available, GPS-inferred heading otherwise."""
        if self.fix.heading_deg is not None:
            return self.fix.heading_deg
        return self.inferred_heading_deg


# ============================================================================
# Sighting log read-models
# ============================================================================

class RepeatVisitorRecord(BaseModel):
    """Prior sightings of an identifier, captured before the new one is logged."""
    previous_sightings: int = Field(ge=1)
    last_seen_at: datetime
    last_origin_iata: Optional[str] = None
    last_dest_iata: Optional[str] = None


class FlightStats(BaseModel):
    """Aggregate statistics derived from the sighting log."""
    total_sightings: int = 0
    today_count: int = 0
    today_unique_aircraft: int = 0
    busiest_hour: Optional[int] = Field(None, ge=0, le=23)
    busiest_hour_avg_per_day: Optional[float] = None
    most_spotted_operator: Optional[str] = None
    most_spotted_operator_count: Optional[int] = None
    rarest_type_code: Optional[str] = None
    rarest_type_count: Optional[int] = None
    longest_gap: Optional[timedelta] = None
    longest_gap_start: Optional[datetime] = None
    longest_gap_end: Optional[datetime] = None
    current_streak_hours: int = 0


# ============================================================================
# Validation Functions
# ============================================================================

def validate_flight_fix(data: dict) -> tuple[bool, Optional[FlightFix], Optional[str]]:
    """
    Validate FlightFix.

    Returns:
        (is_valid, fix_or_none, error_message_or_none)
    """
    try:
        fix = FlightFix(**data)
        return True, fix, None
    except Exception as e:
        return False, None, str(e)


def validate_route(data: dict) -> tuple[bool, Optional[Route], Optional[str]]:
    """
    Validate Route.

    Returns:
        (is_valid, route_or_none, error_message_or_none)
    """
    try:
        route = Route(**data)
        return True, route, None
    except Exception as e:
        return False, None, str(e)


def validate_aircraft_info(data: dict) -> tuple[bool, Optional[AircraftInfo], Optional[str]]:
    """
    Validate AircraftInfo.

    Returns:
        (is_valid, info_or_none, error_message_or_none)
    """
    try:
        info = AircraftInfo(**data)
        return True, info, None
    except Exception as e:
        return False, None, str(e)
