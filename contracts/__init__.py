"""
SkyWatch Contracts Package

Provides shared constants and validated data models.
"""

from contracts.constants import *
from contracts.validation import (
    Direction,
    TrackState,
    FlightFix,
    Route,
    AircraftInfo,
    EnrichedFlight,
    RepeatVisitorRecord,
    FlightStats,
    validate_flight_fix,
    validate_route,
    validate_aircraft_info,
)

__all__ = [
    # Constants
    "SCHEMA_VERSION",
    "EARTH_RADIUS_KM",
    "OVERHEAD_RADIUS_KM",
    "NOTIFY_ETA_SECONDS",
    "MIN_POLL_INTERVAL_SECONDS",
    "EMERGENCY_SQUAWKS",
    # Models
    "Direction",
    "TrackState",
    "FlightFix",
    "Route",
    "AircraftInfo",
    "EnrichedFlight",
    "RepeatVisitorRecord",
    "FlightStats",
    # Validators
    "validate_flight_fix",
    "validate_route",
    "validate_aircraft_info",
]
