"""
Contract tests for the shared data models.

Validates the pydantic contracts every component exchanges.
These tests run independently (no network required).
"""

import pytest
from pathlib import Path
import sys
from datetime import datetime, timezone

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import (
    AircraftInfo,
    Direction,
    EnrichedFlight,
    FlightFix,
    RepeatVisitorRecord,
    Route,
    validate_aircraft_info,
    validate_flight_fix,
    validate_route,
)


class TestFlightFixContract:
    """Test FlightFix validation rules."""

    def test_minimal_fix_validates(self):
        is_valid, fix, error = validate_flight_fix({"icao24": "4ca7b5"})

        assert is_valid, f"Minimal fix should validate: {error}"
        assert fix.callsign == ""
        assert fix.latitude is None
        assert fix.has_position is False

    def test_icao24_is_lowercased(self):
        _, fix, _ = validate_flight_fix({"icao24": "A1B2C3"})
        assert fix.icao24 == "a1b2c3"

    def test_invalid_icao24_fails(self):
        for bad in ("", "12345", "1234567", "zzzzzz"):
            is_valid, _, _ = validate_flight_fix({"icao24": bad})
            assert not is_valid, f"{bad!r} should fail validation"

    def test_callsign_is_trimmed(self):
        _, fix, _ = validate_flight_fix({"icao24": "4ca7b5", "callsign": "  KLM1234 "})
        assert fix.callsign == "KLM1234"

    def test_none_callsign_becomes_empty(self):
        _, fix, _ = validate_flight_fix({"icao24": "4ca7b5", "callsign": None})
        assert fix.callsign == ""

    def test_latitude_out_of_range_fails(self):
        is_valid, _, _ = validate_flight_fix({"icao24": "4ca7b5", "latitude": 91.0, "longitude": 4.0})
        assert not is_valid

    def test_heading_360_fails(self):
        is_valid, _, _ = validate_flight_fix({"icao24": "4ca7b5", "heading_deg": 360.0})
        assert not is_valid

    def test_negative_velocity_fails(self):
        is_valid, _, _ = validate_flight_fix({"icao24": "4ca7b5", "velocity_mps": -1.0})
        assert not is_valid

    def test_fix_is_immutable(self):
        fix = FlightFix(icao24="4ca7b5", latitude=51.9, longitude=4.6)
        with pytest.raises(Exception):
            fix.latitude = 52.0


class TestRouteContract:
    """Test Route validation and code fallbacks."""

    def test_route_validates(self):
        is_valid, route, error = validate_route({
            "origin_icao": "EHAM", "origin_iata": "AMS",
            "dest_icao": "EGLL", "dest_iata": "LHR",
        })
        assert is_valid, error
        assert route.origin_code == "AMS"
        assert route.dest_code == "LHR"

    def test_codes_fall_back_to_icao(self):
        route = Route(origin_icao="EHRD", dest_icao="LFPG")
        assert route.origin_code == "EHRD"
        assert route.dest_code == "LFPG"

    def test_negative_route_distance_fails(self):
        is_valid, _, _ = validate_route({"origin_iata": "AMS", "route_distance_km": -5})
        assert not is_valid


class TestAircraftInfoContract:
    def test_all_fields_optional(self):
        is_valid, info, error = validate_aircraft_info({})
        assert is_valid, error
        assert info.type_code is None


class TestEnrichedFlightContract:
    """Test effective heading selection."""

    def test_broadcast_heading_wins(self):
        fix = FlightFix(icao24="4ca7b5", heading_deg=90.0)
        flight = EnrichedFlight(fix=fix, inferred_heading_deg=180.0)
        assert flight.effective_heading_deg == 90.0

    def test_inferred_heading_used_when_not_broadcast(self):
        fix = FlightFix(icao24="4ca7b5")
        flight = EnrichedFlight(fix=fix, inferred_heading_deg=180.0)
        assert flight.effective_heading_deg == 180.0

    def test_heading_unknown(self):
        flight = EnrichedFlight(fix=FlightFix(icao24="4ca7b5"))
        assert flight.effective_heading_deg is None
        assert flight.icao24 == "4ca7b5"

    def test_optional_enrichment_defaults_to_none(self):
        flight = EnrichedFlight(fix=FlightFix(icao24="4ca7b5"))
        assert flight.route is None
        assert flight.aircraft is None
        assert flight.photo_url is None
        assert flight.facts is None


class TestRepeatVisitorContract:
    def test_requires_at_least_one_sighting(self):
        with pytest.raises(Exception):
            RepeatVisitorRecord(previous_sightings=0, last_seen_at=datetime.now(timezone.utc))

    def test_direction_values(self):
        assert {d.value for d in Direction} == {"Overhead", "Towards", "Away", "Crossing"}
        assert AircraftInfo(category="Turboprop").category == "Turboprop"
