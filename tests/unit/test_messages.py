"""
Unit tests for Telegram message formatting.
"""

import re

import pytest
from pathlib import Path
import sys
from datetime import datetime, timedelta, timezone

import aiohttp

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import (
    AircraftInfo,
    Direction,
    EnrichedFlight,
    FlightFix,
    FlightStats,
    RepeatVisitorRecord,
    Route,
)
from notify.messages import (
    build_flight_message,
    display_callsign,
    escape_html,
    escape_truncated,
    format_aircraft,
    format_duration,
    format_error_message,
    format_eta,
    format_route,
    format_startup_message,
    format_stats_message,
)


def make_flight(**fix_overrides):
    fix = {
        "icao24": "4ca7b5",
        "callsign": "KLM1234",
        "latitude": 51.98,
        "longitude": 4.55,
        "altitude_m": 762.0,
        "velocity_mps": 100.0,
        "heading_deg": 90.0,
        "distance_km": 5.5,
    }
    fix.update(fix_overrides)
    return EnrichedFlight(
        fix=FlightFix(**fix),
        route=Route(origin_iata="AMS", dest_iata="LHR"),
        aircraft=AircraftInfo(type_code="B738", registration="PH-BXA", operator="KLM", category="Narrow-body Jet"),
    )


class TestSmallFormatters:
    @pytest.mark.parametrize("eta,expected", [
        (None, "Now"), (0, "0s"), (42.7, "42s"), (75, "1m 15s"), (600, "10m 00s"),
    ])
    def test_format_eta(self, eta, expected):
        assert format_eta(eta) == expected

    def test_format_duration(self):
        assert format_duration(timedelta(hours=2, minutes=5)) == "2h 05m"
        assert format_duration(timedelta(minutes=4, seconds=3)) == "4m 03s"

    def test_escape_html(self):
        assert escape_html("<b>A&B</b>") == "&lt;b&gt;A&amp;B&lt;/b&gt;"

    def test_format_route(self):
        assert format_route(Route(origin_iata="AMS", dest_iata="LHR")) == "AMS → LHR"
        assert format_route(Route(origin_icao="EHAM", dest_icao="EGLL")) == "EHAM → EGLL"
        assert format_route(Route(origin_iata="AMS")) == "Unknown route"
        assert format_route(None) == "Unknown route"

    def test_format_aircraft(self):
        info = AircraftInfo(type_code="B738", registration="PH-BXA", category="Narrow-body Jet")
        assert format_aircraft(info) == "B738 / PH-BXA (Narrow-body Jet)"
        assert format_aircraft(AircraftInfo()) == "Unknown"
        assert format_aircraft(None) == "Unknown"

    def test_placeholder_callsign_falls_back_to_icao24(self):
        assert display_callsign(make_flight(callsign="N/A")) == "4ca7b5"
        assert display_callsign(make_flight(callsign="")) == "4ca7b5"
        assert display_callsign(make_flight()) == "KLM1234"

    def test_escape_truncated_fits_without_cutting(self):
        assert escape_truncated("A & B", 10) == "A &amp; B"

    def test_escape_truncated_never_splits_an_entity(self):
        # "x" * 8 + "&amp;" would need 13; the entity is dropped whole
        truncated = escape_truncated("x" * 8 + "& more", 12)
        assert truncated == "xxxxxxxx…"
        assert len(truncated) <= 12

    def test_escape_truncated_keeps_whole_entities(self):
        truncated = escape_truncated("<" * 20, 15)
        assert truncated == "&lt;" * 3 + "…"


class TestFlightMessage:
    def test_core_lines(self):
        message = build_flight_message(make_flight(), Direction.OVERHEAD, 75)

        assert message.startswith("🔴 <b>KLM1234</b> - Overhead")
        assert "Route: AMS → LHR" in message
        assert "Aircraft: B738 / PH-BXA (Narrow-body Jet)" in message
        assert "Distance: 5.5 km | Alt: 762 m | Speed: 360 km/h | Overhead in: 1m 15s" in message

    def test_towards_uses_green_marker(self):
        message = build_flight_message(make_flight(), Direction.TOWARDS, 42)
        assert message.startswith("🟢 <b>KLM1234</b> - Towards")

    def test_unknown_values_render_as_question_marks(self):
        flight = make_flight(altitude_m=None, velocity_mps=None, distance_km=None)
        message = build_flight_message(flight, Direction.TOWARDS, None)
        assert "Distance: ? | Alt: ? | Speed: ? | Overhead in: Now" in message

    def test_emergency_squawk_is_first_line(self):
        message = build_flight_message(make_flight(squawk="7700"), Direction.TOWARDS, 42)
        assert message.splitlines()[0] == "🚨 <b>SQUAWK 7700: General Emergency</b>"

    def test_military_badge(self):
        message = build_flight_message(make_flight(is_military=True), Direction.TOWARDS, 42)
        assert "🎖️ <b>Military aircraft</b>" in message

    def test_repeat_visitor_line(self):
        visitor = RepeatVisitorRecord(
            previous_sightings=3,
            last_seen_at=datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc),
            last_origin_iata="AMS",
            last_dest_iata="LHR",
        )
        message = build_flight_message(make_flight(), Direction.TOWARDS, 42, visitor)
        assert "🔁 Seen 3 times before" in message
        assert "(AMS → LHR)" in message

    def test_single_previous_visit(self):
        visitor = RepeatVisitorRecord(previous_sightings=1, last_seen_at=datetime(2026, 10, 18, tzinfo=timezone.utc))
        message = build_flight_message(make_flight(), Direction.TOWARDS, 42, visitor)
        assert "Seen once before" in message

    def test_facts_appended_and_escaped(self):
        flight = make_flight().model_copy(update={"facts": "Seats <190> & flies short-haul."})
        message = build_flight_message(flight, Direction.TOWARDS, 42)
        assert message.endswith("\n\n✈️ Seats &lt;190&gt; &amp; flies short-haul.")

    def test_callsign_is_escaped(self):
        message = build_flight_message(make_flight(callsign="A<B"), Direction.TOWARDS, 42)
        assert "<b>A&lt;B</b>" in message

    def test_caption_limit_cuts_facts_before_escaping(self):
        flight = make_flight().model_copy(update={"facts": "Crews & pilots <3 it. " * 100})

        caption = build_flight_message(flight, Direction.TOWARDS, 42, max_length=1024)

        assert len(caption) <= 1024
        assert caption.endswith("…")
        assert re.search(r"&(?!amp;|lt;|gt;)", caption) is None
        assert caption.startswith(build_flight_message(make_flight(), Direction.TOWARDS, 42))

    def test_caption_limit_leaves_short_messages_alone(self):
        flight = make_flight().model_copy(update={"facts": "Seats about 180."})

        assert build_flight_message(flight, Direction.TOWARDS, 42, max_length=1024) == \
            build_flight_message(flight, Direction.TOWARDS, 42)

    def test_tight_caption_limit_drops_whole_lines(self):
        flight = make_flight().model_copy(update={"facts": "Seats <190> & flies short-haul."})

        caption = build_flight_message(flight, Direction.TOWARDS, 42, max_length=60)

        assert len(caption) <= 60
        assert caption.startswith("🟢 <b>KLM1234</b> - Towards\nRoute: AMS → LHR")
        assert "Aircraft:" not in caption
        assert re.search(r"&(?!amp;|lt;|gt;)", caption) is None


class TestSummaryMessages:
    def test_stats_message_with_empty_log(self):
        message = format_stats_message(FlightStats())

        assert "✈️ Total planes tracked: <b>0</b>" in message
        assert "📅 Today: <b>0</b> planes (0 unique)" in message
        assert "🔥 Current streak: <b>0</b> (no planes in the current hour yet)" in message
        assert "Busiest hour" not in message

    def test_stats_message_full(self):
        stats = FlightStats(
            total_sightings=1234,
            today_count=12,
            today_unique_aircraft=10,
            busiest_hour=17,
            busiest_hour_avg_per_day=4.5,
            most_spotted_operator="KLM",
            most_spotted_operator_count=40,
            rarest_type_code="A388",
            rarest_type_count=1,
            longest_gap=timedelta(hours=3, minutes=20),
            longest_gap_start=datetime(2026, 10, 18, 1, 0, tzinfo=timezone.utc),
            longest_gap_end=datetime(2026, 10, 18, 4, 20, tzinfo=timezone.utc),
            current_streak_hours=2,
        )
        message = format_stats_message(stats)

        assert "<b>1,234</b>" in message
        assert "🏆 Busiest hour: <b>17:00–18:00</b> (avg 4.5/day)" in message
        assert "🛫 Most spotted operator: <b>KLM</b> (40 sightings)" in message
        assert "🦄 Rarest aircraft type: <b>A388</b> (1 sighting)" in message
        assert "⏱️ Longest gap: <b>3h 20m</b>" in message
        assert "🔥 Current streak: <b>2</b> consecutive hours with planes" in message

    def test_startup_message_without_stats(self):
        assert format_startup_message(None) == "🟢 <b>SkyWatch started</b>\n⚠️ DB stats unavailable at startup."

    def test_startup_message_with_stats(self):
        message = format_startup_message(FlightStats(total_sightings=5, today_count=2, today_unique_aircraft=2))
        assert message.startswith("🟢 <b>SkyWatch started</b>")
        assert "• Total sightings: 5" in message

    def test_error_message_plain_exception(self):
        message = format_error_message(ConnectionError("feed <down>"))
        assert message == "⚠️ <b>SkyWatch error</b>\nConnectionError: feed &lt;down&gt;"

    def test_error_message_http_error(self):
        error = aiohttp.ClientResponseError(None, (), status=503, message="Service Unavailable")
        message = format_error_message(error)
        assert message == "⚠️ <b>SkyWatch HTTP error</b>\n503: Service Unavailable"
