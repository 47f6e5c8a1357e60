"""
Integration tests for the SQLite sighting log.

Runs against a real SQLite file in a temporary directory. The process
timezone is pinned to UTC so local-time buckets are deterministic.
"""

import asyncio
import os
import sqlite3
import time
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.constants import SCHEMA_VERSION
from contracts.validation import AircraftInfo, Direction, EnrichedFlight, FlightFix, Route
from processing.sighting_log import CREATE_TABLE_SQL, MIGRATION_COLUMNS, SightingLog

NOW = datetime(2026, 10, 19, 12, 45, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def utc_localtime():
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


@pytest.fixture
def log(tmp_path):
    sighting_log = SightingLog(str(tmp_path / "data" / "flight_stats.db"))
    sighting_log.initialise()
    return sighting_log


def make_flight(icao24, type_code, operator, registration=None, origin="AMS", dest="LHR"):
    return EnrichedFlight(
        fix=FlightFix(
            icao24=icao24,
            callsign="KLM1234",
            latitude=52.0,
            longitude=4.6,
            altitude_m=900.0,
            velocity_mps=110.0,
            heading_deg=180.0,
            distance_km=3.2,
            squawk="1000",
        ),
        route=Route(origin_iata=origin, dest_iata=dest, route_distance_km=371.0),
        aircraft=AircraftInfo(type_code=type_code, registration=registration, operator=operator),
    )


def log_at(log, flight, moment):
    asyncio.run(log.log_sighting(flight, Direction.OVERHEAD, 30.0, moment))


def columns(db_path):
    with closing(sqlite3.connect(db_path)) as conn:
        return {row[1] for row in conn.execute("PRAGMA table_info(flight_sightings)")}


@pytest.fixture
def populated(log):
    """Five sightings today: 05:40, 08:40, 10:40, 11:40, 12:40 UTC."""
    klm = make_flight("4ca7b5", "B738", "KLM", registration="PH-BXA")
    log_at(log, klm, NOW.replace(hour=5, minute=40))
    log_at(log, make_flight("484f6a", "A388", "Lufthansa", origin="FRA", dest="JFK"), NOW.replace(hour=8, minute=40))
    log_at(log, klm, NOW.replace(hour=10, minute=40))
    log_at(log, make_flight("3c6444", "E190", "KLM"), NOW.replace(hour=11, minute=40))
    log_at(log, make_flight("4ca7b5", "B738", "KLM", origin="LHR", dest="AMS"), NOW.replace(hour=12, minute=40))
    return log


class TestSchema:
    def test_initialise_creates_file_and_columns(self, log):
        assert os.path.exists(log.db_path)
        names = columns(log.db_path)
        assert {"seen_at", "icao24", "direction", "eta_seconds"} <= names
        assert {name for name, _ in MIGRATION_COLUMNS} <= names

    def test_initialise_is_idempotent(self, log):
        log.initialise()
        log.initialise()
        assert {name for name, _ in MIGRATION_COLUMNS} <= columns(log.db_path)

    def test_old_database_is_migrated(self, tmp_path):
        db_path = str(tmp_path / "old.db")
        with closing(sqlite3.connect(db_path)) as conn:
            conn.executescript(CREATE_TABLE_SQL)
            conn.execute(
                "INSERT INTO flight_sightings (seen_at, icao24) VALUES (?, ?)",
                ("2026-10-01T10:00:00+00:00", "4ca7b5"),
            )
            conn.commit()
        assert "squawk" not in columns(db_path)

        SightingLog(db_path).initialise()

        assert "squawk" in columns(db_path)
        with closing(sqlite3.connect(db_path)) as conn:
            assert conn.execute("SELECT COUNT(*) FROM flight_sightings").fetchone()[0] == 1

    def test_schema_version_is_stamped(self, log):
        with closing(sqlite3.connect(log.db_path)) as conn:
            assert conn.execute("PRAGMA user_version").fetchone()[0] == SCHEMA_VERSION

    def test_legacy_country_column_still_accepts_writes(self, tmp_path):
        db_path = str(tmp_path / "legacy.db")
        with closing(sqlite3.connect(db_path)) as conn:
            conn.executescript(CREATE_TABLE_SQL)
            conn.execute("ALTER TABLE flight_sightings ADD COLUMN origin_country TEXT")
            conn.commit()
        legacy = SightingLog(db_path)
        legacy.initialise()

        log_at(legacy, make_flight("4ca7b5", "B738", "KLM"), NOW)

        with closing(sqlite3.connect(db_path)) as conn:
            assert conn.execute("SELECT icao24, origin_country FROM flight_sightings").fetchall() == [("4ca7b5", None)]


class TestWrites:
    def test_row_contents(self, log):
        log_at(log, make_flight("4CA7B5", "B738", "KLM", registration="PH-BXA"), NOW)

        with closing(sqlite3.connect(log.db_path)) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute("SELECT * FROM flight_sightings").fetchone()

        assert row["seen_at"] == "2026-10-19T12:45:00+00:00"
        assert row["icao24"] == "4ca7b5"
        assert row["direction"] == "Overhead"
        assert row["eta_seconds"] == 30.0
        assert row["velocity_kmh"] == pytest.approx(396.0)
        assert row["type_code"] == "B738"
        assert row["registration"] == "PH-BXA"
        assert row["origin_iata"] == "AMS"
        assert row["squawk"] == "1000"

    def test_write_failure_is_swallowed(self, tmp_path):
        # Never initialised: the table does not exist
        log = SightingLog(str(tmp_path / "bare.db"))
        log_at(log, make_flight("4ca7b5", "B738", "KLM"), NOW)


class TestRepeatVisitor:
    def test_first_visit_is_none(self, log):
        assert asyncio.run(log.query_visitor("4ca7b5")) is None

    def test_previous_sightings_and_latest_route(self, populated):
        visitor = asyncio.run(populated.query_visitor("4CA7B5"))

        assert visitor.previous_sightings == 3
        assert visitor.last_seen_at == NOW.replace(hour=12, minute=40)
        assert visitor.last_origin_iata == "LHR"
        assert visitor.last_dest_iata == "AMS"

    def test_query_failure_is_none(self, tmp_path):
        log = SightingLog(str(tmp_path / "bare.db"))
        assert asyncio.run(log.query_visitor("4ca7b5")) is None


class TestStats:
    def test_empty_log(self, log):
        stats = asyncio.run(log.query_stats(NOW))

        assert stats.total_sightings == 0
        assert stats.today_count == 0
        assert stats.busiest_hour is None
        assert stats.longest_gap is None
        assert stats.current_streak_hours == 0

    def test_aggregates(self, populated):
        stats = asyncio.run(populated.query_stats(NOW))

        assert stats.total_sightings == 5
        assert stats.today_count == 5
        assert stats.today_unique_aircraft == 3
        assert stats.busiest_hour == 5
        assert stats.busiest_hour_avg_per_day == pytest.approx(1.0)
        assert stats.most_spotted_operator == "KLM"
        assert stats.most_spotted_operator_count == 4
        assert stats.rarest_type_code == "A388"
        assert stats.rarest_type_count == 1

    def test_longest_gap(self, populated):
        stats = asyncio.run(populated.query_stats(NOW))

        assert stats.longest_gap == timedelta(hours=3)
        assert stats.longest_gap_start == NOW.replace(hour=5, minute=40)
        assert stats.longest_gap_end == NOW.replace(hour=8, minute=40)

    def test_current_streak(self, populated):
        assert asyncio.run(populated.query_stats(NOW)).current_streak_hours == 3

    def test_streak_is_zero_once_the_hour_turns(self, populated):
        later = NOW + timedelta(hours=1)
        assert asyncio.run(populated.query_stats(later)).current_streak_hours == 0

    def test_today_excludes_yesterday(self, populated):
        tomorrow = NOW + timedelta(days=1)
        stats = asyncio.run(populated.query_stats(tomorrow))

        assert stats.total_sightings == 5
        assert stats.today_count == 0
        assert stats.today_unique_aircraft == 0

    def test_stats_on_missing_table_raise(self, tmp_path):
        log = SightingLog(str(tmp_path / "bare.db"))
        with pytest.raises(sqlite3.OperationalError):
            asyncio.run(log.query_stats(NOW))
