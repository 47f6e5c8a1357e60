"""
SQLite sighting log.

Append-only record of every notified flight, plus the two read paths the
tracker needs: the repeat-visitor lookup and aggregate statistics.

Blocking sqlite3 calls run in a worker thread, each on its own short-lived
connection. Write and visitor-query failures are logged and swallowed; only
initialise() and query_stats() propagate errors.
"""

import asyncio
import logging
import os
import sqlite3
import time
from contextlib import closing
from datetime import datetime, timezone
from typing import Optional

from contracts.constants import MPS_TO_KMH, SCHEMA_VERSION
from contracts.validation import Direction, EnrichedFlight, FlightStats, RepeatVisitorRecord
from processing.metrics import LOG_WRITE_LATENCY, SIGHTINGS_LOGGED
from processing.stats import StatsAggregator

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS flight_sightings (
        id                  INTEGER PRIMARY KEY AUTOINCREMENT,
        seen_at             TEXT    NOT NULL,
        icao24              TEXT    NOT NULL,
        callsign            TEXT,
        latitude            REAL,
        longitude           REAL,
        altitude_m          REAL,
        velocity_kmh        REAL,
        heading_deg         REAL,
        vertical_rate_mps   REAL,
        distance_km         REAL,
        direction           TEXT,
        eta_seconds         REAL,
        type_code           TEXT,
        registration        TEXT,
        operator            TEXT,
        category            TEXT,
        origin_iata         TEXT,
        dest_iata           TEXT,
        route_distance_km   REAL
    );
    CREATE INDEX IF NOT EXISTS ix_sightings_seen_at ON flight_sightings(seen_at);
    CREATE INDEX IF NOT EXISTS ix_sightings_icao24 ON flight_sightings(icao24);
"""

# Columns added after the first schema; applied to older databases on startup
MIGRATION_COLUMNS = [
    ("squawk", "TEXT"),
    ("emergency", "TEXT"),
    ("is_military", "INTEGER"),
    ("alt_geom_m", "REAL"),
    ("nav_altitude_m", "REAL"),
    ("wind_direction_deg", "REAL"),
    ("wind_speed_kt", "REAL"),
    ("outside_air_temp_c", "REAL"),
    ("aircraft_desc", "TEXT"),
]

INSERT_COLUMNS = [
    "seen_at", "icao24", "callsign",
    "latitude", "longitude", "altitude_m", "velocity_kmh",
    "heading_deg", "vertical_rate_mps", "distance_km",
    "direction", "eta_seconds",
    "type_code", "registration", "operator", "category",
    "origin_iata", "dest_iata", "route_distance_km",
    "squawk", "emergency", "is_military",
    "alt_geom_m", "nav_altitude_m",
    "wind_direction_deg", "wind_speed_kt", "outside_air_temp_c",
    "aircraft_desc",
]


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 to the second; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


def sighting_row(
    flight: EnrichedFlight,
    direction: Direction,
    eta_seconds: Optional[float],
    seen_at: datetime,
) -> dict:
    """Flatten an enriched flight into flight_sightings column values."""
    fix = flight.fix
    aircraft = flight.aircraft
    route = flight.route

    return {
        "seen_at": format_timestamp(seen_at),
        "icao24": fix.icao24,
        "callsign": fix.callsign or None,
        "latitude": fix.latitude,
        "longitude": fix.longitude,
        "altitude_m": fix.altitude_m,
        "velocity_kmh": fix.velocity_mps * MPS_TO_KMH if fix.velocity_mps is not None else None,
        # Broadcast heading only; inferred headings are not persisted
        "heading_deg": fix.heading_deg,
        "vertical_rate_mps": fix.vertical_rate_mps,
        "distance_km": fix.distance_km,
        "direction": direction.value if direction else None,
        "eta_seconds": eta_seconds,
        "type_code": aircraft.type_code if aircraft else None,
        "registration": aircraft.registration if aircraft else None,
        "operator": aircraft.operator if aircraft else None,
        "category": aircraft.category if aircraft else None,
        "origin_iata": route.origin_iata if route else None,
        "dest_iata": route.dest_iata if route else None,
        "route_distance_km": route.route_distance_km if route else None,
        "squawk": fix.squawk,
        "emergency": fix.emergency,
        "is_military": 1 if fix.is_military else None,
        "alt_geom_m": fix.geo_altitude_m,
        "nav_altitude_m": fix.nav_altitude_m,
        "wind_direction_deg": fix.wind_direction_deg,
        "wind_speed_kt": fix.wind_speed_kt,
        "outside_air_temp_c": fix.outside_air_temp_c,
        "aircraft_desc": fix.aircraft_description,
    }


class SightingLog:
    def __init__(self, db_path: str):
        self.db_path = os.path.abspath(db_path)
        self.stats = StatsAggregator(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def initialise(self):
        """Create the database, table and indexes, add any missing columns and stamp the schema version."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with closing(self._connect()) as conn:
            conn.executescript(CREATE_TABLE_SQL)

            for name, column_type in MIGRATION_COLUMNS:
                try:
                    conn.execute(f"ALTER TABLE flight_sightings ADD COLUMN {name} {column_type}")
                except sqlite3.OperationalError as e:
                    # duplicate column name
                    logger.debug(f"Column {name} not added: {e}")
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()

        logger.info(f"Sighting log ready: {self.db_path}")

    # ========================================================================
    # Write
    # ========================================================================

    def insert_sighting(self, row: dict):
        placeholders = ", ".join(f":{column}" for column in INSERT_COLUMNS)
        sql = f"INSERT INTO flight_sightings ({', '.join(INSERT_COLUMNS)}) VALUES ({placeholders})"

        start = time.time()
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(sql, row)
        LOG_WRITE_LATENCY.observe(time.time() - start)

    async def log_sighting(
        self,
        flight: EnrichedFlight,
        direction: Direction,
        eta_seconds: Optional[float],
        seen_at: datetime,
    ):
        try:
            row = sighting_row(flight, direction, eta_seconds, seen_at)
            await asyncio.to_thread(self.insert_sighting, row)
            SIGHTINGS_LOGGED.labels(status="success").inc()
        except Exception as e:
            SIGHTINGS_LOGGED.labels(status="error").inc()
            logger.error(f"Failed to log sighting for {flight.icao24}: {e}", exc_info=True)

    # ========================================================================
    # Read
    # ========================================================================

    def find_visitor(self, icao24: str) -> Optional[RepeatVisitorRecord]:
        with closing(self._connect()) as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM flight_sightings WHERE icao24 = ?",
                (icao24.lower(),),
            ).fetchone()[0]
            if not count:
                return None

            latest = conn.execute("""
                SELECT seen_at, origin_iata, dest_iata
                FROM flight_sightings
                WHERE icao24 = ?
                ORDER BY seen_at DESC, id DESC
                LIMIT 1
            """, (icao24.lower(),)).fetchone()

        return RepeatVisitorRecord(
            previous_sightings=count,
            last_seen_at=datetime.fromisoformat(latest[0]),
            last_origin_iata=latest[1],
            last_dest_iata=latest[2],
        )

    async def query_visitor(self, icao24: str) -> Optional[RepeatVisitorRecord]:
        """Prior sightings of icao24, or None for a first visit or on any failure."""
        try:
            return await asyncio.to_thread(self.find_visitor, icao24)
        except Exception as e:
            logger.error(f"Repeat-visitor lookup failed for {icao24}: {e}")
            return None

    async def query_stats(self, now: Optional[datetime] = None) -> FlightStats:
        return await asyncio.to_thread(self.stats.compute, now)
