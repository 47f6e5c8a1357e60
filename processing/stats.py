"""
Aggregate statistics over the sighting log.

Every figure is an independent query computed fresh per call; nothing is
cached or materialized. Hour and day buckets use the host's local time, the
same zone SQLite applies for the 'localtime' modifier.
"""

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timedelta
from typing import Iterable, Optional

from contracts.validation import FlightStats

logger = logging.getLogger(__name__)

HOUR_BUCKET_FORMAT = "%Y-%m-%d %H"

# Streaks longer than this are not walked
MAX_STREAK_BUCKETS = 200


def local_naive(moment: datetime) -> datetime:
    """Aware datetimes are converted to naive local time; naive ones are taken as local already."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def current_streak_hours(buckets: Iterable[datetime], now: datetime) -> int:
    """
    Consecutive local hour buckets with a sighting, walking back from now's hour.

    Returns 0 when the current hour itself has no sighting.
    """
    occupied = {b.replace(minute=0, second=0, microsecond=0) for b in buckets}
    expected = local_naive(now).replace(minute=0, second=0, microsecond=0)

    streak = 0
    while expected in occupied:
        streak += 1
        expected -= timedelta(hours=1)
    return streak


class StatsAggregator:
    """Read-only queries over the flight_sightings table."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def compute(self, now: Optional[datetime] = None) -> FlightStats:
        now = now or datetime.now().astimezone()
        today = local_naive(now).date().isoformat()

        with closing(sqlite3.connect(self.db_path)) as conn:
            stats = {
                "total_sightings": self._scalar(conn, "SELECT COUNT(*) FROM flight_sightings"),
                "today_count": self._scalar(
                    conn,
                    "SELECT COUNT(*) FROM flight_sightings WHERE date(seen_at, 'localtime') = ?",
                    (today,),
                ),
                "today_unique_aircraft": self._scalar(
                    conn,
                    "SELECT COUNT(DISTINCT icao24) FROM flight_sightings WHERE date(seen_at, 'localtime') = ?",
                    (today,),
                ),
                "current_streak_hours": self._current_streak(conn, now),
            }
            stats.update(self._busiest_hour(conn))
            stats.update(self._most_spotted_operator(conn))
            stats.update(self._rarest_type(conn))
            stats.update(self._longest_gap(conn))

        return FlightStats(**stats)

    @staticmethod
    def _scalar(conn: sqlite3.Connection, sql: str, params: tuple = ()) -> int:
        row = conn.execute(sql, params).fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    def _busiest_hour(self, conn: sqlite3.Connection) -> dict:
        row = conn.execute("""
            SELECT CAST(strftime('%H', seen_at, 'localtime') AS INTEGER) AS hour,
                   COUNT(*) AS total,
                   COUNT(*) * 1.0 / NULLIF(COUNT(DISTINCT date(seen_at, 'localtime')), 0) AS avg_per_day
            FROM flight_sightings
            GROUP BY hour
            ORDER BY total DESC, hour ASC
            LIMIT 1
        """).fetchone()
        if row is None:
            return {}
        return {"busiest_hour": row[0], "busiest_hour_avg_per_day": row[2]}

    def _most_spotted_operator(self, conn: sqlite3.Connection) -> dict:
        row = conn.execute("""
            SELECT operator, COUNT(*) AS cnt
            FROM flight_sightings
            WHERE operator IS NOT NULL AND operator != ''
            GROUP BY operator
            ORDER BY cnt DESC, operator ASC
            LIMIT 1
        """).fetchone()
        if row is None:
            return {}
        return {"most_spotted_operator": row[0], "most_spotted_operator_count": row[1]}

    def _rarest_type(self, conn: sqlite3.Connection) -> dict:
        row = conn.execute("""
            SELECT type_code, COUNT(*) AS cnt
            FROM flight_sightings
            WHERE type_code IS NOT NULL AND type_code != ''
            GROUP BY type_code
            ORDER BY cnt ASC, type_code ASC
            LIMIT 1
        """).fetchone()
        if row is None:
            return {}
        return {"rarest_type_code": row[0], "rarest_type_count": row[1]}

    def _longest_gap(self, conn: sqlite3.Connection) -> dict:
        row = conn.execute("""
            SELECT (julianday(seen_at) - julianday(prev_seen_at)) * 86400 AS gap_secs,
                   prev_seen_at,
                   seen_at
            FROM (
                SELECT seen_at, LAG(seen_at) OVER (ORDER BY seen_at, id) AS prev_seen_at
                FROM flight_sightings
            )
            WHERE prev_seen_at IS NOT NULL
            ORDER BY gap_secs DESC
            LIMIT 1
        """).fetchone()
        if row is None or row[0] is None:
            return {}

        return {
            "longest_gap": timedelta(seconds=round(row[0])),
            "longest_gap_start": datetime.fromisoformat(row[1]),
            "longest_gap_end": datetime.fromisoformat(row[2]),
        }

    def _current_streak(self, conn: sqlite3.Connection, now: datetime) -> int:
        rows = conn.execute("""
            SELECT strftime('%Y-%m-%d %H', seen_at, 'localtime') AS hour_bucket
            FROM flight_sightings
            GROUP BY hour_bucket
            ORDER BY hour_bucket DESC
            LIMIT ?
        """, (MAX_STREAK_BUCKETS,)).fetchall()

        buckets = []
        for (bucket,) in rows:
            try:
                buckets.append(datetime.strptime(bucket, HOUR_BUCKET_FORMAT))
            except (TypeError, ValueError):
                logger.debug(f"Skipping unparseable hour bucket: {bucket!r}")
        return current_streak_hours(buckets, now)
