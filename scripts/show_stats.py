#!/usr/bin/env python3
"""
Print the sighting log summary for a database file.

Usage: show_stats.py [DATABASE_PATH]   (defaults to $DATABASE_PATH or data/flight_stats.db)
"""

import os
import sys
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from notify.messages import format_duration
from processing.stats import StatsAggregator

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    db_path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("DATABASE_PATH", "data/flight_stats.db")

    if not os.path.exists(db_path):
        logger.error(f"Database not found: {db_path}")
        sys.exit(1)

    stats = StatsAggregator(db_path).compute()

    table = Table(title=f"Sighting log: {db_path}", show_header=False)
    table.add_column("Statistic", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Total sightings", f"{stats.total_sightings:,}")
    table.add_row("Today", f"{stats.today_count} ({stats.today_unique_aircraft} unique)")
    if stats.busiest_hour is not None:
        table.add_row(
            "Busiest hour",
            f"{stats.busiest_hour:02d}:00 (avg {stats.busiest_hour_avg_per_day or 0:.1f}/day)",
        )
    if stats.most_spotted_operator:
        table.add_row("Most spotted operator", f"{stats.most_spotted_operator} ({stats.most_spotted_operator_count})")
    if stats.rarest_type_code:
        table.add_row("Rarest type", f"{stats.rarest_type_code} ({stats.rarest_type_count})")
    if stats.longest_gap:
        table.add_row(
            "Longest gap",
            f"{format_duration(stats.longest_gap)} "
            f"({stats.longest_gap_start.astimezone():%d %b %H:%M} - {stats.longest_gap_end.astimezone():%H:%M})",
        )
    table.add_row("Current streak", f"{stats.current_streak_hours} h")

    Console().print(table)


if __name__ == "__main__":
    main()
