"""
Terminal table of the current poll, rendered with rich.
"""

import logging
from datetime import datetime
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from contracts.constants import (
    CATEGORY_HELICOPTER,
    CATEGORY_LIGHT,
    CATEGORY_MILITARY,
    CATEGORY_NARROWBODY,
    CATEGORY_REGIONAL_JET,
    CATEGORY_TURBOPROP,
    CATEGORY_WIDEBODY,
    MPS_TO_KMH,
)
from contracts.validation import AircraftInfo, Direction, EnrichedFlight, Route
from processing.geomath import cardinal_direction, classify_direction

logger = logging.getLogger(__name__)

MISSING = "[grey50]--[/]"
UNKNOWN = "[grey50]---[/]"

CATEGORY_STYLES = {
    CATEGORY_HELICOPTER: "yellow",
    CATEGORY_WIDEBODY: "bold blue",
    CATEGORY_NARROWBODY: "blue",
    CATEGORY_REGIONAL_JET: "cyan",
    CATEGORY_TURBOPROP: "green",
    CATEGORY_LIGHT: "bright_green",
    CATEGORY_MILITARY: "red",
}

DIRECTION_CELLS = {
    Direction.OVERHEAD: "[bold white]⊙ Overhead[/]",
    Direction.TOWARDS: "[green]↓ Towards[/]",
    Direction.AWAY: "[red]↑ Away[/]",
    Direction.CROSSING: "[yellow]→ Crossing[/]",
}


def format_route_cell(route: Optional[Route]) -> str:
    if route is None:
        return UNKNOWN
    dep = route.origin_code or "???"
    arr = route.dest_code or "???"
    return f"{escape(dep)}[grey50]→[/]{escape(arr)}"


def format_aircraft_cell(info: Optional[AircraftInfo]) -> str:
    if info is None:
        return UNKNOWN
    parts = [escape(p) for p in (info.type_code, info.registration) if p]
    return " [grey50]/[/] ".join(parts) if parts else UNKNOWN


def format_category_cell(info: Optional[AircraftInfo]) -> str:
    if info is None or not info.category:
        return UNKNOWN
    style = CATEGORY_STYLES.get(info.category)
    return f"[{style}]{escape(info.category)}[/]" if style else escape(info.category)


def format_heading_cell(flight: EnrichedFlight) -> str:
    heading = flight.effective_heading_deg
    if heading is None:
        return MISSING
    # ~ marks a heading inferred from successive positions
    prefix = "" if flight.fix.heading_deg is not None else "~"
    return f"{prefix}{heading:.1f} {cardinal_direction(heading)}"


def format_ete(route: Optional[Route], speed_mps: Optional[float]) -> Optional[str]:
    """Rough total flight time from route distance and current ground speed."""
    if route is None or route.route_distance_km is None or speed_mps is None or speed_mps <= 0:
        return None

    hours = route.route_distance_km / (speed_mps * MPS_TO_KMH)
    h = int(hours)
    m = int((hours - h) * 60)
    return f"{h}h {m:02d}m" if h > 0 else f"{m}m"


class TerminalDisplay:
    def __init__(self, console: Optional[Console] = None, clear: bool = True):
        self.console = console or Console()
        self.clear = clear

    def build_table(self, flights: List[EnrichedFlight], home_lat: float, home_lon: float) -> Table:
        table = Table(expand=True)
        table.add_column("Dist (km)", justify="right")
        table.add_column("Callsign", justify="center")
        table.add_column("ICAO24", justify="center")
        table.add_column("Route", justify="center")
        table.add_column("Aircraft", justify="center")
        table.add_column("Category")
        table.add_column("Alt (m)", justify="right")
        table.add_column("Speed (km/h)", justify="right")
        table.add_column("Heading", justify="right")
        table.add_column("Direction", justify="center")
        table.add_column("V/Rate (m/s)", justify="right")
        table.add_column("ETE", justify="right")

        # Closest first; unknown distances last
        ordered = sorted(
            flights,
            key=lambda f: f.fix.distance_km if f.fix.distance_km is not None else float("inf"),
        )

        for flight in ordered:
            fix = flight.fix
            direction = classify_direction(
                fix.latitude, fix.longitude, flight.effective_heading_deg,
                fix.distance_km, home_lat, home_lon,
            )
            ete = format_ete(flight.route, fix.velocity_mps)

            table.add_row(
                f"{fix.distance_km:.1f}" if fix.distance_km is not None else MISSING,
                f"[cyan]{escape(fix.callsign)}[/]",
                escape(fix.icao24),
                format_route_cell(flight.route),
                format_aircraft_cell(flight.aircraft),
                format_category_cell(flight.aircraft),
                f"{fix.altitude_m:.0f}" if fix.altitude_m is not None else MISSING,
                f"{fix.velocity_mps * MPS_TO_KMH:.0f}" if fix.velocity_mps is not None else MISSING,
                format_heading_cell(flight),
                DIRECTION_CELLS[direction] if direction else UNKNOWN,
                f"{fix.vertical_rate_mps:+.1f}" if fix.vertical_rate_mps is not None else MISSING,
                ete or UNKNOWN,
            )

        return table

    def render(
        self,
        flights: List[EnrichedFlight],
        home_lat: float,
        home_lon: float,
        range_km: float,
        timestamp: datetime,
    ):
        if self.clear:
            self.console.clear()

        range_label = f"Range: [magenta]{range_km:.0f} km[/]  " if range_km > 0 else ""
        self.console.print(
            f"[bold cyan]SkyWatch[/]  "
            f"Home: [yellow]{home_lat:.4f}, {home_lon:.4f}[/]  "
            f"{range_label}"
            f"Last poll: [green]{timestamp:%H:%M:%S}[/]  "
            f"Overhead: [white]{len(flights)}[/]"
        )
        self.console.print()

        if not flights:
            self.console.print("[grey50]No flights detected in visual range.[/]")
            return

        self.console.print(self.build_table(flights, home_lat, home_lon))

    def bell(self):
        self.console.bell()
