"""
Telegram HTML message formatting.

Pure functions: flight alerts, startup/stats summaries and error alerts.
"""

from datetime import timedelta
from typing import Optional

import aiohttp

from contracts.constants import CALLSIGN_PLACEHOLDER, EMERGENCY_SQUAWKS, MPS_TO_KMH
from contracts.validation import (
    AircraftInfo,
    Direction,
    EnrichedFlight,
    FlightStats,
    RepeatVisitorRecord,
    Route,
)

DIRECTION_EMOJI = {
    Direction.OVERHEAD: "🔴",
    Direction.TOWARDS: "🟢",
}
DEFAULT_DIRECTION_EMOJI = "🔵"
FACTS_PREFIX = "✈️ "


def escape_html(text: str) -> str:
    """Escape characters with special meaning in Telegram HTML parse mode."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def format_eta(eta_seconds: Optional[float]) -> str:
    if eta_seconds is None:
        return "Now"
    total = int(eta_seconds)
    minutes, seconds = divmod(total, 60)
    return f"{minutes}m {seconds:02d}s" if minutes > 0 else f"{seconds}s"


def format_duration(gap: timedelta) -> str:
    total = int(gap.total_seconds())
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours >= 1:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {seconds:02d}s"


def display_callsign(flight: EnrichedFlight) -> str:
    callsign = flight.fix.callsign.strip()
    if not callsign or callsign == CALLSIGN_PLACEHOLDER:
        return flight.icao24
    return callsign


def format_route(route: Optional[Route]) -> str:
    if route is None or not route.origin_code or not route.dest_code:
        return "Unknown route"
    return f"{route.origin_code} → {route.dest_code}"


def format_aircraft(info: Optional[AircraftInfo]) -> str:
    if info is None:
        return "Unknown"

    parts = [p for p in (info.type_code, info.registration) if p]
    main = " / ".join(parts) if parts else "Unknown"
    return f"{main} ({info.category})" if info.category else main


def format_visitor(visitor: RepeatVisitorRecord) -> str:
    """One line describing an aircraft's previous visits."""
    times = "once" if visitor.previous_sightings == 1 else f"{visitor.previous_sightings} times"
    last_seen = visitor.last_seen_at.astimezone().strftime("%d %b %H:%M")

    line = f"🔁 Seen {times} before, last on {last_seen}"
    if visitor.last_origin_iata and visitor.last_dest_iata:
        line += f" ({visitor.last_origin_iata} → {visitor.last_dest_iata})"
    return line


def escape_truncated(text: str, limit: int) -> str:
    """
    Escape text for HTML parse mode in at most limit characters.

    Cuts between source characters, never inside an entity, and marks the
    cut with an ellipsis.
    """
    escaped = escape_html(text)
    if len(escaped) <= limit:
        return escaped

    pieces = []
    used = 0
    for ch in text:
        piece = escape_html(ch)
        if used + len(piece) > limit - 1:
            break
        pieces.append(piece)
        used += len(piece)
    return "".join(pieces) + "…"


def build_flight_message(
    flight: EnrichedFlight,
    direction: Direction,
    eta_seconds: Optional[float],
    visitor: Optional[RepeatVisitorRecord] = None,
    max_length: Optional[int] = None,
) -> str:
    """
    HTML alert text for one flight.

    With max_length (photo captions) whole lines are dropped from the end and
    the facts paragraph is cut before escaping, so no tag or entity is split.
    """
    fix = flight.fix
    emoji = DIRECTION_EMOJI.get(direction, DEFAULT_DIRECTION_EMOJI)

    distance = f"{fix.distance_km:.1f} km" if fix.distance_km is not None else "?"
    altitude = f"{fix.altitude_m:.0f} m" if fix.altitude_m is not None else "?"
    speed = f"{fix.velocity_mps * MPS_TO_KMH:.0f} km/h" if fix.velocity_mps is not None else "?"

    lines = []

    meaning = EMERGENCY_SQUAWKS.get(fix.squawk or "")
    if meaning:
        lines.append(f"🚨 <b>SQUAWK {fix.squawk}: {meaning}</b>")
    elif fix.emergency:
        lines.append(f"🚨 <b>Emergency: {escape_html(fix.emergency)}</b>")
    if fix.is_military:
        lines.append("🎖️ <b>Military aircraft</b>")

    lines.append(f"{emoji} <b>{escape_html(display_callsign(flight))}</b> - {direction.value}")
    lines.append(f"Route: {escape_html(format_route(flight.route))}")
    lines.append(f"Aircraft: {escape_html(format_aircraft(flight.aircraft))}")
    lines.append(
        f"Distance: {distance} | Alt: {altitude} | Speed: {speed} | "
        f"Overhead in: {format_eta(eta_seconds)}"
    )

    if visitor is not None:
        lines.append(escape_html(format_visitor(visitor)))

    if max_length is not None:
        while len(lines) > 1 and len("\n".join(lines)) > max_length:
            lines.pop()
    message = "\n".join(lines)

    facts = (flight.facts or "").strip()
    if not facts:
        return message
    if max_length is None:
        return message + f"\n\n{FACTS_PREFIX}{escape_html(facts)}"

    budget = max_length - len(message) - len(f"\n\n{FACTS_PREFIX}")
    if budget < 2:
        return message
    return message + f"\n\n{FACTS_PREFIX}{escape_truncated(facts, budget)}"


def format_stats_message(stats: FlightStats) -> str:
    """Reply to the stats command."""
    lines = ["📊 <b>Flight Tracker Stats</b>", ""]
    lines.append(f"✈️ Total planes tracked: <b>{stats.total_sightings:,}</b>")
    lines.append(f"📅 Today: <b>{stats.today_count}</b> planes ({stats.today_unique_aircraft} unique)")

    if stats.busiest_hour is not None:
        label = f"{stats.busiest_hour:02d}:00–{(stats.busiest_hour + 1) % 24:02d}:00"
        avg = ""
        if stats.busiest_hour_avg_per_day is not None:
            avg = f" (avg {stats.busiest_hour_avg_per_day:.1f}/day)"
        lines.append(f"🏆 Busiest hour: <b>{label}</b>{avg}")

    if stats.most_spotted_operator:
        lines.append(
            f"🛫 Most spotted operator: <b>{escape_html(stats.most_spotted_operator)}</b> "
            f"({stats.most_spotted_operator_count} sightings)"
        )

    if stats.rarest_type_code:
        plural = "" if stats.rarest_type_count == 1 else "s"
        lines.append(
            f"🦄 Rarest aircraft type: <b>{escape_html(stats.rarest_type_code)}</b> "
            f"({stats.rarest_type_count} sighting{plural})"
        )

    if stats.longest_gap and stats.longest_gap_start and stats.longest_gap_end:
        start = stats.longest_gap_start.astimezone().strftime("%d %b %H:%M")
        end = stats.longest_gap_end.astimezone().strftime("%H:%M")
        lines.append(f"⏱️ Longest gap: <b>{format_duration(stats.longest_gap)}</b> ({start}–{end})")

    if stats.current_streak_hours > 0:
        plural = "" if stats.current_streak_hours == 1 else "s"
        lines.append(
            f"🔥 Current streak: <b>{stats.current_streak_hours}</b> consecutive hour{plural} with planes"
        )
    else:
        lines.append("🔥 Current streak: <b>0</b> (no planes in the current hour yet)")

    return "\n".join(lines)


def format_startup_message(stats: Optional[FlightStats]) -> str:
    if stats is None:
        return "🟢 <b>SkyWatch started</b>\n⚠️ DB stats unavailable at startup."

    lines = ["🟢 <b>SkyWatch started</b>", "", "📊 <b>Database summary</b>"]
    lines.append(f"• Total sightings: {stats.total_sightings:,}")
    lines.append(f"• Today: {stats.today_count} flights, {stats.today_unique_aircraft} unique aircraft")

    if stats.current_streak_hours > 0:
        lines.append(f"• Current streak: {stats.current_streak_hours} h")
    if stats.busiest_hour is not None:
        lines.append(f"• Busiest hour: {stats.busiest_hour:02d}:00 (avg {stats.busiest_hour_avg_per_day or 0:.1f}/day)")
    if stats.most_spotted_operator:
        lines.append(
            f"• Most spotted: {escape_html(stats.most_spotted_operator)} ({stats.most_spotted_operator_count}×)"
        )
    if stats.longest_gap:
        lines.append(f"• Longest sky gap: {format_duration(stats.longest_gap)}")

    return "\n".join(lines)


def format_error_message(error: Exception) -> str:
    if isinstance(error, aiohttp.ClientResponseError):
        return f"⚠️ <b>SkyWatch HTTP error</b>\n{error.status}: {escape_html(error.message or '')}"
    return f"⚠️ <b>SkyWatch error</b>\n{type(error).__name__}: {escape_html(str(error))}"
