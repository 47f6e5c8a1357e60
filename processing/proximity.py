"""
Per-poll proximity decision engine.

Each aircraft identifier carries an explicit TrackState across polls:

    UNSEEN ──(first appearance)──> SEEN ──(eligible)──> NOTIFIED
       ^                                                   │
       └──────────────(absent from a poll)─────────────────┘

Per poll, in order:
1. New-entrant detection (silent on the very first poll)
2. Notification eligibility: ETA <= 120s, altitude known and under the
   ceiling, not already NOTIFIED. Eligible flights are handled one at a
   time: visitor query, notify, log, mark NOTIFIED.
3. Identifiers missing from the poll are forgotten (back to UNSEEN)
4. Everything else present is SEEN

Error alerts are snoozed independently of the flight state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Protocol

from contracts.constants import NOTIFY_ETA_SECONDS
from contracts.validation import Direction, EnrichedFlight, RepeatVisitorRecord, TrackState
from processing.geomath import classify_direction, eta_to_closest_approach_seconds
from processing.metrics import ERROR_ALERTS, NEW_FLIGHTS, NOTIFICATIONS_SENT

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(
        self,
        flight: EnrichedFlight,
        direction: Direction,
        eta_seconds: Optional[float],
        visitor: Optional[RepeatVisitorRecord],
    ) -> None: ...

    async def send_status(self, text: str) -> None: ...


class SightingSink(Protocol):
    async def query_visitor(self, icao24: str) -> Optional[RepeatVisitorRecord]: ...

    async def log_sighting(
        self,
        flight: EnrichedFlight,
        direction: Direction,
        eta_seconds: Optional[float],
        seen_at: datetime,
    ) -> None: ...


@dataclass
class PollOutcome:
    """What one call to ProximityEngine.process did."""
    new_entrants: List[str] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)


class ProximityEngine:
    def __init__(
        self,
        home_lat: float,
        home_lon: float,
        max_altitude_m: float,
        notifier: NotificationSink,
        sightings: SightingSink,
        error_snooze: timedelta,
        on_new_flight: Optional[Callable[[EnrichedFlight], None]] = None,
    ):
        self.home_lat = home_lat
        self.home_lon = home_lon
        self.max_altitude_m = max_altitude_m
        self.notifier = notifier
        self.sightings = sightings
        self.error_snooze = error_snooze
        self.on_new_flight = on_new_flight

        self._states: Dict[str, TrackState] = {}
        self._first_poll = True
        self._last_error_alert_at: Optional[datetime] = None

    def state_of(self, icao24: str) -> TrackState:
        return self._states.get(icao24.lower(), TrackState.UNSEEN)

    def eta_seconds(self, flight: EnrichedFlight) -> Optional[float]:
        fix = flight.fix
        return eta_to_closest_approach_seconds(
            fix.latitude,
            fix.longitude,
            flight.effective_heading_deg,
            fix.velocity_mps,
            self.home_lat,
            self.home_lon,
        )

    def direction_of(self, flight: EnrichedFlight) -> Optional[Direction]:
        fix = flight.fix
        return classify_direction(
            fix.latitude,
            fix.longitude,
            flight.effective_heading_deg,
            fix.distance_km,
            self.home_lat,
            self.home_lon,
        )

    def is_eligible(self, flight: EnrichedFlight, eta: Optional[float]) -> bool:
        if eta is None or eta > NOTIFY_ETA_SECONDS:
            return False
        altitude = flight.fix.altitude_m
        if altitude is None or altitude > self.max_altitude_m:
            return False
        return self.state_of(flight.icao24) != TrackState.NOTIFIED

    async def process(self, flights: List[EnrichedFlight], now: datetime) -> PollOutcome:
        """Run one poll's state transitions. Must not run concurrently with itself."""
        outcome = PollOutcome()
        current_ids = {flight.icao24 for flight in flights}

        # 1. New entrants
        if not self._first_poll:
            for flight in flights:
                if flight.icao24 not in self._states:
                    outcome.new_entrants.append(flight.icao24)
                    NEW_FLIGHTS.inc()
                    logger.info(f"New flight entered area: {flight.fix.callsign or flight.icao24}")
                    if self.on_new_flight is not None:
                        self.on_new_flight(flight)

        # 2. Eligibility
        for flight in flights:
            eta = self.eta_seconds(flight)
            if not self.is_eligible(flight, eta):
                continue

            direction = self.direction_of(flight) or Direction.TOWARDS

            # Visitor lookup must see the log before this sighting is appended
            visitor = await self.sightings.query_visitor(flight.icao24)
            await self.notifier.notify(flight, direction, eta, visitor)
            await self.sightings.log_sighting(flight, direction, eta, now)

            self._states[flight.icao24] = TrackState.NOTIFIED
            outcome.notified.append(flight.icao24)
            NOTIFICATIONS_SENT.labels(direction=direction.value).inc()
            logger.info(
                f"Notified {flight.fix.callsign or flight.icao24}: "
                f"{direction.value}, ETA {eta:.0f}s"
            )

        # 3. Forget departed aircraft so a later approach notifies again
        for icao24 in list(self._states):
            if icao24 not in current_ids:
                del self._states[icao24]

        # 4. Present and not notified
        for icao24 in current_ids:
            if self._states.get(icao24) != TrackState.NOTIFIED:
                self._states[icao24] = TrackState.SEEN

        self._first_poll = False
        return outcome

    async def report_error(self, text: str, now: datetime) -> bool:
        """Send a status alert unless one went out within the snooze window."""
        last = self._last_error_alert_at
        if last is not None and now - last < self.error_snooze:
            ERROR_ALERTS.labels(outcome="snoozed").inc()
            logger.debug(f"Error alert snoozed (last sent {last.isoformat()})")
            return False

        self._last_error_alert_at = now
        ERROR_ALERTS.labels(outcome="sent").inc()
        await self.notifier.send_status(text)
        return True
