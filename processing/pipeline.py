"""
Poll loop.

Cycle:
1. Poll the feed for airborne flights around home
2. Enrich every flight concurrently (route, aircraft, photo, facts)
3. Proximity decisions: new entrants, notify + log, state cleanup
4. Render the terminal table

Exactly one cycle runs at a time; the loop then waits the poll interval or
until the stop event is set. Recoverable errors are logged and routed to a
snoozed status alert.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from contracts.validation import AircraftInfo, Route
from ingestion.adsbdb import RouteLookup
from ingestion.aircraft_facts import FactsLookup
from ingestion.airplanes_live import AirplanesLiveClient
from ingestion.hexdb import AircraftInfoLookup
from ingestion.planespotters import PhotoLookup
from notify.messages import format_error_message
from processing.enrichment import FlightEnricher
from processing.enrichment_cache import EnrichmentCache
from processing.metrics import CYCLE_LATENCY, TRACKED_FLIGHTS
from processing.proximity import PollOutcome, ProximityEngine

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_enricher(
    routes: RouteLookup,
    aircraft: AircraftInfoLookup,
    photos: PhotoLookup,
    facts: FactsLookup,
) -> FlightEnricher:
    """Put the async lookup clients behind session caches; every lookup runs on the event loop."""

    async def fetch_route(callsign: str) -> Optional[Route]:
        return await routes.lookup_route(callsign)

    async def fetch_aircraft(icao24: str) -> Optional[AircraftInfo]:
        return await aircraft.lookup_aircraft(icao24)

    async def fetch_photo(icao24: str, registration: Optional[str]) -> Optional[str]:
        return await photos.lookup_photo(icao24, registration)

    async def fetch_facts(key: str, type_code, category, registration) -> Optional[str]:
        return await facts.lookup_facts(type_code, category, registration)

    return FlightEnricher(
        routes=EnrichmentCache("route", fetch_route),
        aircraft=EnrichmentCache("aircraft", fetch_aircraft),
        photos=EnrichmentCache("photo", fetch_photo),
        facts=EnrichmentCache("facts", fetch_facts),
    )


class Tracker:
    def __init__(
        self,
        feed: AirplanesLiveClient,
        enricher: FlightEnricher,
        engine: ProximityEngine,
        home_lat: float,
        home_lon: float,
        box_degrees: float,
        range_km: float,
        poll_interval_seconds: float,
        display=None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.feed = feed
        self.enricher = enricher
        self.engine = engine
        self.home_lat = home_lat
        self.home_lon = home_lon
        self.box_degrees = box_degrees
        self.range_km = range_km
        self.poll_interval_seconds = poll_interval_seconds
        self.display = display
        self.clock = clock

    async def run_cycle(self) -> PollOutcome:
        """One poll. Raises on feed failure; cancellation never splits a notify + log pair."""
        start = time.time()

        fixes = await self.feed.poll_flights(self.home_lat, self.home_lon, self.box_degrees, self.range_km)
        flights = await self.enricher.enrich(fixes)
        now = self.clock()

        decision = asyncio.ensure_future(self.engine.process(flights, now))
        try:
            outcome = await asyncio.shield(decision)
        except asyncio.CancelledError:
            await decision
            raise

        TRACKED_FLIGHTS.set(len(flights))
        CYCLE_LATENCY.observe(time.time() - start)

        if self.display is not None:
            try:
                self.display.render(flights, self.home_lat, self.home_lon, self.range_km, now.astimezone())
            except Exception as e:
                logger.warning(f"Display render failed: {e}")

        return outcome

    async def poll_once(self) -> Optional[PollOutcome]:
        try:
            return await self.run_cycle()
        except Exception as e:
            logger.error(f"Poll failed, retrying on next poll: {type(e).__name__}: {e}")
            await self.engine.report_error(format_error_message(e), self.clock())
            return None

    async def run(self, stop: asyncio.Event):
        logger.info(f"Polling every {self.poll_interval_seconds}s")

        while not stop.is_set():
            await self.poll_once()

            if stop.is_set():
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Poll loop stopped")
