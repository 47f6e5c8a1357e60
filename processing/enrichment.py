"""
Per-poll enrichment fan-out.

Every flight is enriched independently and concurrently:
1. Route (by callsign) and aircraft info (by icao24) in parallel
2. Once aircraft info settles: photo (by icao24) and facts
   (by registration, else type code) in parallel
3. Inferred heading from the previous poll's fix when none is broadcast

All lookups go through EnrichmentCache, which never raises, so one slow or
failing upstream only degrades that field for that flight.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from contracts.constants import CALLSIGN_PLACEHOLDER
from contracts.validation import AircraftInfo, EnrichedFlight, FlightFix, Route
from processing.enrichment_cache import EnrichmentCache
from processing.geomath import infer_heading_deg

logger = logging.getLogger(__name__)


class FlightEnricher:
    """Fans a poll's FlightFix list out to route/aircraft/photo/facts lookups."""

    def __init__(
        self,
        routes: EnrichmentCache[Route],
        aircraft: EnrichmentCache[AircraftInfo],
        photos: EnrichmentCache[str],
        facts: EnrichmentCache[str],
    ):
        self.routes = routes
        self.aircraft = aircraft
        self.photos = photos
        self.facts = facts
        # icao24 -> (lat, lon) from the previous poll
        self._previous_positions: Dict[str, Tuple[float, float]] = {}

    async def enrich(self, fixes: List[FlightFix]) -> List[EnrichedFlight]:
        """Enrich a whole poll; wall-clock cost is that of the slowest flight."""
        enriched = await asyncio.gather(*(self._enrich_one(fix) for fix in fixes))

        self._previous_positions = {
            fix.icao24: (fix.latitude, fix.longitude)
            for fix in fixes
            if fix.has_position
        }

        return list(enriched)

    async def _enrich_one(self, fix: FlightFix) -> EnrichedFlight:
        route, (aircraft, photo_url, facts) = await asyncio.gather(
            self._lookup_route(fix),
            self._lookup_aircraft_details(fix),
        )

        return EnrichedFlight(
            fix=fix,
            route=route,
            aircraft=aircraft,
            photo_url=photo_url,
            facts=facts,
            inferred_heading_deg=self._infer_heading(fix),
        )

    async def _lookup_route(self, fix: FlightFix) -> Optional[Route]:
        callsign = fix.callsign.strip()
        if not callsign or callsign == CALLSIGN_PLACEHOLDER:
            return None
        return await self.routes.get(callsign)

    async def _lookup_aircraft_details(
        self, fix: FlightFix
    ) -> Tuple[Optional[AircraftInfo], Optional[str], Optional[str]]:
        """Aircraft info, then photo and facts which depend on it."""
        aircraft = await self.aircraft.get(fix.icao24)
        registration = aircraft.registration if aircraft else None

        photo_url, facts = await asyncio.gather(
            self.photos.get(fix.icao24, registration),
            self._lookup_facts(aircraft),
        )
        return aircraft, photo_url, facts

    async def _lookup_facts(self, aircraft: Optional[AircraftInfo]) -> Optional[str]:
        if aircraft is None:
            return None

        # Aircraft with no registration share one cached fact per type
        key = aircraft.registration or aircraft.type_code
        if not key:
            return None

        return await self.facts.get(key, aircraft.type_code, aircraft.category, aircraft.registration)

    def _infer_heading(self, fix: FlightFix) -> Optional[float]:
        if fix.heading_deg is not None or not fix.has_position:
            return None

        previous = self._previous_positions.get(fix.icao24)
        if previous is None:
            return None

        return infer_heading_deg(previous[0], previous[1], fix.latitude, fix.longitude)
