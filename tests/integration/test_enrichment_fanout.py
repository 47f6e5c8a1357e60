"""
Integration tests for the per-poll enrichment fan-out.

The real FlightEnricher and EnrichmentCache are wired to recording async
fetch functions in place of the HTTP lookups. The timing test drives
build_enricher with slow async lookup clients.
"""

import asyncio
import time

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contracts.validation import AircraftInfo, FlightFix, Route
from processing.enrichment import FlightEnricher
from processing.enrichment_cache import EnrichmentCache
from processing.pipeline import build_enricher


class FakeLookups:
    """Async fetch functions backed by dictionaries, recording every call."""

    def __init__(self, routes=None, aircraft=None, photos=None, failing_routes=()):
        self.routes = routes or {}
        self.aircraft = aircraft or {}
        self.photos = photos or {}
        self.failing_routes = set(failing_routes)
        self.calls = []

    async def fetch_route(self, callsign):
        self.calls.append(("route", callsign))
        await asyncio.sleep(0)
        if callsign in self.failing_routes:
            raise ConnectionError("adsbdb unavailable")
        return self.routes.get(callsign)

    async def fetch_aircraft(self, icao24):
        self.calls.append(("aircraft", icao24))
        await asyncio.sleep(0)
        return self.aircraft.get(icao24)

    async def fetch_photo(self, icao24, registration):
        self.calls.append(("photo", icao24, registration))
        await asyncio.sleep(0)
        return self.photos.get(icao24)

    async def fetch_facts(self, key, type_code, category, registration):
        self.calls.append(("facts", key))
        await asyncio.sleep(0)
        return f"Facts about {type_code}"

    def enricher(self):
        return FlightEnricher(
            routes=EnrichmentCache("route", self.fetch_route),
            aircraft=EnrichmentCache("aircraft", self.fetch_aircraft),
            photos=EnrichmentCache("photo", self.fetch_photo),
            facts=EnrichmentCache("facts", self.fetch_facts),
        )

    def count(self, kind):
        return sum(1 for call in self.calls if call[0] == kind)


def fix(icao24, callsign="KLM1234", lat=52.0, lon=4.6, heading=180.0):
    return FlightFix(
        icao24=icao24,
        callsign=callsign,
        latitude=lat,
        longitude=lon,
        altitude_m=900.0,
        velocity_mps=100.0,
        heading_deg=heading,
    )


KLM_ROUTE = Route(origin_iata="AMS", dest_iata="LHR")
KLM_AIRCRAFT = AircraftInfo(type_code="B738", registration="PH-BXA", operator="KLM", category="Narrow-body Jet")


def test_flight_is_fully_enriched():
    lookups = FakeLookups(
        routes={"KLM1234": KLM_ROUTE},
        aircraft={"4ca7b5": KLM_AIRCRAFT},
        photos={"4ca7b5": "https://t.plnspttrs.net/photo.jpg"},
    )

    [flight] = asyncio.run(lookups.enricher().enrich([fix("4ca7b5")]))

    assert flight.route == KLM_ROUTE
    assert flight.aircraft == KLM_AIRCRAFT
    assert flight.photo_url == "https://t.plnspttrs.net/photo.jpg"
    assert flight.facts == "Facts about B738"
    assert ("photo", "4ca7b5", "PH-BXA") in lookups.calls
    assert ("facts", "PH-BXA") in lookups.calls


def test_order_of_flights_is_preserved():
    lookups = FakeLookups()
    fixes = [fix("aaaaa1"), fix("aaaaa2"), fix("aaaaa3")]

    flights = asyncio.run(lookups.enricher().enrich(fixes))

    assert [f.icao24 for f in flights] == ["aaaaa1", "aaaaa2", "aaaaa3"]


@pytest.mark.parametrize("callsign", ["", "N/A"])
def test_missing_callsign_skips_route_lookup(callsign):
    lookups = FakeLookups()

    [flight] = asyncio.run(lookups.enricher().enrich([fix("4ca7b5", callsign=callsign)]))

    assert flight.route is None
    assert lookups.count("route") == 0
    assert lookups.count("aircraft") == 1


def test_same_callsign_in_one_poll_is_fetched_once():
    lookups = FakeLookups(routes={"KLM1234": KLM_ROUTE})

    flights = asyncio.run(lookups.enricher().enrich([fix("aaaaa1"), fix("aaaaa2")]))

    assert lookups.count("route") == 1
    assert all(f.route == KLM_ROUTE for f in flights)


def test_lookups_are_cached_across_polls():
    lookups = FakeLookups(aircraft={"4ca7b5": KLM_AIRCRAFT})
    enricher = lookups.enricher()

    async def scenario():
        await enricher.enrich([fix("4ca7b5")])
        await enricher.enrich([fix("4ca7b5")])

    asyncio.run(scenario())

    assert lookups.count("route") == 1
    assert lookups.count("aircraft") == 1
    assert lookups.count("photo") == 1
    assert lookups.count("facts") == 1


def test_facts_shared_by_type_when_unregistered():
    lookups = FakeLookups(aircraft={
        "aaaaa1": AircraftInfo(type_code="E190"),
        "aaaaa2": AircraftInfo(type_code="E190"),
    })

    flights = asyncio.run(lookups.enricher().enrich([fix("aaaaa1"), fix("aaaaa2")]))

    assert lookups.count("facts") == 1
    assert [f.facts for f in flights] == ["Facts about E190", "Facts about E190"]


def test_no_aircraft_info_skips_facts_but_not_photo():
    lookups = FakeLookups()

    [flight] = asyncio.run(lookups.enricher().enrich([fix("4ca7b5")]))

    assert flight.aircraft is None
    assert flight.facts is None
    assert ("photo", "4ca7b5", None) in lookups.calls
    assert lookups.count("facts") == 0


def test_route_failure_is_isolated():
    lookups = FakeLookups(
        routes={"KLM5678": KLM_ROUTE},
        aircraft={"aaaaa1": KLM_AIRCRAFT},
        failing_routes={"KLM1234"},
    )

    flights = asyncio.run(lookups.enricher().enrich([
        fix("aaaaa1", callsign="KLM1234"),
        fix("aaaaa2", callsign="KLM5678"),
    ]))

    assert flights[0].route is None
    assert flights[0].aircraft == KLM_AIRCRAFT
    assert flights[1].route == KLM_ROUTE


def test_heading_inferred_from_previous_poll():
    enricher = FakeLookups().enricher()

    async def scenario():
        first = await enricher.enrich([fix("4ca7b5", lat=52.0, heading=None)])
        second = await enricher.enrich([fix("4ca7b5", lat=52.01, heading=None)])
        return first[0], second[0]

    first, second = asyncio.run(scenario())

    assert first.inferred_heading_deg is None
    assert second.inferred_heading_deg == pytest.approx(0.0, abs=0.01)
    assert second.effective_heading_deg == pytest.approx(0.0, abs=0.01)


def test_broadcast_heading_is_not_inferred():
    enricher = FakeLookups().enricher()

    async def scenario():
        await enricher.enrich([fix("4ca7b5", lat=52.0)])
        return (await enricher.enrich([fix("4ca7b5", lat=52.01)]))[0]

    flight = asyncio.run(scenario())

    assert flight.inferred_heading_deg is None
    assert flight.effective_heading_deg == 180.0


def test_previous_positions_are_replaced_each_poll():
    enricher = FakeLookups().enricher()

    async def scenario():
        await enricher.enrich([fix("4ca7b5", lat=52.0, heading=None)])
        await enricher.enrich([])
        return (await enricher.enrich([fix("4ca7b5", lat=52.01, heading=None)]))[0]

    assert asyncio.run(scenario()).inferred_heading_deg is None


class SlowLookups:
    """Async lookup clients where every call takes the same fixed time."""

    def __init__(self, delay):
        self.delay = delay
        self.calls = 0

    async def _wait(self):
        self.calls += 1
        await asyncio.sleep(self.delay)

    async def lookup_route(self, callsign):
        await self._wait()
        return KLM_ROUTE

    async def lookup_aircraft(self, icao24):
        await self._wait()
        return AircraftInfo(type_code="B738", registration=f"PH-{icao24[-3:].upper()}")

    async def lookup_photo(self, icao24, registration=None):
        await self._wait()
        return f"https://photos.test/{icao24}.jpg"

    async def lookup_facts(self, type_code, category=None, registration=None):
        await self._wait()
        return f"Facts about {registration}"


def test_poll_fan_out_takes_one_lookup_chain():
    lookups = SlowLookups(delay=0.5)
    enricher = build_enricher(lookups, lookups, lookups, lookups)
    fixes = [fix(f"aa{i:04x}", callsign=f"TST{i:03d}") for i in range(40)]

    async def scenario():
        start = time.monotonic()
        flights = await enricher.enrich(fixes)
        return flights, time.monotonic() - start

    flights, elapsed = asyncio.run(scenario())

    # aircraft, then photo and facts: two lookups deep, all flights at once
    assert elapsed < 1.5
    assert lookups.calls == 160
    assert all(f.photo_url and f.facts and f.route == KLM_ROUTE for f in flights)
