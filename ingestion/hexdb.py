"""
Aircraft registry lookup via hexdb.io and ICAO type code categorisation.

GET https://hexdb.io/api/v1/aircraft/{icao24}
"""

import logging
from typing import Optional

import aiohttp

from contracts.constants import (
    CATEGORY_HELICOPTER,
    CATEGORY_LIGHT,
    CATEGORY_MILITARY,
    CATEGORY_NARROWBODY,
    CATEGORY_REGIONAL_JET,
    CATEGORY_TURBOPROP,
    CATEGORY_WIDEBODY,
    PROVIDER_HEXDB,
)
from contracts.validation import AircraftInfo, validate_aircraft_info

logger = logging.getLogger(__name__)

HEXDB_AIRCRAFT_URL = "https://hexdb.io/api/v1/aircraft/"
LOOKUP_TIMEOUT_SECONDS = 10

# ============================================
# Type code categories
# ============================================

HELICOPTER_TYPES = {
    "H120", "H125", "H130", "H135", "H145", "H155", "H160", "H175", "H215", "H225",
    "R22", "R44", "R66",
    "B412", "B427", "B429", "B430", "B505",
    "A109", "A119", "A139", "A149", "A169", "A189",
    "S300", "S333", "MD52", "MD60",
}
HELICOPTER_PREFIXES = ("EC", "AS3", "B06", "B21", "B42", "B43", "S61", "S76", "S92")

WIDEBODY_TYPES = {
    "B741", "B742", "B743", "B744", "B748", "B74S", "B74D",
    "B762", "B763", "B764", "B772", "B773", "B778", "B779", "B77L", "B77W",
    "B788", "B789", "B78X",
    "A306", "A30B", "A310",
    "DC10", "MD11", "L101", "C5", "AN22", "AN124", "AN225",
}
WIDEBODY_PREFIXES = (
    "A330", "A332", "A333", "A338", "A339",
    "A340", "A342", "A343", "A345", "A346",
    "A350", "A358", "A359", "A35K",
    "A380", "A388", "A390",
)

NARROWBODY_TYPES = {
    "BCS1", "BCS3", "A220", "A221", "A223",
    "B752", "B753", "B712",
    "MD81", "MD82", "MD83", "MD87", "MD88", "MD90",
}
NARROWBODY_PREFIXES = ("A318", "A319", "A320", "A321", "B73")

REGIONAL_JET_TYPES = {
    "SU95", "RJ1H", "RJ70", "RJ85", "BA46", "B461", "B462", "B463",
    "F28", "F70", "F100", "ARJ1", "E290", "E295",
}
REGIONAL_JET_PREFIXES = ("E13", "E14", "E17", "E19", "CRJ")

TURBOPROP_TYPES = {
    "AT43", "AT45", "AT46", "AT72", "AT73", "AT75", "AT76",
    "DH8A", "DH8B", "DH8C", "DH8D", "DHC8", "DH84",
    "SF34", "S340", "S2000",
    "BE20", "BE30", "BE60", "B350", "B190", "B1900",
    "PC12", "PC24", "C208", "C210", "C441",
    "DHC6", "DHC7", "DHC2", "DO28", "DO228", "D228",
    "L410", "AN26", "AN28", "AN32",
}

MILITARY_TYPES = {
    "F15", "F16", "F18", "F22", "F35", "F117",
    "B1", "B2", "B52", "C130", "C17",
    "E3", "E8", "KC10", "KC135", "P3", "P8",
    "U2", "SR71", "A10", "EUFI", "TPHN", "MRTT",
}

LIGHT_TYPES = {
    "C150", "C152", "C162", "C172", "C177", "C182", "C185", "C206", "C207",
    "C310", "C340", "C402", "C404", "C421",
    "PA18", "PA28", "PA32", "PA34", "PA38", "PA44", "PA46",
    "BE33", "BE35", "BE36", "BE55", "BE58", "BE76",
    "SR20", "SR22", "DA20", "DA40", "DA42", "DA50", "DA62",
    "P2002", "P2006", "P2010", "AQUI",
    "TB9", "TB10", "TB20", "TB21",
}
LIGHT_PREFIXES = ("C1", "DR4")


def _is_helicopter(t: str) -> bool:
    if t in HELICOPTER_TYPES or t.startswith(HELICOPTER_PREFIXES):
        return True
    # Generic H-prefix designators, e.g. H500, H269
    return len(t) >= 2 and t[0] == "H" and t[1].isdigit()


def derive_category(type_code: Optional[str]) -> Optional[str]:
    """Human-readable category for an ICAO type code, or None if unknown."""
    if not type_code or not type_code.strip():
        return None

    t = type_code.strip().upper()

    # First match wins, so order matters (e.g. C17 is military, not light)
    if _is_helicopter(t):
        return CATEGORY_HELICOPTER
    if t in WIDEBODY_TYPES or t.startswith(WIDEBODY_PREFIXES):
        return CATEGORY_WIDEBODY
    if t in NARROWBODY_TYPES or t.startswith(NARROWBODY_PREFIXES):
        return CATEGORY_NARROWBODY
    if t in REGIONAL_JET_TYPES or t.startswith(REGIONAL_JET_PREFIXES):
        return CATEGORY_REGIONAL_JET
    if t in TURBOPROP_TYPES:
        return CATEGORY_TURBOPROP
    if t in MILITARY_TYPES:
        return CATEGORY_MILITARY
    if t in LIGHT_TYPES or t.startswith(LIGHT_PREFIXES):
        return CATEGORY_LIGHT
    return None


def _blank_to_none(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_aircraft(payload: dict) -> Optional[AircraftInfo]:
    """AircraftInfo from a hexdb response; None when it carries no usable field."""
    if not isinstance(payload, dict):
        return None

    type_code = _blank_to_none(payload.get("ICAOTypeCode"))
    registration = _blank_to_none(payload.get("Registration"))
    operator = _blank_to_none(payload.get("RegisteredOwners"))

    if type_code is None and registration is None and operator is None:
        return None

    is_valid, info, error = validate_aircraft_info({
        "type_code": type_code,
        "registration": registration,
        "operator": operator,
        "category": derive_category(type_code),
    })
    if not is_valid:
        logger.warning(f"Discarding invalid aircraft info: {error}")
        return None
    return info


class AircraftInfoLookup:
    def __init__(self, session: aiohttp.ClientSession, base_url: str = HEXDB_AIRCRAFT_URL):
        self.session = session
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=LOOKUP_TIMEOUT_SECONDS)

    async def lookup_aircraft(self, icao24: str) -> Optional[AircraftInfo]:
        """Registry data for icao24; None when hexdb has no record. Raises on transport errors."""
        url = f"{self.base_url}{icao24.strip()}"
        async with self.session.get(url, timeout=self.timeout) as response:
            if 400 <= response.status < 500:
                logger.debug(f"{PROVIDER_HEXDB} has no record for {icao24}")
                return None
            response.raise_for_status()
            body = await response.json(content_type=None)

        return parse_aircraft(body)
