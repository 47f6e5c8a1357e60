"""
Aircraft photo lookup via the planespotters.net public API.

Tries the ICAO24 hex endpoint first, then the registration endpoint.
"""

import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from contracts.constants import PROVIDER_PLANESPOTTERS

logger = logging.getLogger(__name__)

PLANESPOTTERS_PHOTOS_URL = "https://api.planespotters.net/pub/photos/"
LOOKUP_TIMEOUT_SECONDS = 10


def first_photo_url(payload: dict) -> Optional[str]:
    photos = payload.get("photos") if isinstance(payload, dict) else None
    if not photos:
        return None
    thumbnail = (photos[0] or {}).get("thumbnail_large") or {}
    return thumbnail.get("src") or None


class PhotoLookup:
    def __init__(self, session: aiohttp.ClientSession, base_url: str = PLANESPOTTERS_PHOTOS_URL):
        self.session = session
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=LOOKUP_TIMEOUT_SECONDS)

    async def _fetch(self, path: str) -> Optional[str]:
        async with self.session.get(f"{self.base_url}{path}", timeout=self.timeout) as response:
            if 400 <= response.status < 500:
                return None
            response.raise_for_status()
            body = await response.json(content_type=None)
        return first_photo_url(body)

    async def lookup_photo(self, icao24: str, registration: Optional[str] = None) -> Optional[str]:
        """Large thumbnail URL, or None if neither endpoint has a photo."""
        url = await self._fetch(f"hex/{icao24.strip()}")

        if url is None and registration and registration.strip():
            logger.debug(f"No {PROVIDER_PLANESPOTTERS} photo by hex for {icao24}, trying registration {registration}")
            url = await self._fetch(f"reg/{quote(registration.strip())}")

        return url
