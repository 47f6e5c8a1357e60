"""
Telegram Bot API notification sink.

Plain HTTPS calls through aiohttp; no Telegram SDK. Neither notify() nor
send_status() ever raises: failures are logged and dropped.

Flight alerts go out as:
- map snapshot and photo: sendMediaGroup album, caption on the map
- map snapshot only: sendPhoto with the PNG uploaded as multipart
- photo only: sendPhoto with the photo URL
- neither: sendMessage
A rejected photo send falls back to a plain sendMessage.
"""

import asyncio
import json
import logging
from typing import Optional

import aiohttp
from prometheus_client import Counter

from contracts.constants import TELEGRAM_CAPTION_LIMIT
from contracts.validation import Direction, EnrichedFlight, RepeatVisitorRecord
from notify.messages import build_flight_message

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
SEND_TIMEOUT_SECONDS = 10
MAP_FILENAME = "map.png"

TELEGRAM_SENDS = Counter('tracker_telegram_sends_total', 'Telegram API sends', ['method', 'status'])


class TelegramNotifier:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        bot_token: Optional[str],
        chat_id: Optional[str],
        enabled: bool = True,
        map_snapshots=None,
        api_url: str = TELEGRAM_API_URL,
    ):
        self.session = session
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled and bool(bot_token) and bool(chat_id)
        self.map_snapshots = map_snapshots
        self.api_url = api_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=SEND_TIMEOUT_SECONDS)

    def method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    async def _post(self, method: str, payload=None, form: Optional[aiohttp.FormData] = None) -> bool:
        """POST a JSON payload or a multipart form; True on a 2xx answer."""
        try:
            async with self.session.post(
                self.method_url(method),
                json=payload if form is None else None,
                data=form,
                timeout=self.timeout,
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    TELEGRAM_SENDS.labels(method=method, status=f"http_{response.status}").inc()
                    logger.warning(f"Telegram {method} returned {response.status}: {body}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            TELEGRAM_SENDS.labels(method=method, status="error").inc()
            logger.error(f"Telegram {method} failed: {e}")
            return False

        TELEGRAM_SENDS.labels(method=method, status="success").inc()
        return True

    async def send_text(self, text: str, chat_id: Optional[str] = None) -> bool:
        return await self._post("sendMessage", {
            "chat_id": chat_id or self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        })

    async def send_photo_url(self, photo_url: str, caption: str) -> bool:
        return await self._post("sendPhoto", {
            "chat_id": self.chat_id,
            "photo": photo_url,
            "caption": caption,
            "parse_mode": "HTML",
        })

    async def send_map(self, map_png: bytes, caption: str) -> bool:
        form = aiohttp.FormData()
        form.add_field("chat_id", str(self.chat_id))
        form.add_field("photo", map_png, filename=MAP_FILENAME, content_type="image/png")
        form.add_field("caption", caption)
        form.add_field("parse_mode", "HTML")
        return await self._post("sendPhoto", form=form)

    async def send_album(self, map_png: bytes, photo_url: str, caption: str) -> bool:
        """Map first (carrying the caption), aircraft photo second."""
        media = [
            {"type": "photo", "media": "attach://map", "caption": caption, "parse_mode": "HTML"},
            {"type": "photo", "media": photo_url},
        ]
        form = aiohttp.FormData()
        form.add_field("chat_id", str(self.chat_id))
        form.add_field("media", json.dumps(media))
        form.add_field("map", map_png, filename=MAP_FILENAME, content_type="image/png")
        return await self._post("sendMediaGroup", form=form)

    async def send_flight(
        self,
        flight: EnrichedFlight,
        direction: Direction,
        eta_seconds: Optional[float],
        visitor: Optional[RepeatVisitorRecord] = None,
    ) -> bool:
        text = build_flight_message(flight, direction, eta_seconds, visitor)

        map_png = None
        if self.map_snapshots is not None:
            map_png = await self.map_snapshots.snapshot(flight)
        if map_png is None and not flight.photo_url:
            return await self.send_text(text)

        caption = build_flight_message(flight, direction, eta_seconds, visitor, max_length=TELEGRAM_CAPTION_LIMIT)
        if map_png is not None and flight.photo_url:
            sent = await self.send_album(map_png, flight.photo_url, caption)
        elif map_png is not None:
            sent = await self.send_map(map_png, caption)
        else:
            sent = await self.send_photo_url(flight.photo_url, caption)

        if not sent:
            logger.info(f"Photo alert for {flight.icao24} rejected, sending as text")
            sent = await self.send_text(text)
        return sent

    async def notify(
        self,
        flight: EnrichedFlight,
        direction: Direction,
        eta_seconds: Optional[float],
        visitor: Optional[RepeatVisitorRecord] = None,
    ):
        if not self.enabled:
            return
        try:
            await self.send_flight(flight, direction, eta_seconds, visitor)
        except Exception as e:
            logger.error(f"Telegram notification for {flight.icao24} failed: {e}", exc_info=True)

    async def send_status(self, text: str):
        if not self.enabled:
            logger.info(f"Status (Telegram disabled): {text}")
            return
        try:
            await self.send_text(text)
        except Exception as e:
            logger.error(f"Telegram status message failed: {e}")
