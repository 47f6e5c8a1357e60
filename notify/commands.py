"""
Telegram command listener.

Long-polls getUpdates and answers "stats" or "/stats" with the sighting log
summary. Runs as its own task beside the poll loop and shares nothing with
it but the read side of the sighting log.
"""

import asyncio
import logging
from typing import Awaitable, Callable

import aiohttp

from contracts.validation import FlightStats
from notify.messages import format_stats_message
from notify.telegram import TelegramNotifier

logger = logging.getLogger(__name__)

LONG_POLL_TIMEOUT_SECONDS = 20
ERROR_BACKOFF_SECONDS = 5
WEBHOOK_CONFLICT_BACKOFF_SECONDS = 30
DUPLICATE_POLLER_BACKOFF_SECONDS = 60

STATS_COMMANDS = {"stats", "/stats"}


class TelegramConflict(Exception):
    """HTTP 409 from getUpdates: a webhook is set or another process is polling."""

    def __init__(self, description: str):
        super().__init__(description)
        self.description = description

    @property
    def duplicate_poller(self) -> bool:
        return "terminated by other getUpdates" in self.description


class TelegramCommandListener:
    def __init__(
        self,
        notifier: TelegramNotifier,
        query_stats: Callable[[], Awaitable[FlightStats]],
    ):
        self.notifier = notifier
        self.query_stats = query_stats
        self.session = notifier.session
        self.offset = 0
        self.timeout = aiohttp.ClientTimeout(total=LONG_POLL_TIMEOUT_SECONDS + 10)

    async def delete_webhook(self):
        """Telegram refuses long-polling while a webhook is set."""
        try:
            async with self.session.post(self.notifier.method_url("deleteWebhook"), timeout=self.notifier.timeout) as response:
                if response.status < 400:
                    logger.info("Telegram webhook cleared, long-polling ready")
                else:
                    logger.warning(f"deleteWebhook returned {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not clear Telegram webhook: {e}")

    async def get_updates(self) -> list:
        params = {
            "offset": self.offset,
            "timeout": LONG_POLL_TIMEOUT_SECONDS,
            "allowed_updates": '["message"]',
        }
        async with self.session.get(self.notifier.method_url("getUpdates"), params=params, timeout=self.timeout) as response:
            if response.status == 409:
                raise TelegramConflict(await response.text())
            response.raise_for_status()
            body = await response.json(content_type=None)
        return body.get("result") or []

    async def handle_update(self, update: dict):
        self.offset = max(self.offset, int(update.get("update_id", 0)) + 1)

        message = update.get("message") or {}
        text = (message.get("text") or "").strip().lower()
        if text not in STATS_COMMANDS:
            return

        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return

        try:
            stats = await self.query_stats()
            await self.notifier.send_text(format_stats_message(stats), str(chat_id))
        except Exception as e:
            logger.error(f"Failed to answer stats command: {e}")

    async def run(self, stop: asyncio.Event):
        if not self.notifier.enabled:
            return

        await self.delete_webhook()
        logger.info('Listening for Telegram commands ("stats" or "/stats")')

        while not stop.is_set():
            delay = 0
            try:
                updates = await self.get_updates()
                for update in updates:
                    await self.handle_update(update)
            except TelegramConflict as e:
                if e.duplicate_poller:
                    logger.error(
                        "Telegram 409: another process is polling this bot token; "
                        f"backing off {DUPLICATE_POLLER_BACKOFF_SECONDS}s"
                    )
                    delay = DUPLICATE_POLLER_BACKOFF_SECONDS
                else:
                    logger.warning(f"Telegram 409: webhook active, clearing and retrying in {WEBHOOK_CONFLICT_BACKOFF_SECONDS}s")
                    await self.delete_webhook()
                    delay = WEBHOOK_CONFLICT_BACKOFF_SECONDS
            except Exception as e:
                logger.warning(f"Telegram listener error: {e}; retrying in {ERROR_BACKOFF_SECONDS}s")
                delay = ERROR_BACKOFF_SECONDS

            if delay:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        logger.info("Telegram command listener stopped")
