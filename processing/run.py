#!/usr/bin/env python3
"""
Entry point for the SkyWatch flight tracker.
"""

import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path

# Add parent directory to path for package imports when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

import aiohttp
from prometheus_client import start_http_server

from contracts.constants import USER_AGENT
from display.terminal import TerminalDisplay
from ingestion.adsbdb import RouteLookup
from ingestion.aircraft_facts import FactsLookup
from ingestion.airplanes_live import AirplanesLiveClient
from ingestion.hexdb import AircraftInfoLookup
from ingestion.mapbox import MapSnapshotLookup
from ingestion.planespotters import PhotoLookup
from notify.commands import TelegramCommandListener
from notify.messages import format_startup_message
from notify.telegram import TelegramNotifier
from processing.config import ConfigError, TrackerSettings, load_settings
from processing.pipeline import Tracker, build_enricher
from processing.proximity import ProximityEngine
from processing.sighting_log import SightingLog

logger = logging.getLogger(__name__)

# Shared by every upstream client; enrichment fans out across all tracked flights
HTTP_CONNECTION_LIMIT = 100


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def start_metrics_server(port: int):
    """Start Prometheus metrics server in background thread."""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")


async def send_startup_message(notifier: TelegramNotifier, sightings: SightingLog):
    try:
        stats = await sightings.query_stats()
    except Exception as e:
        logger.warning(f"Stats unavailable at startup: {e}")
        stats = None
    await notifier.send_status(format_startup_message(stats))


def open_http_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        headers={"User-Agent": USER_AGENT},
        connector=aiohttp.TCPConnector(limit=HTTP_CONNECTION_LIMIT),
    )


async def run_tracker(settings: TrackerSettings):
    sightings = SightingLog(settings.database_path)
    sightings.initialise()

    async with open_http_session() as session:
        await run_with_session(settings, session, sightings)


async def run_with_session(settings: TrackerSettings, session: aiohttp.ClientSession, sightings: SightingLog):
    map_snapshots = MapSnapshotLookup(
        session,
        settings.mapbox_access_token,
        settings.home_latitude,
        settings.home_longitude,
        style=settings.mapbox_style,
    )
    notifier = TelegramNotifier(
        session,
        settings.telegram_bot_token,
        settings.telegram_chat_id,
        enabled=settings.telegram_enabled,
        map_snapshots=map_snapshots,
    )
    display = TerminalDisplay()

    engine = ProximityEngine(
        home_lat=settings.home_latitude,
        home_lon=settings.home_longitude,
        max_altitude_m=settings.notify_max_altitude_m,
        notifier=notifier,
        sightings=sightings,
        error_snooze=settings.error_snooze,
        on_new_flight=lambda flight: display.bell(),
    )

    enricher = build_enricher(
        RouteLookup(session),
        AircraftInfoLookup(session),
        PhotoLookup(session),
        FactsLookup(
            session,
            settings.anthropic_api_key,
            settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
            enabled=settings.anthropic_enabled,
        ),
    )

    tracker = Tracker(
        feed=AirplanesLiveClient(settings.airplanes_live_base_url, session),
        enricher=enricher,
        engine=engine,
        home_lat=settings.home_latitude,
        home_lon=settings.home_longitude,
        box_degrees=settings.bounding_box_degrees,
        range_km=settings.visual_range_km,
        poll_interval_seconds=settings.poll_interval_seconds,
        display=display,
    )

    await send_startup_message(notifier, sightings)

    stop = asyncio.Event()
    listener = TelegramCommandListener(notifier, sightings.query_stats)
    listener_task = asyncio.ensure_future(listener.run(stop))
    tracker_task = asyncio.ensure_future(tracker.run(stop))

    def request_stop():
        if not stop.is_set():
            logger.info("Shutdown requested")
            stop.set()
            tracker_task.cancel()
            listener_task.cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(request_stop))

    try:
        await tracker_task
    except asyncio.CancelledError:
        pass
    finally:
        stop.set()
        listener_task.cancel()
        await asyncio.gather(listener_task, return_exceptions=True)


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(settings.log_level)

    logger.info("=" * 50)
    logger.info("SkyWatch Flight Tracker - Starting")
    logger.info("=" * 50)
    logger.info(f"Home: {settings.home_latitude:.4f}, {settings.home_longitude:.4f}")
    logger.info(f"Bounding box: ±{settings.bounding_box_degrees}°, visual range: {settings.visual_range_km} km")
    logger.info(f"Telegram: {'on' if settings.telegram_configured else 'off'}, "
                f"AI facts: {'on' if settings.anthropic_configured else 'off'}, "
                f"Map snapshots: {'on' if settings.mapbox_configured else 'off'}")

    if settings.metrics_port:
        metrics_thread = threading.Thread(
            target=start_metrics_server, args=(settings.metrics_port,), daemon=True
        )
        metrics_thread.start()

    asyncio.run(run_tracker(settings))
    logger.info("SkyWatch stopped")


if __name__ == "__main__":
    main()
