"""
Shared constants for SkyWatch services.

This module provides a single source of truth for:
- Proximity and geometry thresholds
- Direction labels and aircraft categories
- Upstream provider names and endpoints

Thresholds here are fixed design constants, not configuration.
"""

# Schema version of the sighting log
SCHEMA_VERSION = 2

# Geometry
EARTH_RADIUS_KM = 6371.0
OVERHEAD_RADIUS_KM = 5.0
TOWARDS_MAX_DIFF_DEG = 30.0
AWAY_MIN_DIFF_DEG = 150.0
MIN_HEADING_DISPLACEMENT_M = 50.0

# Notification decision
NOTIFY_ETA_SECONDS = 120.0

# Polling (upstream feed refreshes every 10 seconds)
MIN_POLL_INTERVAL_SECONDS = 10

# Unit conversions
FEET_TO_METRES = 0.3048
KNOTS_TO_MPS = 0.514444
FPM_TO_MPS = 0.00508
MPS_TO_KMH = 3.6
NM_PER_DEGREE = 60

# Direction labels
DIRECTION_OVERHEAD = "Overhead"
DIRECTION_TOWARDS = "Towards"
DIRECTION_AWAY = "Away"
DIRECTION_CROSSING = "Crossing"

# Aircraft categories
CATEGORY_HELICOPTER = "Helicopter"
CATEGORY_WIDEBODY = "Wide-body Jet"
CATEGORY_NARROWBODY = "Narrow-body Jet"
CATEGORY_REGIONAL_JET = "Regional Jet"
CATEGORY_TURBOPROP = "Turboprop"
CATEGORY_MILITARY = "Military"
CATEGORY_LIGHT = "Light Aircraft"

# Emergency squawk codes
EMERGENCY_SQUAWKS = {
    "7500": "Hijack",
    "7600": "Radio Failure",
    "7700": "General Emergency",
}

# Placeholder callsign emitted by the feed when none is broadcast
CALLSIGN_PLACEHOLDER = "N/A"

# Data Providers
PROVIDER_AIRPLANES_LIVE = "airplanes.live"
PROVIDER_ADSBDB = "adsbdb"
PROVIDER_HEXDB = "hexdb"
PROVIDER_PLANESPOTTERS = "planespotters"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_MAPBOX = "mapbox"

USER_AGENT = "SkyWatch/1.0"

# Telegram captions are capped at 1024 characters
TELEGRAM_CAPTION_LIMIT = 1024
