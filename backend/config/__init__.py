import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from .settings import Settings, settings
from .constants import (
    API_TIMEOUTS,
    BREAKER_CONFIG,
    CACHE_CONFIG,
    AGGREGATOR_CONFIG,
    QUERY_LIMITS,
    QUOTA_ALERTS,
    SOURCE_PRIORITY,
)

REQUIRED_KEYS = [
    "CONGRESS_API_KEY",
    "LEGISCAN_API_KEY",
]

def check_api_keys_on_startup(current: Settings = settings):
    """Check for required API keys on startup."""
    missing_keys = [key_name for key_name in REQUIRED_KEYS if not getattr(current, key_name, None)]

    if missing_keys:
        logger.warning(
            f"Missing API keys: {', '.join(missing_keys)}. Corresponding sources will fail every call."
        )
    else:
        logger.info("All required API keys are configured.")
    return missing_keys

__all__ = [
    "logger",
    "Settings",
    "settings",
    "check_api_keys_on_startup",
    "API_TIMEOUTS",
    "BREAKER_CONFIG",
    "CACHE_CONFIG",
    "AGGREGATOR_CONFIG",
    "QUERY_LIMITS",
    "QUOTA_ALERTS",
    "SOURCE_PRIORITY",
]
