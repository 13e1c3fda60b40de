"""
Configuration constants for the Netflix session client.

This module centralizes URLs, endpoint paths and tunables.
Values can be overridden via environment variables.
"""
import os
import logging

logger = logging.getLogger(__name__)

APP_NAME = "netflix-session"
APP_VERSION = "0.3.0"


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# Web front end
BASE_URL = os.environ.get("NETFLIX_BASE_URL", "https://www.netflix.com").rstrip("/")
LOGIN_URL = "/login"
YOUR_ACCOUNT_URL = "/YourAccount"
MANAGE_PROFILES_URL = "/ManageProfiles"

# Order matters: the second page relies on cookies set while visiting the first
BOOTSTRAP_URLS = (YOUR_ACCOUNT_URL, MANAGE_PROFILES_URL)

# Inline scripts carrying client state start with this text
CONTEXT_SCRIPT_SENTINEL = "window.netflix"

# JSON API root; the build identifier found at bootstrap is appended
API_PREFIX = os.environ.get("NETFLIX_API_PREFIX", "https://www.netflix.com/api/shakti/")

# API endpoint paths (relative to the API root)
PATH_EVALUATOR_ENDPOINT = "/pathEvaluator"
PROFILES_ENDPOINT = "/profiles"
SWITCH_PROFILE_ENDPOINT = "/profiles/switch"
RATING_HISTORY_ENDPOINT = "/ratinghistory"
VIEWING_ACTIVITY_ENDPOINT = "/viewingactivity"
VIEWING_ACTIVITY_CONTROL_ENDPOINT = "/viewingactivitycontrol"
SET_THUMB_RATING_ENDPOINT = "/setThumbRating"
SET_VIDEO_RATING_ENDPOINT = "/setVideoRating"

# Avatar images; {size} is used for both dimensions
AVATAR_URL_TEMPLATE = (
    "https://secure.netflix.com/us/layout/ecweb/profiles/avatars_v2/"
    "{size}x{size}/PICON_{avatar_id}.png"
)
DEFAULT_AVATAR_SIZE = _get_int_env("NETFLIX_AVATAR_SIZE", 320, min_val=1)

# HTTP
HTTP_TIMEOUT = _get_float_env("NETFLIX_HTTP_TIMEOUT", 30.0, min_val=1.0)
USER_AGENT = f"{APP_NAME}/{APP_VERSION}"

# Credentials (CLI and cookie reuse)
NETFLIX_EMAIL = os.environ.get("NETFLIX_EMAIL")
NETFLIX_PASSWORD = os.environ.get("NETFLIX_PASSWORD")
NETFLIX_COOKIE = os.environ.get("NETFLIX_COOKIE")

# CLI
EXPORT_INDENT = _get_int_env("NETFLIX_EXPORT_INDENT", 2, min_val=0)
