"""Configuration for the design agent pipeline.

Credentials are read through accessor functions on every call so a settings
change takes effect on the next request without restarting the process.
"""

import os
from typing import Optional

# LLM models
ROUTER_MODEL = os.getenv("DESIGN_ROUTER_MODEL", "gemini-2.5-flash")  # Agent classification
PLANNER_MODEL = os.getenv("DESIGN_PLANNER_MODEL", "gemini-2.5-pro")  # Per-agent planning
VISION_MODEL = os.getenv("DESIGN_VISION_MODEL", "gemini-2.5-flash")  # extractText / analyzeRegion
COPY_MODEL = os.getenv("DESIGN_COPY_MODEL", "gemini-2.5-flash")  # generateCopy

# Generation models (provider-side identifiers)
IMAGE_PRO_MODEL = os.getenv("DESIGN_IMAGE_PRO_MODEL", "gemini-3-pro-image-preview")
IMAGE_FLASH_MODEL = os.getenv("DESIGN_IMAGE_FLASH_MODEL", "gemini-2.5-flash-image")
VEO_PRO_MODEL = os.getenv("DESIGN_VEO_PRO_MODEL", "veo-3.1-generate-preview")
VEO_FAST_MODEL = os.getenv("DESIGN_VEO_FAST_MODEL", "veo-3.1-fast-generate-preview")

# Routing
ROUTE_MAX_RETRIES = int(os.getenv("DESIGN_ROUTE_MAX_RETRIES", "3"))
ROUTE_TIMEOUT_SECS = float(os.getenv("DESIGN_ROUTE_TIMEOUT_SECS", "30"))
ROUTE_RETRY_DELAY_SECS = 1.0
ROUTE_CONFIDENCE_THRESHOLD = 0.6
ROUTE_FALLBACK_AGENT = os.getenv("DESIGN_ROUTE_FALLBACK_AGENT", "coco")
ROUTE_HISTORY_TURNS = 5
LOCAL_ROUTE_CONFIDENCE = 0.7

# Agent execution
AGENT_MAX_RETRIES = int(os.getenv("DESIGN_AGENT_MAX_RETRIES", "2"))
AGENT_TIMEOUT_SECS = float(os.getenv("DESIGN_AGENT_TIMEOUT_SECS", "60"))
AGENT_RETRY_DELAY_SECS = 2.0
AGENT_ENABLE_CACHE = os.getenv("DESIGN_AGENT_ENABLE_CACHE", "true").lower() != "false"
PLANNER_TEMPERATURE = 0.7
ROUTER_TEMPERATURE = 0.2

# Multi-item requests ("一套", "5张") default to this many variants when no number parses
DEFAULT_VARIANT_COUNT = 5
MAX_VARIANT_COUNT = 10

# Error log ring buffer
ERROR_LOG_MAX = 100

# Provider polling
GEMINI_VIDEO_POLL_INTERVAL_SECS = 5.0
GEMINI_VIDEO_MAX_POLL_ATTEMPTS = 60
REPLICATE_POLL_INTERVAL_SECS = 2.0
REPLICATE_MAX_POLL_ATTEMPTS = 60
KLING_POLL_INTERVAL_SECS = 3.0
KLING_MAX_POLL_ATTEMPTS = 120
HTTP_TIMEOUT_SECS = 60

# Attempts whose plan generates video must outlive the longest provider poll
VIDEO_POLL_BUDGET_SECS = max(
    GEMINI_VIDEO_POLL_INTERVAL_SECS * GEMINI_VIDEO_MAX_POLL_ATTEMPTS,
    KLING_POLL_INTERVAL_SECS * KLING_MAX_POLL_ATTEMPTS,
)
AGENT_VIDEO_TIMEOUT_SECS = float(
    os.getenv("DESIGN_AGENT_VIDEO_TIMEOUT_SECS", str(VIDEO_POLL_BUDGET_SECS + AGENT_TIMEOUT_SECS))
)

REPLICATE_BASE_URL = os.getenv("REPLICATE_BASE_URL", "https://api.replicate.com/v1")
KLING_BASE_URL = os.getenv("KLING_BASE_URL", "https://api.klingai.com/v1")

# Known API hosts selectable from settings
_PROVIDER_BASE_URLS = {
    "gemini": None,
    "yunwu": "https://yunwu.ai",
}


def get_api_key() -> Optional[str]:
    """Gemini API key, or None when unconfigured."""
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY") or None


def get_api_base_url() -> Optional[str]:
    """Base URL override for the Gemini API (proxy hosts), None for the default endpoint."""
    custom = os.getenv("DESIGN_API_BASE_URL")
    if custom:
        return custom.rstrip("/")
    provider = os.getenv("DESIGN_API_PROVIDER", "gemini").lower()
    return _PROVIDER_BASE_URLS.get(provider)


def get_replicate_api_key() -> Optional[str]:
    return os.getenv("REPLICATE_API_TOKEN") or None


def get_kling_api_key() -> Optional[str]:
    return os.getenv("KLING_API_KEY") or None
