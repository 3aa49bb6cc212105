"""
Configuration constants for the Swift benchmark tool.

This module contains all configuration parameters including:
- Auth endpoint and credentials (environment defaults for the global flags)
- Benchmark defaults (counts, object sizes, run time, request ratios)
- Reporting and persistence parameters
- Duration parsing for the time-bounded benchmarks
"""

import os
import re
from typing import Dict

from swiftbench.errors import ConfigurationError


def _env_int(name: str, default: int = 0) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "t", "true", "yes", "on")


# =============================================================================
# AUTH CONFIGURATION
# =============================================================================

AUTH_URL: str = os.getenv("AUTH_URL", "")
AUTH_TENANT: str = os.getenv("AUTH_TENANT", "")
AUTH_USER: str = os.getenv("AUTH_USER", "")
AUTH_KEY: str = os.getenv("AUTH_KEY", "")
AUTH_PASSWORD: str = os.getenv("AUTH_PASSWORD", "")
OVERRIDE_URLS: str = os.getenv("OVERRIDE_URLS", "")
STORAGE_REGION: str = os.getenv("STORAGE_REGION", "")
STORAGE_INTERNAL: bool = _env_bool("STORAGE_INTERNAL")

# Global concurrency; values below 1 are treated as 1
CONCURRENCY: int = _env_int("CONCURRENCY", 1)

USER_AGENT: str = "swift-bench/0.1"

# =============================================================================
# BENCHMARK DEFAULTS
# =============================================================================

DEFAULT_OBJECT_PREFIX: str = "bench-"
DEFAULT_CONTAINERS: int = 1
DEFAULT_COUNT: int = 1000
DEFAULT_ITERATIONS: int = 1
DEFAULT_OBJECT_SIZE: int = 4096
DEFAULT_MAX_OBJECT_SIZE: int = 0
DEFAULT_MIXED_TIME: str = "10m"
DEFAULT_MIXED_RATIOS: str = "1,2,2,2,2"

# Number of completed PUTs the mixed DELETE cursor must trail by
DELETE_SAFETY_MARGIN: int = 10000

# Sleep between re-checks when a mixed producer has no safe index
PRODUCER_POLL_SECONDS: float = 1.0

# Metadata header POSTed by the mixed benchmark
MIXED_POST_META_HEADER: str = "X-Object-Meta-Bench-Mixed"

# =============================================================================
# REPORTING AND PERSISTENCE
# =============================================================================

REPORT_INTERVAL_SECONDS: float = 60.0
DEFAULT_PERSISTENCE_BATCH_SIZE: int = 100
BODY_CHUNK_SIZE: int = 64 * 1024
TRANS_ID_HEADER: str = "X-Trans-Id"

# Page size requested when walking listings for downloads
LISTING_PAGE_LIMIT: int = 10000

# =============================================================================
# DURATIONS
# =============================================================================

NANOSECONDS_PER_SECOND: int = 1_000_000_000

_DURATION_UNITS: Dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``10m``, ``1h30m`` or ``500ms`` into seconds.

    A bare ``0`` is accepted; every other value needs a unit on each part.

    Raises:
        ConfigurationError: If the text is not a valid duration
    """
    value = (text or "").strip()
    if value in ("0", "+0", "-0"):
        return 0.0
    sign = 1.0
    if value[:1] in ("+", "-"):
        sign = -1.0 if value[0] == "-" else 1.0
        value = value[1:]
    if not value:
        raise ConfigurationError(f"invalid duration {text!r}")

    seconds = 0.0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(value):
        raise ConfigurationError(f"invalid duration {text!r}")
    return sign * seconds
