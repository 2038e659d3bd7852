"""
Runtime configuration for the tide chart service.

Values come from environment variables. A .env file in the working
directory is loaded first if one exists.
"""
import logging
import math
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Bounds shared with the dst query parameter of the tides endpoint
MAX_DST_OFFSET = 12.0


def _get_dst_offset_env(key: str, default: float = 0.0) -> float:
    """Get a finite offset within ±MAX_DST_OFFSET hours, or the default."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}={raw!r}: not a number")
        return default
    if not math.isfinite(value) or abs(value) > MAX_DST_OFFSET:
        logger.warning(f"Ignoring {key}={raw!r}: expected a finite offset between "
                       f"-{MAX_DST_OFFSET:g} and {MAX_DST_OFFSET:g} hours")
        return default
    return value


# Optional JSON calibration file replacing the reference station
# Environment variable: TIDE_CALIBRATION_PATH
CALIBRATION_PATH: Optional[str] = os.environ.get('TIDE_CALIBRATION_PATH') or None

# Default manual daylight-saving offset in hours
# Environment variable: TIDE_DEFAULT_DST_OFFSET
DEFAULT_DST_OFFSET = _get_dst_offset_env('TIDE_DEFAULT_DST_OFFSET')

# slowapi rate limit for the tides endpoint
# Environment variable: TIDE_RATE_LIMIT
RATE_LIMIT = os.environ.get('TIDE_RATE_LIMIT', '60/minute')
