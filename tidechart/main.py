import logging
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from . import settings
from .constituent_model import MAX_YEAR, MIN_YEAR
from .constituents import load_calibration
from .tide_service import TideService

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


app = FastAPI(
    title="Tide Chart API",
    description="Daily harmonic tide predictions for a calibrated station",
    version="1.0.0",
)

# Set up rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Initialize service with the reference station unless a calibration file is configured
calibration = load_calibration(settings.CALIBRATION_PATH) if settings.CALIBRATION_PATH else None
tide_service = TideService(calibration=calibration)


@app.get("/api/v1/tides")
@limiter.limit(settings.RATE_LIMIT)
async def get_tides(
    request: Request,
    date: Optional[str] = Query(
        None,
        description="Optional date or date-time (YYYY-MM-DD or YYYY-MM-DDTHH:MM). "
                    "If not provided, the current UTC time is used.",
    ),
    dst: float = Query(
        settings.DEFAULT_DST_OFFSET, ge=-settings.MAX_DST_OFFSET, le=settings.MAX_DST_OFFSET,
        description="Manual daylight-saving offset in hours (e.g. 1 in summer)",
    ),
    interval: Literal["1", "15", "30", "60"] = Query(
        "1",
        description="Spacing of the returned tide curve in minutes (1, 15, 30, or 60).",
    ),
):
    """
    Get the tide chart for one day.

    Returns the tide curve (every minute by default), the high/low tides of
    the day and the height at the requested moment. Heights are in
    centimeters relative to mean sea level.
    """
    try:
        if date:
            try:
                moment = datetime.fromisoformat(date)
            except ValueError:
                raise HTTPException(
                    400, "Invalid date format. Please use ISO 8601 format (YYYY-MM-DD)"
                )
        else:
            moment = datetime.now(timezone.utc).replace(tzinfo=None)

        return tide_service.get_day_chart(moment, dst_offset=dst, interval_minutes=int(interval))
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except HTTPException:
        raise
    except Exception:
        error_id = uuid.uuid4().hex[:8]
        logger.exception(f"Error {error_id} in get_tides")
        raise HTTPException(500, detail=f"Internal error (ref: {error_id})")


@app.get("/api/v1/constituents")
async def get_constituents(
    year: Optional[int] = Query(
        None, ge=MIN_YEAR, le=MAX_YEAR,
        description="Calendar year. If not provided, the current UTC year is used.",
    ),
):
    """
    Get the station calibration with the nodal factors and equilibrium
    arguments of each constituent for a year.
    """
    if year is None:
        year = datetime.now(timezone.utc).year
    try:
        return {
            "station": tide_service.station,
            "year": year,
            "constituents": tide_service.get_constituent_table(year),
        }
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except Exception:
        error_id = uuid.uuid4().hex[:8]
        logger.exception(f"Error {error_id} in get_constituents")
        raise HTTPException(500, detail=f"Internal error (ref: {error_id})")


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "station": tide_service.station,
        "constituents": len(tide_service.calibration.constituents),
    }
