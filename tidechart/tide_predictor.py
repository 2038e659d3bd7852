"""
Daily tide curve synthesis and high/low tide extraction.

A TidePredictor covers one calendar day. On construction it samples the
harmonic sum of its ConstituentModel once per minute from 00:00 to 24:00
(1441 points), scans the samples for local extrema and evaluates the height
at the requested moment. The result is immutable and can be handed straight
to a chart.

Time base: all harmonic arguments are measured in hours since Jan 1st,
00:00 UTC of the date's year. Naive datetimes are read as UTC. Daylight
saving time is not inferred from timezone rules; callers pass a manual hour
offset instead.
"""
import logging
import math
from datetime import date as date_type
from datetime import datetime, timezone
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Union

import numpy as np

from .constituent_model import ConstituentModel
from .time_format import format_hhmm

logger = logging.getLogger(__name__)

SAMPLES_PER_HOUR = 60
SAMPLES_PER_DAY = 24 * SAMPLES_PER_HOUR + 1  # both midnights included


class TideType(str, Enum):
    """Kind of tide extremum."""
    HIGH = "high"
    LOW = "low"


class TideSample(NamedTuple):
    """One point of the day's tide curve."""
    hour: float
    height_cm: float


class ExtremumEvent(NamedTuple):
    """A high or low tide found in a sample series."""
    hour: float
    height_cm: float
    label: str
    type: TideType


def _as_datetime(value: Union[datetime, date_type]) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date_type):
        return datetime(value.year, value.month, value.day)
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def hours_into_year(moment: Union[datetime, date_type]) -> float:
    """
    Fractional hours from Jan 1st 00:00 UTC of the moment's year to the moment.

    Args:
        moment: datetime (naive values are read as UTC) or date (midnight)

    Returns:
        Hours since the start of the year
    """
    moment = _as_datetime(moment)
    start_of_year = datetime(moment.year, 1, 1, tzinfo=timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - start_of_year).total_seconds() / 3600.0


def tide_label(hour: float, height_cm: float) -> str:
    """Chart label for an extremum, e.g. "06:42 31.4"."""
    return f"{format_hhmm(hour)} {height_cm:.1f}"


def find_extrema(series: Sequence[TideSample]) -> List[ExtremumEvent]:
    """
    Find local maxima (high tides) and minima (low tides) in a sample series.

    A sample is an extremum when it is strictly above (or below) both of its
    neighbours. A run of exactly equal samples between a rise and a fall is
    reported once, at the middle of the run. The first and last samples are
    never reported since they have only one neighbour.

    Args:
        series: Samples in time order

    Returns:
        Extremum events in time order
    """
    if len(series) < 3:
        return []

    hours = np.fromiter((s.hour for s in series), dtype=np.float64, count=len(series))
    heights = np.fromiter((s.height_cm for s in series), dtype=np.float64, count=len(series))

    # slopes[k] is the direction from sample k to sample k + 1
    slopes = np.sign(np.diff(heights))
    sloped = np.flatnonzero(slopes)

    events = []
    for before, after in zip(sloped[:-1], sloped[1:]):
        if slopes[before] == slopes[after]:
            continue

        # Samples before+1 .. after sit at the turning point
        idx = (before + 1 + after) // 2
        tide_type = TideType.HIGH if slopes[before] > 0 else TideType.LOW
        hour = float(hours[idx])
        height = float(heights[idx])
        events.append(ExtremumEvent(
            hour=hour,
            height_cm=height,
            label=tide_label(hour, height),
            type=tide_type,
        ))

    return events


class TidePredictor:
    """
    Tide curve, extrema and current height for one calendar day.
    """

    def __init__(
        self,
        date: Union[datetime, date_type],
        model: Optional[ConstituentModel] = None,
        dst_offset: float = 0.0,
    ):
        """
        Compute the day's tide curve.

        Args:
            date: Requested moment; its calendar day is charted and its time
                of day is used for the current height
            model: ConstituentModel for the date's year. Built on the fly if
                omitted (pass a cached one when predicting many days).
            dst_offset: Manual daylight-saving offset in hours (e.g. 1 in summer)

        Raises:
            TypeError: If date is not a date or datetime
            ValueError: If dst_offset is not finite, the model is for another
                year, or the year is outside the supported range
        """
        moment = _as_datetime(date)

        dst_offset = float(dst_offset)
        if not math.isfinite(dst_offset):
            raise ValueError(f"dst_offset must be a finite number of hours, got {dst_offset}")

        if model is None:
            model = ConstituentModel(moment.year)
        elif model.year != moment.year:
            raise ValueError(
                f"Constituent model is for {model.year}, but the requested date is in {moment.year}"
            )

        self._date = moment
        self._model = model
        self._dst_offset = dst_offset

        day_start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        self._base_hours = hours_into_year(day_start)

        self._samples = tuple(self.generate_day_series(self._base_hours))
        self._extrema = tuple(find_extrema(self._samples))

        self._current_hour = moment.hour + moment.minute / 60 + moment.second / 3600
        self._current_height = self.height_at(self._base_hours + self._current_hour)

        logger.debug(
            "Predicted %s: %d extrema, current height %.2f cm",
            moment.date().isoformat(), len(self._extrema), self._current_height,
        )

    @property
    def date(self) -> datetime:
        return self._date

    @property
    def model(self) -> ConstituentModel:
        return self._model

    @property
    def dst_offset(self) -> float:
        return self._dst_offset

    @property
    def base_hours(self) -> float:
        """Hours from the start of the year to 00:00 of the charted day."""
        return self._base_hours

    @property
    def samples(self) -> tuple:
        return self._samples

    @property
    def extrema(self) -> tuple:
        return self._extrema

    @property
    def current_hour(self) -> float:
        return self._current_hour

    def height_at(self, hours_since_year_start: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Tide height in centimeters relative to mean sea level.

        Args:
            hours_since_year_start: Hours since Jan 1st 00:00 UTC (scalar or array)
        """
        return self._model.predict(np.subtract(hours_since_year_start, self._dst_offset))

    def generate_day_series(self, base_hours_into_year: float) -> List[TideSample]:
        """
        Sample the tide once per minute over a full day.

        Args:
            base_hours_into_year: Hours from the start of the year to 00:00 of the day

        Returns:
            1441 samples at hours i/60 for i = 0..1440
        """
        hours = np.arange(SAMPLES_PER_DAY, dtype=np.float64) / SAMPLES_PER_HOUR
        heights = self.height_at(base_hours_into_year + hours)
        return [TideSample(float(h), float(y)) for h, y in zip(hours, heights)]

    def current_height(self) -> float:
        """Tide height at the exact requested moment."""
        return self._current_height
