"""
Tide Service - Harmonic Tide Chart for a Calibrated Station

This module ties the yearly constituent model and the daily predictor into a
service used by the HTTP API and by other Python callers.

Key features:
- 7 tidal constituents (M2, S2, N2, K2, K1, O1, P1) with yearly nodal
  factors and equilibrium arguments
- One ConstituentModel per year, cached and shared between requests
- Minute-resolution daily tide curve with high/low tide extraction
- Manual daylight-saving offset (no timezone inference)

Accuracy expectations:
- Timing of high/low tides: to the minute of the sampled curve
- Heights: as good as the station calibration; the astronomical
  polynomials are valid for 1850-2150

Note: Heights are in centimeters relative to mean sea level. The service
does not fit harmonic constants; the calibration table is supplied.
"""
import logging
import threading
from datetime import date as date_type
from datetime import datetime
from typing import Dict, List, Optional, Union

from .constituent_model import ConstituentModel
from .constituents import REFERENCE_CALIBRATION, CalibrationTable, Constituent
from .tide_predictor import TidePredictor
from .time_format import format_hhmm

logger = logging.getLogger(__name__)

# Sampling intervals (minutes) accepted for the returned tide curve
ALLOWED_INTERVALS = (1, 15, 30, 60)


class TideService:
    """
    Service for predicting daily tide charts at one calibrated station.

    The service owns the calibration table and a per-year cache of
    ConstituentModel instances. Models are immutable, so cached instances
    are safely shared by concurrent requests.
    """

    def __init__(self, calibration: Optional[CalibrationTable] = None):
        """
        Initialize the Tide Service.

        Args:
            calibration: Station calibration table. Defaults to the
                reference station.
        """
        self.calibration = calibration or REFERENCE_CALIBRATION

        # Cache of constituent models by year
        self._models: Dict[int, ConstituentModel] = {}
        self._lock = threading.Lock()

    @property
    def station(self) -> str:
        return self.calibration.station

    def get_model(self, year: int) -> ConstituentModel:
        """
        Get the constituent model for a year, building it on first use.

        Args:
            year: Calendar year

        Returns:
            Cached ConstituentModel for the year

        Raises:
            ValueError: If the year is outside the supported range
        """
        model = self._models.get(year)
        if model is not None:
            logger.debug("Constituent model cache hit for %d", year)
            return model

        with self._lock:
            # Another request may have built it while we waited
            model = self._models.get(year)
            if model is None:
                model = ConstituentModel(year, self.calibration)
                self._models[year] = model
        return model

    def predict_day(self, date: Union[datetime, date_type], dst_offset: float = 0.0) -> TidePredictor:
        """
        Predict the tide curve of the calendar day containing date.

        Args:
            date: Requested moment (naive datetimes are read as UTC)
            dst_offset: Manual daylight-saving offset in hours

        Returns:
            TidePredictor for the day
        """
        if not isinstance(date, date_type):
            raise TypeError(f"Expected a date or datetime, got {type(date).__name__}")
        model = self.get_model(date.year)
        return TidePredictor(date, model=model, dst_offset=dst_offset)

    def get_day_chart(
        self,
        date: Union[datetime, date_type],
        dst_offset: float = 0.0,
        interval_minutes: int = 1,
    ) -> Dict:
        """
        Get the tide chart data for one day.

        Extrema are always taken from the full minute-resolution curve, even
        when the returned samples are thinned out.

        Args:
            date: Requested moment (naive datetimes are read as UTC)
            dst_offset: Manual daylight-saving offset in hours
            interval_minutes: Spacing of returned samples (1, 15, 30, or 60)

        Returns:
            Dictionary with keys:
            - date: ISO date of the charted day
            - station: Calibration station name
            - dst_offset: Offset used, in hours
            - samples: List of {hour, height_cm}
            - extrema: List of {type, hour, time, height_cm, label}
            - current: {hour, time, height_cm} at the requested moment,
              with time truncated to the minute
        """
        if interval_minutes not in ALLOWED_INTERVALS:
            raise ValueError("interval_minutes must be 1, 15, 30, or 60")

        predictor = self.predict_day(date, dst_offset=dst_offset)

        samples = [
            {'hour': sample.hour, 'height_cm': round(sample.height_cm, 2)}
            for sample in predictor.samples[::interval_minutes]
        ]

        extrema = [
            {
                'type': event.type.value,
                'hour': event.hour,
                'time': format_hhmm(event.hour),
                'height_cm': round(event.height_cm, 2),
                'label': event.label,
            }
            for event in predictor.extrema
        ]

        current = {
            'hour': predictor.current_hour,
            # wall-clock minute of the request, never rounded into the next day
            'time': predictor.date.strftime('%H:%M'),
            'height_cm': round(predictor.current_height(), 2),
        }

        return {
            'date': predictor.date.date().isoformat(),
            'station': self.station,
            'dst_offset': predictor.dst_offset,
            'samples': samples,
            'extrema': extrema,
            'current': current,
        }

    def get_constituent_table(self, year: int) -> List[Dict]:
        """
        Get the calibration and yearly corrections of every constituent.

        Args:
            year: Calendar year

        Returns:
            One dictionary per constituent, in canonical order
        """
        model = self.get_model(year)
        table = []
        for i, const in enumerate(Constituent):
            cal = self.calibration[const]
            table.append({
                'constituent': const.value,
                'amplitude_cm': cal.amplitude_cm,
                'phase_lag_rad': cal.phase_lag_rad,
                'speed_rad_per_hour': cal.speed_rad_per_hour,
                'nodal_factor': float(model.nodal_factors[i]),
                'equilibrium_argument_rad': float(model.equilibrium_arguments[i]),
                'comp_amplitude_cm': float(model.comp_amplitude[i]),
                'comp_phase_rad': float(model.comp_phase[i]),
            })
        return table
