"""
Tidal constituent definitions and station calibration tables.

A calibration table holds the location-specific harmonic constants for the
seven primary constituents used by the chart:

- M2: Principal lunar semidiurnal
- S2: Principal solar semidiurnal
- N2: Larger lunar elliptic semidiurnal
- K2: Lunisolar semidiurnal
- K1: Lunisolar diurnal
- O1: Lunar diurnal
- P1: Solar diurnal

The reference table below is calibrated for Koper (northern Adriatic). Other
stations can be loaded from a JSON file with the same seven constituents.
"""
import json
import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Tuple

logger = logging.getLogger(__name__)


class Constituent(str, Enum):
    """The seven tidal constituents, in canonical order."""
    M2 = "M2"
    S2 = "S2"
    N2 = "N2"
    K2 = "K2"
    K1 = "K1"
    O1 = "O1"
    P1 = "P1"


class CalibrationError(ValueError):
    """Raised when a calibration table is incomplete or malformed."""


@dataclass(frozen=True)
class ConstituentCalibration:
    """
    Harmonic constants for one constituent at one station.

    Attributes:
        constituent: Constituent identity
        amplitude_cm: Mean amplitude H in centimeters
        phase_lag_rad: Phase lag G in radians
        speed_rad_per_hour: Angular speed S in radians per hour
    """
    constituent: Constituent
    amplitude_cm: float
    phase_lag_rad: float
    speed_rad_per_hour: float


@dataclass(frozen=True)
class CalibrationTable:
    """Immutable set of calibrations, exactly one per Constituent, in canonical order."""
    station: str
    constituents: Tuple[ConstituentCalibration, ...]

    def __post_init__(self):
        order = tuple(c.constituent for c in self.constituents)
        if order != tuple(Constituent):
            raise CalibrationError(
                f"Calibration for '{self.station}' must list {[c.value for c in Constituent]} "
                f"in order, got {[c.value for c in order]}"
            )
        for cal in self.constituents:
            values = (cal.amplitude_cm, cal.phase_lag_rad, cal.speed_rad_per_hour)
            if not all(math.isfinite(v) for v in values):
                raise CalibrationError(f"{cal.constituent.value}: harmonic constants must be finite")
            if cal.amplitude_cm < 0:
                raise CalibrationError(f"{cal.constituent.value}: amplitude must be non-negative")
            if cal.speed_rad_per_hour <= 0:
                raise CalibrationError(f"{cal.constituent.value}: angular speed must be positive")

    def __getitem__(self, constituent: Constituent) -> ConstituentCalibration:
        return self.constituents[list(Constituent).index(Constituent(constituent))]

    @property
    def amplitudes(self) -> Tuple[float, ...]:
        return tuple(c.amplitude_cm for c in self.constituents)

    @property
    def phase_lags(self) -> Tuple[float, ...]:
        return tuple(c.phase_lag_rad for c in self.constituents)

    @property
    def speeds(self) -> Tuple[float, ...]:
        return tuple(c.speed_rad_per_hour for c in self.constituents)

    @classmethod
    def from_mapping(cls, station: str, values: Mapping[str, Mapping[str, float]]) -> "CalibrationTable":
        """
        Build a table from a {code: {amplitude_cm, phase_lag_rad, speed_rad_per_hour}} mapping.

        Args:
            station: Station name
            values: Mapping keyed by constituent code (case-insensitive)

        Returns:
            CalibrationTable in canonical constituent order

        Raises:
            CalibrationError: If a constituent is missing, unknown, or malformed
        """
        by_code = {str(code).upper(): entry for code, entry in values.items()}

        unknown = sorted(set(by_code) - {c.value for c in Constituent})
        if unknown:
            raise CalibrationError(f"Unknown constituents in calibration: {unknown}")

        calibrations = []
        for const in Constituent:
            entry = by_code.get(const.value)
            if entry is None:
                raise CalibrationError(f"Calibration is missing constituent {const.value}")
            try:
                calibrations.append(ConstituentCalibration(
                    constituent=const,
                    amplitude_cm=float(entry['amplitude_cm']),
                    phase_lag_rad=float(entry['phase_lag_rad']),
                    speed_rad_per_hour=float(entry['speed_rad_per_hour']),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise CalibrationError(f"{const.value}: invalid harmonic constants ({e})") from e

        return cls(station=station, constituents=tuple(calibrations))


def load_calibration(path: str) -> CalibrationTable:
    """
    Load a station calibration table from a JSON file.

    Expected format::

        {"station": "Koper",
         "constituents": {"M2": {"amplitude_cm": 25.1, "phase_lag_rad": 4.842,
                                 "speed_rad_per_hour": 0.50586805}, ...}}

    Args:
        path: Path to the JSON file

    Returns:
        CalibrationTable for the station

    Raises:
        FileNotFoundError: If the file does not exist
        CalibrationError: If the file content is not a valid calibration
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Calibration file not found: {path}")

    with open(path, encoding='utf-8') as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise CalibrationError(f"Calibration file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get('constituents'), dict):
        raise CalibrationError(f"Calibration file {path} has no 'constituents' object")

    station = str(data.get('station') or os.path.splitext(os.path.basename(path))[0])
    table = CalibrationTable.from_mapping(station, data['constituents'])
    logger.info("Loaded calibration for station '%s' from %s", station, path)
    return table


# Reference harmonic constants (Koper, northern Adriatic)
# H in cm, G in radians, S in radians per hour
_REFERENCE_CONSTANTS: Dict[Constituent, Tuple[float, float, float]] = {
    Constituent.M2: (25.1, 4.842, 0.50586805),
    Constituent.S2: (15.8, 4.955, 0.52359878),
    Constituent.N2: (4.6, 4.815, 0.49636692),
    Constituent.K2: (4.4, 4.752, 0.52503234),
    Constituent.K1: (18.2, 1.215, 0.26251617),
    Constituent.O1: (5.0, 1.079, 0.24335188),
    Constituent.P1: (5.9, 1.133, 0.26108261),
}

REFERENCE_CALIBRATION = CalibrationTable(
    station="Koper",
    constituents=tuple(
        ConstituentCalibration(const, amp, lag, speed)
        for const, (amp, lag, speed) in _REFERENCE_CONSTANTS.items()
    ),
)
