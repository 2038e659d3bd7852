"""
Yearly astronomical corrections for the seven tidal constituents.

For a calendar year this module derives, per constituent:

- the nodal factor f, the amplitude modulation caused by the 18.6-year
  precession of the Moon's orbital plane, and
- the equilibrium argument V0+u, the theoretical phase of the constituent
  at Jan 1 00:00 UTC, from the mean longitudes of the Sun, Moon and lunar
  perigee.

Both are folded together with the station calibration into an effective
amplitude (f * H) and an effective phase ((V0+u) - G), so that a prediction
is a plain sum of seven cosines:

    height(t) = sum{ f * H * cos(S * t + (V0+u) - G) }

Accuracy: the polynomial expansions are fitted around 1900 and are only
trusted for 1850-2150. Years outside that range are rejected.

References:
- Schureman, P. (1958) "Manual of Harmonic Analysis and Prediction of Tides"
- Meeus, J. (1991) "Astronomical Algorithms"
"""
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, NamedTuple, Union

import numpy as np

from .constituents import REFERENCE_CALIBRATION, CalibrationTable, Constituent

logger = logging.getLogger(__name__)

MIN_YEAR = 1850
MAX_YEAR = 2150

TAU = 2 * math.pi
RAD = math.pi / 180.0

# Constant inclination of the lunar orbit to the ecliptic
LUNAR_INCLINATION = 5.14537628 * RAD


def _normalize(angle: float) -> float:
    """Normalize an angle in radians to [0, 2π)."""
    angle = angle % TAU
    # float modulo can return TAU itself for tiny negative inputs
    return 0.0 if angle >= TAU else angle


def _julian_centuries(year: float) -> float:
    """
    Julian centuries from the 1900-01-01 epoch.

    Args:
        year: Calendar year, possibly fractional (e.g. 2024.5 for mid-year)

    Returns:
        t: Julian centuries since 1900
    """
    return (365.25 * (year - 1900.0) + 0.5) / 36525.0


class MeanLongitudes(NamedTuple):
    """Mean longitudes in radians, normalized to [0, 2π)."""
    h: float  # Sun
    s: float  # Moon
    p: float  # lunar perigee


class OrbitalGeometry(NamedTuple):
    """Orbital quantities used by the nodal factors (radians where angular)."""
    N: float              # longitude of the Moon's ascending node
    obliquity: float      # obliquity of the ecliptic
    eccentricity: float   # Earth's orbital eccentricity
    I: float              # inclination of the lunar orbit to the equator


def mean_longitudes(year: int) -> MeanLongitudes:
    """Mean longitudes of the Sun, Moon and lunar perigee at the start of the year."""
    t = _julian_centuries(year)
    h = _normalize((279.696678 + 36000.768925 * t) * RAD)
    s = _normalize((270.437422 + 481267.892 * t) * RAD)
    p = _normalize((334.328019 + 4069.032206 * t) * RAD)
    return MeanLongitudes(h=h, s=s, p=p)


def node_longitude(year: float) -> float:
    """
    Mean longitude of the Moon's ascending node (N) in radians.

    Args:
        year: Fractional year, normally mid-year (Y + 0.5)
    """
    t = _julian_centuries(year)
    t2 = t * t
    t3 = t2 * t
    n = 259.182533 - 1934.142397 * t + 0.002106 * t2 + 0.00000222 * t3
    return _normalize(n * RAD)


def orbital_geometry(year: float) -> OrbitalGeometry:
    """
    Orbital geometry for the nodal factors, evaluated at a fractional year.

    The angle I between the lunar orbit and the equator follows from the
    spherical triangle formed by the ecliptic, the equator and the lunar
    orbit:

        cos(I) = cos(i) * cos(ω) - sin(i) * sin(ω) * cos(N)
    """
    y0 = year - 1900.0
    eccentricity = 0.01675104 - 4.18e-7 * y0 - 1.26e-11 * y0 * y0
    obliquity = (23.452294 - 1.30111e-4 * y0) * RAD
    N = node_longitude(year)

    cos_i = math.cos(LUNAR_INCLINATION)
    sin_i = math.sin(LUNAR_INCLINATION)
    I = math.acos(cos_i * math.cos(obliquity) - sin_i * math.sin(obliquity) * math.cos(N))

    return OrbitalGeometry(N=N, obliquity=obliquity, eccentricity=eccentricity, I=I)


def _lunar_semidiurnal_factor(geo: OrbitalGeometry) -> float:
    # cos^4(I/2) normalized by its mean value
    return math.cos(geo.I / 2) ** 4 / 0.9154


# Nodal factor per constituent. Each entry is the closed form for that
# constituent only; there is no shared formula.
NODAL_FACTORS: Dict[Constituent, Callable[[OrbitalGeometry], float]] = {
    Constituent.M2: _lunar_semidiurnal_factor,
    Constituent.S2: lambda geo: 1.0,
    Constituent.N2: _lunar_semidiurnal_factor,
    Constituent.K2: lambda geo: math.sqrt(
        1.0 + 0.2852 * math.cos(geo.N) + 0.0204 * math.cos(2 * geo.N)),
    Constituent.K1: lambda geo: math.sqrt(
        1.0 + 0.1813 * math.cos(geo.N) - 0.0082 * math.cos(2 * geo.N)),
    Constituent.O1: lambda geo: 1.0089 + 0.1871 * math.cos(geo.N) - 0.0147 * math.cos(2 * geo.N),
    Constituent.P1: lambda geo: 1.0,
}

# Equilibrium argument per constituent as a combination of h, s, p.
# S2 is the reference constituent and is zero by definition.
EQUILIBRIUM_ARGUMENTS: Dict[Constituent, Callable[[MeanLongitudes], float]] = {
    Constituent.M2: lambda ml: _normalize(2 * ml.h - 2 * ml.s),
    Constituent.S2: lambda ml: 0.0,
    Constituent.N2: lambda ml: _normalize(2 * ml.h - 3 * ml.s + ml.p),
    Constituent.K2: lambda ml: _normalize(2 * ml.h),
    Constituent.K1: lambda ml: _normalize(ml.h + math.pi / 2),
    Constituent.O1: lambda ml: _normalize(ml.h - 2 * ml.s - math.pi / 2),
    Constituent.P1: lambda ml: _normalize(math.pi / 2 - ml.h),
}


@dataclass(frozen=True)
class YearlyCorrection:
    """Nodal factor and equilibrium argument of one constituent for one year."""
    nodal_factor: float
    equilibrium_argument: float


def _readonly(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    arr.setflags(write=False)
    return arr


class ConstituentModel:
    """
    Effective harmonic constants of a station for one calendar year.

    Instances are immutable once built and may be shared between threads.
    """

    def __init__(self, year: int, calibration: CalibrationTable = REFERENCE_CALIBRATION):
        """
        Compute the yearly corrections and effective constants.

        Args:
            year: Calendar year (1850-2150)
            calibration: Station calibration table

        Raises:
            TypeError: If year is not an integer
            ValueError: If year is outside the supported range
        """
        if isinstance(year, bool) or not isinstance(year, (int, np.integer)):
            raise TypeError(f"year must be an integer, got {type(year).__name__}")
        year = int(year)
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValueError(
                f"Year {year} is outside the supported range {MIN_YEAR}-{MAX_YEAR}"
            )

        self._year = year
        self._calibration = calibration

        # Nodal factors vary slowly, so they are evaluated at mid-year
        geometry = orbital_geometry(year + 0.5)
        longitudes = mean_longitudes(year)

        self._nodal_factors = _readonly([NODAL_FACTORS[c](geometry) for c in Constituent])
        self._equilibrium_arguments = _readonly(
            [EQUILIBRIUM_ARGUMENTS[c](longitudes) for c in Constituent])

        self._speeds = _readonly(calibration.speeds)
        self._comp_amplitude = _readonly(self._nodal_factors * np.array(calibration.amplitudes))
        self._comp_phase = _readonly(self._equilibrium_arguments - np.array(calibration.phase_lags))

        logger.debug(
            "Built constituent model for %d (%s): N=%.4f rad, I=%.4f rad",
            year, calibration.station, geometry.N, geometry.I,
        )

    @property
    def year(self) -> int:
        return self._year

    @property
    def calibration(self) -> CalibrationTable:
        return self._calibration

    @property
    def nodal_factors(self) -> np.ndarray:
        return self._nodal_factors

    @property
    def equilibrium_arguments(self) -> np.ndarray:
        return self._equilibrium_arguments

    @property
    def speeds(self) -> np.ndarray:
        return self._speeds

    @property
    def comp_amplitude(self) -> np.ndarray:
        return self._comp_amplitude

    @property
    def comp_phase(self) -> np.ndarray:
        return self._comp_phase

    def corrections(self) -> Mapping[Constituent, YearlyCorrection]:
        """Yearly correction of every constituent, keyed by identity."""
        return {
            const: YearlyCorrection(float(f), float(v0u))
            for const, f, v0u in zip(Constituent, self._nodal_factors, self._equilibrium_arguments)
        }

    def predict(self, hours_since_jan1: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Tide height relative to mean sea level.

        Args:
            hours_since_jan1: Hours since Jan 1st 00:00 UTC of the model year
                (scalar or array)

        Returns:
            Height in centimeters (float for scalar input, array otherwise)
        """
        t = np.asarray(hours_since_jan1, dtype=np.float64)
        if t.ndim == 0:
            return float(np.sum(self._comp_amplitude * np.cos(self._speeds * t + self._comp_phase)))
        # One column per constituent
        phases = np.multiply.outer(t, self._speeds) + self._comp_phase
        return np.sum(self._comp_amplitude * np.cos(phases), axis=-1)

    def __repr__(self):
        return f"ConstituentModel(year={self._year}, station={self._calibration.station!r})"
