"""Tolerance-based peak matching with binary search and Numba JIT.

Core operation of the intensity vectorizer: for a reference fragment m/z,
sum the intensities of ALL observed peaks whose mass error falls inside the
tolerance window. Ambiguous peaks are accumulated, not resolved to the
closest one.

Tolerances are either relative (ppm, scales with m/z) or absolute (Da).

Performance targets:
- Window search: O(log n) per target
- Full vector (100 targets, 1000 peaks): well below 1 ms
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import numba
import numpy as np

from ..constants import PPM


class ToleranceUnit(Enum):
    """Unit of a mass tolerance window."""
    PPM = "ppm"
    DA = "Da"

    @classmethod
    def parse(cls, unit: Union[str, 'ToleranceUnit']) -> 'ToleranceUnit':
        """Accept enum members or case-insensitive strings ('ppm', 'Da')."""
        if isinstance(unit, cls):
            return unit
        key = str(unit).strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown tolerance unit: {unit!r}. Use 'ppm' or 'Da'.")


@dataclass(frozen=True)
class MassTolerance:
    """Mass tolerance window (value + unit).

    A value of zero is legal and only matches exact masses.
    """

    value: float
    unit: ToleranceUnit = ToleranceUnit.PPM

    def __post_init__(self):
        object.__setattr__(self, 'unit', ToleranceUnit.parse(self.unit))
        object.__setattr__(self, 'value', abs(float(self.value)))

    @classmethod
    def ppm(cls, value: float) -> 'MassTolerance':
        return cls(value, ToleranceUnit.PPM)

    @classmethod
    def da(cls, value: float) -> 'MassTolerance':
        return cls(value, ToleranceUnit.DA)

    @property
    def is_relative(self) -> bool:
        return self.unit is ToleranceUnit.PPM

    def window(self, target_mz: float) -> Tuple[float, float]:
        """Return the (low, high) m/z window around target_mz."""
        return mass_window(target_mz, self.value, self.is_relative)

    def contains(self, observed_mz: float, target_mz: float) -> bool:
        """True when observed_mz is within tolerance of target_mz."""
        low, high = self.window(target_mz)
        return low <= observed_mz <= high

    def __str__(self) -> str:
        return f"{self.value:g} {self.unit.value}"


# =============================================================================
# Mass Error
# =============================================================================

@numba.njit(cache=True)
def calculate_mass_error(
    observed_mz: float,
    theoretical_mz: float,
    relative: bool = True,
) -> float:
    """Mass error of an observed m/z against a theoretical m/z.

    Parameters
    ----------
    observed_mz : float
        Measured m/z
    theoretical_mz : float
        Reference m/z
    relative : bool
        True for ppm, False for Da

    Returns
    -------
    error : float
        (observed - theoretical) / theoretical * 1e6 in ppm mode,
        observed - theoretical in Da mode. Returns inf for a non-positive
        theoretical m/z in ppm mode.

    Examples
    --------
    >>> calculate_mass_error(500.01, 500.0)  # ~20 ppm
    """
    if relative:
        if theoretical_mz <= 0.0:
            return np.inf
        return (observed_mz - theoretical_mz) / theoretical_mz * PPM
    return observed_mz - theoretical_mz


@numba.njit(cache=True)
def mass_window(
    target_mz: float,
    tolerance: float,
    relative: bool = True,
) -> Tuple[float, float]:
    """Return the inclusive (low, high) m/z window around a target."""
    if relative:
        delta = abs(target_mz) * tolerance / PPM
    else:
        delta = tolerance
    return target_mz - delta, target_mz + delta


# =============================================================================
# Binary Search (Core Algorithm)
# =============================================================================

@numba.njit(cache=True)
def binary_search_mz_range(
    mz_array: np.ndarray,
    low_mz: float,
    high_mz: float,
) -> Tuple[int, int]:
    """Find the index range of peaks with low_mz <= m/z <= high_mz.

    Parameters
    ----------
    mz_array : np.ndarray
        Sorted array of m/z values
        CRITICAL: Must be sorted ascending! No validation for speed.
    low_mz, high_mz : float
        Inclusive window bounds

    Returns
    -------
    start_idx : int
        Start index (inclusive)
    end_idx : int
        End index (exclusive, Python convention)

    Examples
    --------
    >>> mz_array = np.array([100.0, 200.0, 200.1, 300.0])
    >>> start, end = binary_search_mz_range(mz_array, 199.95, 200.15)
    >>> # Returns (1, 3)
    """
    n = len(mz_array)
    if n == 0 or high_mz < low_mz:
        return 0, 0

    # Lower bound: first m/z >= low_mz
    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if mz_array[mid] < low_mz:
            left = mid + 1
        else:
            right = mid
    start_idx = left

    # Upper bound: first m/z > high_mz
    left, right = start_idx, n
    while left < right:
        mid = (left + right) // 2
        if mz_array[mid] <= high_mz:
            left = mid + 1
        else:
            right = mid

    return start_idx, left


# =============================================================================
# Matched Intensity
# =============================================================================

@numba.njit(cache=True)
def sum_matched_intensity(
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    target_mz: float,
    tolerance: float,
    relative: bool = True,
) -> float:
    """Sum intensities of all peaks within tolerance of target_mz.

    Parameters
    ----------
    spectrum_mz : np.ndarray
        Observed m/z values (MUST be sorted!)
    spectrum_intensity : np.ndarray
        Observed intensities (parallel to spectrum_mz)
    target_mz : float
        Reference fragment m/z
    tolerance : float
        Tolerance value (ppm when relative, Da otherwise)
    relative : bool
        Tolerance unit flag

    Returns
    -------
    intensity : float
        Summed intensity, 0.0 when nothing matches

    Notes
    -----
    - Every peak inside the window is counted (no closest-peak selection)
    - Non-positive and NaN intensities are skipped
    - The matched set only grows when the tolerance widens
    """
    if relative and target_mz <= 0.0:
        return 0.0

    low_mz, high_mz = mass_window(target_mz, tolerance, relative)
    start, end = binary_search_mz_range(spectrum_mz, low_mz, high_mz)

    total = 0.0
    for i in range(start, end):
        intensity = spectrum_intensity[i]
        if intensity > 0.0:
            total += intensity
    return total


@numba.njit(cache=True, nogil=True)
def match_targets_to_spectrum(
    target_mz: np.ndarray,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    tolerance: float,
    relative: bool = True,
) -> np.ndarray:
    """Matched intensity for every target m/z (vectorized peak matcher).

    Parameters
    ----------
    target_mz : np.ndarray
        Reference fragment m/z values (any order)
    spectrum_mz, spectrum_intensity : np.ndarray
        Observed peaks, sorted by m/z
    tolerance : float
        Tolerance value
    relative : bool
        True for ppm, False for Da

    Returns
    -------
    matched : np.ndarray (float64)
        matched[i] = summed intensity of peaks within tolerance of target_mz[i]
    """
    n_targets = len(target_mz)
    matched = np.zeros(n_targets, dtype=np.float64)
    for i in range(n_targets):
        matched[i] = sum_matched_intensity(
            spectrum_mz, spectrum_intensity, target_mz[i], tolerance, relative
        )
    return matched


def matched_intensity(
    target_mz: float,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    tolerance: MassTolerance,
) -> float:
    """Python-level wrapper of :func:`sum_matched_intensity`.

    Examples
    --------
    >>> mz = np.array([499.995, 500.0, 500.004])
    >>> intensity = np.array([10.0, 20.0, 30.0])
    >>> matched_intensity(500.0, mz, intensity, MassTolerance.ppm(20))
    60.0
    """
    return float(sum_matched_intensity(
        np.asarray(spectrum_mz, dtype=np.float64),
        np.asarray(spectrum_intensity, dtype=np.float64),
        float(target_mz),
        tolerance.value,
        tolerance.is_relative,
    ))
