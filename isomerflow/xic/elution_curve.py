"""Elution curves: time-ordered abundance samples with interpolation and area.

An ElutionCurve collects (time, value) points in any order. On first query
the points are sorted by time and exact duplicate times are collapsed to
their mean, after which the curve can be:

- interpolated (piecewise-linear between samples, nearest endpoint outside
  the sampled range, 0.0 when empty)
- integrated over a local window (e.g. one injection period)
- summarized by a scalar area: least-squares quadratic fit when at least
  three distinct times exist and the fit is well-conditioned, piecewise-linear
  (trapezoidal) integration otherwise

Times are milliseconds throughout isomerflow; the module itself is unit
agnostic.

Example
-------
>>> curve = ElutionCurve()
>>> for t, v in [(0.0, 0.0), (1000.0, 50.0), (2000.0, 0.0)]:
...     curve.add_point(t, v)
>>> curve.interpolate(500.0)
25.0
>>> curve.compute()  # quadratic through the three samples
"""

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
from numba import njit
from numpy.polynomial import Polynomial

from ..constants import CURVE_POLYNOMIAL_DEGREE, MAX_FIT_CONDITION


# ========== Numba utilities ==========

@njit(cache=True)
def _sort_by_x(x, y):
    """Sort (x, y) pairs by x (stable, keeps insertion order of ties)."""
    idx = np.argsort(x, kind='mergesort')
    return x[idx], y[idx]


@njit(cache=True)
def _dedup_mean_sorted(x, y):
    """
    Collapse runs of identical x, using MEAN of y.

    x must be sorted.
    """
    n = x.size
    gx = np.empty(n, dtype=np.float64)
    gy = np.empty(n, dtype=np.float64)
    if n == 0:
        return gx, gy

    gcount = 0

    run_x = x[0]
    run_sum_y = y[0]
    run_cnt = 1

    for i in range(1, n):
        if x[i] == run_x:
            run_sum_y += y[i]
            run_cnt += 1
        else:
            gx[gcount] = run_x
            gy[gcount] = run_sum_y / run_cnt
            gcount += 1
            run_x = x[i]
            run_sum_y = y[i]
            run_cnt = 1

    # Flush last run
    gx[gcount] = run_x
    gy[gcount] = run_sum_y / run_cnt
    gcount += 1

    return gx[:gcount], gy[:gcount]


@njit(cache=True, nogil=True)
def _interpolate_linear(x, y, z):
    """
    Piecewise-linear interpolation at z.

    x strictly increasing. Outside [x[0], x[-1]] the nearest endpoint value
    is returned; an empty curve yields 0.0.
    """
    n = x.size
    if n == 0:
        return 0.0
    if z <= x[0]:
        return y[0]
    if z >= x[n-1]:
        return y[n-1]

    # Invariant: x[lo] <= z < x[hi]
    lo = 0
    hi = n - 1
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if x[mid] <= z:
            lo = mid
        else:
            hi = mid

    frac = (z - x[lo]) / (x[hi] - x[lo])
    return y[lo] + frac * (y[hi] - y[lo])


@njit(cache=True)
def _interpolate_many(x, y, z):
    out = np.empty(z.size, dtype=np.float64)
    for i in range(z.size):
        out[i] = _interpolate_linear(x, y, z[i])
    return out


@njit(cache=True)
def _trapezoid_area(x, y):
    """Trapezoidal area under the sampled points."""
    total = 0.0
    for i in range(x.size - 1):
        total += 0.5 * (y[i] + y[i+1]) * (x[i+1] - x[i])
    return total


@njit(cache=True, nogil=True)
def _local_area(x, y, start, stop):
    """
    Area of the piecewise-linear (endpoint-clamped) curve over [start, stop].

    Returns 0.0 for an empty curve or an empty window.
    """
    if x.size == 0 or not stop > start:
        return 0.0

    total = 0.0
    prev_t = start
    prev_v = _interpolate_linear(x, y, start)
    for i in range(x.size):
        if x[i] <= start:
            continue
        if x[i] >= stop:
            break
        total += 0.5 * (prev_v + y[i]) * (x[i] - prev_t)
        prev_t = x[i]
        prev_v = y[i]

    total += 0.5 * (prev_v + _interpolate_linear(x, y, stop)) * (stop - prev_t)
    return total


def _fit_polynomial(
    x: np.ndarray,
    y: np.ndarray,
    degree: int = CURVE_POLYNOMIAL_DEGREE,
) -> Optional[Tuple[np.ndarray, float]]:
    """Least-squares polynomial fit and its area over [x[0], x[-1]].

    The fit runs on times mapped to [-1, 1]; a fit whose scaled Vandermonde
    matrix is ill-conditioned is rejected.

    Returns
    -------
    (coefficients, area) or None
        coefficients are in raw time units, highest degree first
    """
    if x.size < degree + 1:
        return None
    span = x[-1] - x[0]
    if not span > 0:
        return None

    scaled = (2.0 * x - (x[0] + x[-1])) / span
    if np.linalg.cond(np.vander(scaled, degree + 1)) > MAX_FIT_CONDITION:
        return None

    poly = Polynomial.fit(x, y, degree)

    # Integrate in window coordinates: dt = span / 2 * dx
    antiderivative = Polynomial(poly.coef).integ()
    area = float(antiderivative(1.0) - antiderivative(-1.0)) * span / 2.0

    raw = poly.convert().coef
    coefficients = np.zeros(degree + 1, dtype=np.float64)
    coefficients[:raw.size] = raw
    return coefficients[::-1], area


# ========== Public API ==========

class ElutionCurve:
    """Abundance of one species over retention time.

    Points can be appended in any order; sorting, de-duplication and the
    area computation happen lazily and are invalidated by every new point.

    Attributes
    ----------
    coefficients : np.ndarray or None
        Quadratic fit coefficients (a, b, c for a*t^2 + b*t + c) after
        :meth:`compute`, None when the area came from trapezoidal integration
    """

    def __init__(
        self,
        times: Optional[Iterable[float]] = None,
        values: Optional[Iterable[float]] = None,
    ):
        self._raw_times = [] if times is None else [float(t) for t in times]
        self._raw_values = [] if values is None else [float(v) for v in values]
        if len(self._raw_times) != len(self._raw_values):
            raise ValueError(
                f"times and values differ in length: "
                f"{len(self._raw_times)} != {len(self._raw_values)}"
            )
        self._sorted = None
        self._area = None
        self.coefficients = None

    def __len__(self) -> int:
        return len(self._raw_times)

    def __repr__(self) -> str:
        area = "pending" if self._area is None else f"{self._area:.4g}"
        return f"ElutionCurve(n_points={len(self)}, area={area})"

    def __call__(self, time: float) -> float:
        return self.interpolate(time)

    def add_point(self, time: float, value: float) -> None:
        """Append one sample."""
        self._raw_times.append(float(time))
        self._raw_values.append(float(value))
        self._sorted = None
        self._area = None
        self.coefficients = None

    def _arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        if self._sorted is None:
            x = np.asarray(self._raw_times, dtype=np.float64)
            y = np.asarray(self._raw_values, dtype=np.float64)
            x, y = _sort_by_x(x, y)
            self._sorted = _dedup_mean_sorted(x, y)
        return self._sorted

    @property
    def times(self) -> np.ndarray:
        """Sorted, de-duplicated sample times."""
        return self._arrays()[0]

    @property
    def values(self) -> np.ndarray:
        """Sample values aligned with :attr:`times`."""
        return self._arrays()[1]

    @property
    def is_empty(self) -> bool:
        return len(self._raw_times) == 0

    def interpolate(self, time: float) -> float:
        """Curve value at time (linear inside, nearest endpoint outside)."""
        x, y = self._arrays()
        return float(_interpolate_linear(x, y, float(time)))

    def interpolate_many(self, times: Sequence[float]) -> np.ndarray:
        x, y = self._arrays()
        return _interpolate_many(x, y, np.asarray(times, dtype=np.float64))

    def local_area(self, start: float, stop: float) -> float:
        """Area under the piecewise-linear curve between start and stop."""
        x, y = self._arrays()
        return float(_local_area(x, y, float(start), float(stop)))

    def compute(self) -> float:
        """Fit the curve and store its area.

        Quadratic least squares when >= 3 distinct times give a
        well-conditioned fit with a non-negative finite area; trapezoidal
        integration between samples otherwise.
        """
        x, y = self._arrays()
        self.coefficients = None
        if x.size == 0:
            self._area = 0.0
            return self._area

        fit = _fit_polynomial(x, y)
        if fit is not None and np.isfinite(fit[1]) and fit[1] >= 0.0:
            self.coefficients, self._area = fit
        else:
            self._area = float(_trapezoid_area(x, y))
        return self._area

    @property
    def area(self) -> float:
        """Total abundance (computed on first access)."""
        if self._area is None:
            self.compute()
        return self._area

    @classmethod
    def weighted_sum(
        cls,
        curves: Sequence[Optional['ElutionCurve']],
        weights: Sequence[float],
    ) -> 'ElutionCurve':
        """Weighted combination of curves.

        The result is sampled at the union of all input sample times; a None
        entry contributes zero. Its area is the weighted sum of the input
        areas, not a refit.
        """
        present = [(c, w) for c, w in zip(curves, weights) if c is not None and not c.is_empty]
        if not present:
            merged = cls()
            merged._area = 0.0
            return merged

        times = np.unique(np.concatenate([c.times for c, _ in present]))
        values = np.zeros(times.size, dtype=np.float64)
        area = 0.0
        for curve, weight in present:
            values += weight * curve.interpolate_many(times)
            area += weight * curve.area

        merged = cls(times, values)
        merged._area = float(area)
        return merged
