"""Merge of configuration results into final per-isomer curves.

Each retained configuration k contributes with weight

    w_k = (1 / e_k) / Σ_j (1 / e_j)

where e_k is its cumulative residual (floored at MIN_MERGE_ERROR), so a
configuration that leaves more signal unexplained has less influence. The
weights are convex, hence a merged area never exceeds the largest input
area. An isomer missing from a configuration contributes zero for it.

Configurations are merged in increasing k, so the result does not depend
on the order in which configurations were computed.
"""

from collections.abc import Mapping
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from ..constants import MIN_MERGE_ERROR
from ..xic.elution_curve import ElutionCurve
from .configuration import ConfigurationResult, IsomerCurves


def configuration_weights(errors: Sequence[float]) -> np.ndarray:
    """Convex inverse-error weights.

    Examples
    --------
    >>> configuration_weights([0.1, 0.3])
    array([0.75, 0.25])
    """
    errors = np.asarray(errors, dtype=np.float64)
    if errors.size == 0:
        return errors
    errors = np.where(np.isfinite(errors), errors, np.inf)
    inverse = 1.0 / np.maximum(errors, MIN_MERGE_ERROR)
    total = inverse.sum()
    if not total > 0:
        return np.full(errors.size, 1.0 / errors.size)
    return inverse / total


class FinalRatios(Mapping):
    """Merged curves per isomer label for one mixed precursor.

    Behaves as a read-only mapping label → IsomerCurves holding only isomers
    with positive merged area. An empty FinalRatios (falsy) means no isomer
    could be reported. :meth:`curves_for` returns zero-valued curves for
    isomers that were not reported.
    """

    def __init__(self, curves: Optional[Dict[str, IsomerCurves]] = None):
        self._curves = dict(curves or {})

    def __getitem__(self, label: str) -> IsomerCurves:
        return self._curves[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._curves)

    def __len__(self) -> int:
        return len(self._curves)

    def __repr__(self) -> str:
        areas = ", ".join(f"{label}: {area:.4g}" for label, area in self.areas().items())
        return f"FinalRatios({{{areas}}})"

    def curves_for(self, label: str) -> IsomerCurves:
        """Curves of an isomer; empty (zero) curves when not reported."""
        curves = self._curves.get(label)
        if curves is None:
            curves = IsomerCurves()
            curves.compute()
        return curves

    def areas(self) -> Dict[str, float]:
        """Merged rate-curve area per isomer."""
        return {label: curves.area for label, curves in self._curves.items()}

    def count_areas(self) -> Dict[str, float]:
        """Merged count-curve area per isomer."""
        return {label: curves.count_area for label, curves in self._curves.items()}

    def tabulate(self, times: Sequence[float]) -> Dict[str, object]:
        """Evaluate every reported curve at the given times.

        Returns
        -------
        dict
            {"time": array, "rate": {label: array}, "count": {label: array}}
        """
        times = np.asarray(times, dtype=np.float64)
        return {
            "time": times,
            "rate": {label: c.rate.interpolate_many(times) for label, c in self._curves.items()},
            "count": {label: c.count.interpolate_many(times) for label, c in self._curves.items()},
        }


def merge_configurations(results: Sequence[ConfigurationResult]) -> FinalRatios:
    """Combine retained configurations into FinalRatios.

    Non-retained results are ignored; no retained result gives an empty
    FinalRatios.
    """
    retained = sorted((r for r in results if r.retained), key=lambda r: r.n_fragments)
    if not retained:
        return FinalRatios()

    weights = configuration_weights([r.cumulative_error for r in retained])

    labels: List[str] = []
    for result in retained:
        for label in result.curves:
            if label not in labels:
                labels.append(label)

    merged = {}
    for label in labels:
        per_config = [result.curves.get(label) for result in retained]
        curves = IsomerCurves(
            rate=ElutionCurve.weighted_sum(
                [None if c is None else c.rate for c in per_config], weights
            ),
            count=ElutionCurve.weighted_sum(
                [None if c is None else c.count for c in per_config], weights
            ),
        )
        if curves.area > 0:
            merged[label] = curves

    return FinalRatios(merged)
