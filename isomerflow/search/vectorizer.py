"""Intensity vectorizer: scan peaks + reference fingerprints → solver inputs.

For one configuration k, the fragment axis is the union of the candidate
isomers' reference fragment m/z values. Each scan is turned into:

- a mixed vector: matched observed intensity per fragment m/z
  (peak matcher, every peak within tolerance summed)
- a unit matrix: one row per isomer holding its reference intensities on the
  shared axis, rescaled by the isomer's normalization curve at the scan's
  precursor intensity in the trap

Examples
--------
>>> vectorizer = IntensityVectorizer(
...     [isomer.fragments(5) for isomer in candidates],
...     MassTolerance.ppm(20),
... )
>>> mixed, unit_matrix = vectorizer.vectorize(scan, intensity_in_trap=2.5e6)
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from ..isomers import ReferenceFragmentSet, Scan
from .peak_matching import MassTolerance, match_targets_to_spectrum


def union_fragment_mz(fragment_sets: Sequence[ReferenceFragmentSet]) -> np.ndarray:
    """Sorted unique fragment m/z values over all sets."""
    if not fragment_sets:
        return np.zeros(0, dtype=np.float64)
    return np.unique(np.concatenate([fs.fragment_mz for fs in fragment_sets]))


def build_mixed_vector(
    fragment_mz: np.ndarray,
    scan: Scan,
    tolerance: MassTolerance,
) -> np.ndarray:
    """Matched scan intensity for every fragment m/z on the axis."""
    return match_targets_to_spectrum(
        fragment_mz, scan.mz, scan.intensity, tolerance.value, tolerance.is_relative
    )


def build_unit_matrix(
    fragment_sets: Sequence[ReferenceFragmentSet],
    fragment_mz: np.ndarray,
    intensity_in_trap: Optional[float] = 0.0,
) -> np.ndarray:
    """Reference intensities of each set placed on the shared fragment axis.

    Rows are rescaled by each set's normalization curve at intensity_in_trap;
    None places the raw reference intensities.

    Returns
    -------
    unit_matrix : np.ndarray
        Shape (n_sets, n_fragments); row order follows fragment_sets
    """
    unit_matrix = np.zeros((len(fragment_sets), fragment_mz.size), dtype=np.float64)
    for row, fragment_set in enumerate(fragment_sets):
        columns = np.searchsorted(fragment_mz, fragment_set.fragment_mz)
        if intensity_in_trap is None:
            values = fragment_set.intensity
        else:
            values = fragment_set.unit_vector(intensity_in_trap)
        np.add.at(unit_matrix[row], columns, values)
    return unit_matrix


class IntensityVectorizer:
    """Vectorizes scans against a fixed set of reference fingerprints.

    The fragment axis and the unscaled unit matrix are computed once; only
    sets with a normalization curve are rebuilt per scan.
    """

    def __init__(
        self,
        fragment_sets: Sequence[ReferenceFragmentSet],
        tolerance: MassTolerance,
    ):
        self.fragment_sets = list(fragment_sets)
        self.tolerance = tolerance
        self.fragment_mz = union_fragment_mz(self.fragment_sets)
        self._static_matrix = build_unit_matrix(self.fragment_sets, self.fragment_mz, None)
        self._scaled_rows = [
            row for row, fs in enumerate(self.fragment_sets) if fs.normalizer is not None
        ]

    @property
    def n_isomers(self) -> int:
        return len(self.fragment_sets)

    @property
    def n_fragments(self) -> int:
        return int(self.fragment_mz.size)

    def mixed_vector(self, scan: Scan) -> np.ndarray:
        return build_mixed_vector(self.fragment_mz, scan, self.tolerance)

    def unit_matrix(self, intensity_in_trap: float = 0.0) -> np.ndarray:
        if not self._scaled_rows:
            return self._static_matrix
        matrix = self._static_matrix.copy()
        for row in self._scaled_rows:
            matrix[row] *= self.fragment_sets[row].scale_factor(intensity_in_trap)
        return matrix

    def vectorize(self, scan: Scan, intensity_in_trap: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        """Return (mixed vector, unit matrix) for one scan."""
        return self.mixed_vector(scan), self.unit_matrix(intensity_in_trap)
