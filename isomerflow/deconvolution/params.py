"""Deconvolution settings."""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from ..constants import (
    DEFAULT_CONVERGENCE,
    DEFAULT_FRAGMENT_TOLERANCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_PERCENT_ERROR,
    DEFAULT_MIN_STEP,
    DEFAULT_NB_MAX_FRAGMENTS,
    DEFAULT_NB_MIN_FRAGMENTS,
    DEFAULT_PRECURSOR_TOLERANCE,
    DEFAULT_STEP_DIVISOR,
)
from ..search.peak_matching import MassTolerance


@dataclass
class DeconvolutionParams:
    """Parameters for positional isomer deconvolution.

    Attributes
    ----------
    nb_min_fragments, nb_max_fragments : int
        Range of fragment-count configurations k to sweep (inclusive)
    precursor_tolerance : MassTolerance
        Window for selecting reference isomers of a mixed precursor
    fragment_tolerance : MassTolerance
        Window for matching scan peaks to reference fragments
    max_percent_error : float
        Scans with percent error >= this are ignored
    step_divisor, min_step : float
        Solver step = max(intensity_in_trap / step_divisor, min_step)
    max_iterations : int
        Solver iteration budget per scan
    convergence : float
        Solver relative step floor
    """

    nb_min_fragments: int = DEFAULT_NB_MIN_FRAGMENTS
    nb_max_fragments: int = DEFAULT_NB_MAX_FRAGMENTS
    precursor_tolerance: MassTolerance = field(
        default_factory=lambda: MassTolerance.ppm(DEFAULT_PRECURSOR_TOLERANCE)
    )
    fragment_tolerance: MassTolerance = field(
        default_factory=lambda: MassTolerance.ppm(DEFAULT_FRAGMENT_TOLERANCE)
    )
    max_percent_error: float = DEFAULT_MAX_PERCENT_ERROR
    step_divisor: float = DEFAULT_STEP_DIVISOR
    min_step: float = DEFAULT_MIN_STEP
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    convergence: float = DEFAULT_CONVERGENCE

    def __post_init__(self):
        self.precursor_tolerance = _as_tolerance(self.precursor_tolerance)
        self.fragment_tolerance = _as_tolerance(self.fragment_tolerance)

        if self.nb_min_fragments < 1:
            raise ValueError(f"nb_min_fragments must be >= 1, got {self.nb_min_fragments}")
        if self.nb_min_fragments > self.nb_max_fragments:
            raise ValueError(
                f"nb_min_fragments ({self.nb_min_fragments}) > "
                f"nb_max_fragments ({self.nb_max_fragments})"
            )
        if not self.step_divisor > 0:
            raise ValueError(f"step_divisor must be positive, got {self.step_divisor}")
        if not self.min_step > 0:
            raise ValueError(f"min_step must be positive, got {self.min_step}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")

    @property
    def fragment_counts(self) -> range:
        """Configurations k to sweep, in increasing order."""
        return range(self.nb_min_fragments, self.nb_max_fragments + 1)

    @classmethod
    def from_dict(cls, settings: Mapping[str, Any]) -> 'DeconvolutionParams':
        """Build params from a plain mapping, ignoring None values.

        Tolerances may be given as MassTolerance, a number (ppm) or a
        (value, unit) pair. Unknown keys raise ValueError.

        Examples
        --------
        >>> DeconvolutionParams.from_dict({
        ...     "nb_min_fragments": 4,
        ...     "nb_max_fragments": 8,
        ...     "fragment_tolerance": (0.02, "Da"),
        ... })
        """
        known = {f.name for f in fields(cls)}
        unknown = set(settings) - known
        if unknown:
            raise ValueError(f"Unknown deconvolution settings: {sorted(unknown)}")
        return cls(**{key: value for key, value in settings.items() if value is not None})


def _as_tolerance(value) -> MassTolerance:
    if isinstance(value, MassTolerance):
        return value
    if isinstance(value, (tuple, list)):
        return MassTolerance(*value)
    return MassTolerance.ppm(float(value))
