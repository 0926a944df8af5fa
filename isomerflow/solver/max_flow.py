"""Max-flow style non-negative mixture solver.

Decomposes a mixed fragment-intensity vector into non-negative multiples of
per-isomer unit vectors:

    mixed ≈ Σ_i c_i · unit_i,   c_i >= 0

Positional isomers often share most of their fragments, so the unit vectors
can be nearly collinear. The solver never inverts the unit matrix; it pushes
(or pulls back) flow through one isomer at a time:

1. For every isomer, evaluate the squared-error gain of adding `step` to its
   coefficient, and of removing up to `step` (never below zero)
2. Apply the single best move; double the step after a successful move
3. When no move improves the fit, halve the step
4. Stop when the step falls below `convergence × initial step` or the
   iteration budget runs out

Whatever positive residual remains is the underflow: mixed intensity that no
non-negative combination of candidates explains.

Performance
-----------
O(n_iterations × n_isomers × n_fragments); typically a few hundred
iterations for 2-6 isomers with 5-10 fragments each.
"""

from dataclasses import dataclass

import numpy as np
from numba import njit

from ..constants import (
    DEFAULT_CONVERGENCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MIN_STEP,
    DEFAULT_STEP_DIVISOR,
)


@njit(cache=True, nogil=True)
def solve_max_flow(
    unit_matrix: np.ndarray,
    mixed: np.ndarray,
    step_size: float,
    max_iterations: int = 10000,
    convergence: float = 1e-6,
):
    """Greedy non-negative decomposition of a mixed vector.

    Parameters
    ----------
    unit_matrix : np.ndarray (float64)
        Shape (n_isomers, n_fragments); row i is the unit vector of isomer i
    mixed : np.ndarray (float64)
        Shape (n_fragments,); observed (matched) intensity per fragment
    step_size : float
        Initial coefficient step; non-positive values fall back to 1.0
    max_iterations : int
        Iteration budget
    convergence : float
        Relative step floor (stop when step < convergence × step_size)

    Returns
    -------
    coefficients : np.ndarray (float64)
        Non-negative coefficient per isomer (the "fit magnitude")
    underflow : float
        Sum of the positive residual after fitting
    n_iterations : int
        Iterations used

    Examples
    --------
    >>> unit = np.array([[0.5, 0.5, 0.0], [0.0, 0.5, 0.5]])
    >>> mixed = np.array([100.0, 300.0, 200.0])
    >>> coefficients, underflow, _ = solve_max_flow(unit, mixed, 1.0)
    >>> # coefficients ≈ [200, 400], underflow ≈ 0
    """
    n_isomers = unit_matrix.shape[0]
    n_dims = unit_matrix.shape[1]

    coefficients = np.zeros(n_isomers, dtype=np.float64)
    residual = mixed.astype(np.float64).copy()

    # Squared norms of the unit vectors
    norms = np.zeros(n_isomers, dtype=np.float64)
    for i in range(n_isomers):
        for j in range(n_dims):
            norms[i] += unit_matrix[i, j] * unit_matrix[i, j]

    if step_size > 0.0:
        step = step_size
    else:
        step = 1.0
    min_step = convergence * step

    n_iterations = 0
    while n_iterations < max_iterations and step >= min_step:
        n_iterations += 1

        best_gain = 0.0
        best_isomer = -1
        best_move = 0.0

        for i in range(n_isomers):
            if norms[i] <= 0.0:
                continue

            projection = 0.0
            for j in range(n_dims):
                projection += unit_matrix[i, j] * residual[j]

            # Push: |r - s·u|² = |r|² - 2s(u·r) + s²|u|²
            gain = 2.0 * step * projection - step * step * norms[i]
            if gain > best_gain:
                best_gain = gain
                best_isomer = i
                best_move = step

            # Pull back, never below zero
            pull = min(step, coefficients[i])
            if pull > 0.0:
                gain = -2.0 * pull * projection - pull * pull * norms[i]
                if gain > best_gain:
                    best_gain = gain
                    best_isomer = i
                    best_move = -pull

        if best_isomer < 0:
            step *= 0.5
            continue

        coefficients[best_isomer] += best_move
        if coefficients[best_isomer] < 0.0:
            coefficients[best_isomer] = 0.0
        for j in range(n_dims):
            residual[j] -= best_move * unit_matrix[best_isomer, j]
        step *= 2.0

    underflow = 0.0
    for j in range(n_dims):
        if residual[j] > 0.0:
            underflow += residual[j]

    return coefficients, underflow, n_iterations


def compute_step_size(
    intensity_in_trap: float,
    divisor: float = DEFAULT_STEP_DIVISOR,
    min_step: float = DEFAULT_MIN_STEP,
) -> float:
    """Solver step derived from the precursor intensity in the trap.

    step = intensity_in_trap / divisor, floored at min_step.

    Examples
    --------
    >>> compute_step_size(2.5e6)
    2500.0
    >>> compute_step_size(300.0)
    1.0
    """
    if not np.isfinite(intensity_in_trap):
        return min_step
    return max(intensity_in_trap / divisor, min_step)


def coefficients_to_ratios(
    coefficients: np.ndarray,
    underflow: float,
    sum_of_intensities: float,
) -> np.ndarray:
    """Normalize raw fit magnitudes into per-isomer ratios.

    ratio_i = c_i / (Σ c + underflow / Σ mixed)

    The underflow term shrinks every ratio when much of the signal is left
    unexplained, so ratios sum to less than one on poor fits.
    """
    coefficients = np.asarray(coefficients, dtype=np.float64)
    normalizer = coefficients.sum()
    if sum_of_intensities > 0:
        normalizer += underflow / sum_of_intensities
    if not normalizer > 0:
        return np.zeros_like(coefficients)
    return coefficients / normalizer


@dataclass
class MixtureSolution:
    """Outcome of one mixture solve.

    Attributes
    ----------
    coefficients : np.ndarray
        Raw fit magnitude per isomer (>= 0)
    ratios : np.ndarray
        Normalized ratios per isomer, each in [0, 1]
    underflow : float
        Unexplained positive residual
    percent_error : float
        underflow / Σ mixed; 1.0 when nothing could be solved
    n_iterations : int
        Solver iterations used
    """
    coefficients: np.ndarray
    ratios: np.ndarray
    underflow: float
    percent_error: float
    n_iterations: int = 0

    @classmethod
    def failed(cls, n_isomers: int = 0) -> 'MixtureSolution':
        """Total failure: no coefficients, percent error 1.0."""
        return cls(
            coefficients=np.zeros(n_isomers, dtype=np.float64),
            ratios=np.zeros(n_isomers, dtype=np.float64),
            underflow=0.0,
            percent_error=1.0,
        )

    @property
    def explained(self) -> float:
        """Sum of fit magnitudes."""
        return float(self.coefficients.sum())

    def is_usable(self, max_percent_error: float) -> bool:
        """False for an unreliable scan (percent error at or above the threshold)."""
        return self.percent_error < max_percent_error


def solve_mixture(
    unit_matrix: np.ndarray,
    mixed: np.ndarray,
    step_size: float = DEFAULT_MIN_STEP,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    convergence: float = DEFAULT_CONVERGENCE,
) -> MixtureSolution:
    """Solve one mixed vector and post-process into ratios and percent error.

    A mixture with no candidate isomers, or with no positive matched
    intensity, is reported as a total failure (percent error 1.0) rather
    than raised.

    Examples
    --------
    >>> unit = np.array([[0.25, 0.25, 0.5]])
    >>> solution = solve_mixture(unit, 1000.0 * unit[0])
    >>> solution.ratios   # ≈ [1.0]
    >>> solution.percent_error  # ≈ 0.0
    """
    unit_matrix = np.atleast_2d(np.asarray(unit_matrix, dtype=np.float64))
    mixed = np.asarray(mixed, dtype=np.float64)
    n_isomers = unit_matrix.shape[0] if unit_matrix.size else 0

    sum_of_intensities = float(mixed.sum()) if mixed.size else 0.0
    if n_isomers == 0 or not sum_of_intensities > 0 or not np.isfinite(sum_of_intensities):
        return MixtureSolution.failed(n_isomers)

    coefficients, underflow, n_iterations = solve_max_flow(
        unit_matrix, mixed, float(step_size), int(max_iterations), float(convergence)
    )

    return MixtureSolution(
        coefficients=coefficients,
        ratios=coefficients_to_ratios(coefficients, underflow, sum_of_intensities),
        underflow=float(underflow),
        percent_error=float(underflow / sum_of_intensities),
        n_iterations=int(n_iterations),
    )
