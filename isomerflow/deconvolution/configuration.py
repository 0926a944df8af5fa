"""Per-configuration processing: solve every scan, accumulate elution curves.

For one mixed precursor and one fragment-count configuration k:

1. All candidate isomers must be valid for k, otherwise the configuration
   is UNMATCHED and skipped
2. Scans are solved in retention-time order; a scan whose percent error
   reaches max_percent_error is ignored
3. As soon as more than half of the scans are ignored, processing stops
   (NOISY)
4. Otherwise each isomer gets two curves:
   - rate:  fit magnitude / injection time
   - count: ratio × mixed precursor intensity at the scan time
   which are fitted; isomers with zero rate area are dropped

All counters live in the returned ConfigurationResult, so configurations can
be processed independently (and concurrently).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from ..isomers import CharacterizedIsomer, MixedSignal, Scan
from ..search.vectorizer import IntensityVectorizer
from ..solver.max_flow import MixtureSolution, compute_step_size, solve_mixture
from ..xic.elution_curve import ElutionCurve
from .params import DeconvolutionParams

logger = logging.getLogger(__name__)


class ConfigurationStatus(Enum):
    """Outcome of one configuration."""
    RETAINED = "retained"    # usable, at least one isomer with positive area
    UNMATCHED = "unmatched"  # some candidate has no valid fingerprint for k
    NOISY = "noisy"          # aborted: more than half of the scans ignored
    REJECTED = "rejected"    # finished, but not more than half of the scans usable
    EMPTY = "empty"          # usable, but no isomer reached positive area


@dataclass
class IsomerCurves:
    """Rate and count elution curves of one isomer."""
    rate: ElutionCurve = field(default_factory=ElutionCurve)
    count: ElutionCurve = field(default_factory=ElutionCurve)

    def compute(self) -> None:
        self.rate.compute()
        self.count.compute()

    @property
    def area(self) -> float:
        """Area of the rate curve (abundance summary)."""
        return self.rate.area

    @property
    def count_area(self) -> float:
        return self.count.area


@dataclass
class ConfigurationResult:
    """Curves and diagnostics of one configuration k.

    Attributes
    ----------
    n_fragments : int
        Configuration k
    status : ConfigurationStatus
    curves : dict
        Isomer label → IsomerCurves (only isomers with positive area, and
        only for RETAINED configurations)
    cumulative_error : float
        Sum of per-scan underflows over all processed scans
    n_scans : int
        Scans in the series
    n_ignored : int
        Scans ignored for excessive percent error
    percent_errors : list of float
        Percent error of every processed scan, in processing order
    """
    n_fragments: int
    status: ConfigurationStatus
    curves: Dict[str, IsomerCurves] = field(default_factory=dict)
    cumulative_error: float = 0.0
    n_scans: int = 0
    n_ignored: int = 0
    percent_errors: List[float] = field(default_factory=list)

    @property
    def retained(self) -> bool:
        return self.status is ConfigurationStatus.RETAINED

    @property
    def aborted(self) -> bool:
        return self.status is ConfigurationStatus.NOISY

    @property
    def n_processed(self) -> int:
        return len(self.percent_errors)


def should_abort(n_ignored: int, n_scans: int) -> bool:
    """More than half of the scans ignored."""
    return n_ignored * 2 > n_scans


def is_retainable(n_ignored: int, n_scans: int) -> bool:
    """More than half of the scans usable."""
    return n_ignored * 2 < n_scans


def solve_scan(
    scan: Scan,
    vectorizer: IntensityVectorizer,
    intensity_in_trap: float,
    params: DeconvolutionParams,
) -> MixtureSolution:
    """Vectorize and solve one scan."""
    if vectorizer.n_isomers == 0:
        return MixtureSolution.failed()
    mixed, unit_matrix = vectorizer.vectorize(scan, intensity_in_trap)
    step = compute_step_size(intensity_in_trap, params.step_divisor, params.min_step)
    return solve_mixture(
        unit_matrix, mixed, step,
        max_iterations=params.max_iterations,
        convergence=params.convergence,
    )


def process_configuration(
    mixed: MixedSignal,
    candidates: Sequence[CharacterizedIsomer],
    n_fragments: int,
    params: DeconvolutionParams,
) -> ConfigurationResult:
    """Solve all scans of a mixed signal under configuration k.

    Parameters
    ----------
    mixed : MixedSignal
        Scans and aggregate curves of the mixed precursor
    candidates : sequence of CharacterizedIsomer
        Reference isomers matching the mixed precursor m/z
    n_fragments : int
        Configuration k
    params : DeconvolutionParams

    Returns
    -------
    ConfigurationResult
        Never raises for data problems; see ConfigurationStatus
    """
    n_scans = mixed.n_scans

    if not candidates or not all(isomer.is_valid(n_fragments) for isomer in candidates):
        logger.debug(f"k={n_fragments}: not every candidate isomer is valid, skipping")
        return ConfigurationResult(n_fragments, ConfigurationStatus.UNMATCHED, n_scans=n_scans)

    vectorizer = IntensityVectorizer(
        [isomer.fragments(n_fragments) for isomer in candidates],
        params.fragment_tolerance,
    )
    curves = {isomer.label: IsomerCurves() for isomer in candidates}

    cumulative_error = 0.0
    n_ignored = 0
    percent_errors = []

    for scan in mixed.scans:
        time_ms = scan.time_ms
        solution = solve_scan(scan, vectorizer, mixed.intensity_in_trap(scan), params)

        cumulative_error += solution.underflow
        percent_errors.append(solution.percent_error)

        if solution.is_usable(params.max_percent_error):
            mixed_intensity = mixed.intensity_at(time_ms)
            for i, isomer in enumerate(candidates):
                rate = (
                    solution.coefficients[i] / scan.injection_time
                    if scan.injection_time > 0 else 0.0
                )
                curves[isomer.label].rate.add_point(time_ms, rate)
                curves[isomer.label].count.add_point(time_ms, solution.ratios[i] * mixed_intensity)
        else:
            n_ignored += 1
            logger.debug(
                f"k={n_fragments}: ignoring scan at {scan.retention_time:.3f} min "
                f"(percent error {solution.percent_error:.3f})"
            )

        if should_abort(n_ignored, n_scans):
            break

    result = ConfigurationResult(
        n_fragments,
        ConfigurationStatus.NOISY,
        cumulative_error=cumulative_error,
        n_scans=n_scans,
        n_ignored=n_ignored,
        percent_errors=percent_errors,
    )

    if should_abort(n_ignored, n_scans):
        logger.debug(f"k={n_fragments}: aborted after {n_ignored} / {n_scans} ignored scans")
        return result
    if not is_retainable(n_ignored, n_scans):
        result.status = ConfigurationStatus.REJECTED
        return result

    if n_ignored > 0:
        logger.info(f"Ignored scans: {n_ignored} / {n_scans}")

    for isomer_curves in curves.values():
        isomer_curves.compute()
    result.curves = {label: c for label, c in curves.items() if c.area > 0}
    result.status = ConfigurationStatus.RETAINED if result.curves else ConfigurationStatus.EMPTY
    return result
