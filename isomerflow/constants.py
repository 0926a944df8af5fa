"""Constants and default settings for positional isomer deconvolution.

This module collects the unit conversions, reference scales, default
tolerances and quality thresholds used throughout isomerflow. Defaults are
starting points for a typical Orbitrap run of synthetic + endogenous
peptides; every one of them can be overridden through
:class:`isomerflow.deconvolution.DeconvolutionParams`.

Key Features
------------
- Fragment fingerprints are normalized to REFERENCE_SCALE = 1.0, so solver
  coefficients come out in observed intensity units
- Time base conversions (minutes → milliseconds) shared by all curves
- Default tolerances for precursor (MS1) and fragment (MS2) matching
"""

# =============================================================================
# Units
# =============================================================================

# Parts per million
PPM = 1e6

# Retention times arrive in minutes, injection times in milliseconds.
# All elution curves are sampled in milliseconds.
MS_PER_MINUTE = 60.0 * 1000.0

# =============================================================================
# Reference Fingerprints
# =============================================================================

# Normalized fragment intensities of a ReferenceFragmentSet sum to this value.
# With 1.0, a solver coefficient equals the mixed intensity it explains.
REFERENCE_SCALE = 1.0

# Fragment-count configurations swept by default (top-N fragments per isomer)
DEFAULT_NB_MIN_FRAGMENTS = 5
DEFAULT_NB_MAX_FRAGMENTS = 5

# =============================================================================
# Default Tolerance Settings
# =============================================================================

# Precursor tolerance used to select candidate isomers for a mixed m/z
DEFAULT_PRECURSOR_TOLERANCE = 8.0  # ppm

# Fragment tolerance used by the peak matcher
DEFAULT_FRAGMENT_TOLERANCE = 20.0  # ppm

# =============================================================================
# Solver Settings
# =============================================================================

# Scans whose unexplained fraction reaches this value are ignored
DEFAULT_MAX_PERCENT_ERROR = 0.5

# step = intensity_in_trap / STEP_DIVISOR, floored at DEFAULT_MIN_STEP
DEFAULT_STEP_DIVISOR = 1000.0
DEFAULT_MIN_STEP = 1.0

# Iteration budget and relative step floor of the max-flow solver
DEFAULT_MAX_ITERATIONS = 10000
DEFAULT_CONVERGENCE = 1e-6

# =============================================================================
# Elution Curves
# =============================================================================

# Degree of the polynomial fitted to elution curves
CURVE_POLYNOMIAL_DEGREE = 2

# Fits whose (scaled) Vandermonde condition number exceeds this are rejected
# in favour of piecewise-linear integration
MAX_FIT_CONDITION = 1e8

# Floor applied to cumulative errors before inverse-error weighting
MIN_MERGE_ERROR = 1e-12
