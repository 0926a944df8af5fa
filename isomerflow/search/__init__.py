"""Peak matching and intensity vectorization.

Core algorithms:
1. Binary search on m/z-sorted peaks (O(log n))
2. Tolerance window matching in ppm or Da, summing every peak in the window
3. Projection of scans and reference fingerprints onto a shared fragment axis
"""

from .peak_matching import (
    ToleranceUnit,
    MassTolerance,
    calculate_mass_error,
    mass_window,
    binary_search_mz_range,
    sum_matched_intensity,
    match_targets_to_spectrum,
    matched_intensity,
)

from .vectorizer import (
    union_fragment_mz,
    build_mixed_vector,
    build_unit_matrix,
    IntensityVectorizer,
)

__all__ = [
    # Peak matching
    'ToleranceUnit',
    'MassTolerance',
    'calculate_mass_error',
    'mass_window',
    'binary_search_mz_range',
    'sum_matched_intensity',
    'match_targets_to_spectrum',
    'matched_intensity',
    # Vectorization
    'union_fragment_mz',
    'build_mixed_vector',
    'build_unit_matrix',
    'IntensityVectorizer',
]
