"""Convenience wrapper functions for easy-to-use API.

This module provides wrappers that accept plain Python containers (dicts of
fragment m/z → intensity, lists of (m/z, intensity) peaks, lists of scan
tuples) and build the isomerflow data model behind the scenes.

Use these functions for notebooks and quick checks. Pipelines that already
hold Scan / CharacterizedIsomer objects should call
:mod:`isomerflow.deconvolution` directly.

Examples
--------
>>> # Ratios of two isomers in a single spectrum
>>> ratios = solve_spectrum(
...     {"iso_a": {300.1: 2.0, 450.2: 1.0}, "iso_b": {300.1: 1.0, 520.3: 2.0}},
...     peaks=[(300.1, 300.0), (450.2, 100.0), (520.3, 400.0)],
... )

>>> # Areas from a whole elution profile
>>> areas = deconvolute_scans(
...     mixed_mz=612.3,
...     scans=[(30.1, 50.0, 2e6, peaks_1), (30.2, 50.0, 4e6, peaks_2), ...],
...     isomers=[isomer_a, isomer_b],
... )
"""

from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .deconvolution import DeconvolutionParams, deconvolute
from .isomers import CharacterizedIsomer, MixedSignal, ReferenceFragmentSet, Scan
from .search.peak_matching import MassTolerance
from .search.vectorizer import IntensityVectorizer
from .solver.max_flow import compute_step_size, solve_mixture


PeakList = Iterable[Tuple[float, float]]


def make_scan(
    retention_time: float,
    peaks: PeakList,
    injection_time: float = 1.0,
    precursor_intensity: float = 0.0,
    precursor_intensity_per_ms: Optional[float] = None,
) -> Scan:
    """Build a Scan from (m/z, intensity) pairs.

    Parameters
    ----------
    retention_time : float
        Minutes
    peaks : iterable of (float, float)
        Fragment peaks in any order
    injection_time : float
        Milliseconds
    precursor_intensity : float
        Precursor intensity
    precursor_intensity_per_ms : float, optional
        Defaults to precursor_intensity / injection_time
    """
    return Scan.from_peaks(
        peaks,
        retention_time=retention_time,
        injection_time=injection_time,
        precursor_intensity=precursor_intensity,
        precursor_intensity_per_ms=precursor_intensity_per_ms,
    )


def solve_spectrum(
    fingerprints: Mapping[str, Mapping[float, float]],
    peaks: PeakList,
    tolerance_ppm: float = 20.0,
    intensity_in_trap: float = 0.0,
) -> Dict[str, float]:
    """Isomer ratios for a single spectrum.

    Parameters
    ----------
    fingerprints : mapping
        label → {fragment m/z: reference intensity}
    peaks : iterable of (float, float)
        Observed (m/z, intensity) peaks
    tolerance_ppm : float
        Fragment tolerance
    intensity_in_trap : float
        Used for the solver step size

    Returns
    -------
    dict
        label → ratio (all zeros when nothing could be explained)

    Examples
    --------
    >>> solve_spectrum({"a": {100.0: 1.0, 200.0: 1.0}}, [(100.0, 50.0), (200.0, 50.0)])
    {'a': 1.0}   # up to solver precision
    """
    labels = list(fingerprints)
    fragment_sets = [
        ReferenceFragmentSet.from_fragments(list(fp.keys()), list(fp.values()))
        for fp in fingerprints.values()
    ]
    scan = make_scan(0.0, peaks)
    vectorizer = IntensityVectorizer(fragment_sets, MassTolerance.ppm(tolerance_ppm))
    mixed, unit_matrix = vectorizer.vectorize(scan, intensity_in_trap)
    solution = solve_mixture(unit_matrix, mixed, compute_step_size(intensity_in_trap))
    if solution.ratios.size != len(labels):
        return {label: 0.0 for label in labels}
    return {label: float(r) for label, r in zip(labels, solution.ratios)}


def build_isomer(
    label: str,
    mz: float,
    fragments: Mapping[float, float],
    nb_min_fragments: int = 5,
    nb_max_fragments: int = 5,
) -> CharacterizedIsomer:
    """CharacterizedIsomer from a {fragment m/z: intensity} mapping."""
    return CharacterizedIsomer.from_fragment_intensities(
        label, mz,
        list(fragments.keys()), list(fragments.values()),
        nb_min_fragments, nb_max_fragments,
    )


def deconvolute_scans(
    mixed_mz: float,
    scans: Sequence[Tuple[float, float, float, PeakList]],
    isomers: Sequence[CharacterizedIsomer],
    **settings,
) -> Dict[str, float]:
    """Merged rate-curve area per isomer for a list of scan tuples.

    Parameters
    ----------
    mixed_mz : float
        Precursor m/z of the mixed signal
    scans : sequence of (retention_time_min, injection_time_ms, precursor_intensity, peaks)
    isomers : sequence of CharacterizedIsomer
    **settings
        Passed to DeconvolutionParams.from_dict

    Returns
    -------
    dict
        label → area for every reported isomer (empty when nothing survives)
    """
    mixed = MixedSignal(
        mz=mixed_mz,
        scans=[
            make_scan(rt, peaks, injection_time=inj, precursor_intensity=intensity)
            for rt, inj, intensity, peaks in scans
        ],
    )
    result = deconvolute(mixed, isomers, DeconvolutionParams.from_dict(settings))
    return result.final.areas()
