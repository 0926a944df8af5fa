"""Configuration sweep and batch drivers.

For each mixed precursor:

    candidates = reference isomers within precursor tolerance
    for k in nb_min_fragments .. nb_max_fragments:
        process_configuration(mixed, candidates, k)
    final = merge_configurations(results)

Mixed precursors are independent of each other; deconvolute_many runs them
on a thread pool (the numba kernels release the GIL) and returns results in
input order. A precursor without any retained configuration gives an empty
FinalRatios, which is a normal outcome.

Examples
--------
>>> from isomerflow.deconvolution import deconvolute, DeconvolutionParams
>>> params = DeconvolutionParams(nb_min_fragments=4, nb_max_fragments=6)
>>> result = deconvolute(mixed_signal, reference_isomers, params)
>>> result.final.areas()
{'PEPS[Phospho]TIDE': 1.2e7, 'PEPST[Phospho]IDE': 3.4e6}
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ..isomers import CharacterizedIsomer, MixedSignal
from ..sources import IsomerCatalog, MixedSignalSource, select_candidates
from .aggregation import FinalRatios, merge_configurations
from .configuration import ConfigurationResult, process_configuration
from .params import DeconvolutionParams

logger = logging.getLogger(__name__)


@dataclass
class DeconvolutionResult:
    """Final curves plus every configuration tried for one mixed precursor."""
    mixed: MixedSignal
    final: FinalRatios
    configurations: List[ConfigurationResult] = field(default_factory=list)
    candidates: List[str] = field(default_factory=list)

    @property
    def retained_configurations(self) -> List[ConfigurationResult]:
        return [c for c in self.configurations if c.retained]

    @property
    def is_empty(self) -> bool:
        return len(self.final) == 0

    def percent_errors(self) -> Dict[int, List[float]]:
        """Per-scan percent errors of every configuration, keyed by k."""
        return {c.n_fragments: list(c.percent_errors) for c in self.configurations}


def sweep_configurations(
    mixed: MixedSignal,
    candidates: Sequence[CharacterizedIsomer],
    params: DeconvolutionParams,
) -> List[ConfigurationResult]:
    """Process every configuration k, in increasing order."""
    return [
        process_configuration(mixed, candidates, k, params)
        for k in params.fragment_counts
    ]


def deconvolute(
    mixed: MixedSignal,
    isomers: Iterable[CharacterizedIsomer],
    params: Optional[DeconvolutionParams] = None,
) -> DeconvolutionResult:
    """Deconvolute one mixed precursor against the reference isomers.

    Parameters
    ----------
    mixed : MixedSignal
        Scans of the mixed precursor
    isomers : iterable of CharacterizedIsomer
        Reference isomers; only those within precursor tolerance are used
    params : DeconvolutionParams, optional
        Defaults when None

    Returns
    -------
    DeconvolutionResult
    """
    params = params or DeconvolutionParams()
    candidates = select_candidates(isomers, mixed.mz, params.precursor_tolerance)
    configurations = sweep_configurations(mixed, candidates, params)
    final = merge_configurations(configurations)

    n_retained = sum(c.retained for c in configurations)
    logger.info(
        f"m/z {mixed.mz:.4f} ({mixed.n_scans} scans, {len(candidates)} candidates): "
        f"{n_retained}/{len(configurations)} configurations retained, "
        f"{len(final)} isomers reported"
    )

    return DeconvolutionResult(
        mixed=mixed,
        final=final,
        configurations=configurations,
        candidates=[isomer.label for isomer in candidates],
    )


def deconvolute_many(
    signals: Sequence[MixedSignal],
    isomers: Sequence[CharacterizedIsomer],
    params: Optional[DeconvolutionParams] = None,
    max_workers: int = 1,
) -> List[DeconvolutionResult]:
    """Deconvolute several mixed precursors.

    Parameters
    ----------
    signals : sequence of MixedSignal
    isomers : sequence of CharacterizedIsomer
    params : DeconvolutionParams, optional
    max_workers : int
        Worker threads; 1 runs sequentially

    Returns
    -------
    list of DeconvolutionResult
        In the same order as signals
    """
    params = params or DeconvolutionParams()
    isomers = list(isomers)
    logger.info(f"Deconvoluting {len(signals):,} mixed precursors against {len(isomers):,} isomers")

    if max_workers <= 1 or len(signals) <= 1:
        results = [deconvolute(signal, isomers, params) for signal in signals]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda s: deconvolute(s, isomers, params), signals))

    n_empty = sum(r.is_empty for r in results)
    logger.info(f"✓ {len(results) - n_empty:,} precursors with isomers, {n_empty:,} empty")
    return results


def deconvolute_sample(
    catalog: IsomerCatalog,
    source: MixedSignalSource,
    sample: str,
    params: Optional[DeconvolutionParams] = None,
    max_workers: int = 1,
) -> List[DeconvolutionResult]:
    """Deconvolute every mixed precursor of one sample.

    Candidate isomers are requested from the catalog per precursor m/z.
    """
    params = params or DeconvolutionParams()
    signals = list(source.load(sample))
    logger.info(f"Sample {sample!r}: {len(signals):,} mixed precursors")

    def run(signal: MixedSignal) -> DeconvolutionResult:
        return deconvolute(signal, catalog.characterize(signal.mz, params.precursor_tolerance), params)

    if max_workers <= 1 or len(signals) <= 1:
        return [run(signal) for signal in signals]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(run, signals))


def cumulative_areas(
    results: Iterable[DeconvolutionResult],
    labels: Optional[Sequence[str]] = None,
) -> Dict[str, float]:
    """Sum each isomer's merged rate area over several precursors.

    Parameters
    ----------
    results : iterable of DeconvolutionResult
        Typically all precursors of one sample sharing an m/z
    labels : sequence of str, optional
        Isomers to report (in this order); all reported isomers when None,
        in order of first appearance

    Returns
    -------
    dict
        label → cumulative area (0.0 for isomers never reported)
    """
    results = list(results)
    if labels is None:
        labels = []
        for result in results:
            for label in result.final:
                if label not in labels:
                    labels.append(label)

    totals = {label: 0.0 for label in labels}
    for result in results:
        for label in labels:
            if label in result.final:
                totals[label] += result.final[label].area
    return totals


def summarize_sample(
    results: Iterable[DeconvolutionResult],
    labels: Optional[Sequence[str]] = None,
) -> Dict[float, Dict[str, float]]:
    """Cumulative areas per precursor m/z, dropping m/z with no area at all.

    Results are grouped by the exact m/z of their mixed signal, in order of
    first appearance.
    """
    groups: Dict[float, List[DeconvolutionResult]] = {}
    for result in results:
        groups.setdefault(result.mixed.mz, []).append(result)

    summary = {}
    for mz, group in groups.items():
        totals = cumulative_areas(group, labels)
        if any(area > 0 for area in totals.values()):
            summary[mz] = totals
    return summary
