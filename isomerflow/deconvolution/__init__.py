"""Positional isomer deconvolution of mixed precursor signals.

Workflow
--------
1. Select reference isomers within precursor tolerance of the mixed m/z
2. For each fragment-count configuration k, solve every scan and build
   per-isomer rate/count elution curves (process_configuration)
3. Merge retained configurations weighted by inverse residual
   (merge_configurations)

Examples
--------
>>> from isomerflow.deconvolution import deconvolute
>>>
>>> result = deconvolute(mixed_signal, reference_isomers)
>>> for label, curves in result.final.items():
...     print(label, curves.area, curves.count_area)
"""

from .params import DeconvolutionParams
from .configuration import (
    ConfigurationStatus,
    IsomerCurves,
    ConfigurationResult,
    should_abort,
    is_retainable,
    solve_scan,
    process_configuration,
)
from .aggregation import (
    FinalRatios,
    configuration_weights,
    merge_configurations,
)
from .pipeline import (
    DeconvolutionResult,
    sweep_configurations,
    deconvolute,
    deconvolute_many,
    deconvolute_sample,
    cumulative_areas,
    summarize_sample,
)

__all__ = [
    "DeconvolutionParams",
    # Per-configuration processing
    "ConfigurationStatus",
    "IsomerCurves",
    "ConfigurationResult",
    "should_abort",
    "is_retainable",
    "solve_scan",
    "process_configuration",
    # Merge
    "FinalRatios",
    "configuration_weights",
    "merge_configurations",
    # Drivers
    "DeconvolutionResult",
    "sweep_configurations",
    "deconvolute",
    "deconvolute_many",
    "deconvolute_sample",
    "cumulative_areas",
    "summarize_sample",
]
