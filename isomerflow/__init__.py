"""isomerflow - Deconvolution of positional isomers in mixed MS/MS signals.

A single precursor m/z often hides several positional isomers (same
sequence, modification on different residues) that co-elute. Given reference
fragment fingerprints of each isomer, isomerflow splits every MS/MS scan of
the mixed precursor into per-isomer contributions with a non-negative
max-flow style solver, and turns them into per-isomer elution curves.

Numerical kernels are Numba-compiled; everything works on NumPy arrays.
"""

__version__ = "0.1.0"

from isomerflow import search
from isomerflow import solver
from isomerflow import xic
from isomerflow import deconvolution

from isomerflow.isomers import (
    Peak,
    Scan,
    ReferenceFragmentSet,
    CharacterizedIsomer,
    MixedSignal,
)
from isomerflow.search import MassTolerance, ToleranceUnit
from isomerflow.deconvolution import DeconvolutionParams, deconvolute

__all__ = [
    "search",
    "solver",
    "xic",
    "deconvolution",
    "Peak",
    "Scan",
    "ReferenceFragmentSet",
    "CharacterizedIsomer",
    "MixedSignal",
    "MassTolerance",
    "ToleranceUnit",
    "DeconvolutionParams",
    "deconvolute",
]
