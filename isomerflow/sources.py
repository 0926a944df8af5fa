"""Narrow interfaces to upstream identification.

The deconvolution core only needs two capabilities from the search engine
that identified the reference and mixed runs:

- IsomerCatalog: "characterize the isomer set for m/z X"
- MixedSignalSource: "load the mixed scan series of sample Y"

Anything providing those two methods can drive
:func:`isomerflow.deconvolution.deconvolute_sample`. The in-memory versions
below cover tests, notebooks and pipelines that already hold the data.
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from .isomers import CharacterizedIsomer, MixedSignal
from .search.peak_matching import MassTolerance

logger = logging.getLogger(__name__)


@runtime_checkable
class IsomerCatalog(Protocol):
    """Provider of characterized reference isomers."""

    def characterize(self, mz: float, tolerance: MassTolerance) -> Sequence[CharacterizedIsomer]:
        """Return every reference isomer within tolerance of mz."""
        ...


@runtime_checkable
class MixedSignalSource(Protocol):
    """Provider of mixed precursor time series."""

    def load(self, sample: str) -> Sequence[MixedSignal]:
        """Return the mixed signals of one sample."""
        ...


def select_candidates(
    isomers: Iterable[CharacterizedIsomer],
    mz: float,
    tolerance: MassTolerance,
) -> List[CharacterizedIsomer]:
    """Isomers whose precursor m/z lies within tolerance of mz (input order kept)."""
    return [isomer for isomer in isomers if tolerance.contains(isomer.mz, mz)]


class InMemoryCatalog:
    """IsomerCatalog over a list of isomers.

    Labels must be unique: results are keyed by label downstream.
    """

    def __init__(self, isomers: Iterable[CharacterizedIsomer] = ()):
        self._isomers: List[CharacterizedIsomer] = []
        self._labels = set()
        for isomer in isomers:
            self.add(isomer)

    def add(self, isomer: CharacterizedIsomer) -> None:
        if isomer.label in self._labels:
            raise ValueError(f"Duplicate isomer label: {isomer.label!r}")
        self._labels.add(isomer.label)
        self._isomers.append(isomer)

    def __len__(self) -> int:
        return len(self._isomers)

    def __iter__(self):
        return iter(self._isomers)

    @property
    def labels(self) -> List[str]:
        return [isomer.label for isomer in self._isomers]

    def characterize(self, mz: float, tolerance: MassTolerance) -> List[CharacterizedIsomer]:
        candidates = select_candidates(self._isomers, mz, tolerance)
        logger.debug(f"{len(candidates)} reference isomers within {tolerance} of m/z {mz:.4f}")
        return candidates


class InMemorySignalSource:
    """MixedSignalSource over a sample → signals mapping.

    An unknown sample yields no signals.
    """

    def __init__(self, signals: Optional[Dict[str, Sequence[MixedSignal]]] = None):
        self._signals: Dict[str, List[MixedSignal]] = {}
        for sample, sample_signals in (signals or {}).items():
            for signal in sample_signals:
                self.add(sample, signal)

    def add(self, sample: str, signal: MixedSignal) -> None:
        if signal.sample is None:
            signal.sample = sample
        self._signals.setdefault(sample, []).append(signal)

    @property
    def samples(self) -> List[str]:
        return list(self._signals)

    def load(self, sample: str) -> List[MixedSignal]:
        signals = self._signals.get(sample, [])
        if not signals:
            logger.warning(f"No mixed signals for sample {sample!r}")
        return list(signals)
