"""Data model: scans, reference fingerprints, characterized isomers, mixed signals.

These containers are the hand-off point between upstream identification
(which decides what the reference isomers are and which scans belong to a
mixed precursor) and the deconvolution core. Peak arrays are stored sorted
by m/z and marked read-only.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .constants import MS_PER_MINUTE, REFERENCE_SCALE
from .xic.elution_curve import ElutionCurve


def _frozen_array(values) -> np.ndarray:
    array = np.array(values, dtype=np.float64).ravel()
    array.setflags(write=False)
    return array


def _sorted_pair(mz, intensity) -> Tuple[np.ndarray, np.ndarray]:
    mz = np.asarray(mz, dtype=np.float64).ravel()
    intensity = np.asarray(intensity, dtype=np.float64).ravel()
    if mz.shape != intensity.shape:
        raise ValueError(
            f"m/z and intensity arrays differ in length: {mz.size} != {intensity.size}"
        )
    order = np.argsort(mz, kind='mergesort')
    return _frozen_array(mz[order]), _frozen_array(intensity[order])


class Peak(NamedTuple):
    """One observed peak."""
    mz: float
    intensity: float


@dataclass(frozen=True, eq=False)
class Scan:
    """One fragmentation event (query) of a mixed precursor.

    Attributes
    ----------
    retention_time : float
        Retention time in MINUTES
    injection_time : float
        Ion injection time in milliseconds
    precursor_intensity : float
        Precursor intensity of the scan
    precursor_intensity_per_ms : float
        Precursor intensity divided by injection time
    mz, intensity : np.ndarray
        Fragment peaks, sorted by m/z (read-only)
    """

    retention_time: float
    injection_time: float
    precursor_intensity: float
    precursor_intensity_per_ms: float
    mz: np.ndarray = field(default_factory=lambda: np.zeros(0))
    intensity: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        mz, intensity = _sorted_pair(self.mz, self.intensity)
        object.__setattr__(self, 'mz', mz)
        object.__setattr__(self, 'intensity', intensity)

    @classmethod
    def from_peaks(
        cls,
        peaks: Iterable[Tuple[float, float]],
        retention_time: float,
        injection_time: float,
        precursor_intensity: float,
        precursor_intensity_per_ms: Optional[float] = None,
    ) -> 'Scan':
        """Build a scan from (m/z, intensity) pairs.

        precursor_intensity_per_ms defaults to
        precursor_intensity / injection_time (0.0 for a non-positive
        injection time).
        """
        pairs = [(float(mz), float(intensity)) for mz, intensity in peaks]
        if precursor_intensity_per_ms is None:
            precursor_intensity_per_ms = (
                precursor_intensity / injection_time if injection_time > 0 else 0.0
            )
        return cls(
            retention_time=float(retention_time),
            injection_time=float(injection_time),
            precursor_intensity=float(precursor_intensity),
            precursor_intensity_per_ms=float(precursor_intensity_per_ms),
            mz=[p[0] for p in pairs],
            intensity=[p[1] for p in pairs],
        )

    @property
    def time_ms(self) -> float:
        """Retention time in milliseconds."""
        return self.retention_time * MS_PER_MINUTE

    @property
    def n_peaks(self) -> int:
        return int(self.mz.size)

    @property
    def peaks(self) -> Tuple[Peak, ...]:
        return tuple(Peak(float(m), float(i)) for m, i in zip(self.mz, self.intensity))


@dataclass(frozen=True, eq=False)
class ReferenceFragmentSet:
    """Top-N fragment fingerprint of one isomer for one configuration.

    Intensities are normalized to sum to REFERENCE_SCALE. The optional
    normalizer maps the precursor intensity in the trap to a scale factor
    correcting intensity-dependent fragmentation bias (an ElutionCurve works,
    as does any callable).
    """

    fragment_mz: np.ndarray
    intensity: np.ndarray
    normalizer: Optional[Callable[[float], float]] = None

    def __post_init__(self):
        mz, intensity = _sorted_pair(self.fragment_mz, self.intensity)
        object.__setattr__(self, 'fragment_mz', mz)
        object.__setattr__(self, 'intensity', intensity)

    def __len__(self) -> int:
        return int(self.fragment_mz.size)

    @classmethod
    def from_fragments(
        cls,
        fragment_mz: Sequence[float],
        intensity: Sequence[float],
        n_fragments: Optional[int] = None,
        normalizer: Optional[Callable[[float], float]] = None,
    ) -> 'ReferenceFragmentSet':
        """Keep the n most intense positive fragments and normalize them.

        Parameters
        ----------
        fragment_mz, intensity : sequence of float
            Observed reference fragments (any order)
        n_fragments : int, optional
            Number of fragments to keep (all positive fragments when None)
        normalizer : callable, optional
            Intensity-in-trap → scale factor

        Raises
        ------
        ValueError
            If no fragment has a positive intensity
        """
        mz = np.asarray(fragment_mz, dtype=np.float64).ravel()
        values = np.asarray(intensity, dtype=np.float64).ravel()
        if mz.shape != values.shape:
            raise ValueError(
                f"fragment_mz and intensity differ in length: {mz.size} != {values.size}"
            )

        positive = np.isfinite(values) & (values > 0)
        mz, values = mz[positive], values[positive]
        if values.size == 0:
            raise ValueError("No fragment with positive intensity")

        # Most intense first; ties keep input order
        order = np.argsort(-values, kind='mergesort')
        if n_fragments is not None:
            order = order[:n_fragments]
        kept = values[order]
        return cls(mz[order], kept * (REFERENCE_SCALE / kept.sum()), normalizer)

    def scale_factor(self, intensity_in_trap: float) -> float:
        """Normalization factor at the given trap intensity (1.0 without normalizer).

        A normalizer returning a negative or non-finite value is ignored.
        """
        if self.normalizer is None:
            return 1.0
        factor = float(self.normalizer(intensity_in_trap))
        if not np.isfinite(factor) or factor < 0:
            return 1.0
        return factor

    def unit_vector(self, intensity_in_trap: float = 0.0) -> np.ndarray:
        """Reference intensities rescaled for the given trap intensity."""
        return self.intensity * self.scale_factor(intensity_in_trap)

    def as_mapping(self) -> Dict[float, float]:
        return {float(m): float(i) for m, i in zip(self.fragment_mz, self.intensity)}


@dataclass(eq=False)
class CharacterizedIsomer:
    """Reference isomer with one fragment fingerprint per configuration k.

    Attributes
    ----------
    label : str
        Unique identity (e.g. "PEPT[Phospho]IDE/2")
    mz : float
        Precursor m/z
    fragment_sets : dict
        k → ReferenceFragmentSet
    valid : dict
        k → validity flag; a missing flag means valid if a set exists
    curve : ElutionCurve, optional
        Precursor intensity over time in the reference run
    """

    label: str
    mz: float
    fragment_sets: Dict[int, ReferenceFragmentSet] = field(default_factory=dict)
    valid: Dict[int, bool] = field(default_factory=dict)
    sequence: Optional[str] = None
    charge: Optional[int] = None
    curve: Optional[ElutionCurve] = None

    def __repr__(self) -> str:
        return (
            f"CharacterizedIsomer(label={self.label!r}, mz={self.mz:.4f}, "
            f"configurations={sorted(self.fragment_sets)})"
        )

    def is_valid(self, n_fragments: int) -> bool:
        """True when a usable fingerprint exists for configuration k."""
        if n_fragments not in self.fragment_sets:
            return False
        return self.valid.get(n_fragments, True)

    def fragments(self, n_fragments: int) -> ReferenceFragmentSet:
        return self.fragment_sets[n_fragments]

    def reference_summary(self) -> Dict[str, object]:
        """Reference curve fit coefficients (None when not fitted) and area."""
        if self.curve is None or self.curve.is_empty:
            return {"coefficients": None, "area": 0.0}
        area = self.curve.area
        coefficients = self.curve.coefficients
        return {
            "coefficients": None if coefficients is None else tuple(float(c) for c in coefficients),
            "area": float(area),
        }

    @classmethod
    def from_fragment_intensities(
        cls,
        label: str,
        mz: float,
        fragment_mz: Sequence[float],
        intensity: Sequence[float],
        nb_min_fragments: int,
        nb_max_fragments: int,
        normalizers: Optional[Dict[int, Callable[[float], float]]] = None,
        **kwargs,
    ) -> 'CharacterizedIsomer':
        """Build one fingerprint per k in [nb_min_fragments, nb_max_fragments].

        Configuration k is invalid when fewer than k fragments have a
        positive intensity.
        """
        normalizers = normalizers or {}
        values = np.asarray(intensity, dtype=np.float64)
        n_usable = int(np.count_nonzero(np.isfinite(values) & (values > 0)))

        fragment_sets = {}
        valid = {}
        for k in range(nb_min_fragments, nb_max_fragments + 1):
            if n_usable < k:
                valid[k] = False
                continue
            fragment_sets[k] = ReferenceFragmentSet.from_fragments(
                fragment_mz, values, n_fragments=k, normalizer=normalizers.get(k)
            )
            valid[k] = True

        return cls(label=label, mz=float(mz), fragment_sets=fragment_sets, valid=valid, **kwargs)


@dataclass(eq=False)
class MixedSignal:
    """Time series of scans for one mixed precursor m/z.

    The aggregate curves are derived from the scans when not given:
    count_curve samples the precursor intensity, rate_curve the intensity per
    millisecond, both at the scan times in milliseconds. Scans are kept in
    retention-time order.
    """

    mz: float
    scans: Sequence[Scan] = ()
    count_curve: Optional[ElutionCurve] = None
    rate_curve: Optional[ElutionCurve] = None
    sample: Optional[str] = None

    def __post_init__(self):
        self.scans = tuple(sorted(self.scans, key=lambda scan: scan.retention_time))
        if self.count_curve is None:
            self.count_curve = ElutionCurve(
                [s.time_ms for s in self.scans], [s.precursor_intensity for s in self.scans]
            )
        if self.rate_curve is None:
            self.rate_curve = ElutionCurve(
                [s.time_ms for s in self.scans], [s.precursor_intensity_per_ms for s in self.scans]
            )

    def __repr__(self) -> str:
        return f"MixedSignal(mz={self.mz:.4f}, n_scans={self.n_scans}, sample={self.sample!r})"

    @property
    def n_scans(self) -> int:
        return len(self.scans)

    def intensity_in_trap(self, scan: Scan) -> float:
        """Precursor intensity accumulated during the scan's injection.

        Area of the rate curve over [t, t + injection_time]; falls back to
        intensity_per_ms × injection_time when the rate curve is empty.
        """
        if self.rate_curve.is_empty:
            return scan.precursor_intensity_per_ms * scan.injection_time
        start = scan.time_ms
        return self.rate_curve.local_area(start, start + scan.injection_time)

    def intensity_at(self, time_ms: float) -> float:
        """Mixed precursor intensity at a time, from the count curve."""
        return self.count_curve.interpolate(time_ms)
