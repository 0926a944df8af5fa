"""Pytest configuration for isomerflow tests.

Common fixtures: two positional isomers of one phosphopeptide sharing
their two most intense fragments, and a factory building mixed signals
whose scans are exact superpositions of the isomer fingerprints.
"""

import numpy as np
import pytest

from isomerflow.isomers import CharacterizedIsomer, MixedSignal, Scan


MIXED_MZ = 612.3

# Reference fragment m/z → intensity (two shared, three site-determining)
FRAGMENTS_A = {250.1: 4.0, 351.2: 3.0, 452.3: 2.0, 553.4: 1.0, 654.5: 0.5}
FRAGMENTS_B = {250.1: 4.0, 351.2: 3.0, 480.3: 2.0, 581.4: 1.0, 682.5: 0.5}


def fingerprint_peaks(fragments, amount):
    """Peaks of `amount` intensity units distributed like the fingerprint."""
    total = sum(fragments.values())
    return [(mz, amount * value / total) for mz, value in fragments.items()]


@pytest.fixture
def fragments_a():
    return dict(FRAGMENTS_A)


@pytest.fixture
def fragments_b():
    return dict(FRAGMENTS_B)


@pytest.fixture
def isomer_a():
    """PEPS[Phospho]TIDE, valid for k = 3..5."""
    return CharacterizedIsomer.from_fragment_intensities(
        "PEPS[Phospho]TIDE", MIXED_MZ,
        list(FRAGMENTS_A.keys()), list(FRAGMENTS_A.values()),
        3, 5,
        sequence="PEPSTIDE", charge=2,
    )


@pytest.fixture
def isomer_b():
    """PEPST[Phospho]IDE, valid for k = 3..5."""
    return CharacterizedIsomer.from_fragment_intensities(
        "PEPST[Phospho]IDE", MIXED_MZ,
        list(FRAGMENTS_B.keys()), list(FRAGMENTS_B.values()),
        3, 5,
        sequence="PEPSTIDE", charge=2,
    )


@pytest.fixture
def elution_profile():
    """Triangular elution of isomer A (7 scans); isomer B elutes at half of it."""
    amounts_a = [100.0, 300.0, 600.0, 800.0, 600.0, 300.0, 100.0]
    amounts_b = [a / 2.0 for a in amounts_a]
    retention_times = [10.0 + 0.1 * i for i in range(len(amounts_a))]
    return retention_times, amounts_a, amounts_b


@pytest.fixture
def make_mixed_signal():
    """Factory: MixedSignal from per-scan isomer amounts.

    Parameters of the returned callable
    -----------------------------------
    retention_times : list of float (minutes)
    amounts : list of (fragments, amounts per scan) pairs
    noisy : set of int
        Scan indices replaced by peaks that match no reference fragment
    """
    def _make(retention_times, amounts, noisy=(), injection_time=50.0, mz=MIXED_MZ):
        scans = []
        for i, rt in enumerate(retention_times):
            if i in noisy:
                peaks = [(1001.7, 500.0), (1102.8, 250.0)]
                total = 750.0
            else:
                peaks = []
                total = 0.0
                for fragments, per_scan in amounts:
                    peaks.extend(fingerprint_peaks(fragments, per_scan[i]))
                    total += per_scan[i]
            scans.append(Scan.from_peaks(
                peaks,
                retention_time=rt,
                injection_time=injection_time,
                precursor_intensity=10.0 * total,
            ))
        return MixedSignal(mz=mz, scans=scans)

    return _make


@pytest.fixture
def two_isomer_signal(make_mixed_signal, elution_profile, fragments_a, fragments_b):
    """Exact superposition of isomers A and B over the elution profile."""
    retention_times, amounts_a, amounts_b = elution_profile
    return make_mixed_signal(
        retention_times, [(fragments_a, amounts_a), (fragments_b, amounts_b)]
    )


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)


@pytest.fixture
def rng():
    return np.random.default_rng(42)
