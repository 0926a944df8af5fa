"""Tests for the data model: scans, fingerprints, isomers, mixed signals."""

import numpy as np
import pytest

from isomerflow.isomers import (
    CharacterizedIsomer,
    MixedSignal,
    Peak,
    ReferenceFragmentSet,
    Scan,
)
from isomerflow.xic import ElutionCurve


class TestScan:
    """Test scan construction."""

    def test_peaks_sorted_by_mz(self):
        """Test peaks are sorted by m/z."""
        scan = Scan.from_peaks(
            [(300.0, 3.0), (100.0, 1.0), (200.0, 2.0)],
            retention_time=12.5, injection_time=40.0, precursor_intensity=8000.0,
        )

        np.testing.assert_array_equal(scan.mz, [100.0, 200.0, 300.0])
        np.testing.assert_array_equal(scan.intensity, [1.0, 2.0, 3.0])
        assert scan.n_peaks == 3
        assert scan.peaks[0] == Peak(100.0, 1.0)

    def test_arrays_read_only(self):
        """Test peak arrays cannot be modified."""
        scan = Scan.from_peaks([(100.0, 1.0)], 1.0, 10.0, 0.0)
        with pytest.raises(ValueError):
            scan.mz[0] = 5.0

    def test_intensity_per_ms_default(self):
        """Test precursor rate defaults to intensity over injection time."""
        scan = Scan.from_peaks([], retention_time=1.0, injection_time=40.0, precursor_intensity=8000.0)
        assert scan.precursor_intensity_per_ms == 200.0

    def test_zero_injection_time(self):
        """Test zero injection time gives zero rate."""
        scan = Scan.from_peaks([], retention_time=1.0, injection_time=0.0, precursor_intensity=8000.0)
        assert scan.precursor_intensity_per_ms == 0.0

    def test_time_in_ms(self):
        """Test retention time converted to milliseconds."""
        scan = Scan.from_peaks([], retention_time=2.5, injection_time=10.0, precursor_intensity=0.0)
        assert scan.time_ms == 150000.0

    def test_length_mismatch_raises(self):
        """Test mismatched peak arrays raise."""
        with pytest.raises(ValueError, match="differ in length"):
            Scan(1.0, 10.0, 0.0, 0.0, mz=[100.0, 200.0], intensity=[1.0])


class TestReferenceFragmentSet:
    """Test fingerprint selection and normalization."""

    def test_top_n_normalized(self, fragments_a):
        """Test top fragments are kept and normalized."""
        fragment_set = ReferenceFragmentSet.from_fragments(
            list(fragments_a), list(fragments_a.values()), n_fragments=3
        )

        assert len(fragment_set) == 3
        np.testing.assert_allclose(fragment_set.fragment_mz, [250.1, 351.2, 452.3])
        np.testing.assert_allclose(fragment_set.intensity, [4.0 / 9, 3.0 / 9, 2.0 / 9])
        assert fragment_set.intensity.sum() == pytest.approx(1.0)

    def test_non_positive_dropped(self):
        """Test non-positive fragments are dropped."""
        fragment_set = ReferenceFragmentSet.from_fragments(
            [100.0, 200.0, 300.0], [5.0, 0.0, -1.0]
        )
        np.testing.assert_allclose(fragment_set.fragment_mz, [100.0])
        np.testing.assert_allclose(fragment_set.intensity, [1.0])

    def test_no_positive_raises(self):
        """Test a fingerprint needs a positive fragment."""
        with pytest.raises(ValueError, match="No fragment"):
            ReferenceFragmentSet.from_fragments([100.0, 200.0], [0.0, np.nan])

    def test_length_mismatch_raises(self):
        """Test mismatched fragment arrays raise."""
        with pytest.raises(ValueError, match="differ in length"):
            ReferenceFragmentSet.from_fragments([100.0, 200.0], [1.0])

    def test_scale_factor(self):
        """Test normalizer rescales the unit vector."""
        fragment_set = ReferenceFragmentSet.from_fragments(
            [100.0], [1.0], normalizer=ElutionCurve([0.0, 1e6], [1.0, 3.0])
        )
        assert fragment_set.scale_factor(5e5) == pytest.approx(2.0)
        np.testing.assert_allclose(fragment_set.unit_vector(5e5), [2.0])

    def test_invalid_scale_factor_ignored(self):
        """Test negative or missing normalizer values fall back to one."""
        negative = ReferenceFragmentSet.from_fragments([100.0], [1.0], normalizer=lambda x: -2.0)
        missing = ReferenceFragmentSet.from_fragments([100.0], [1.0], normalizer=lambda x: np.nan)
        assert negative.scale_factor(1.0) == 1.0
        assert missing.scale_factor(1.0) == 1.0

    def test_as_mapping(self):
        """Test fingerprint as an m/z mapping."""
        fragment_set = ReferenceFragmentSet.from_fragments([200.0, 100.0], [1.0, 3.0])
        assert fragment_set.as_mapping() == {100.0: 0.75, 200.0: 0.25}


class TestCharacterizedIsomer:
    """Test per-configuration fingerprints."""

    def test_valid_configurations(self, isomer_a):
        """Test valid configurations span the requested range."""
        assert [k for k in range(1, 8) if isomer_a.is_valid(k)] == [3, 4, 5]
        assert len(isomer_a.fragments(4)) == 4

    def test_too_few_fragments(self):
        """Test configurations above the fragment count are flagged invalid."""
        isomer = CharacterizedIsomer.from_fragment_intensities(
            "PEPT[Phospho]IDE", 600.0,
            [100.0, 200.0, 300.0, 400.0], [4.0, 3.0, 0.0, 1.0],
            2, 4,
        )
        assert isomer.is_valid(2)
        assert isomer.is_valid(3)
        assert not isomer.is_valid(4)
        assert isomer.valid[4] is False

    def test_validity_flag_overrides(self, isomer_a):
        """Test an explicit validity flag wins."""
        isomer_a.valid[4] = False
        assert not isomer_a.is_valid(4)

    def test_normalizers_attached(self):
        """Test normalizers attach to their configuration."""
        curve = ElutionCurve([0.0, 1.0], [1.0, 1.0])
        isomer = CharacterizedIsomer.from_fragment_intensities(
            "x", 500.0, [100.0, 200.0], [1.0, 2.0], 1, 2, normalizers={2: curve}
        )
        assert isomer.fragments(1).normalizer is None
        assert isomer.fragments(2).normalizer is curve

    def test_reference_summary(self, isomer_a):
        """Test reference curve summary."""
        assert isomer_a.reference_summary() == {"coefficients": None, "area": 0.0}

        isomer_a.curve = ElutionCurve([0.0, 1000.0, 2000.0], [0.0, 100.0, 0.0])
        summary = isomer_a.reference_summary()

        assert summary["area"] == pytest.approx(400000.0 / 3.0)
        assert len(summary["coefficients"]) == 3

    def test_repr(self, isomer_a):
        """Test repr shows label and configurations."""
        assert "PEPS[Phospho]TIDE" in repr(isomer_a)
        assert "[3, 4, 5]" in repr(isomer_a)


class TestMixedSignal:
    """Test scan ordering and aggregate curves."""

    def _scan(self, rt, intensity, injection_time=50.0):
        return Scan.from_peaks([], rt, injection_time, intensity)

    def test_scans_sorted_by_retention_time(self):
        """Test scans are sorted by retention time."""
        mixed = MixedSignal(612.3, [self._scan(10.2, 1.0), self._scan(10.0, 1.0), self._scan(10.1, 1.0)])
        assert [s.retention_time for s in mixed.scans] == [10.0, 10.1, 10.2]
        assert mixed.n_scans == 3

    def test_derived_curves(self):
        """Test count and rate curves derived from scans."""
        mixed = MixedSignal(612.3, [self._scan(10.0, 5000.0), self._scan(10.1, 10000.0)])

        np.testing.assert_allclose(mixed.count_curve.times, [600000.0, 606000.0])
        np.testing.assert_allclose(mixed.count_curve.values, [5000.0, 10000.0])
        np.testing.assert_allclose(mixed.rate_curve.values, [100.0, 200.0])

    def test_intensity_at(self):
        """Test mixed intensity interpolated from the count curve."""
        mixed = MixedSignal(612.3, [self._scan(10.0, 5000.0), self._scan(10.1, 10000.0)])
        assert mixed.intensity_at(603000.0) == pytest.approx(7500.0)

    def test_intensity_in_trap_from_rate_curve(self):
        """Test intensity in trap integrates the rate curve."""
        scans = [self._scan(10.0, 5000.0), self._scan(10.1, 5000.0)]
        mixed = MixedSignal(612.3, scans)

        # Constant 100 per ms over a 50 ms injection
        assert mixed.intensity_in_trap(mixed.scans[0]) == pytest.approx(5000.0)

    def test_intensity_in_trap_fallback(self):
        """Test intensity in trap without a rate curve."""
        scan = self._scan(10.0, 5000.0)
        mixed = MixedSignal(612.3, [])

        assert mixed.rate_curve.is_empty
        assert mixed.intensity_in_trap(scan) == pytest.approx(5000.0)

    def test_explicit_curves_kept(self):
        """Test explicitly given curves are not replaced."""
        rate = ElutionCurve([0.0, 1e9], [2.0, 2.0])
        mixed = MixedSignal(612.3, [self._scan(10.0, 5000.0)], rate_curve=rate)

        assert mixed.rate_curve is rate
        assert mixed.intensity_in_trap(mixed.scans[0]) == pytest.approx(100.0)
