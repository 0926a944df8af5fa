"""Tests for merging configuration results into final curves."""

import numpy as np
import pytest

from isomerflow.deconvolution import (
    ConfigurationResult,
    ConfigurationStatus,
    FinalRatios,
    IsomerCurves,
    configuration_weights,
    merge_configurations,
)
from isomerflow.xic import ElutionCurve


def flat_curves(level, times=(0.0, 100.0)):
    """IsomerCurves with constant rate and count over the given times."""
    return IsomerCurves(
        rate=ElutionCurve(times, [level] * len(times)),
        count=ElutionCurve(times, [10.0 * level] * len(times)),
    )


def retained(k, error, curves):
    return ConfigurationResult(
        k, ConfigurationStatus.RETAINED, curves=curves, cumulative_error=error
    )


class TestConfigurationWeights:
    """Test inverse-error weights."""

    def test_example(self):
        """Test inverse-error weights for two configurations."""
        np.testing.assert_allclose(configuration_weights([0.1, 0.3]), [0.75, 0.25])

    def test_convex(self, rng):
        """Test weights are non-negative and sum to one."""
        weights = configuration_weights(rng.uniform(0.01, 10.0, 7))
        assert np.all(weights >= 0.0)
        assert weights.sum() == pytest.approx(1.0)

    def test_zero_error_dominates(self):
        """Test a zero-error configuration takes all the weight."""
        weights = configuration_weights([0.0, 1.0])
        assert weights[0] == pytest.approx(1.0)
        assert weights[1] < 1e-9

    def test_equal_errors(self):
        """Test equal errors give equal weights."""
        np.testing.assert_allclose(configuration_weights([2.0, 2.0, 2.0]), [1 / 3] * 3)

    def test_empty(self):
        """Test no configurations give no weights."""
        assert configuration_weights([]).size == 0


class TestMergeConfigurations:
    """Test the final merge."""

    def test_weighted_area(self):
        """Test merged areas are the weighted sum of configuration areas."""
        results = [
            retained(3, 0.1, {"iso": flat_curves(1.0)}),
            retained(4, 0.3, {"iso": flat_curves(3.0)}),
        ]

        final = merge_configurations(results)

        # 0.75 * 100 + 0.25 * 300
        assert final["iso"].area == pytest.approx(150.0)
        assert final["iso"].count_area == pytest.approx(1500.0)

    def test_merged_area_bounded_by_inputs(self, rng):
        """Test merged area lies between the configuration areas."""
        errors = rng.uniform(0.1, 5.0, 5)
        levels = rng.uniform(1.0, 10.0, 5)
        results = [
            retained(k, float(e), {"iso": flat_curves(float(level))})
            for k, e, level in zip(range(3, 8), errors, levels)
        ]
        areas = [r.curves["iso"].area for r in results]

        final = merge_configurations(results)

        assert min(areas) - 1e-9 <= final["iso"].area <= max(areas) + 1e-9

    def test_order_independent(self):
        """Test configuration order does not change the merge."""
        first = retained(3, 0.1, {"iso": flat_curves(1.0)})
        second = retained(4, 0.3, {"iso": flat_curves(3.0)})

        forward = merge_configurations([first, second])
        backward = merge_configurations([second, first])

        assert forward.areas() == pytest.approx(backward.areas())

    def test_non_retained_ignored(self):
        """Test non-retained configurations are left out of the merge."""
        results = [
            retained(3, 0.1, {"iso": flat_curves(1.0)}),
            ConfigurationResult(4, ConfigurationStatus.NOISY, cumulative_error=1e-9),
            ConfigurationResult(5, ConfigurationStatus.UNMATCHED),
        ]

        final = merge_configurations(results)

        assert final["iso"].area == pytest.approx(100.0)

    def test_missing_isomer_contributes_zero(self):
        """Test an isomer absent from one configuration counts as zero there."""
        results = [
            retained(3, 0.1, {"a": flat_curves(1.0), "b": flat_curves(2.0)}),
            retained(4, 0.3, {"a": flat_curves(1.0)}),
        ]

        final = merge_configurations(results)

        assert final["a"].area == pytest.approx(100.0)
        assert final["b"].area == pytest.approx(0.75 * 200.0)

    def test_empty_input(self):
        """Test merging nothing gives empty final ratios."""
        final = merge_configurations([])
        assert len(final) == 0
        assert not final

    def test_no_retained(self):
        """Test merging only rejected configurations gives no areas."""
        final = merge_configurations([ConfigurationResult(5, ConfigurationStatus.REJECTED)])
        assert final.areas() == {}


class TestFinalRatios:
    """Test the result mapping."""

    def test_mapping_interface(self):
        """Test final ratios behave as a label mapping."""
        final = FinalRatios({"a": flat_curves(1.0), "b": flat_curves(2.0)})

        assert len(final) == 2
        assert list(final) == ["a", "b"]
        assert "a" in final
        assert final.areas() == pytest.approx({"a": 100.0, "b": 200.0})
        assert final.count_areas() == pytest.approx({"a": 1000.0, "b": 2000.0})

    def test_curves_for_missing(self):
        """Test a missing label yields zero-valued curves."""
        curves = FinalRatios().curves_for("unknown")
        assert curves.area == 0.0
        assert curves.count_area == 0.0

    def test_tabulate(self):
        """Test elution table on the union of sample times."""
        final = FinalRatios({"a": flat_curves(1.0), "b": flat_curves(2.0)})

        table = final.tabulate([0.0, 50.0, 100.0])

        np.testing.assert_array_equal(table["time"], [0.0, 50.0, 100.0])
        np.testing.assert_allclose(table["rate"]["b"], [2.0, 2.0, 2.0])
        np.testing.assert_allclose(table["count"]["a"], [10.0, 10.0, 10.0])

    def test_repr(self):
        """Test repr lists labels with areas."""
        assert repr(FinalRatios({"a": flat_curves(1.0)})) == "FinalRatios({a: 100})"
