"""Tests for calibration of observed compositions."""

import pandas as pd
import pytest

from BiasCalibrator.calibration import calibrate
from BiasCalibrator.exceptions import InvalidInputError
from BiasCalibrator.processor import BiasEstimate


def _estimate(biases, components):
    taxa = list(biases)
    return BiasEstimate(table=pd.DataFrame(
        {"bias": [biases[t] for t in taxa], "component": [components[t] for t in taxa]},
        index=pd.Index(taxa, name="taxon"),
    ))


class TestCalibrate:

    def test_divides_by_bias_and_normalizes(self):
        observed = pd.DataFrame({"A": [10.0], "B": [10.0], "C": [5.0]}, index=["S1"])
        estimate = _estimate({"A": 2.0, "B": 0.5}, {"A": 1, "B": 1})

        calibrated = calibrate(observed, estimate)

        assert list(calibrated.columns) == ["A", "B"]
        assert calibrated.loc["S1", "A"] == pytest.approx(0.2)
        assert calibrated.loc["S1", "B"] == pytest.approx(0.8)

    def test_without_normalization(self):
        observed = pd.DataFrame({"A": [10.0], "B": [10.0]}, index=["S1"])
        estimate = _estimate({"A": 2.0, "B": 0.5}, {"A": 1, "B": 1})
        calibrated = calibrate(observed, estimate, normalize=False)
        assert calibrated.loc["S1", "A"] == pytest.approx(5.0)
        assert calibrated.loc["S1", "B"] == pytest.approx(20.0)

    def test_normalizes_each_component_separately(self):
        observed = pd.DataFrame(
            {"A": [1.0], "B": [3.0], "C": [2.0], "D": [2.0]}, index=["S1"]
        )
        estimate = _estimate(
            {"A": 1.0, "B": 1.0, "C": 1.0, "D": 1.0}, {"A": 1, "B": 1, "C": 2, "D": 2}
        )
        calibrated = calibrate(observed, estimate)
        assert calibrated.loc["S1", ["A", "B"]].sum() == pytest.approx(1.0)
        assert calibrated.loc["S1", ["C", "D"]].sum() == pytest.approx(1.0)
        assert calibrated.loc["S1", "B"] == pytest.approx(0.75)

    def test_zero_component_total_is_na(self):
        observed = pd.DataFrame({"A": [0.0], "B": [0.0]}, index=["S1"])
        estimate = _estimate({"A": 1.0, "B": 2.0}, {"A": 1, "B": 1})
        calibrated = calibrate(observed, estimate)
        assert calibrated.isna().all().all()

    def test_no_shared_taxa_raises(self):
        observed = pd.DataFrame({"Z": [1.0]}, index=["S1"])
        with pytest.raises(InvalidInputError):
            calibrate(observed, _estimate({"A": 1.0}, {"A": 1}))

    def test_negative_abundance_raises(self):
        observed = pd.DataFrame({"A": [-1.0]}, index=["S1"])
        with pytest.raises(InvalidInputError):
            calibrate(observed, _estimate({"A": 1.0}, {"A": 1}))
