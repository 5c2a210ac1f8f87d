"""Tests for compositional vector primitives."""

import numpy as np
import pandas as pd
import pytest

from BiasCalibrator.compositional import (
    MISSING,
    as_masked,
    closure,
    geometric_mean,
    geometric_sd,
    is_missing,
    ratio,
)
from BiasCalibrator.exceptions import InvalidInputError


class TestAsMasked:

    def test_none_and_missing_become_masked(self):
        v = as_masked([1.0, None, MISSING, 4.0])
        assert list(np.ma.getmaskarray(v)) == [False, True, True, False]
        assert list(v.compressed()) == [1.0, 4.0]

    def test_series_na_becomes_masked(self):
        s = pd.Series([2.0, pd.NA, 8.0], dtype="Float64")
        v = as_masked(s)
        assert list(np.ma.getmaskarray(v)) == [False, True, False]

    def test_masked_input_keeps_mask(self):
        m = np.ma.MaskedArray([0.0, 3.0], mask=[True, False])
        v = as_masked(m)
        assert list(np.ma.getmaskarray(v)) == [True, False]
        # masked slots are filled so arithmetic stays finite
        assert np.all(np.isfinite(v.data))


class TestGeometricMean:

    def test_simple(self):
        assert geometric_mean([2.0, 8.0]) == pytest.approx(4.0)

    def test_ignores_missing(self):
        assert geometric_mean([2.0, None, 8.0]) == pytest.approx(4.0)

    def test_all_missing_is_missing(self):
        assert geometric_mean([None, MISSING]) is MISSING

    def test_single_value(self):
        assert geometric_mean([5.0]) == pytest.approx(5.0)


class TestGeometricSd:

    def test_constant_values(self):
        assert geometric_sd([3.0, 3.0, 3.0]) == pytest.approx(1.0)

    def test_uses_sample_sd_of_logs(self):
        values = [1.0, np.exp(2.0)]
        # sd of (0, 2) with ddof=1 is sqrt(2)
        assert geometric_sd(values) == pytest.approx(np.exp(np.sqrt(2.0)))

    def test_fewer_than_two_values(self):
        assert geometric_sd([2.0, None]) is MISSING


class TestClosure:

    @pytest.mark.parametrize("values", [
        [1.0, 2.0, 3.0],
        [0.001, 1000.0],
        [5.0, None, 0.2, 7.5],
        [42.0],
    ])
    def test_geometric_mean_is_one(self, values):
        closed = closure(values)
        assert geometric_mean(closed) == pytest.approx(1.0)

    def test_missing_passes_through(self):
        closed = closure([2.0, None, 8.0])
        assert list(np.ma.getmaskarray(closed)) == [False, True, False]
        assert closed[0] == pytest.approx(0.5)
        assert closed[2] == pytest.approx(2.0)

    def test_preserves_ratios(self):
        closed = closure([3.0, 12.0])
        assert closed[1] / closed[0] == pytest.approx(4.0)

    def test_single_value_closes_to_one(self):
        assert closure([2.0])[0] == pytest.approx(1.0)

    def test_all_missing_raises(self):
        with pytest.raises(InvalidInputError):
            closure([None, None])

    @pytest.mark.parametrize("bad", [0.0, -1.0, np.inf])
    def test_non_positive_raises(self, bad):
        with pytest.raises(InvalidInputError) as excinfo:
            closure([1.0, bad, 2.0])
        assert excinfo.value.cells[0][1] == 1


class TestRatio:

    def test_scalars(self):
        assert ratio(6.0, 3.0) == pytest.approx(2.0)

    @pytest.mark.parametrize("a, b", [(2.0, MISSING), (MISSING, 2.0), (None, 3.0), (MISSING, MISSING)])
    def test_missing_propagates(self, a, b):
        assert is_missing(ratio(a, b))

    def test_vectors(self):
        out = ratio([2.0, None, 9.0], [1.0, 4.0, None])
        assert out[0] == pytest.approx(2.0)
        assert list(np.ma.getmaskarray(out)) == [False, True, True]

    def test_vector_by_missing_scalar(self):
        out = ratio([2.0, 3.0], MISSING)
        assert np.ma.getmaskarray(out).all()

    def test_vector_by_scalar(self):
        out = ratio([2.0, 4.0], 2.0)
        np.testing.assert_allclose(out.compressed(), [1.0, 2.0])
