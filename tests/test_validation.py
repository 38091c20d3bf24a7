"""
Tests for grouse_nests.models.validation: repeated holdout CV and the
permutation significance test.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from grouse_nests.errors import DegenerateLabelError
from grouse_nests.models.forest import fit_forest
from grouse_nests.models.validation import cross_validate, empirical_p_value, significance_test


@pytest.fixture()
def model(rsf_xy):
    x, y = rsf_xy
    return fit_forest(x, y, n_trees=11, seed=333, response="rsf", compute_proximity=False)


class TestCrossValidate:
    def test_one_row_per_repetition(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        cv = cross_validate(model, x, y, holdout_fraction=0.2, n_repetitions=4, seed=333)
        assert cv.repetitions["repetition"].tolist() == [1, 2, 3, 4]
        assert (cv.repetitions["n_holdout"] == 12).all()
        assert (cv.repetitions["n_train"] == 48).all()

    def test_holdout_error_bounded_every_repetition(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        cv = cross_validate(model, x, y, holdout_fraction=0.1, n_repetitions=5, seed=1)
        assert cv.repetitions["holdout_error"].between(0, 1).all()
        assert cv.repetitions["oob_error"].between(0, 1).all()

    def test_summary_rows(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        cv = cross_validate(model, x, y, holdout_fraction=0.2, n_repetitions=3, seed=333)
        assert list(cv.summary.columns) == ["mean", "std", "min", "max"]
        assert "holdout_error" in cv.summary.index
        assert cv.mean_error == pytest.approx(cv.repetitions["holdout_error"].mean())

    def test_reproducible_and_independent_of_n_jobs(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        serial = cross_validate(model, x, y, 0.2, 3, seed=5, n_jobs=1)
        parallel = cross_validate(model, x, y, 0.2, 3, seed=5, n_jobs=2)
        pd.testing.assert_frame_equal(serial.repetitions, parallel.repetitions)

    @pytest.mark.parametrize("fraction", [0.0, 1.0, 1.5])
    def test_invalid_holdout_fraction(self, model, rsf_xy, fraction: float) -> None:
        x, y = rsf_xy
        with pytest.raises(ValueError):
            cross_validate(model, x, y, fraction, 3, seed=1)

    def test_invalid_repetitions(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        with pytest.raises(ValueError):
            cross_validate(model, x, y, 0.2, 0, seed=1)


class TestSignificance:
    def test_p_value_bounded(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        sig = significance_test(model, x, y, n_permutations=5, n_trees=11, seed=333)
        assert 0.0 <= sig.p_value <= 1.0
        assert sig.n_permutations == 5
        assert sig.observed_error == pytest.approx(model.oob_error)

    def test_informative_model_beats_permutations(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        sig = significance_test(model, x, y, n_permutations=5, n_trees=11, seed=333)
        assert sig.p_value == 0.0
        assert sig.permuted_errors.mean() > sig.observed_error

    def test_reproducible(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        a = significance_test(model, x, y, n_permutations=4, n_trees=11, seed=9)
        b = significance_test(model, x, y, n_permutations=4, n_trees=11, seed=9, n_jobs=2)
        np.testing.assert_array_equal(a.permuted_errors, b.permuted_errors)
        assert a.p_value == b.p_value

    def test_summary_dict(self, model, rsf_xy) -> None:
        x, y = rsf_xy
        summary = significance_test(model, x, y, 3, 11, seed=1).as_dict()
        assert set(summary) == {
            "observed_oob_error", "permuted_mean_error", "permuted_min_error",
            "permuted_max_error", "n_permutations", "p_value",
        }

    def test_degenerate_label(self, model, rsf_xy) -> None:
        x, _ = rsf_xy
        with pytest.raises(DegenerateLabelError):
            significance_test(model, x, pd.Series([0] * len(x), name="Nest"), 3, 11, seed=1)


class TestEmpiricalPValue:
    def test_share_at_least_as_good(self) -> None:
        assert empirical_p_value(0.2, [0.1, 0.2, 0.3, 0.4]) == pytest.approx(0.5)

    def test_bounds(self) -> None:
        permuted = [0.3, 0.4, 0.5]
        assert empirical_p_value(0.0, permuted) == 0.0
        assert empirical_p_value(1.0, permuted) == 1.0

    def test_non_increasing_as_observed_error_improves(self) -> None:
        permuted = np.random.default_rng(0).uniform(0.3, 0.6, 50)
        observed = np.linspace(0.7, 0.0, 30)
        p_values = [empirical_p_value(o, permuted) for o in observed]
        assert all(later <= earlier for earlier, later in zip(p_values, p_values[1:]))

    def test_empty_permutations_raise(self) -> None:
        with pytest.raises(ValueError):
            empirical_p_value(0.1, [])
