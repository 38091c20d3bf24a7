"""
Tests for grouse_nests.models.forest: the final Random Forest fit and its diagnostics.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from grouse_nests.errors import DegenerateLabelError, EmptyCovariateSetError
from grouse_nests.models.forest import (
    OOB,
    fit_forest,
    make_forest,
    oob_error_trajectory,
    proximity_matrix,
)

N_TREES = 15


@pytest.fixture()
def fitted(rsf_xy):
    x, y = rsf_xy
    return fit_forest(x, y, n_trees=N_TREES, seed=333, response="rsf")


class TestFitForest:
    def test_records_response_and_covariates(self, fitted, rsf_xy) -> None:
        x, _ = rsf_xy
        assert fitted.response == "rsf"
        assert fitted.covariates == list(x.columns)
        assert fitted.n_trees == N_TREES
        assert len(fitted.estimator.estimators_) == N_TREES

    def test_oob_error_in_unit_interval(self, fitted) -> None:
        assert 0.0 <= fitted.oob_error <= 1.0
        assert 0.0 <= fitted.class_error <= 1.0

    def test_informative_covariate_separates_classes(self, fitted) -> None:
        """Elev alone separates nests from random points, so OOB error is low."""
        assert fitted.oob_error < 0.2

    def test_same_seed_same_model(self, rsf_xy) -> None:
        x, y = rsf_xy
        a = fit_forest(x, y, n_trees=N_TREES, seed=1, compute_proximity=False)
        b = fit_forest(x, y, n_trees=N_TREES, seed=1, compute_proximity=False)
        pd.testing.assert_frame_equal(a.error_trajectory, b.error_trajectory)
        pd.testing.assert_frame_equal(a.importance, b.importance)

    def test_predict_on_held_out_rows(self, fitted, rsf_xy) -> None:
        x, _ = rsf_xy
        proba = fitted.predict_proba(x.iloc[:5])
        assert proba.shape == (5, 2)
        assert set(fitted.predict(x.iloc[:5])) <= {0, 1}

    def test_degenerate_label_fails_before_fit(self, rsf_xy) -> None:
        x, _ = rsf_xy
        y = pd.Series(np.ones(len(x), dtype=int), name="Nest")
        with pytest.raises(DegenerateLabelError, match="degenerate label"):
            fit_forest(x, y, n_trees=N_TREES, seed=333)

    def test_empty_covariates_fail(self, rsf_xy) -> None:
        x, y = rsf_xy
        with pytest.raises(EmptyCovariateSetError, match="size 0"):
            fit_forest(x[[]], y, n_trees=N_TREES, seed=333)

    def test_zero_trees_rejected(self, rsf_xy) -> None:
        x, y = rsf_xy
        with pytest.raises(ValueError):
            fit_forest(x, y, n_trees=0, seed=333)

    def test_even_tree_count_warns(self, rsf_xy, caplog: pytest.LogCaptureFixture) -> None:
        x, y = rsf_xy
        with caplog.at_level(logging.WARNING, logger="grouse_nests.models.forest"):
            fit_forest(x, y, n_trees=10, seed=333, compute_proximity=False)
        assert any("even" in rec.message for rec in caplog.records)


class TestErrorTrajectory:
    def test_one_row_per_tree(self, fitted) -> None:
        traj = fitted.error_trajectory
        assert list(traj.index) == list(range(1, N_TREES + 1))
        assert list(traj.columns) == [OOB, "0", "1"]

    def test_values_bounded(self, fitted) -> None:
        values = fitted.error_trajectory.to_numpy()
        finite = values[np.isfinite(values)]
        assert ((finite >= 0) & (finite <= 1)).all()

    def test_final_point_is_model_error(self, fitted, rsf_xy) -> None:
        x, y = rsf_xy
        traj = oob_error_trajectory(fitted.estimator, x, y)
        assert traj[OOB].iloc[-1] == pytest.approx(fitted.oob_error)


class TestImportance:
    def test_one_row_per_covariate_in_order(self, fitted, rsf_xy) -> None:
        x, _ = rsf_xy
        assert list(fitted.importance.index) == list(x.columns)
        assert list(fitted.importance.columns) == ["mean_decrease_accuracy", "std"]

    def test_informative_covariate_ranks_first(self, fitted) -> None:
        assert fitted.importance["mean_decrease_accuracy"].idxmax() == "Elev"


class TestProximity:
    def test_shape_symmetry_and_diagonal(self, fitted, rsf_xy) -> None:
        x, _ = rsf_xy
        prox = fitted.proximity
        assert prox.shape == (len(x), len(x))
        np.testing.assert_allclose(prox, prox.T)
        np.testing.assert_allclose(np.diag(prox), 1.0)
        assert ((prox >= 0) & (prox <= 1)).all()

    def test_matches_leaf_sharing(self, rsf_xy) -> None:
        x, y = rsf_xy
        forest = make_forest(3, seed=0).fit(x, y)
        leaves = forest.apply(x)
        prox = proximity_matrix(forest, x)
        expected = np.mean(leaves[0] == leaves[1])
        assert prox[0, 1] == pytest.approx(expected)

    def test_can_be_skipped(self, rsf_xy) -> None:
        x, y = rsf_xy
        model = fit_forest(x, y, n_trees=5, seed=333, compute_proximity=False)
        assert model.proximity is None
