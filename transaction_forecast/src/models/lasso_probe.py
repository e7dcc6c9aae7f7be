"""Lasso influence probe over one-hot encoded customer descriptors.

The probe answers a single question for the analyst: *which city / channel
levels move the expected transaction count at all?* It fits an L1-penalised
linear regression (penalty chosen by K-fold CV) and reports the coefficient
vector. Many coefficients are exactly zero; the non-zero ones are the levels
worth looking at.

The fitted probe is for inspection only. Predictions come from the AutoML
leader (:mod:`transaction_forecast.src.models.automl`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LassoCV

logger = logging.getLogger(__name__)


@dataclass
class LassoProbeConfig:
    """Configuration for :class:`LassoProbe`.

    Parameters
    ----------
    cv:
        Number of CV folds used to pick the penalty strength. Reduced to the
        number of rows for tiny tables.
    max_iter:
        Coordinate-descent iteration cap.
    tol:
        Coordinate-descent tolerance.
    random_state:
        Seed (only used when ``selection="random"``).
    selection:
        ``"cyclic"`` or ``"random"`` coordinate update order.
    drop_first:
        Drop the reference level of every categorical predictor.
    zero_tol:
        Coefficients with absolute value below this are reported as not selected.
    """

    cv: int = 5
    max_iter: int = 10000
    tol: float = 1e-4
    random_state: int = 123
    selection: str = "cyclic"
    drop_first: bool = True
    zero_tol: float = 1e-8


def build_design_matrix(
    table: pd.DataFrame,
    target_col: str,
    *,
    drop_first: bool = True,
) -> Tuple[pd.DataFrame, pd.Series]:
    """One-hot encode every non-target column.

    Categorical columns keep their category order, so the dropped reference
    level is the first category; object columns use sorted levels.
    """
    if target_col not in table.columns:
        raise KeyError(f"Target column '{target_col}' not found.")

    y = table[target_col].astype(float)
    predictors = [c for c in table.columns if c != target_col]
    if not predictors:
        raise ValueError("Design matrix needs at least one predictor column.")

    X = pd.get_dummies(
        table[predictors],
        columns=predictors,
        drop_first=drop_first,
        dtype=float,
    )
    return X, y


class LassoProbe:
    """LassoCV wrapper returning named coefficients."""

    def __init__(self, config: Optional[LassoProbeConfig] = None):
        self.config = config or LassoProbeConfig()
        self.model: Optional[LassoCV] = None
        self.feature_names_: list[str] = []

    def fit(self, table: pd.DataFrame, target_col: str) -> "LassoProbe":
        X, y = build_design_matrix(table, target_col, drop_first=self.config.drop_first)
        n_rows = X.shape[0]
        if n_rows < 2:
            raise ValueError(f"Lasso probe needs at least 2 rows, got {n_rows}.")

        cv = int(min(self.config.cv, n_rows))
        self.model = LassoCV(
            cv=cv,
            max_iter=self.config.max_iter,
            tol=self.config.tol,
            random_state=self.config.random_state,
            selection=self.config.selection,
        )
        if X.shape[1] == 0:
            # Every predictor has a single level after drop_first.
            X = pd.DataFrame({"_constant": np.zeros(n_rows)}, index=X.index)

        self.model.fit(X, y)
        self.feature_names_ = list(X.columns)

        logger.info(
            "Lasso probe: alpha=%.6g, %d/%d coefficients non-zero, intercept=%.4f",
            self.alpha,
            int(np.sum(np.abs(self.model.coef_) > self.config.zero_tol)),
            len(self.feature_names_),
            self.intercept,
        )
        return self

    def _check_fitted(self) -> LassoCV:
        if self.model is None:
            raise ValueError("Model has not been fitted yet.")
        return self.model

    @property
    def alpha(self) -> float:
        return float(self._check_fitted().alpha_)

    @property
    def intercept(self) -> float:
        return float(self._check_fitted().intercept_)

    def coefficients(self) -> pd.Series:
        """Coefficient per one-hot column (reference levels excluded)."""
        model = self._check_fitted()
        return pd.Series(model.coef_, index=self.feature_names_, name="coefficient")

    def coefficient_table(self) -> pd.DataFrame:
        """Coefficients sorted by absolute size with a ``selected`` flag."""
        coefs = self.coefficients()
        out = coefs.to_frame()
        out.index.name = "feature"
        out["abs_coefficient"] = out["coefficient"].abs()
        out["selected"] = out["abs_coefficient"] > self.config.zero_tol
        out = out.sort_values("abs_coefficient", ascending=False, kind="mergesort")
        return out.reset_index()


def run_lasso_probe(
    table: pd.DataFrame,
    target_col: str,
    config: Optional[LassoProbeConfig] = None,
) -> Tuple[LassoProbe, pd.DataFrame]:
    """Fit the probe and return it together with its coefficient table."""
    probe = LassoProbe(config).fit(table, target_col)
    return probe, probe.coefficient_table()


__all__ = ["LassoProbeConfig", "LassoProbe", "build_design_matrix", "run_lasso_probe"]
