"""Held-out evaluation and ranking tables for the AutoML candidates.

Two kinds of tables come out of a run:

- **CV ranking tables** built from the engine's leaderboard
  (:func:`ranking_tables`), one sorted by RMSE and one by R²;
- **held-out tables** computed on the external test partition
  (:func:`predict_holdout`, :func:`holdout_metrics`).

Ranking convention
------------------
Every ranking table carries a 1-based ``rank`` column without duplicates
(ties keep leaderboard order). Rank 1 is always the *best* model: lowest
RMSE / MAE / MSE, highest R².
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from sklearn import metrics

from transaction_forecast.src.models.automl import ModelSearchResult


HIGHER_IS_BETTER_KEYS = frozenset({"r2"})


# ---------------------------------------------------------------------------
# Array conversion helpers
# ---------------------------------------------------------------------------


def _to_1d(x: Any) -> np.ndarray:
    """Convert a Series / single-column frame / array-like to a 1D float array."""
    if isinstance(x, (pd.Series, pd.Index)):
        arr = x.to_numpy()
    elif isinstance(x, pd.DataFrame):
        if x.shape[1] != 1:
            raise ValueError(f"Expected a single-column DataFrame, got shape={x.shape}.")
        arr = x.iloc[:, 0].to_numpy()
    else:
        arr = np.asarray(x)
    return np.asarray(arr, dtype=float).reshape(-1)


def _drop_nan_pairs(y_true: Any, y_pred: Any) -> tuple[np.ndarray, np.ndarray]:
    """Drop rows where either the target or the prediction is NaN/Inf."""
    y = _to_1d(y_true)
    p = _to_1d(y_pred)
    if y.shape[0] != p.shape[0]:
        raise ValueError(f"Length mismatch: y_true={y.shape[0]} vs y_pred={p.shape[0]}")
    mask = np.isfinite(y) & np.isfinite(p)
    return y[mask], p[mask]


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def compute_regression_metrics(y_true: Any, y_pred: Any) -> Dict[str, float]:
    """RMSE, MAE and R² over the finite (y, prediction) pairs.

    R² is ``nan`` when fewer than two pairs remain or the target is constant.
    """
    y, p = _drop_nan_pairs(y_true, y_pred)
    n = int(y.shape[0])
    if n == 0:
        return {"rmse": float("nan"), "mae": float("nan"), "r2": float("nan"), "n": 0}

    rmse = float(np.sqrt(metrics.mean_squared_error(y, p)))
    mae = float(metrics.mean_absolute_error(y, p))
    if n < 2 or np.allclose(y, y[0]):
        r2 = float("nan")
    else:
        r2 = float(metrics.r2_score(y, p))

    return {"rmse": rmse, "mae": mae, "r2": r2, "n": n}


def predict_holdout(
    result: ModelSearchResult,
    test: pd.DataFrame,
    target_col: str,
    model_id: Optional[str] = None,
) -> pd.DataFrame:
    """Per-row ``actual`` / ``predicted`` / ``residual`` for one model.

    Uses the leader unless ``model_id`` is given. The test index is kept.
    """
    if target_col not in test.columns:
        raise KeyError(f"Target column '{target_col}' not found in test data.")
    predicted = result.predict(test, model_id=model_id)
    out = pd.DataFrame(
        {
            "actual": test[target_col].astype(float),
            "predicted": predicted,
        },
        index=test.index,
    )
    out["residual"] = out["actual"] - out["predicted"]
    out["model_id"] = result.leader_id if model_id is None else model_id
    return out


def holdout_metrics(
    result: ModelSearchResult,
    test: pd.DataFrame,
    target_col: str,
) -> pd.DataFrame:
    """Held-out RMSE / MAE / R² for every candidate, in leaderboard order."""
    rows = []
    for mid in result.model_ids:
        pred = predict_holdout(result, test, target_col, model_id=mid)
        rows.append({"model_id": mid, **compute_regression_metrics(pred["actual"], pred["predicted"])})
    return pd.DataFrame(rows, columns=["model_id", "rmse", "mae", "r2", "n"])


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _resolve_metric_col(table: pd.DataFrame, metric: str) -> str:
    if metric in table.columns:
        return metric
    lower_map = {str(c).lower(): str(c) for c in table.columns}
    key = str(metric).lower().replace("²", "2")
    if key in lower_map:
        return lower_map[key]
    raise KeyError(f"Metric '{metric}' not found. Available columns: {list(table.columns)}")


def rank_models(
    table: pd.DataFrame,
    metric: str,
    *,
    model_col: str = "model_id",
) -> pd.DataFrame:
    """Sort ``table`` best-first by ``metric`` and add a 1-based ``rank``.

    Lower is better except for R². Rows with a missing metric go last. Ties are
    broken by the input order, so rank positions are unique.
    """
    col = _resolve_metric_col(table, metric)
    if model_col not in table.columns:
        raise KeyError(f"Model id column '{model_col}' not found.")

    ascending = str(col).lower() not in HIGHER_IS_BETTER_KEYS
    ranked = table.sort_values(col, ascending=ascending, kind="mergesort", na_position="last")
    ranked = ranked.reset_index(drop=True)
    ranked.insert(0, "rank", np.arange(1, len(ranked) + 1))
    return ranked


def ranking_tables(result: ModelSearchResult) -> Dict[str, pd.DataFrame]:
    """RMSE and R² ranking tables from the cross-validation leaderboard."""
    board = result.leaderboard.copy()
    board.index.name = "model_id"
    board = board.reset_index()
    return {
        "rmse": rank_models(board, "RMSE"),
        "r2": rank_models(board, "R2"),
    }


__all__ = [
    "compute_regression_metrics",
    "predict_holdout",
    "holdout_metrics",
    "rank_models",
    "ranking_tables",
]
