"""Report figures for the transaction-count model.

- lasso coefficient bars (feature influence);
- predicted vs actual scatter and residual histogram on the held-out rows;
- leaderboard bars (CV metric per candidate).

All functions use matplotlib only and return the figure; pass ``save_path``
to also write it to disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt


def _maybe_save(fig: plt.Figure, save_path: str | Path | None) -> None:
    if save_path is None:
        return
    path = Path(save_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight", dpi=200)


def _drop_nan_pairs(y: Any, p: Any) -> Tuple[np.ndarray, np.ndarray]:
    yy = np.asarray(y, dtype=float).reshape(-1)
    pp = np.asarray(p, dtype=float).reshape(-1)
    if yy.shape[0] != pp.shape[0]:
        raise ValueError(f"actual and predicted length mismatch: {yy.shape[0]} vs {pp.shape[0]}")
    mask = np.isfinite(yy) & np.isfinite(pp)
    return yy[mask], pp[mask]


def plot_lasso_coefficients(
    coefficients: Union[pd.Series, pd.DataFrame],
    title: str = "Lasso coefficients",
    *,
    top_n: int = 30,
    include_zero: bool = False,
    save_path: str | Path | None = None,
) -> plt.Figure:
    """Horizontal bars of the largest (absolute) lasso coefficients.

    Accepts either the ``LassoProbe.coefficients()`` Series or the
    ``coefficient_table()`` frame.
    """
    if isinstance(coefficients, pd.DataFrame):
        coefs = coefficients.set_index("feature")["coefficient"]
    else:
        coefs = coefficients

    coefs = coefs.astype(float)
    if not include_zero:
        coefs = coefs[coefs != 0.0]
    coefs = coefs.reindex(coefs.abs().sort_values(ascending=False).index).head(int(top_n))

    height = max(2.5, 0.3 * len(coefs) + 1.0)
    fig, ax = plt.subplots(figsize=(7, height))
    if coefs.empty:
        ax.text(0.5, 0.5, "All coefficients shrunk to zero", ha="center", va="center", transform=ax.transAxes)
        ax.set_axis_off()
    else:
        ordered = coefs.iloc[::-1]
        colors = ["tab:blue" if v > 0 else "tab:red" for v in ordered.to_numpy()]
        ax.barh([str(i) for i in ordered.index], ordered.to_numpy(), color=colors)
        ax.axvline(0.0, color="black", linewidth=0.8)
        ax.set_xlabel("Coefficient (transactions / year)")
    ax.set_title(title)
    fig.tight_layout()

    _maybe_save(fig, save_path)
    return fig


def plot_predicted_vs_actual(
    actual: Union[pd.Series, np.ndarray],
    predicted: Union[pd.Series, np.ndarray],
    title: str = "Predicted vs actual (held-out)",
    *,
    save_path: str | Path | None = None,
) -> plt.Figure:
    """Scatter with the identity line."""
    y, p = _drop_nan_pairs(actual, predicted)
    if y.size == 0:
        raise ValueError("Empty inputs after dropping NaNs.")

    lo = float(min(y.min(), p.min()))
    hi = float(max(y.max(), p.max()))

    fig, ax = plt.subplots(figsize=(5.5, 5))
    ax.scatter(y, p, s=12, alpha=0.6)
    ax.plot([lo, hi], [lo, hi], linestyle="--", linewidth=1, color="grey", label="y = x")
    ax.set_xlabel("Actual transactions / year")
    ax.set_ylabel("Predicted transactions / year")
    ax.set_title(title)
    ax.legend()
    fig.tight_layout()

    _maybe_save(fig, save_path)
    return fig


def plot_residuals(
    actual: Union[pd.Series, np.ndarray],
    predicted: Union[pd.Series, np.ndarray],
    title: str = "Residual distribution (held-out)",
    *,
    bins: int = 30,
    save_path: str | Path | None = None,
) -> plt.Figure:
    y, p = _drop_nan_pairs(actual, predicted)
    if y.size == 0:
        raise ValueError("Empty inputs after dropping NaNs.")
    resid = y - p

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(resid, bins=int(bins), alpha=0.8)
    ax.axvline(0.0, color="black", linewidth=0.8)
    ax.set_xlabel("Actual - predicted")
    ax.set_ylabel("Customers")
    ax.set_title(title)
    fig.tight_layout()

    _maybe_save(fig, save_path)
    return fig


def plot_leaderboard(
    ranking: pd.DataFrame,
    metric: str = "RMSE",
    title: str | None = None,
    *,
    model_col: str = "model_id",
    save_path: str | Path | None = None,
) -> plt.Figure:
    """Bars of ``metric`` per model, in the ranking table's order (best on top)."""
    if metric not in ranking.columns:
        raise KeyError(f"Metric '{metric}' not found in ranking table.")
    table = ranking[[model_col, metric]].dropna()
    if table.empty:
        raise ValueError("Ranking table has no finite metric values.")

    ordered = table.iloc[::-1]
    fig, ax = plt.subplots(figsize=(6.5, max(2.5, 0.4 * len(table) + 1.0)))
    ax.barh(ordered[model_col].astype(str), ordered[metric].astype(float))
    ax.set_xlabel(metric)
    ax.set_title(title or f"Cross-validated {metric} by model")
    for i, v in enumerate(ordered[metric].astype(float)):
        ax.text(v, i, f" {v:.3f}", va="center", fontsize=8)
    fig.tight_layout()

    _maybe_save(fig, save_path)
    return fig


__all__ = [
    "plot_lasso_coefficients",
    "plot_predicted_vs_actual",
    "plot_residuals",
    "plot_leaderboard",
]
