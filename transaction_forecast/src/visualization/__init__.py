"""Matplotlib figures for the lasso probe and the AutoML evaluation."""

from __future__ import annotations

from .plots_regression import (
    plot_lasso_coefficients,
    plot_leaderboard,
    plot_predicted_vs_actual,
    plot_residuals,
)

__all__ = [
    "plot_lasso_coefficients",
    "plot_leaderboard",
    "plot_predicted_vs_actual",
    "plot_residuals",
]
