"""Evaluation utilities: held-out regression metrics and ranking tables."""

from __future__ import annotations

from .regression import (
    compute_regression_metrics,
    holdout_metrics,
    predict_holdout,
    rank_models,
    ranking_tables,
)

__all__ = [
    "compute_regression_metrics",
    "holdout_metrics",
    "predict_holdout",
    "rank_models",
    "ranking_tables",
]
