"""AutoML driver: time-budgeted model search delegated to PyCaret.

The search itself (cross-validated training of gradient-boosted trees, random
forests, extremely randomised trees, regularised linear models, a neural
network, tuning and stacking) is owned by PyCaret. This module only:

- translates :class:`AutoMLConfig` into ``RegressionExperiment`` calls;
- collects the cross-validation leaderboard and the fitted candidates into a
  :class:`ModelSearchResult`;
- exposes ``predict`` and ``rank`` on that result.

Any engine with the same ``fit`` signature (:class:`ModelSearchEngine`) can be
plugged into the experiment scripts; the test-suite uses a small scikit-learn
engine this way.

The time budget is wall-clock, counted from before ``setup``. The comparison
gets what is left of it through ``compare_models(budget_time=...)`` and stops
early with whatever candidates finished; tuning and stacking are skipped once
the budget is spent. PyCaret has no time limit for those two stages, so one
that starts with budget left can still overrun it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SUPPORTED_TASKS = ("regression",)

# PyCaret model ids covering the searched families.
DEFAULT_MODEL_MENU: List[str] = [
    "gbr",  # gradient-boosted trees
    "lightgbm",  # gradient-boosted trees (histogram)
    "rf",  # random forest
    "et",  # extremely randomised trees
    "en",  # elastic net
    "ridge",  # ridge
    "mlp",  # feed-forward neural network
]

STACK_MODEL_ID = "stack"

# PyCaret reads budget_time=0 as "no limit".
_MIN_BUDGET_MINUTES = 1e-3

# Leaderboard metrics where a larger value is better.
HIGHER_IS_BETTER = frozenset({"R2"})
_METRIC_ALIASES = {
    "rmse": "RMSE",
    "mse": "MSE",
    "mae": "MAE",
    "r2": "R2",
    "rmsle": "RMSLE",
    "mape": "MAPE",
}


def canonical_metric(metric: str) -> str:
    """Map a user-supplied metric name onto the leaderboard column name."""
    key = str(metric).strip().lower().replace("²", "2")
    if key not in _METRIC_ALIASES:
        raise ValueError(f"Unsupported ranking metric: {metric!r}. Expected one of {sorted(_METRIC_ALIASES)}.")
    return _METRIC_ALIASES[key]


def sort_leaderboard(leaderboard: pd.DataFrame, metric: str) -> pd.DataFrame:
    """Order rows best-first by ``metric`` (stable for ties)."""
    col = canonical_metric(metric)
    if col not in leaderboard.columns:
        raise KeyError(f"Metric column '{col}' not in leaderboard: {list(leaderboard.columns)}")
    return leaderboard.sort_values(col, ascending=col not in HIGHER_IS_BETTER, kind="mergesort")


@dataclass
class AutoMLConfig:
    """Search settings passed to the AutoML engine.

    Parameters
    ----------
    task:
        Only ``"regression"`` is supported.
    time_budget_seconds:
        Wall-clock budget for setup, comparison, tuning and stacking. Must be
        positive. Tuning and stacking are skipped once it is spent.
    folds:
        K in K-fold cross-validation.
    include:
        Model ids searched (see :data:`DEFAULT_MODEL_MENU`).
    n_stack:
        Number of top candidates combined in the stacked ensemble.
    stack:
        Build a stacked ensemble over the top candidates.
    tune_leader:
        Random-search tune the best single model after the comparison.
    tune_iterations:
        Random-search iterations when ``tune_leader`` is set.
    sort_metric:
        Metric the leaderboard (and the leader) is chosen by.
    session_id:
        PyCaret session seed.
    internal_train_size:
        Share of the training partition PyCaret uses for CV; the remainder is
        its own internal holdout. The external test partition is never seen.
    n_jobs:
        Parallel workers inside PyCaret (-1 = all cores).
    save_path:
        When set, the leader pipeline is saved there (``<save_path>.pkl``).
    """

    task: str = "regression"
    time_budget_seconds: float = 1800.0
    folds: int = 5
    include: List[str] = field(default_factory=lambda: list(DEFAULT_MODEL_MENU))
    n_stack: int = 5
    stack: bool = True
    tune_leader: bool = False
    tune_iterations: int = 10
    sort_metric: str = "RMSE"
    session_id: int = 123
    internal_train_size: float = 0.9
    n_jobs: int = -1
    save_path: Optional[str] = None


@dataclass
class ModelSearchResult:
    """Fitted candidates plus their cross-validation leaderboard.

    ``leaderboard`` is indexed by model id and sorted best-first by
    ``sort_metric``; ``models`` maps the same ids to fitted estimators.
    ``predictor`` turns ``(estimator, rows)`` into predictions, since some
    engines (PyCaret) keep the preprocessing pipeline outside the estimator.
    """

    models: Dict[str, Any]
    leaderboard: pd.DataFrame
    target: str
    predictor: Callable[[Any, pd.DataFrame], Any]
    sort_metric: str = "RMSE"
    experiment: Any = None

    def __post_init__(self) -> None:
        if self.leaderboard.empty or not self.models:
            raise RuntimeError("Model search returned no fitted candidates.")
        unknown = [m for m in self.leaderboard.index if m not in self.models]
        if unknown:
            raise ValueError(f"Leaderboard rows without a fitted model: {unknown}")
        self.leaderboard = sort_leaderboard(self.leaderboard, self.sort_metric)

    @property
    def leader_id(self) -> str:
        return str(self.leaderboard.index[0])

    @property
    def leader(self) -> Any:
        return self.models[self.leader_id]

    @property
    def model_ids(self) -> List[str]:
        return [str(m) for m in self.leaderboard.index]

    def predict(self, rows: pd.DataFrame, model_id: Optional[str] = None) -> pd.Series:
        """Point predictions for ``rows`` (target column ignored if present)."""
        mid = self.leader_id if model_id is None else model_id
        if mid not in self.models:
            raise KeyError(f"Unknown model id '{mid}'. Available: {self.model_ids}")
        features = rows.drop(columns=[self.target], errors="ignore")
        preds = np.asarray(self.predictor(self.models[mid], features), dtype=float).reshape(-1)
        if preds.shape[0] != len(features):
            raise ValueError(f"Model '{mid}' returned {preds.shape[0]} predictions for {len(features)} rows.")
        return pd.Series(preds, index=rows.index, name="predicted")

    def rank(self, metric: str = "RMSE") -> List[Tuple[str, float]]:
        """``(model_id, value)`` pairs, best first."""
        ordered = sort_leaderboard(self.leaderboard, metric)
        col = canonical_metric(metric)
        return [(str(mid), float(val)) for mid, val in ordered[col].items()]


class ModelSearchEngine(Protocol):
    """Anything that can run a time-budgeted search on a labelled table."""

    def fit(
        self,
        train: pd.DataFrame,
        target: str,
        task: str = "regression",
        time_budget_seconds: Optional[float] = None,
    ) -> ModelSearchResult:
        ...


def _check_task(task: str) -> str:
    task = str(task).strip().lower()
    if task not in SUPPORTED_TASKS:
        raise ValueError(f"Unsupported task: {task!r}. Expected one of {SUPPORTED_TASKS}.")
    return task


def _check_budget(seconds: float) -> float:
    budget = float(seconds)
    if not budget > 0:
        raise ValueError(f"time_budget_seconds must be positive, got {seconds!r}.")
    return budget


def _time_left(started: float, budget: float) -> float:
    return budget - (time.monotonic() - started)


def _mean_cv_row(scores: pd.DataFrame) -> pd.Series:
    """Extract the ``Mean`` row from a PyCaret per-fold score grid."""
    if "Mean" in scores.index:
        return scores.loc["Mean"]
    return scores.mean(numeric_only=True)


class PyCaretSearchEngine:
    """:class:`ModelSearchEngine` backed by ``pycaret.regression``."""

    def __init__(self, config: Optional[AutoMLConfig] = None):
        self.config = config or AutoMLConfig()

    def _setup(self, train: pd.DataFrame, target: str):
        from pycaret.regression import RegressionExperiment

        categorical = [
            c for c in train.columns
            if c != target and not pd.api.types.is_numeric_dtype(train[c])
        ]
        exp = RegressionExperiment()
        exp.setup(
            data=train,
            target=target,
            train_size=self.config.internal_train_size,
            fold=int(self.config.folds),
            categorical_features=categorical or None,
            session_id=int(self.config.session_id),
            n_jobs=int(self.config.n_jobs),
            verbose=False,
            html=False,
        )
        return exp

    def fit(
        self,
        train: pd.DataFrame,
        target: str,
        task: str = "regression",
        time_budget_seconds: Optional[float] = None,
    ) -> ModelSearchResult:
        cfg = self.config
        _check_task(task)
        if target not in train.columns:
            raise KeyError(f"Target column '{target}' not found in training data.")

        budget = _check_budget(cfg.time_budget_seconds if time_budget_seconds is None else time_budget_seconds)
        sort = canonical_metric(cfg.sort_metric)

        started = time.monotonic()
        exp = self._setup(train, target)

        remaining = _time_left(started, budget)
        logger.info(
            "Comparing %d model families (folds=%d, budget=%.0fs, left after setup=%.0fs, sort=%s)",
            len(cfg.include),
            cfg.folds,
            budget,
            max(remaining, 0.0),
            sort,
        )
        top = exp.compare_models(
            include=list(cfg.include),
            fold=int(cfg.folds),
            sort=sort,
            n_select=len(cfg.include),
            budget_time=max(remaining / 60.0, _MIN_BUDGET_MINUTES),
            verbose=False,
        )
        board = exp.pull().copy()
        if not isinstance(top, list):
            top = [top] if top is not None else []

        # compare_models returns the top rows of its grid in the same order.
        models: Dict[str, Any] = dict(zip([str(i) for i in board.index], top))
        if not models:
            raise RuntimeError("Model search returned no fitted candidates.")
        if len(models) < len(cfg.include):
            logger.warning(
                "Only %d of %d model families completed within the time budget.",
                len(models),
                len(cfg.include),
            )
        board = board.loc[list(models)]
        rows = [board]

        if cfg.tune_leader:
            leader_id = next(iter(models))
            if _time_left(started, budget) <= 0:
                logger.warning("Time budget of %.0fs spent; skipping tuning of '%s'.", budget, leader_id)
            else:
                tuned = exp.tune_model(
                    models[leader_id],
                    fold=int(cfg.folds),
                    n_iter=int(cfg.tune_iterations),
                    optimize=sort,
                    search_library="scikit-learn",
                    search_algorithm="random",
                    verbose=False,
                )
                tuned_id = f"{leader_id}_tuned"
                models[tuned_id] = tuned
                rows.append(self._score_row(exp, tuned_id, f"{board.loc[leader_id, 'Model']} (tuned)"))

        if cfg.stack and len(top) >= 2:
            if _time_left(started, budget) <= 0:
                logger.warning("Time budget of %.0fs spent; skipping the stacked ensemble.", budget)
            else:
                base = top[: max(2, int(cfg.n_stack))]
                stacked = exp.stack_models(base, fold=int(cfg.folds), optimize=sort, verbose=False)
                models[STACK_MODEL_ID] = stacked
                rows.append(self._score_row(exp, STACK_MODEL_ID, "Stacking Regressor"))

        logger.info("Model search finished in %.1fs (budget %.0fs)", time.monotonic() - started, budget)

        leaderboard = pd.concat(rows, axis=0)
        leaderboard.index.name = "model_id"

        result = ModelSearchResult(
            models=models,
            leaderboard=leaderboard,
            target=target,
            predictor=lambda model, rows: exp.predict_model(model, data=rows, verbose=False)["prediction_label"],
            sort_metric=sort,
            experiment=exp,
        )
        logger.info("AutoML leader: %s (%s=%.4f)", result.leader_id, sort, float(result.leaderboard.iloc[0][sort]))

        if cfg.save_path:
            save_search_result(result, cfg.save_path)
        return result

    @staticmethod
    def _score_row(exp, model_id: str, name: str) -> pd.DataFrame:
        row = _mean_cv_row(exp.pull()).to_frame().T
        row.index = [model_id]
        row.insert(0, "Model", name)
        return row


def save_search_result(
    result: ModelSearchResult,
    path: Union[str, Path],
    model_id: Optional[str] = None,
) -> Path:
    """Persist a fitted pipeline using PyCaret's ``save_model`` convention.

    Produces ``<path>.pkl``, loadable with :func:`load_model_artifact` in a
    separate process.
    """
    if result.experiment is None:
        raise ValueError("This search result has no PyCaret experiment to save from.")
    mid = result.leader_id if model_id is None else model_id
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    result.experiment.save_model(result.models[mid], str(out), verbose=False)
    logger.info("Saved model '%s' to %s.pkl", mid, out)
    return out.with_suffix(".pkl")


def load_model_artifact(path: Union[str, Path]):
    """Load a pipeline saved by :func:`save_search_result` (call ``.predict`` on it)."""
    from pycaret.regression import load_model

    p = Path(path)
    stem = p.with_suffix("") if p.suffix == ".pkl" else p
    return load_model(str(stem), verbose=False)


def fit_search(
    engine: ModelSearchEngine,
    train: pd.DataFrame,
    target: str,
    config: Optional[AutoMLConfig] = None,
) -> ModelSearchResult:
    """Run ``engine`` with the task and budget of ``config``."""
    cfg = config or AutoMLConfig()
    return engine.fit(
        train,
        target,
        task=_check_task(cfg.task),
        time_budget_seconds=_check_budget(cfg.time_budget_seconds),
    )


__all__ = [
    "AutoMLConfig",
    "DEFAULT_MODEL_MENU",
    "HIGHER_IS_BETTER",
    "STACK_MODEL_ID",
    "ModelSearchEngine",
    "ModelSearchResult",
    "PyCaretSearchEngine",
    "canonical_metric",
    "fit_search",
    "load_model_artifact",
    "save_search_result",
    "sort_leaderboard",
]
