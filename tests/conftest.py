"""Shared fixtures: synthetic customer tables, a sqlite database, a fast search engine."""

from __future__ import annotations

import logging
from typing import Any, Optional

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
import sqlalchemy as sql
from sklearn.dummy import DummyRegressor
from sklearn.linear_model import Ridge
from sklearn.model_selection import KFold, cross_validate
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import OneHotEncoder
from sklearn.tree import DecisionTreeRegressor

from transaction_forecast.src.models.automl import ModelSearchResult

CITIES = ["Austin", "Dallas", "Houston", "El Paso"]
CHANNELS = {
    "EATING & DRINKING": ["FAST CASUAL", "PUB"],
    "GOODS": ["SUPERMARKET", "CONVENIENCE"],
    "OUTDOOR ACTIVITIES": ["GOLF", "RECREATION PARK"],
}
CHANNEL_EFFECT = {"EATING & DRINKING": 0.0, "GOODS": 40.0, "OUTDOOR ACTIVITIES": -5.0}


def make_customers(n: int = 100, seed: int = 0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    channels = list(CHANNELS)
    trade = [channels[i % len(channels)] for i in range(n)]
    sub = [CHANNELS[t][int(rng.integers(0, 2))] for t in trade]
    return pd.DataFrame(
        {
            "customer_id": [f"C{i:04d}" for i in range(n)],
            "city": rng.choice(CITIES, size=n),
            "trade_channel": trade,
            "sub_trade_channel": sub,
        }
    )


def make_features(customers: pd.DataFrame, seed: int = 1, constant: Optional[float] = None) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    if constant is not None:
        target = np.full(len(customers), float(constant))
    else:
        base = customers["trade_channel"].map(CHANNEL_EFFECT).to_numpy(dtype=float)
        target = 20.0 + base + rng.normal(0.0, 1.0, size=len(customers))
    return pd.DataFrame(
        {
            "customer_id": customers["customer_id"].to_numpy(),
            "annual_transactions": target,
        }
    )


@pytest.fixture
def customers_df() -> pd.DataFrame:
    return make_customers()


@pytest.fixture
def features_df(customers_df) -> pd.DataFrame:
    return make_features(customers_df)


@pytest.fixture
def messy_frames(customers_df, features_df):
    """Partial overlap, unknown ids and missing values on both sides."""
    customers = customers_df.copy()
    customers.loc[[3, 7], "city"] = None
    customers.loc[11, "sub_trade_channel"] = None

    features = features_df.iloc[10:].copy()  # C0000..C0009 have no features
    features.loc[features.index[:2], "annual_transactions"] = np.nan
    extra = pd.DataFrame({"customer_id": ["X0001", "X0002"], "annual_transactions": [5.0, 6.0]})
    features = pd.concat([features, extra], ignore_index=True)
    return customers, features


@pytest.fixture
def sqlite_engine(tmp_path, customers_df, features_df):
    db_path = tmp_path / "customers.sqlite"
    engine = sql.create_engine(f"sqlite:///{db_path}")
    customers_df.to_sql("customer", engine, index=False)
    features_df.to_sql("customer_features", engine, index=False)
    yield engine
    engine.dispose()


class SklearnSearchEngine:
    """Small stand-in for the AutoML engine: three scikit-learn pipelines."""

    def __init__(self, folds: int = 5):
        self.folds = folds
        self.calls: list[dict[str, Any]] = []

    def _candidates(self):
        def encoded(est):
            return make_pipeline(OneHotEncoder(handle_unknown="ignore"), est)

        return {
            "ridge": ("Ridge Regression", encoded(Ridge(alpha=1.0))),
            "dt": ("Decision Tree Regressor", encoded(DecisionTreeRegressor(max_depth=3, random_state=0))),
            "dummy": ("Dummy Regressor", encoded(DummyRegressor())),
        }

    def fit(self, train, target, task="regression", time_budget_seconds=None):
        self.calls.append({"n_rows": len(train), "task": task, "budget": time_budget_seconds})
        X = train.drop(columns=[target])
        y = train[target]
        cv = KFold(n_splits=self.folds, shuffle=True, random_state=0)

        models, rows = {}, []
        for mid, (name, pipe) in self._candidates().items():
            scores = cross_validate(
                pipe,
                X,
                y,
                cv=cv,
                scoring=("neg_mean_absolute_error", "neg_mean_squared_error", "r2"),
            )
            mse = -scores["test_neg_mean_squared_error"].mean()
            rows.append(
                {
                    "model_id": mid,
                    "Model": name,
                    "MAE": -scores["test_neg_mean_absolute_error"].mean(),
                    "MSE": mse,
                    "RMSE": float(np.sqrt(mse)),
                    "R2": scores["test_r2"].mean(),
                }
            )
            models[mid] = pipe.fit(X, y)

        return ModelSearchResult(
            models=models,
            leaderboard=pd.DataFrame(rows).set_index("model_id"),
            target=target,
            predictor=lambda model, rows: model.predict(rows),
        )


@pytest.fixture
def fake_engine() -> SklearnSearchEngine:
    return SklearnSearchEngine()


@pytest.fixture
def package_logs(caplog, monkeypatch):
    """``caplog`` that still sees package records after ``configure_logging`` ran."""
    monkeypatch.setattr(logging.getLogger("transaction_forecast"), "propagate", True)
    caplog.set_level(logging.INFO, logger="transaction_forecast")
    return caplog
