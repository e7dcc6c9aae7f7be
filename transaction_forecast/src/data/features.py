"""Feature table assembly for the transaction-count model.

The model input is deliberately small: three categorical descriptors of a
business customer (city, trade channel, sub-trade channel) and one numeric
target (expected transactions per year).

:func:`assemble_feature_table` is the single entry point:

1) check that both inputs carry the required columns and are non-empty;
2) inner-join customers and features on the blinded identifier (one-to-one);
3) project to ``[target, city, trade_channel, sub_trade_channel]``;
4) cast the two channel fields to unordered categoricals;
5) drop rows with a missing value in any retained field (no imputation).

The identifier is only a join key and never reaches the model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import pandas as pd
from pandas.api.types import CategoricalDtype


@dataclass
class FeatureConfig:
    """Column names of the two source tables.

    The defaults match the ``customer`` / ``customer_features`` tables; override
    them when an upstream feature-engineering job renames a column.
    """

    id_col: str = "customer_id"
    city_col: str = "city"
    trade_channel_col: str = "trade_channel"
    sub_trade_channel_col: str = "sub_trade_channel"
    target_col: str = "annual_transactions"

    @property
    def categorical_cols(self) -> List[str]:
        return [self.trade_channel_col, self.sub_trade_channel_col]

    @property
    def predictor_cols(self) -> List[str]:
        return [self.city_col, self.trade_channel_col, self.sub_trade_channel_col]

    @property
    def retained_cols(self) -> List[str]:
        """Output column order: target first, then predictors."""
        return [self.target_col] + self.predictor_cols

    @property
    def customer_cols(self) -> List[str]:
        return [self.id_col] + self.predictor_cols

    @property
    def feature_cols(self) -> List[str]:
        return [self.id_col, self.target_col]


def as_unordered_categorical(series: pd.Series) -> pd.Series:
    """Cast ``series`` to an unordered categorical.

    Idempotent: an already categorical series keeps its category set (only the
    ordered flag is cleared).
    """
    if isinstance(series.dtype, CategoricalDtype):
        return series.cat.as_unordered()
    return series.astype(CategoricalDtype(ordered=False))


def _require_columns(df: pd.DataFrame, cols: List[str], table: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(
            f"Missing columns in {table} table: {missing}. "
            f"Available columns: {list(df.columns)}"
        )


def assemble_feature_table(
    customers: pd.DataFrame,
    features: pd.DataFrame,
    config: FeatureConfig | None = None,
) -> pd.DataFrame:
    """Join, project, cast and filter the two source tables.

    Parameters
    ----------
    customers:
        Rows of the customer dimension.
    features:
        Rows of the customer feature table (one per customer).
    config:
        Column names; defaults to :class:`FeatureConfig`.

    Returns
    -------
    pd.DataFrame
        One row per customer present in both inputs with no missing retained
        field, columns ``config.retained_cols`` (target first), fresh
        ``RangeIndex``.

    Raises
    ------
    KeyError
        A required column is absent (schema drift upstream).
    ValueError
        Either input is empty, or no complete row survives the join/filter.
    pandas.errors.MergeError
        An identifier occurs more than once in either input.
    """
    cfg = config or FeatureConfig()

    _require_columns(customers, cfg.customer_cols, "customer")
    _require_columns(features, cfg.feature_cols, "customer_features")

    if customers.empty:
        raise ValueError("Customer table is empty; nothing to model.")
    if features.empty:
        raise ValueError("Customer feature table is empty; nothing to model.")

    # pandas joins NaN keys to each other; an unknown id is not a match.
    left = customers[cfg.customer_cols].dropna(subset=[cfg.id_col])
    right = features[cfg.feature_cols].dropna(subset=[cfg.id_col])

    joined = pd.merge(left, right, on=cfg.id_col, how="inner", validate="one_to_one")

    table = joined[cfg.retained_cols].copy()
    table[cfg.target_col] = pd.to_numeric(table[cfg.target_col])
    for col in cfg.categorical_cols:
        table[col] = as_unordered_categorical(table[col])

    table = table.dropna(subset=cfg.retained_cols).reset_index(drop=True)
    for col in cfg.categorical_cols:
        table[col] = table[col].cat.remove_unused_categories()

    if table.empty:
        raise ValueError(
            "No complete rows left after joining customers with features "
            f"on '{cfg.id_col}' and dropping missing values."
        )

    return table


def describe_feature_table(table: pd.DataFrame, config: FeatureConfig | None = None) -> pd.DataFrame:
    """Per-column summary used in run logs: level counts and dominant level."""
    cfg = config or FeatureConfig()
    rows = []
    for col in cfg.predictor_cols:
        counts = table[col].value_counts(dropna=False)
        rows.append(
            {
                "column": col,
                "dtype": str(table[col].dtype),
                "n_levels": int(counts.size),
                "top_level": counts.index[0] if counts.size else None,
                "top_share": float(counts.iloc[0] / len(table)) if counts.size else float("nan"),
            }
        )
    target = table[cfg.target_col]
    rows.append(
        {
            "column": cfg.target_col,
            "dtype": str(target.dtype),
            "n_levels": int(target.nunique()),
            "top_level": None,
            "top_share": float("nan"),
            "mean": float(target.mean()),
            "std": float(target.std()) if len(target) > 1 else float("nan"),
            "min": float(target.min()),
            "max": float(target.max()),
        }
    )
    return pd.DataFrame(rows)


__all__ = [
    "FeatureConfig",
    "as_unordered_categorical",
    "assemble_feature_table",
    "describe_feature_table",
]
