"""Train/test partitioning of the assembled feature table.

The split happens *after* feature assembly because assembly has no
data-dependent state (no imputation, no scaling): joining, projecting and
dropping incomplete rows give the same result whether applied before or after
partitioning.

Original row labels are kept on both partitions so that membership can be
checked against the assembled table (``train.index`` and ``test.index`` are
disjoint and together cover it).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import pandas as pd
from sklearn.model_selection import train_test_split


@dataclass
class SplitConfig:
    """Proportion and seed of the train/test partition."""

    train_size: float = 0.8
    random_state: int = 123
    min_rows: int = 10


def train_test_partition(
    table: pd.DataFrame,
    train_size: float = 0.8,
    random_state: int = 123,
    min_rows: int = 10,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split ``table`` into disjoint train and test partitions.

    Partition membership depends only on ``len(table)``, ``train_size`` and
    ``random_state``.

    Raises
    ------
    ValueError
        If ``train_size`` is not in (0, 1), if the table has fewer than
        ``min_rows`` rows, or if either partition would be empty.
    """
    if not (0.0 < train_size < 1.0):
        raise ValueError("train_size must be in (0, 1).")

    n_rows = len(table)
    if n_rows < int(min_rows):
        raise ValueError(
            f"Only {n_rows} complete rows available; at least {int(min_rows)} "
            "are required to train and evaluate a model."
        )

    n_train = int(round(n_rows * train_size))
    if n_train == 0 or n_train == n_rows:
        raise ValueError(
            f"train_size={train_size} leaves an empty partition for {n_rows} rows."
        )

    train_df, test_df = train_test_split(
        table,
        train_size=n_train,
        random_state=random_state,
        shuffle=True,
    )
    return train_df, test_df


def partition_from_config(table: pd.DataFrame, config: SplitConfig | None = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    cfg = config or SplitConfig()
    return train_test_partition(
        table,
        train_size=cfg.train_size,
        random_state=cfg.random_state,
        min_rows=cfg.min_rows,
    )


__all__ = ["SplitConfig", "train_test_partition", "partition_from_config"]
