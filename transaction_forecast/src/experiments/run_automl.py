"""AutoML run: predict expected transactions per year from customer descriptors.

Protocol
--------
1) Load both tables and assemble the feature table.
2) Split rows into train/test (fixed proportion and seed).
3) Run the time-budgeted model search on train only (5-fold CV inside the
   engine).
4) Predict the held-out rows with the leader, score every candidate on them,
   and tabulate CV rankings by RMSE and by R².

Outputs
-------
Under ``transaction_forecast/outputs/tables``:

- ``holdout_predictions.csv`` (leader, one row per test customer)
- ``holdout_metrics.csv`` (every candidate on the test rows)
- ``leaderboard_rmse.csv`` / ``leaderboard_r2.csv`` (CV rankings)
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from transaction_forecast.src.data.features import assemble_feature_table
from transaction_forecast.src.data.load import load_raw_data
from transaction_forecast.src.data.preprocess import partition_from_config
from transaction_forecast.src.evaluation import regression as regression_eval
from transaction_forecast.src.models.automl import (
    ModelSearchEngine,
    ModelSearchResult,
    PyCaretSearchEngine,
    fit_search,
)
from transaction_forecast.src.utils.config_utils import PipelineConfig, load_pipeline_config
from transaction_forecast.src.utils.logging_utils import configure_logging

OUTPUT_DIR = Path("transaction_forecast/outputs")


@dataclass
class AutoMLRun:
    """Everything a run produced, for notebooks and the figure step."""

    table: pd.DataFrame
    train: pd.DataFrame
    test: pd.DataFrame
    result: ModelSearchResult
    predictions: pd.DataFrame
    holdout: pd.DataFrame
    rankings: Dict[str, pd.DataFrame]


def run_pipeline(
    config: PipelineConfig,
    *,
    engine: Optional[ModelSearchEngine] = None,
    frames: Optional[Tuple[pd.DataFrame, pd.DataFrame]] = None,
    output_dir: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
) -> AutoMLRun:
    """Load, assemble, split, search and evaluate.

    Parameters
    ----------
    engine:
        Model-search engine; defaults to :class:`PyCaretSearchEngine` built
        from ``config.automl``.
    frames:
        Pre-loaded ``(customers, features)``; the database is queried when None.
    output_dir:
        Root for ``tables/*.csv``; nothing is written when None.
    """
    logger = logger or logging.getLogger(__name__)
    target = config.features.target_col

    if frames is None:
        frames = load_raw_data(
            config.database,
            customer_table=config.tables.customer_table,
            features_table=config.tables.features_table,
        )
    customers, features = frames

    table = assemble_feature_table(customers, features, config.features)
    train_df, test_df = partition_from_config(table, config.split)
    logger.info(
        "AutoML split sizes: assembled=%d, train=%d, test=%d (seed=%d)",
        len(table),
        len(train_df),
        len(test_df),
        config.split.random_state,
    )

    engine = engine or PyCaretSearchEngine(config.automl)
    result = fit_search(engine, train_df, target, config.automl)
    logger.info("Leaderboard (CV, %s):\n%s", result.sort_metric, result.leaderboard.to_string())

    predictions = regression_eval.predict_holdout(result, test_df, target)
    holdout = regression_eval.holdout_metrics(result, test_df, target)
    rankings = regression_eval.ranking_tables(result)

    leader_row = holdout[holdout["model_id"] == result.leader_id].iloc[0]
    logger.info(
        "Leader %s on held-out rows: RMSE=%.4f, MAE=%.4f, R2=%.4f",
        result.leader_id,
        leader_row["rmse"],
        leader_row["mae"],
        leader_row["r2"],
    )

    if output_dir is not None:
        table_dir = Path(output_dir) / "tables"
        table_dir.mkdir(parents=True, exist_ok=True)
        predictions.to_csv(table_dir / "holdout_predictions.csv", index_label="row")
        holdout.to_csv(table_dir / "holdout_metrics.csv", index=False)
        rankings["rmse"].to_csv(table_dir / "leaderboard_rmse.csv", index=False)
        rankings["r2"].to_csv(table_dir / "leaderboard_r2.csv", index=False)
        logger.info("Saved AutoML tables to %s", table_dir)

    return AutoMLRun(
        table=table,
        train=train_df,
        test=test_df,
        result=result,
        predictions=predictions,
        holdout=holdout,
        rankings=rankings,
    )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Time-budgeted AutoML search for expected transactions per year.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Pipeline YAML path.")
    parser.add_argument("--url", type=str, default=None, help="SQLAlchemy URL overriding the config.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=OUTPUT_DIR,
        help=f"Output directory (default: {OUTPUT_DIR})",
    )
    parser.add_argument("--train-size", type=float, default=None, help="Train proportion (default from config).")
    parser.add_argument("--random-state", type=int, default=None, help="Split seed (default from config).")
    parser.add_argument(
        "--time-budget",
        type=float,
        default=None,
        help="Search budget in seconds (default from config, 1800).",
    )
    parser.add_argument(
        "--save-model",
        type=str,
        default=None,
        help="Save the leader pipeline to this path (PyCaret .pkl).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logger = configure_logging()
    args = _parse_args(argv)

    cfg = load_pipeline_config(args.config)
    if args.url:
        cfg.database.url = args.url
    if args.train_size is not None:
        cfg.split.train_size = float(args.train_size)
    if args.random_state is not None:
        cfg.split.random_state = int(args.random_state)
    if args.time_budget is not None:
        cfg.automl.time_budget_seconds = float(args.time_budget)
    if args.save_model:
        cfg.automl.save_path = args.save_model

    try:
        run_pipeline(cfg, output_dir=args.output_dir, logger=logger)
    except SQLAlchemyError as exc:
        logger.error("Could not read the customer tables: %s", exc)
        logger.error(
            "Run `python -m transaction_forecast.src.data.check_data` to verify connectivity.",
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
