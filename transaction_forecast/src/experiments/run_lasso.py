"""Lasso influence probe over the assembled customer table.

Steps
-----
1) Load ``customer`` and ``customer_features`` from the database.
2) Assemble the categorical feature table (inner join, drop incomplete rows).
3) Fit LassoCV on one-hot encoded city / channel / sub-channel levels.

The probe is for reading coefficients only; it is fit on the full assembled
table because nothing downstream consumes its predictions.

Outputs
-------
Writes ``transaction_forecast/outputs/tables/lasso_coefficients.csv``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from transaction_forecast.src.data.features import assemble_feature_table, describe_feature_table
from transaction_forecast.src.data.load import load_raw_data
from transaction_forecast.src.models.lasso_probe import LassoProbe
from transaction_forecast.src.utils.config_utils import PipelineConfig, load_pipeline_config
from transaction_forecast.src.utils.logging_utils import configure_logging

OUTPUT_DIR = Path("transaction_forecast/outputs")


def run_probe(
    config: PipelineConfig,
    *,
    frames: Optional[Tuple[pd.DataFrame, pd.DataFrame]] = None,
    output_dir: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[LassoProbe, pd.DataFrame]:
    """Run the probe end to end.

    Parameters
    ----------
    frames:
        Pre-loaded ``(customers, features)``; the database is queried when None.
    output_dir:
        Where ``tables/lasso_coefficients.csv`` is written; nothing is written
        when None.
    """
    logger = logger or logging.getLogger(__name__)

    if frames is None:
        frames = load_raw_data(
            config.database,
            customer_table=config.tables.customer_table,
            features_table=config.tables.features_table,
        )
    customers, features = frames

    table = assemble_feature_table(customers, features, config.features)
    logger.info("Assembled feature table: %d rows", len(table))
    logger.debug("Feature summary:\n%s", describe_feature_table(table, config.features).to_string())

    probe = LassoProbe(config.lasso).fit(table, config.features.target_col)
    coef_table = probe.coefficient_table()
    logger.info(
        "Top lasso coefficients:\n%s",
        coef_table[coef_table["selected"]].head(10).to_string(index=False),
    )

    if output_dir is not None:
        table_dir = Path(output_dir) / "tables"
        table_dir.mkdir(parents=True, exist_ok=True)
        intercept_row = pd.DataFrame(
            [
                {
                    "feature": "(intercept)",
                    "coefficient": probe.intercept,
                    "abs_coefficient": abs(probe.intercept),
                    "selected": True,
                }
            ]
        )
        out = pd.concat([intercept_row, coef_table], ignore_index=True)
        path = table_dir / "lasso_coefficients.csv"
        out.to_csv(path, index=False)
        logger.info("Saved lasso coefficients (alpha=%.6g) to %s", probe.alpha, path)

    return probe, coef_table


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lasso influence probe on customer descriptors.")
    parser.add_argument("--config", type=Path, default=None, help="Pipeline YAML path.")
    parser.add_argument("--url", type=str, default=None, help="SQLAlchemy URL overriding the config.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=OUTPUT_DIR,
        help=f"Output directory (default: {OUTPUT_DIR})",
    )
    parser.add_argument("--cv", type=int, default=None, help="CV folds for the penalty search.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logger = configure_logging()
    args = _parse_args(argv)

    cfg = load_pipeline_config(args.config)
    if args.url:
        cfg.database.url = args.url
    if args.cv is not None:
        cfg.lasso.cv = int(args.cv)

    try:
        run_probe(cfg, output_dir=args.output_dir, logger=logger)
    except SQLAlchemyError as exc:
        logger.error("Could not read the customer tables: %s", exc)
        logger.error(
            "Run `python -m transaction_forecast.src.data.check_data` to verify connectivity.",
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
