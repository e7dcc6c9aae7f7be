"""CLI utility to verify database connectivity and the source schema.

Run from the project root:

.. code-block:: bash

    python -m transaction_forecast.src.data.check_data --config transaction_forecast/configs/pipeline.yaml

The script only reads: it opens one connection, checks that both tables exist
and expose the columns the feature assembler needs, and prints row counts.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import sqlalchemy as sql
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .features import FeatureConfig
from .load import _validate_table_name, create_db_engine


def schema_status(
    engine: Engine,
    customer_table: str,
    features_table: str,
    config: FeatureConfig | None = None,
) -> Dict[str, List[str]]:
    """Return the missing required columns per table (empty lists when OK).

    A table that does not exist at all is reported with every required column
    missing.
    """
    cfg = config or FeatureConfig()
    inspector = sql.inspect(engine)
    required = {
        customer_table: cfg.customer_cols,
        features_table: cfg.feature_cols,
    }

    status: Dict[str, List[str]] = {}
    for table, cols in required.items():
        schema, _, name = table.rpartition(".")
        if not inspector.has_table(name, schema=schema or None):
            status[table] = list(cols)
            continue
        present = {c["name"] for c in inspector.get_columns(name, schema=schema or None)}
        status[table] = [c for c in cols if c not in present]
    return status


def row_counts(engine: Engine, tables: Sequence[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    with engine.connect() as conn:
        for table in tables:
            counts[table] = int(conn.execute(sql.text(f"SELECT COUNT(*) FROM {_validate_table_name(table)}")).scalar_one())
    return counts


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check database connectivity and source table schema.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Pipeline YAML (default: transaction_forecast/configs/pipeline.yaml)",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="SQLAlchemy URL overriding the database block of the config.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    from transaction_forecast.src.utils.config_utils import load_pipeline_config
    from transaction_forecast.src.utils.logging_utils import configure_logging

    logger = configure_logging()
    args = _parse_args(argv)
    cfg = load_pipeline_config(args.config)
    if args.url:
        cfg.database.url = args.url

    engine = create_db_engine(cfg.database)
    tables = [cfg.tables.customer_table, cfg.tables.features_table]
    try:
        status = schema_status(engine, *tables, config=cfg.features)
        broken = {t: cols for t, cols in status.items() if cols}
        if broken:
            for table, cols in broken.items():
                logger.error("Table %s is missing required columns: %s", table, cols)
            return 1

        for table, n in row_counts(engine, tables).items():
            logger.info("Table %s: %d rows", table, n)
    except SQLAlchemyError as exc:
        logger.error("Database check failed: %s", exc)
        return 1
    finally:
        engine.dispose()

    logger.info("Database and schema look fine.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
