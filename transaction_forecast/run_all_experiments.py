"""Run the full customer transaction forecast analysis.

This launcher orchestrates:
1) a database / schema check;
2) the lasso influence probe on the assembled feature table;
3) the time-budgeted AutoML search with held-out evaluation;
4) report figures (lasso coefficients, leaderboard, predicted vs actual).

Usage
-----
From the repository root:

    python transaction_forecast/run_all_experiments.py --config transaction_forecast/configs/pipeline.yaml

The database password is read from ``$CUSTOMER_DB_PASSWORD`` (see the
``database.password_env`` key of the config).

The outputs are written to:
- ``transaction_forecast/outputs/tables``
- ``transaction_forecast/outputs/figures``
- ``transaction_forecast/outputs/logs/run_all.log``
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

PROJECT_ROOT = Path(__file__).resolve().parent
REPO_ROOT = PROJECT_ROOT.parent

# Ensure repo root is importable (needed when running from inside transaction_forecast/)
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import argparse

import matplotlib

matplotlib.use("Agg")  # headless-safe
import matplotlib.pyplot as plt
from sqlalchemy.exc import SQLAlchemyError

from transaction_forecast.src.data.check_data import schema_status
from transaction_forecast.src.data.load import create_db_engine, load_raw_data
from transaction_forecast.src.experiments import run_pipeline, run_probe
from transaction_forecast.src.utils import configure_logging, set_global_seed
from transaction_forecast.src.utils.config_utils import DEFAULT_CONFIG_PATH, load_pipeline_config
from transaction_forecast.src.visualization import (
    plot_lasso_coefficients,
    plot_leaderboard,
    plot_predicted_vs_actual,
    plot_residuals,
)

OUTPUT_DIR = PROJECT_ROOT / "outputs"
FIG_DIR = OUTPUT_DIR / "figures"
TABLE_DIR = OUTPUT_DIR / "tables"
LOG_DIR = OUTPUT_DIR / "logs"


def _ensure_dirs() -> None:
    for d in [OUTPUT_DIR, FIG_DIR, TABLE_DIR, LOG_DIR]:
        d.mkdir(parents=True, exist_ok=True)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the customer transaction forecast analysis.")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Pipeline YAML (default: transaction_forecast/configs/pipeline.yaml)",
    )
    parser.add_argument("--url", type=str, default=None, help="SQLAlchemy URL overriding the config.")
    parser.add_argument("--seed", type=int, default=123, help="Global random seed (default: 123)")
    parser.add_argument("--time-budget", type=float, default=None, help="AutoML budget in seconds.")

    parser.add_argument("--skip-lasso", action="store_true", help="Skip the lasso influence probe")
    parser.add_argument("--skip-automl", action="store_true", help="Skip the AutoML search")
    parser.add_argument("--skip-plots", action="store_true", help="Skip figure generation")
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Continue even if a step fails (default: stop on first failure)",
    )
    return parser.parse_args(argv)


def _check_database(logger, cfg) -> bool:
    engine = create_db_engine(cfg.database)
    try:
        status = schema_status(
            engine,
            cfg.tables.customer_table,
            cfg.tables.features_table,
            config=cfg.features,
        )
    except SQLAlchemyError as exc:
        logger.error("Database is not reachable: %s", exc)
        return False
    finally:
        engine.dispose()

    ok = True
    for table, missing in status.items():
        if missing:
            logger.error("Table %s is missing required columns: %s", table, missing)
            ok = False
    if ok:
        logger.info("Found tables %s", ", ".join(status))
    return ok


def _run_step(logger, name: str, fn: Callable[[], Any], *, keep_going: bool) -> Any:
    logger.info("\n===== Running: %s =====", name)
    try:
        out = fn()
        logger.info("Completed: %s", name)
        return out
    except Exception as exc:
        logger.exception("%s failed: %s", name, exc)

    if keep_going:
        logger.warning("Continuing because --keep-going is set.")
        return None

    raise RuntimeError(f"Step '{name}' failed")


def _generate_plots(logger, probe_out, automl_run) -> None:
    if probe_out is not None:
        probe, coef_table = probe_out
        plot_lasso_coefficients(
            coef_table,
            title=f"Lasso coefficients (alpha={probe.alpha:.3g})",
            save_path=FIG_DIR / "lasso_coefficients.png",
        )

    if automl_run is not None:
        preds = automl_run.predictions
        leader = automl_run.result.leader_id
        plot_predicted_vs_actual(
            preds["actual"],
            preds["predicted"],
            title=f"Predicted vs actual, held-out ({leader})",
            save_path=FIG_DIR / "predicted_vs_actual.png",
        )
        plot_residuals(
            preds["actual"],
            preds["predicted"],
            title=f"Residuals, held-out ({leader})",
            save_path=FIG_DIR / "residuals.png",
        )
        plot_leaderboard(automl_run.rankings["rmse"], metric="RMSE", save_path=FIG_DIR / "leaderboard_rmse.png")
        plot_leaderboard(automl_run.rankings["r2"], metric="R2", save_path=FIG_DIR / "leaderboard_r2.png")

    plt.close("all")
    logger.info("Figures written under %s", FIG_DIR)


def main(argv: Optional[Sequence[str]] = None) -> None:
    _ensure_dirs()

    # Relative paths in the config (sqlite files, save_path) resolve from the repo root.
    os.chdir(REPO_ROOT)

    logger = configure_logging(log_file=LOG_DIR / "run_all.log")
    args = _parse_args(argv)

    set_global_seed(args.seed)

    cfg = load_pipeline_config(args.config)
    if args.url:
        cfg.database.url = args.url
    if args.time_budget is not None:
        cfg.automl.time_budget_seconds = float(args.time_budget)

    if not _check_database(logger, cfg):
        sys.exit(1)

    # Both steps work on the same snapshot of the two tables.
    frames = load_raw_data(
        cfg.database,
        customer_table=cfg.tables.customer_table,
        features_table=cfg.tables.features_table,
    )

    probe_out = None
    if not args.skip_lasso:
        probe_out = _run_step(
            logger,
            "Lasso influence probe",
            lambda: run_probe(cfg, frames=frames, output_dir=OUTPUT_DIR, logger=logger),
            keep_going=args.keep_going,
        )

    automl_run = None
    if not args.skip_automl:
        automl_run = _run_step(
            logger,
            "AutoML search",
            lambda: run_pipeline(cfg, frames=frames, output_dir=OUTPUT_DIR, logger=logger),
            keep_going=args.keep_going,
        )

    if not args.skip_plots:
        logger.info("\n===== Generating figures =====")
        try:
            _generate_plots(logger, probe_out, automl_run)
        except Exception as exc:  # pragma: no cover
            logger.exception("Figure generation failed: %s", exc)
            if not args.keep_going:
                raise

    logger.info("\nAll done.")


if __name__ == "__main__":
    main()
