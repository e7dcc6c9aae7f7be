"""Experiment entrypoints.

Each module contains a CLI-friendly ``main`` function, re-exported here so
they can be called programmatically, e.g. from
``transaction_forecast/run_all_experiments.py``.
"""

from __future__ import annotations

from .run_automl import AutoMLRun, run_pipeline
from .run_automl import main as run_automl
from .run_lasso import run_probe
from .run_lasso import main as run_lasso

__all__ = [
    "AutoMLRun",
    "run_automl",
    "run_lasso",
    "run_pipeline",
    "run_probe",
]
