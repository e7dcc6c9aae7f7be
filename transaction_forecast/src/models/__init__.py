"""transaction_forecast.src.models

- **Influence probe**: :class:`~transaction_forecast.src.models.lasso_probe.LassoProbe`
  (scikit-learn ``LassoCV`` over one-hot descriptors; inspection only).
- **AutoML driver**: :class:`~transaction_forecast.src.models.automl.PyCaretSearchEngine`
  returning a :class:`~transaction_forecast.src.models.automl.ModelSearchResult`.

PyCaret is imported lazily inside the engine, so importing this package is cheap.
"""

from __future__ import annotations

from .lasso_probe import LassoProbe, LassoProbeConfig, build_design_matrix, run_lasso_probe
from .automl import (
    AutoMLConfig,
    DEFAULT_MODEL_MENU,
    ModelSearchEngine,
    ModelSearchResult,
    PyCaretSearchEngine,
    fit_search,
    load_model_artifact,
    save_search_result,
)

__all__ = [
    "LassoProbe",
    "LassoProbeConfig",
    "build_design_matrix",
    "run_lasso_probe",
    "AutoMLConfig",
    "DEFAULT_MODEL_MENU",
    "ModelSearchEngine",
    "ModelSearchResult",
    "PyCaretSearchEngine",
    "fit_search",
    "load_model_artifact",
    "save_search_result",
]
