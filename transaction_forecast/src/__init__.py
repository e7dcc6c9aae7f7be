"""Source package for the customer transaction forecast analysis.

Package layout
--------------
- data: database loading, feature table assembly, train/test partition
- models: lasso influence probe + AutoML driver (PyCaret)
- evaluation: held-out metrics and model ranking tables
- visualization: report figures
- experiments: runnable scripts (lasso probe, AutoML run)
- utils: logging, seeds, YAML configuration

This ``__init__`` stays lightweight so that importing the package does not pull
in PyCaret or matplotlib.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "data",
    "models",
    "evaluation",
    "visualization",
    "experiments",
    "utils",
]
