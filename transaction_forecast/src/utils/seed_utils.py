"""Random seed helpers.

Two stochastic steps depend on explicit seeds (the train/test partition and
the AutoML session); everything else that draws random numbers without an
explicit ``random_state`` (e.g. LassoCV fold assignment when shuffling) falls
back to the global NumPy state seeded here.
"""

from __future__ import annotations

import os
import random

import numpy as np


def set_global_seed(seed: int = 123) -> None:
    """Seed Python and NumPy random number generators.

    Notes
    -----
    - Sets ``PYTHONHASHSEED`` for reproducible hashing in child processes
      (PyCaret may spawn joblib workers).
    - scikit-learn relies on the NumPy RNG, so NumPy seeding suffices.
    """
    os.environ["PYTHONHASHSEED"] = str(int(seed))
    random.seed(int(seed))
    np.random.seed(int(seed))


__all__ = ["set_global_seed"]
