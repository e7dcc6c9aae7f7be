"""Project-wide utilities (logging, seeds).

YAML configuration lives in :mod:`.config_utils`; it is not re-exported here
because it imports the data and model configs.
"""

from __future__ import annotations

from .logging_utils import DEFAULT_LOG_FORMAT, DEFAULT_LOGGER_NAME, configure_logging
from .seed_utils import set_global_seed

__all__ = [
    "configure_logging",
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_LOGGER_NAME",
    "set_global_seed",
]
