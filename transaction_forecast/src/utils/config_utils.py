"""YAML configuration for the analysis pipeline.

A single file (default: ``transaction_forecast/configs/pipeline.yaml``) holds
one block per pipeline step::

    database:   ConnectionConfig fields (no password; see ``password_env``)
    tables:     customer_table / features_table
    features:   FeatureConfig fields (column names)
    split:      SplitConfig fields
    lasso:      LassoProbeConfig fields
    automl:     AutoMLConfig fields

Unknown keys are ignored, missing blocks fall back to dataclass defaults and
a missing file yields an all-default configuration with a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from transaction_forecast.src.data.features import FeatureConfig
from transaction_forecast.src.data.load import (
    DEFAULT_CUSTOMER_TABLE,
    DEFAULT_FEATURES_TABLE,
    ConnectionConfig,
)
from transaction_forecast.src.data.preprocess import SplitConfig
from transaction_forecast.src.models.automl import AutoMLConfig
from transaction_forecast.src.models.lasso_probe import LassoProbeConfig

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "pipeline.yaml"

T = TypeVar("T")


@dataclass
class TableConfig:
    customer_table: str = DEFAULT_CUSTOMER_TABLE
    features_table: str = DEFAULT_FEATURES_TABLE


@dataclass
class PipelineConfig:
    """All settings of one analysis run."""

    database: ConnectionConfig = field(default_factory=ConnectionConfig)
    tables: TableConfig = field(default_factory=TableConfig)
    features: FeatureConfig = field(default_factory=FeatureConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    lasso: LassoProbeConfig = field(default_factory=LassoProbeConfig)
    automl: AutoMLConfig = field(default_factory=AutoMLConfig)


def _as_bool(x: Any, default: bool = False) -> bool:
    if x is None:
        return default
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return bool(x)
    if isinstance(x, str):
        return x.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return default


def build_dataclass(cls: Type[T], block: Optional[Dict[str, Any]]) -> T:
    """Instantiate ``cls`` from a YAML block, ignoring unknown keys."""
    defaults = cls()  # type: ignore[call-arg]
    block = block or {}
    if not isinstance(block, dict):
        raise ValueError(f"Expected a mapping for {cls.__name__}, got {type(block).__name__}.")

    valid = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(block) - valid)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, unknown)

    kwargs: Dict[str, Any] = {}
    for key, value in block.items():
        if key not in valid:
            continue
        if isinstance(getattr(defaults, key), bool):
            value = _as_bool(value, default=getattr(defaults, key))
        kwargs[key] = value
    return cls(**kwargs)


def load_pipeline_config(path: Optional[Path] = None) -> PipelineConfig:
    """Read ``path`` (default: :data:`DEFAULT_CONFIG_PATH`) into a PipelineConfig."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.is_file():
        logger.warning("Pipeline config not found at %s; using defaults.", config_path)
        return PipelineConfig()

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Top level of {config_path} must be a mapping.")

    return PipelineConfig(
        database=build_dataclass(ConnectionConfig, raw.get("database")),
        tables=build_dataclass(TableConfig, raw.get("tables")),
        features=build_dataclass(FeatureConfig, raw.get("features")),
        split=build_dataclass(SplitConfig, raw.get("split")),
        lasso=build_dataclass(LassoProbeConfig, raw.get("lasso")),
        automl=build_dataclass(AutoMLConfig, raw.get("automl")),
    )


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "PipelineConfig",
    "TableConfig",
    "build_dataclass",
    "load_pipeline_config",
]
