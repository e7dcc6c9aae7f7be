"""Database loading, feature assembly and splitting.

The data workflow is strictly linear:

1) :func:`load_raw_data` reads ``customer`` and ``customer_features`` over one
   scoped connection;
2) :func:`assemble_feature_table` joins them on the blinded id, keeps
   ``[target, city, trade_channel, sub_trade_channel]``, casts the channel
   fields to categoricals and drops incomplete rows;
3) :func:`train_test_partition` splits the result with a fixed seed.

No step has data-dependent state, so there is nothing to fit on train only.
"""

from __future__ import annotations

from .load import (
    DEFAULT_CUSTOMER_TABLE,
    DEFAULT_FEATURES_TABLE,
    DEFAULT_PASSWORD_ENV,
    ConnectionConfig,
    create_db_engine,
    load_raw_data,
    load_table,
)
from .features import (
    FeatureConfig,
    as_unordered_categorical,
    assemble_feature_table,
    describe_feature_table,
)
from .preprocess import SplitConfig, partition_from_config, train_test_partition

__all__ = [
    # loading
    "ConnectionConfig",
    "DEFAULT_CUSTOMER_TABLE",
    "DEFAULT_FEATURES_TABLE",
    "DEFAULT_PASSWORD_ENV",
    "create_db_engine",
    "load_table",
    "load_raw_data",
    # feature table
    "FeatureConfig",
    "as_unordered_categorical",
    "assemble_feature_table",
    "describe_feature_table",
    # splitting
    "SplitConfig",
    "train_test_partition",
    "partition_from_config",
]
