"""Database access for the customer tables.

The analysis reads two tables from a relational store:

- ``customer``: the static customer dimension (blinded id, city, trade channel,
  sub-trade channel);
- ``customer_features``: one row per customer with the derived target
  (expected transactions per year).

Connection parameters are an injected value object (:class:`ConnectionConfig`).
The password is never part of that object: it is read from an environment
variable at the moment the URL is built, so config files can be committed.

The connection is a scoped resource. :func:`load_raw_data` opens one
connection, issues both ``SELECT *`` statements and releases it before
returning; nothing is cached or reused across calls.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import pandas as pd
import sqlalchemy as sql
from sqlalchemy.engine import URL, Connection, Engine

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_TABLE = "customer"
DEFAULT_FEATURES_TABLE = "customer_features"
DEFAULT_PASSWORD_ENV = "CUSTOMER_DB_PASSWORD"

# Optional schema prefix, then a plain identifier.
_TABLE_NAME_RE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*\.)?[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class ConnectionConfig:
    """Connection parameters for the customer database.

    Parameters
    ----------
    drivername:
        SQLAlchemy driver name (default: PostgreSQL through psycopg2).
    host, port, database, username:
        Usual connection coordinates.
    password_env:
        Name of the environment variable holding the password. If the variable
        is unset the URL is built without a password (e.g. trust/peer auth).
    url:
        Full SQLAlchemy URL. When set, every other field is ignored. Useful for
        sqlite files and tests.
    """

    drivername: str = "postgresql+psycopg2"
    host: Optional[str] = "localhost"
    port: Optional[int] = 5432
    database: Optional[str] = None
    username: Optional[str] = None
    password_env: str = DEFAULT_PASSWORD_ENV
    url: Optional[str] = None

    def to_url(self) -> Union[str, URL]:
        """Build the SQLAlchemy URL, reading the secret from the environment."""
        if self.url:
            return self.url
        return URL.create(
            drivername=self.drivername,
            username=self.username,
            password=os.environ.get(self.password_env) or None,
            host=self.host,
            port=int(self.port) if self.port is not None else None,
            database=self.database,
        )


def create_db_engine(config: ConnectionConfig) -> Engine:
    """Create an engine for ``config`` (no connection is opened yet)."""
    return sql.create_engine(config.to_url())


def _validate_table_name(table: str) -> str:
    if not isinstance(table, str) or not _TABLE_NAME_RE.match(table):
        raise ValueError(f"Invalid table name: {table!r}")
    return table


def load_table(conn: Union[Connection, Engine], table: str) -> pd.DataFrame:
    """Return the full content of ``table`` (``SELECT * FROM <table>``)."""
    query = sql.text(f"SELECT * FROM {_validate_table_name(table)}")
    return pd.read_sql_query(query, conn)


def load_raw_data(
    source: Union[ConnectionConfig, Engine],
    customer_table: str = DEFAULT_CUSTOMER_TABLE,
    features_table: str = DEFAULT_FEATURES_TABLE,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Read the customer and customer-feature tables.

    Parameters
    ----------
    source:
        Either connection parameters or an existing engine. An engine created
        here from a config is disposed before returning.
    customer_table, features_table:
        Table names.

    Returns
    -------
    (customers, features)
        Both tables with their full column sets.

    Raises
    ------
    sqlalchemy.exc.SQLAlchemyError
        If the database is unreachable or a table does not exist. There is no
        retry; the caller is expected to abort the run.
    """
    _validate_table_name(customer_table)
    _validate_table_name(features_table)

    owns_engine = isinstance(source, ConnectionConfig)
    engine = create_db_engine(source) if owns_engine else source

    try:
        with engine.connect() as conn:
            customers = load_table(conn, customer_table)
            features = load_table(conn, features_table)
    finally:
        if owns_engine:
            engine.dispose()

    logger.info(
        "Loaded %d rows from %s and %d rows from %s",
        len(customers),
        customer_table,
        len(features),
        features_table,
    )
    return customers, features


__all__ = [
    "ConnectionConfig",
    "DEFAULT_CUSTOMER_TABLE",
    "DEFAULT_FEATURES_TABLE",
    "DEFAULT_PASSWORD_ENV",
    "create_db_engine",
    "load_table",
    "load_raw_data",
]
