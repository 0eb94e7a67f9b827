"""
Opening connections to the planner database.

Two backends share one interface: Snowflake itself, and an in-memory
SQLite stand-in that runs the very same SQL. The stand-in is what local
development and the test suite use, and because it is a real database
its commits and rollbacks behave like Snowflake's.

Repositories are the only callers that issue SQL; everything else just
passes a connection along.
"""

import base64
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.base import SnowflakeConfig, SnowflakeConnection
from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """The database could not be reached or the login was refused."""
    pass


# ---------------------------------------------------------------------------
# Snowflake
# ---------------------------------------------------------------------------

def _private_key_der(config: SnowflakeConfig) -> bytes:
    """
    The login key as unencrypted PKCS8 DER, which is what the connector takes.

    The PEM is read from base64 config when present, otherwise from disk.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    if config.private_key_base64:
        pem = base64.b64decode(config.private_key_base64)
    else:
        with open(config.private_key_path, "rb") as handle:
            pem = handle.read()

    key = serialization.load_pem_private_key(pem, password=None, backend=default_backend())
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _login_params(config: SnowflakeConfig) -> dict[str, Any]:
    params: dict[str, Any] = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
        # Repositories decide when to commit; a batch is one transaction.
        "autocommit": False,
        "client_session_keep_alive": True,
    }
    if config.private_key_path or config.private_key_base64:
        params["private_key"] = _private_key_der(config)
        logger.info("Snowflake login with key pair", extra={"user": config.user})
    elif config.password:
        params["password"] = config.password
        logger.info("Snowflake login with password", extra={"user": config.user})
    else:
        raise SnowflakeConnectionError("Snowflake login needs a password or a private key")
    return params


@contextmanager
def open_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """Connect to Snowflake for the duration of the block."""
    import snowflake.connector

    params = _login_params(config)
    try:
        conn = snowflake.connector.connect(**params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Could not connect to Snowflake",
            extra={"account": config.account, "error": str(e)},
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Connected to Snowflake",
        extra={"account": config.account, "database": config.database, "schema": config.schema},
    )
    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception as e:
            logger.warning("Snowflake connection did not close cleanly", extra={"error": str(e)})


# ---------------------------------------------------------------------------
# In-memory stand-in
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """SQLite cursor that accepts the `%s` placeholders the repositories write."""

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor

    def execute(self, query: str, params: Optional[tuple] = None) -> "MockSnowflakeCursor":
        logger.debug(
            "SQLite execute",
            extra={"query": " ".join(query.split())[:100], "params": params},
        )
        self._cursor.execute(query.replace("%s", "?"), tuple(params or ()))
        return self

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def close(self) -> None:
        self._cursor.close()

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class MockSnowflakeConnection:
    """
    In-memory SQLite database with the planner schema already created.

    Each instance is its own empty database. It may be shared between
    threads (the API runs sync dependencies in a worker pool), but is not
    meant for concurrent writers.
    """

    def __init__(self) -> None:
        self._db = sqlite3.connect(":memory:", check_same_thread=False)
        for statement in SCHEMA_STATEMENTS:
            self._db.execute(statement)
        self._db.commit()
        logger.info("Created in-memory planner database")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._db.cursor())

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()
        logger.debug("In-memory database rolled back")

    def close(self) -> None:
        # Closing would discard the data; the object simply goes away instead.
        pass


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    A connection to whichever backend the settings select.

    `config` is required unless `mock_mode` is set, in which case a fresh
    in-memory database is returned.
    """
    if mock_mode:
        yield MockSnowflakeConnection()
        return
    if config is None:
        raise ValueError("config is required when not in mock mode")
    with open_snowflake_connection(config) as conn:
        yield conn


def ensure_schema(connection: SnowflakeConnection) -> None:
    """Create any missing tables."""
    cursor = connection.cursor()
    try:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
        connection.commit()
    finally:
        cursor.close()
