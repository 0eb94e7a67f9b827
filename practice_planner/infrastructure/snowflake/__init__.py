"""
Snowflake persistence: connection management, schema and repositories.
"""

from .client import (
    MockSnowflakeConnection,
    SnowflakeConnectionError,
    create_snowflake_connection,
    ensure_schema,
)

__all__ = [
    "MockSnowflakeConnection",
    "SnowflakeConnectionError",
    "create_snowflake_connection",
    "ensure_schema",
]
