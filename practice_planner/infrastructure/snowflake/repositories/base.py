"""
Shared pieces for the Snowflake repositories.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generator, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide the mock without importing
    the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "PRACTICE_PLANNER"
    schema: str = "PLANNING"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class Repository:
    """Base class holding the connection and the transaction helper."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Commit if the block completes, roll back if it raises.

        Everything staged inside the block is invisible to other
        connections until commit.
        """
        try:
            yield
        except Exception as e:
            self._conn.rollback()
            logger.warning(
                "Transaction rolled back",
                extra={"repository": type(self).__name__, "error": str(e)},
            )
            raise
        else:
            self._conn.commit()

    def _fetchall(self, query: str, params: tuple = ()) -> list:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def _fetchone(self, query: str, params: tuple = ()):
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchone()
        finally:
            cursor.close()

    def _execute(self, query: str, params: tuple = ()) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
        finally:
            cursor.close()


def placeholders(values: list) -> str:
    return ", ".join(["%s"] * len(values))


def to_timestamp(value: datetime) -> str:
    return value.isoformat()


def from_timestamp(value: Any) -> datetime:
    """Stored timestamps are ISO strings; Snowflake may hand back datetimes."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
