"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .base import SnowflakeConfig, SnowflakeConnection
from .practices import PracticeRepository
from .sets import SetRepository

__all__ = ["PracticeRepository", "SetRepository", "SnowflakeConfig", "SnowflakeConnection"]
