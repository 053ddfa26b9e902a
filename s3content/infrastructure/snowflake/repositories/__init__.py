"""
Repository pattern implementations for Snowflake.

Repositories translate between domain values and database representations.
"""

from .fields import SnowflakeConfig, SnowflakeFieldRepository

__all__ = ["SnowflakeConfig", "SnowflakeFieldRepository"]
