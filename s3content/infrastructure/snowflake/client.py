"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through
SnowflakeFieldRepository, which owns the SQL.
"""

import json
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.fields import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: str) -> bytes:
    """
    Load private key from file for key-pair authentication.

    Snowflake wants the key as DER-encoded PKCS8 bytes, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,  # No password on the key
            backend=default_backend()
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    Only failures to connect become SnowflakeConnectionError; errors raised
    while the connection is in use propagate unchanged.

    Usage:
        with get_snowflake_connection(config) as conn:
            repo = SnowflakeFieldRepository(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
    }

    if config.private_key_path:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    SnowflakeFieldRepository without a real database: the post_fields
    MERGE and SELECT statements and the SELECT 1 ping.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage by pattern matching."""
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = query.upper().strip()
        self._results = []

        if query_upper == "SELECT 1":
            self._results = [(1,)]

        elif 'MERGE INTO POST_FIELDS' in query_upper:
            self._handle_merge(params)

        elif query_upper.startswith('SELECT') and 'FROM POST_FIELDS' in query_upper:
            self._handle_select(params)

        return self

    def _handle_merge(self, params: Optional[tuple]) -> None:
        """Upsert (post_id, field_key, json_value)."""
        if not params:
            return

        post_id, field_key, value_json = params
        # PARSE_JSON rejects invalid input; mirror that
        json.loads(value_json)
        self._storage['post_fields'][(int(post_id), str(field_key))] = value_json

    def _handle_select(self, params: Optional[tuple]) -> None:
        """Select TO_JSON(value) for (post_id, field_key)."""
        if not params:
            return

        post_id, field_key = params
        value_json = self._storage['post_fields'].get((int(post_id), str(field_key)))
        if value_json is not None:
            self._results = [(value_json,)]

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores field values in memory as {(post_id, field_key): json_text}.
    Not suitable for production, but fine for local development, unit
    tests and CI.
    """

    def __init__(self) -> None:
        self._storage: dict[str, dict] = {
            'post_fields': {},
        }

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _set_raw(self, post_id: int, field_key: str, value_json: str) -> None:
        """Store raw JSON text for a field (for test setup)."""
        self._storage['post_fields'][(post_id, field_key)] = value_json


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    """Provide an in-memory Snowflake connection."""
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, yield mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
