"""
Snowflake repository for post field values.

Field values are stored as VARIANT so any JSON value round-trips, not just
key lists: the field-update endpoint writes whatever the client sends.
One row per (post_id, field_key); writes are upserts, last write wins.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ....core.content.models import FieldAccessError

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "CMS"
    schema: str = "CONTENT"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS post_fields (
        post_id NUMBER NOT NULL,
        field_key VARCHAR NOT NULL,
        value VARIANT,
        updated_at TIMESTAMP_LTZ DEFAULT CURRENT_TIMESTAMP(),
        PRIMARY KEY (post_id, field_key)
    )
"""


class SnowflakeFieldRepository:
    """
    Field store backed by the post_fields table.

    Implements core.content.fields.FieldStore.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_table(self) -> None:
        """Create post_fields if it doesn't exist."""
        cursor = self._conn.cursor()
        try:
            cursor.execute(CREATE_TABLE_SQL)
            self._conn.commit()
        finally:
            cursor.close()

    def ping(self) -> None:
        """Run SELECT 1; raises if the connection is unusable."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        finally:
            cursor.close()

    def get_field(self, field_key: str, post_id: int) -> Any:
        """
        Load a field value.

        Returns None when the field has never been written.

        Raises:
            FieldAccessError: the stored value isn't valid JSON
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                SELECT TO_JSON(value)
                FROM post_fields
                WHERE post_id = %s AND field_key = %s
            """, (post_id, field_key))

            row = cursor.fetchone()
        finally:
            cursor.close()

        if not row or row[0] is None:
            return None

        try:
            return json.loads(row[0])
        except ValueError as e:
            logger.error(
                "Stored field value is not valid JSON",
                extra={"field_key": field_key, "post_id": post_id, "error": str(e)}
            )
            raise FieldAccessError(
                f"Field {field_key} on post {post_id} holds invalid JSON"
            ) from e

    def update_field(self, field_key: str, value: Any, post_id: int) -> None:
        """Replace a field value, creating the row if needed."""
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                MERGE INTO post_fields t
                USING (
                    SELECT %s AS post_id, %s AS field_key, PARSE_JSON(%s) AS value
                ) s
                ON t.post_id = s.post_id AND t.field_key = s.field_key
                WHEN MATCHED THEN UPDATE SET
                    value = s.value,
                    updated_at = CURRENT_TIMESTAMP()
                WHEN NOT MATCHED THEN INSERT (post_id, field_key, value, updated_at)
                    VALUES (s.post_id, s.field_key, s.value, CURRENT_TIMESTAMP())
            """, (post_id, field_key, json.dumps(value)))

            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to update field",
                extra={"field_key": field_key, "post_id": post_id, "error": str(e)}
            )
            raise
        finally:
            cursor.close()
