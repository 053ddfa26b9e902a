"""
Reading and writing the linked-content field.

A field value is a list of object keys. The store behind it (Snowflake in
production, memory in mock mode) is a collaborator; this module only
defines what we need from it and how raw values become StorageItems.
"""

import logging
from typing import Any, Protocol

from .models import FieldAccessError, StorageItem

logger = logging.getLogger(__name__)


class FieldStore(Protocol):
    """
    Interface for per-post field storage.

    get_field returns whatever was last written, or None when the field
    has never been set.
    """

    def get_field(self, field_key: str, post_id: int) -> Any: ...

    def update_field(self, field_key: str, value: Any, post_id: int) -> None: ...


class FieldAccessor:
    """Materializes stored keys as StorageItems in the configured bucket."""

    def __init__(self, store: FieldStore, bucket: str) -> None:
        self._store = store
        self._bucket = bucket

    def get_linked_items(self, field_key: str, post_id: int) -> list[StorageItem]:
        """
        Return the items linked to a post's field.

        An absent, undecodable or non-list value means nothing is linked;
        this never raises for a malformed value.
        """
        try:
            names = self._store.get_field(field_key, post_id)
        except FieldAccessError as e:
            logger.warning(
                "Ignoring unreadable field value",
                extra={"field_key": field_key, "post_id": post_id, "error": str(e)}
            )
            return []

        if not isinstance(names, (list, tuple)):
            if names is not None:
                logger.warning(
                    "Ignoring non-list field value",
                    extra={
                        "field_key": field_key,
                        "post_id": post_id,
                        "value_type": type(names).__name__,
                    }
                )
            return []

        items = []
        for name in names:
            if not isinstance(name, str):
                logger.warning(
                    "Skipping non-string key in field value",
                    extra={"field_key": field_key, "post_id": post_id}
                )
                continue
            items.append(StorageItem(bucket=self._bucket, key=name))

        return items

    def update_field(self, field_key: str, value: Any, post_id: int) -> None:
        """Write a field value verbatim."""
        self._store.update_field(field_key, value, post_id)
        logger.info(
            "Updated field",
            extra={"field_key": field_key, "post_id": post_id}
        )
