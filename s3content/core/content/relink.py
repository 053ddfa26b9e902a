"""
Resync a field with the contents of an S3 "folder".

Files can land in the bucket without going through the uploader (console,
CLI, sync jobs). Relinking lists everything under a prefix and makes that
listing the field's new value.
"""

import logging
from typing import Protocol

from .fields import FieldStore

logger = logging.getLogger(__name__)


class ObjectLister(Protocol):
    """The slice of the storage client relinking needs."""

    async def list_objects(self, prefix: str) -> dict: ...


def normalize_prefix(base_key: str) -> str:
    """
    Turn a folder path into a listing prefix.

    "a/b" and "/a/b/" both become "a/b/"; "" and "/" become "" so a root
    relink lists the whole bucket.
    """
    return (base_key.strip("/") + "/").lstrip("/")


class Relinker:
    """Overwrites a field with the keys found under a prefix."""

    def __init__(self, storage: ObjectLister, store: FieldStore) -> None:
        self._storage = storage
        self._store = store

    async def relink(self, field_key: str, post_id: int, base_key: str) -> list[str]:
        """
        Scan base_key and link every object under it to the post's field.

        The previous value is replaced, not merged. A listing failure
        propagates and leaves the field untouched.

        Returns:
            The keys now stored in the field, in listing order
        """
        prefix = normalize_prefix(base_key)
        listing = await self._storage.list_objects(prefix)
        contents = listing.get("Contents") or []

        # Folders created in the S3 console leave an empty object whose key
        # is the folder itself
        items = [entry["Key"] for entry in contents if entry["Key"] != prefix]

        self._store.update_field(field_key, items, post_id)

        logger.info(
            "Relinked field",
            extra={
                "field_key": field_key,
                "post_id": post_id,
                "prefix": prefix,
                "count": len(items),
            }
        )

        return items
