"""
Action dispatch for the content endpoints.

Routes hand a command name and body (or field arguments) to the
dispatcher; the dispatcher picks the operation. Errors from storage or the
field store are not caught here.
"""

import logging
from typing import Any

from .commands import parse_command
from .fields import FieldAccessor
from .models import StorageItem
from .proxy import UploadProxy
from .relink import Relinker

logger = logging.getLogger(__name__)


async def run_upload_command(proxy: UploadProxy, name: str, body: Any) -> dict:
    """
    Run an upload-proxy command by name.

    Unknown names and missing fields fail here, before any storage call.
    Needs only the proxy; the field store is not involved.
    """
    command = parse_command(name, body)
    logger.info("Dispatching upload command", extra={"command": name})
    return await proxy.execute(command)


class ContentDispatcher:
    """Maps content actions to the proxy, field accessor and relinker."""

    def __init__(
        self,
        proxy: UploadProxy,
        accessor: FieldAccessor,
        relinker: Relinker,
    ) -> None:
        self._proxy = proxy
        self._accessor = accessor
        self._relinker = relinker

    async def run_command(self, name: str, body: Any) -> dict:
        return await run_upload_command(self._proxy, name, body)

    def update_field(self, field_key: str, value: Any, post_id: int) -> None:
        self._accessor.update_field(field_key, value, post_id)

    async def relink(self, field_key: str, post_id: int, base_key: str) -> list[str]:
        return await self._relinker.relink(field_key, post_id, base_key)

    def linked_items(self, field_key: str, post_id: int) -> list[StorageItem]:
        return self._accessor.get_linked_items(field_key, post_id)
