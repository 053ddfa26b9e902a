"""
Multipart-upload proxy.

The browser uploads file parts straight to S3 using presigned URLs; every
other step of the upload goes through this proxy so credentials never
leave the server. Each method is a thin translation from a typed command
to one storage call. Storage errors are not caught here.
"""

import logging
from typing import Protocol

from .commands import (
    AbortMultipartUpload,
    CompleteMultipartUpload,
    CreateMultipartUpload,
    DeleteObject,
    ListMultipartUploads,
    SignUploadPart,
    UploadCommand,
)
from .models import CompletedPart, DispatchError

logger = logging.getLogger(__name__)


class UploadStorage(Protocol):
    """The slice of the storage client the proxy needs."""

    async def create_multipart_upload(self, key: str, content_type: str) -> dict: ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> dict: ...

    async def complete_multipart_upload(
        self, key: str, parts: list[CompletedPart], upload_id: str
    ) -> dict: ...

    async def list_multipart_uploads(self) -> dict: ...

    async def sign_upload_part(
        self, key: str, part_number: int, upload_id: str, expiry_seconds: int = 3600
    ) -> dict: ...

    async def delete_object(self, key: str) -> dict: ...


class UploadProxy:
    """Forwards upload lifecycle commands to the storage client."""

    def __init__(self, storage: UploadStorage, expiry_seconds: int = 3600) -> None:
        self._storage = storage
        self._expiry_seconds = expiry_seconds

    async def create_multipart_upload(self, key: str, content_type: str) -> dict:
        return await self._storage.create_multipart_upload(key, content_type)

    async def abort_multipart_upload(self, key: str, upload_id: str) -> dict:
        return await self._storage.abort_multipart_upload(key, upload_id)

    async def complete_multipart_upload(
        self,
        key: str,
        parts: list[CompletedPart],
        upload_id: str,
    ) -> dict:
        return await self._storage.complete_multipart_upload(key, parts, upload_id)

    async def list_multipart_uploads(self) -> dict:
        return await self._storage.list_multipart_uploads()

    async def sign_upload_part(self, key: str, part_number: int, upload_id: str) -> dict:
        return await self._storage.sign_upload_part(
            key, part_number, upload_id, expiry_seconds=self._expiry_seconds
        )

    async def delete_object(self, key: str) -> dict:
        return await self._storage.delete_object(key)

    async def execute(self, command: UploadCommand) -> dict:
        """Run a parsed command and return the storage result."""
        logger.debug(
            "Executing upload command",
            extra={"command": type(command).__name__}
        )

        if isinstance(command, CreateMultipartUpload):
            return await self.create_multipart_upload(command.key, command.content_type)
        if isinstance(command, AbortMultipartUpload):
            return await self.abort_multipart_upload(command.key, command.upload_id)
        if isinstance(command, CompleteMultipartUpload):
            return await self.complete_multipart_upload(
                command.key, list(command.parts), command.upload_id
            )
        if isinstance(command, ListMultipartUploads):
            return await self.list_multipart_uploads()
        if isinstance(command, SignUploadPart):
            return await self.sign_upload_part(
                command.key, command.part_number, command.upload_id
            )
        if isinstance(command, DeleteObject):
            return await self.delete_object(command.key)

        raise DispatchError(f"Unsupported command type: {type(command).__name__}")
