"""
Linked-content API endpoints.

These back the CMS field type:
- the browser uploader drives a multipart upload through /action
- the editor saves the field through /update-field
- "rescan folder" calls /relink to resync the field with S3
- /fields and /field-type let the CMS render and register the field

None of these catch storage or field-store errors; the exception
handlers in main.py turn them into responses.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Query, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ...core.content.commands import COMMAND_NAMES
from ...core.content.dispatch import run_upload_command
from ..dependencies import (
    AuthenticatedUser,
    ContentDispatcherDep,
    FieldTypeDep,
    UploadProxyDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UpdateFieldRequest(BaseModel):
    """Raw field write."""
    key: str = Field(description="Field key", min_length=1)
    value: Any = Field(default=None, description="Value stored verbatim")
    post_id: int = Field(description="Post the field belongs to")


class RelinkRequest(BaseModel):
    """Rescan a folder and link its objects to a field."""
    key: str = Field(description="Field key", min_length=1)
    post_id: int = Field(description="Post the field belongs to")
    base_key: str = Field(default="", description="Folder to scan; empty for the bucket root")


class LinkedItem(BaseModel):
    """One object linked to a field."""
    bucket: str
    key: str


class FieldTypeResponse(BaseModel):
    """Field type descriptor for CMS registration."""
    name: str
    label: str
    bucket: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/action",
    status_code=status.HTTP_200_OK,
    summary="Run an upload command",
    description=f"Proxies one step of a multipart upload. Commands: {', '.join(COMMAND_NAMES)}",
)
async def run_action(
    api_key: AuthenticatedUser,
    proxy: UploadProxyDep,
    command: str = Query(default="", description="Command name"),
    body: Any = Body(default=None),
) -> Any:
    """
    Run an upload-proxy command and return the storage result.

    The body is passed as-is to command parsing, which rejects unknown
    commands and missing fields before S3 is contacted.
    """
    result = await run_upload_command(proxy, command, body)
    return jsonable_encoder(result)


@router.post(
    "/update-field",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Write a field value",
    response_class=Response,
)
async def update_field(
    request: UpdateFieldRequest,
    api_key: AuthenticatedUser,
    dispatcher: ContentDispatcherDep,
) -> Response:
    dispatcher.update_field(request.key, request.value, request.post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/relink",
    response_model=list[str],
    status_code=status.HTTP_200_OK,
    summary="Resync a field with an S3 folder",
)
async def relink(
    request: RelinkRequest,
    api_key: AuthenticatedUser,
    dispatcher: ContentDispatcherDep,
) -> list[str]:
    """
    List every object under base_key and make that the field's value.

    Returns the keys now linked, in listing order.
    """
    logger.info(
        "Relink requested",
        extra={
            "field_key": request.key,
            "post_id": request.post_id,
            "base_key": request.base_key,
        }
    )
    return await dispatcher.relink(request.key, request.post_id, request.base_key)


@router.get(
    "/fields/{post_id}/{field_key}",
    response_model=list[LinkedItem],
    summary="Read the items linked to a field",
)
async def get_linked_items(
    post_id: int,
    field_key: str,
    api_key: AuthenticatedUser,
    dispatcher: ContentDispatcherDep,
) -> list[LinkedItem]:
    items = dispatcher.linked_items(field_key, post_id)
    return [LinkedItem(**item.to_dict()) for item in items]


@router.get(
    "/field-type",
    response_model=FieldTypeResponse,
    summary="Describe the S3 content field type",
)
async def get_field_type(
    api_key: AuthenticatedUser,
    field_type: FieldTypeDep,
) -> FieldTypeResponse:
    return FieldTypeResponse(**field_type.to_dict())
