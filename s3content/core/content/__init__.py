"""
Linked S3 content logic.

Contains the domain models, upload-proxy commands, field access and the
relink operation.
"""

from .commands import COMMAND_NAMES, UploadCommand, parse_command
from .dispatch import ContentDispatcher, run_upload_command
from .fields import FieldAccessor, FieldStore
from .models import (
    CompletedPart,
    DispatchError,
    FieldAccessError,
    FieldType,
    MissingFieldError,
    StorageItem,
)
from .proxy import UploadProxy
from .relink import Relinker, normalize_prefix

__all__ = [
    "COMMAND_NAMES",
    "CompletedPart",
    "ContentDispatcher",
    "DispatchError",
    "FieldAccessError",
    "FieldAccessor",
    "FieldStore",
    "FieldType",
    "MissingFieldError",
    "Relinker",
    "StorageItem",
    "UploadCommand",
    "UploadProxy",
    "normalize_prefix",
    "parse_command",
    "run_upload_command",
]
