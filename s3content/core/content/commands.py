"""
Typed upload-proxy commands.

The browser uploader sends a command name plus a loose JSON body. Each
command is parsed into its own dataclass here, so required fields are
checked before anything reaches the object store and the proxy can work
with real types instead of dict lookups.
"""

from dataclasses import dataclass
from typing import Any, Union

from .models import CompletedPart, DispatchError, MissingFieldError


@dataclass(frozen=True)
class CreateMultipartUpload:
    key: str
    content_type: str


@dataclass(frozen=True)
class AbortMultipartUpload:
    key: str
    upload_id: str


@dataclass(frozen=True)
class CompleteMultipartUpload:
    key: str
    parts: tuple[CompletedPart, ...]
    upload_id: str


@dataclass(frozen=True)
class ListMultipartUploads:
    pass


@dataclass(frozen=True)
class SignUploadPart:
    key: str
    part_number: int
    upload_id: str


@dataclass(frozen=True)
class DeleteObject:
    key: str


UploadCommand = Union[
    CreateMultipartUpload,
    AbortMultipartUpload,
    CompleteMultipartUpload,
    ListMultipartUploads,
    SignUploadPart,
    DeleteObject,
]


# command name -> body fields it requires
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "createMultipartUpload": ("Key", "ContentType"),
    "abortMultipartUpload": ("Key", "UploadId"),
    "completeMultipartUpload": ("Key", "Parts", "UploadId"),
    "listMultipartUploads": (),
    "signUploadPart": ("Key", "PartNumber", "UploadId"),
    "deleteObject": ("Key",),
}

COMMAND_NAMES = tuple(REQUIRED_FIELDS)


def _parse_parts(command: str, raw_parts: Any) -> tuple[CompletedPart, ...]:
    """Turn [{PartNumber, ETag}, ...] into CompletedParts, keeping order."""
    if not isinstance(raw_parts, list):
        raise MissingFieldError(command, ["Parts"])

    parts = []
    for index, raw in enumerate(raw_parts):
        if not isinstance(raw, dict):
            raise MissingFieldError(command, [f"Parts[{index}]"])
        missing = [name for name in ("PartNumber", "ETag") if raw.get(name) in (None, "")]
        if missing:
            raise MissingFieldError(
                command, [f"Parts[{index}].{name}" for name in missing]
            )
        try:
            parts.append(CompletedPart(part_number=int(raw["PartNumber"]), etag=str(raw["ETag"])))
        except (TypeError, ValueError) as e:
            raise MissingFieldError(command, [f"Parts[{index}].PartNumber"]) from e

    return tuple(parts)


def parse_command(name: str, body: Any) -> UploadCommand:
    """
    Build the typed command for an action name and request body.

    Raises:
        DispatchError: name is not a known command
        MissingFieldError: body lacks a required field
    """
    if name not in REQUIRED_FIELDS:
        raise DispatchError("No matching action found")

    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise MissingFieldError(name, list(REQUIRED_FIELDS[name]) or ["<object body>"])

    missing = [
        field for field in REQUIRED_FIELDS[name]
        if body.get(field) in (None, "")
    ]
    if missing:
        raise MissingFieldError(name, missing)

    if name == "createMultipartUpload":
        return CreateMultipartUpload(key=str(body["Key"]), content_type=str(body["ContentType"]))

    if name == "abortMultipartUpload":
        return AbortMultipartUpload(key=str(body["Key"]), upload_id=str(body["UploadId"]))

    if name == "completeMultipartUpload":
        return CompleteMultipartUpload(
            key=str(body["Key"]),
            parts=_parse_parts(name, body["Parts"]),
            upload_id=str(body["UploadId"]),
        )

    if name == "listMultipartUploads":
        return ListMultipartUploads()

    if name == "signUploadPart":
        try:
            part_number = int(body["PartNumber"])
        except (TypeError, ValueError) as e:
            raise MissingFieldError(name, ["PartNumber"]) from e
        return SignUploadPart(
            key=str(body["Key"]),
            part_number=part_number,
            upload_id=str(body["UploadId"]),
        )

    return DeleteObject(key=str(body["Key"]))
