"""
Domain models for linked S3 content.

These models have no dependencies on FastAPI, boto3 or Snowflake. A field
stores plain object keys; everything else here is derived from those keys
and the configured bucket.
"""

from dataclasses import dataclass


class DispatchError(Exception):
    """Raised when an action name doesn't match any known command."""
    pass


class MissingFieldError(ValueError):
    """Raised when a command body lacks fields the command requires."""

    def __init__(self, command: str, fields: list[str]) -> None:
        self.command = command
        self.fields = fields
        super().__init__(
            f"{command} requires missing field(s): {', '.join(fields)}"
        )


class FieldAccessError(Exception):
    """Raised when the field store returns a value of an unexpected shape."""
    pass


@dataclass(frozen=True)
class StorageItem:
    """
    One object in the bucket.

    Frozen because an item is identified entirely by bucket and key.
    """
    bucket: str
    key: str

    def to_dict(self) -> dict[str, str]:
        return {"bucket": self.bucket, "key": self.key}


@dataclass(frozen=True)
class CompletedPart:
    """A finished part of a multipart upload, as S3 expects it on completion."""
    part_number: int
    etag: str

    def __post_init__(self) -> None:
        if self.part_number < 1:
            raise ValueError("Part numbers start at 1")

    def to_s3(self) -> dict:
        return {"PartNumber": self.part_number, "ETag": self.etag}


@dataclass(frozen=True)
class FieldType:
    """
    Descriptor of the custom field type a CMS registers.

    The bucket is fixed per deployment; a field only ever stores keys.
    """
    name: str
    label: str
    bucket: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "label": self.label, "bucket": self.bucket}
