"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Storage credentials can alternatively come from a static JSON file
(``S3_CONFIG_FILE``) holding ``{key, secret, region, bucket}``.

Mock modes enable local development without S3 or Snowflake.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.storage.client import StorageConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when storage configuration is missing or malformed."""
    pass


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "S3 Content API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys accepted for admin requests."
    )

    # S3 Configuration
    s3_access_key_id: str = Field(
        default="",
        description="AWS access key ID"
    )
    s3_secret_access_key: str = Field(
        default="",
        description="AWS secret access key"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="AWS region of the bucket"
    )
    s3_bucket_name: str = Field(
        default="",
        description="Bucket holding the linked media"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores. Leave unset for AWS."
    )
    s3_config_file: Optional[str] = Field(
        default=None,
        description="Path to a JSON file with key, secret, region and bucket. Overrides the S3_* values."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real S3."
    )
    presign_expiry_seconds: int = Field(
        default=3600,
        description="Lifetime of signed upload-part URLs."
    )

    # Field type
    field_type_name: str = Field(
        default="s3_content",
        description="Name under which the CMS registers the field type"
    )
    field_type_label: str = Field(
        default="S3 Content",
        description="Human-readable label of the field type"
    )

    # Snowflake Configuration (field store)
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="CMS",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="CONTENT",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        """
        missing = []

        if not self.s3_mock_mode and not self.s3_config_file:
            if not self.s3_access_key_id:
                missing.append("S3_ACCESS_KEY_ID")
            if not self.s3_secret_access_key:
                missing.append("S3_SECRET_ACCESS_KEY")
            if not self.s3_bucket_name:
                missing.append("S3_BUCKET_NAME")

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()


def _read_config_file(path: str) -> dict:
    """Read the static {key, secret, region, bucket} JSON file."""
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Storage config file not found: {path}")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Storage config file is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Storage config file must contain a JSON object")

    return data


def load_storage_config(settings: Settings) -> StorageConfig:
    """
    Build the storage configuration from settings or the static config file.

    Raises:
        ConfigError: file missing/malformed, or a required value is empty
            (credentials may be empty in mock mode)
    """
    if settings.s3_config_file:
        data = _read_config_file(settings.s3_config_file)
        values = {
            "key": data.get("key"),
            "secret": data.get("secret"),
            "region": data.get("region"),
            "bucket": data.get("bucket"),
        }
        source = settings.s3_config_file
    else:
        values = {
            "key": settings.s3_access_key_id,
            "secret": settings.s3_secret_access_key,
            "region": settings.s3_region,
            "bucket": settings.s3_bucket_name,
        }
        source = "environment"

    if settings.s3_mock_mode:
        required = ["region"]
        values["bucket"] = values["bucket"] or "mock-bucket"
    else:
        required = ["key", "secret", "region", "bucket"]

    missing = [name for name in required if not values[name]]
    if missing:
        raise ConfigError(
            f"Storage config from {source} is missing: {', '.join(missing)}"
        )

    for name, value in values.items():
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"Storage config value '{name}' must be a string")

    logger.info(
        "Loaded storage configuration",
        extra={"source": source, "bucket": values["bucket"], "region": values["region"]}
    )

    return StorageConfig(
        access_key_id=values["key"] or "",
        secret_access_key=values["secret"] or "",
        bucket_name=values["bucket"],
        region=values["region"],
        endpoint_url=settings.s3_endpoint_url,
    )


@lru_cache()
def get_storage_config() -> StorageConfig:
    """
    Load storage configuration once per process.

    Everything else receives the StorageConfig through dependency injection.
    For tests, call get_storage_config.cache_clear() to reset.
    """
    return load_storage_config(get_settings())
