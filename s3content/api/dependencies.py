"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never build their own clients, so tests can
override any of these with app.dependency_overrides.

Storage configuration is loaded once per process (get_storage_config);
everything downstream receives it from here.
"""

import logging
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings, get_storage_config
from ..core.content.dispatch import ContentDispatcher
from ..core.content.fields import FieldAccessor, FieldStore
from ..core.content.models import FieldType
from ..core.content.proxy import UploadProxy
from ..core.content.relink import Relinker
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.repositories.fields import (
    SnowflakeConfig,
    SnowflakeFieldRepository,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock instances (shared across requests in mock mode)
_mock_storage_client = None
_mock_snowflake_connection = None


def reset_mock_backends() -> None:
    """Forget the shared mock instances (for tests)."""
    global _mock_storage_client, _mock_snowflake_connection
    _mock_storage_client = None
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Content actions are admin-only; holding a configured key is what
    makes a caller an admin here.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
    config: Annotated[StorageConfig, Depends(get_storage_config)],
) -> StorageClient:
    """
    Provide storage client for uploads and listings.

    In mock mode, we reuse the same client across requests
    so that uploads and objects persist during the session.
    """
    global _mock_storage_client

    if settings.s3_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(config=config, mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    client = create_storage_client(config=config)
    logger.debug("Created S3 storage client")
    return client


def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    """Build the Snowflake connection config from settings."""
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_field_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[FieldStore, None, None]:
    """
    Provide the field store.

    A generator so the Snowflake connection is closed after the request.
    In mock mode the same in-memory connection is shared so field values
    persist across requests.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            from ..infrastructure.snowflake.client import MockSnowflakeConnection
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")

        yield SnowflakeFieldRepository(_mock_snowflake_connection)
    else:
        config = snowflake_config_from_settings(settings)

        with create_snowflake_connection(config=config) as conn:
            logger.debug("Created SnowflakeFieldRepository with Snowflake connection")
            yield SnowflakeFieldRepository(conn)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_upload_proxy(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> UploadProxy:
    """Provide the upload proxy. Does not open a field-store connection."""
    return UploadProxy(storage, expiry_seconds=settings.presign_expiry_seconds)


def get_content_dispatcher(
    proxy: Annotated[UploadProxy, Depends(get_upload_proxy)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    store: Annotated[FieldStore, Depends(get_field_store)],
) -> ContentDispatcher:
    """Wire the proxy, field accessor and relinker for one request."""
    return ContentDispatcher(
        proxy=proxy,
        accessor=FieldAccessor(store, bucket=storage.bucket_name),
        relinker=Relinker(storage, store),
    )


def get_field_type(
    settings: Annotated[Settings, Depends(get_settings)],
    config: Annotated[StorageConfig, Depends(get_storage_config)],
) -> FieldType:
    """Describe the field type a CMS registers."""
    return FieldType(
        name=settings.field_type_name,
        label=settings.field_type_label,
        bucket=config.bucket_name,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
ContentDispatcherDep = Annotated[ContentDispatcher, Depends(get_content_dispatcher)]
UploadProxyDep = Annotated[UploadProxy, Depends(get_upload_proxy)]
FieldTypeDep = Annotated[FieldType, Depends(get_field_type)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
