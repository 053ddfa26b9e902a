"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...config.settings import ConfigError, load_storage_config
from ...infrastructure.snowflake.client import create_snowflake_connection
from ...infrastructure.snowflake.repositories.fields import SnowflakeFieldRepository
from ..dependencies import SettingsDep, snowflake_config_from_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check - fast, no external dependencies."""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    response: Response,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Checks that settings are complete, that the storage config loads and
    that the field store answers SELECT 1. S3 is not contacted.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        load_storage_config(settings)
        checks.append(ReadinessCheck(name="storage_config", status="ok"))
    except ConfigError as e:
        checks.append(ReadinessCheck(
            name="storage_config",
            status="error",
            error=str(e)
        ))

    try:
        with create_snowflake_connection(
            config=snowflake_config_from_settings(settings),
            mock_mode=settings.snowflake_mock_mode,
        ) as conn:
            SnowflakeFieldRepository(conn).ping()
        checks.append(ReadinessCheck(name="field_store", status="ok"))
    except Exception as e:
        logger.error("Field store health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(
            name="field_store",
            status="error",
            error=str(e)
        ))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
