"""Health check API endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from plancompare.core.config import settings

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")
    llm_provider: str = Field(..., description="Configured generative model provider")
    ocr_provider: str = Field(..., description="Configured text extraction provider")


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Check if the service is running and which providers it is configured for",
    operation_id="get_service_health_status",
)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    configured = bool(settings.llm.api_key)
    return HealthCheckResponse(
        status="healthy" if configured else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        llm_provider=settings.llm_provider,
        ocr_provider=settings.ocr_provider,
    )
