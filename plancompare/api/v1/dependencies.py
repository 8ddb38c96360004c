"""Shared FastAPI dependencies."""

from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from plancompare.core.config import settings
from plancompare.core.exceptions import ConfigurationError, PipelineError, ProcessingStage
from plancompare.core.llm_client import create_llm_client
from plancompare.pipeline.quote_pipeline import QuotePipeline
from plancompare.services.ocr import create_ocr_service
from plancompare.services.selection.selection_store import PlanSelectionStore
from plancompare.services.storage.storage_base import InMemoryStorage
from plancompare.utils.logging import get_logger
from plancompare.utils.responses import create_error_detail, describe_pipeline_error

LOGGER = get_logger(__name__)


def pipeline_http_error(error: PipelineError, request: Optional[Request] = None) -> HTTPException:
    """Convert a pipeline failure into an HTTP error with a user-facing message."""
    description = describe_pipeline_error(error)
    detail = create_error_detail(
        title=description["message"],
        status=description["status_code"],
        detail=description["technical_details"],
        request=request,
        stage=description["stage"],
        technical_details=description["technical_details"],
        suggested_action=description["suggested_action"],
        stages=[record.model_dump(mode="json", by_alias=True) for record in error.stages],
    )
    return HTTPException(status_code=description["status_code"], detail=detail.model_dump(mode="json"))


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """Identity of the caller as asserted by the upstream auth provider."""
    if not x_user_id or not x_user_id.strip():
        error = PipelineError(
            "Missing X-User-Id header",
            stage=ProcessingStage.AUTHENTICATION,
        )
        raise pipeline_http_error(error, request)
    return x_user_id.strip()


@lru_cache
def get_storage() -> Optional[InMemoryStorage]:
    """Process-wide store for sources and results, when enabled."""
    if not settings.pipeline.store_documents:
        return None
    return InMemoryStorage(max_objects=settings.pipeline.storage_max_objects)


@lru_cache
def _build_pipeline() -> QuotePipeline:
    return QuotePipeline(
        ocr_service=create_ocr_service(settings.ocr),
        llm_client=create_llm_client(settings.llm),
        storage=get_storage(),
        max_upload_bytes=settings.pipeline.max_upload_bytes,
        temperature=settings.llm.temperature,
        max_output_tokens=settings.llm.max_output_tokens,
        min_survival_ratio=settings.pipeline.min_coverage_survival_ratio,
    )


def get_pipeline(request: Request) -> QuotePipeline:
    try:
        return _build_pipeline()
    except ConfigurationError as e:
        LOGGER.error(f"Pipeline is not configured: {e}")
        detail = create_error_detail(
            title="Service not configured",
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail.model_dump(mode="json")
        ) from e


@lru_cache
def get_selection_store() -> PlanSelectionStore:
    return PlanSelectionStore(
        ttl_seconds=settings.pipeline.selection_ttl_seconds,
        max_users=settings.pipeline.selection_max_users,
    )
