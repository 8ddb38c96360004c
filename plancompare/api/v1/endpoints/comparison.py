from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from plancompare.api.v1.dependencies import get_current_user_id
from plancompare.core.exceptions import ParseError
from plancompare.schemas.api import ApiResponse
from plancompare.schemas.comparison import MarketComparisonRequest
from plancompare.services.comparison.coverage_aggregator import aggregate_by_coverage_type
from plancompare.services.normalization.format_normalizer import load_processed_document
from plancompare.utils.logging import get_logger
from plancompare.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/market",
    response_model=ApiResponse,
    summary="Compare coverages across carriers",
    operation_id="compare_market_coverages",
)
async def compare_market(
    request: Request,
    body: MarketComparisonRequest,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
) -> ApiResponse:
    """Group the coverages of the given processed documents by coverage type."""
    try:
        documents = [load_processed_document(payload) for payload in body.documents]
    except ParseError as e:
        error_detail = create_error_detail(
            title="Invalid processed data",
            status=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
            request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail.model_dump(mode="json")
        ) from e

    aggregation = aggregate_by_coverage_type(documents, coverage_type_filter=body.coverage_type)
    message = aggregation.diagnostic or f"Compared {len(aggregation.carriers)} carriers"
    return create_api_response(data=aggregation, message=message, request=request)
