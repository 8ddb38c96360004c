from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from plancompare.api.v1.dependencies import get_current_user_id, get_pipeline, pipeline_http_error
from plancompare.core.exceptions import PipelineError
from plancompare.pipeline.quote_pipeline import QuotePipeline
from plancompare.schemas.api import ApiResponse
from plancompare.schemas.quote import DocumentCategory, ProcessedDocument, RawDocument
from plancompare.services.normalization.format_normalizer import (
    derive_plan_summaries,
    ensure_structure,
)
from plancompare.utils.logging import get_logger
from plancompare.utils.responses import create_api_response, describe_pipeline_error

LOGGER = get_logger(__name__)

router = APIRouter()


def _document_response(
    document: ProcessedDocument, file_name: str, category: DocumentCategory
) -> Dict[str, Any]:
    report = document.report
    summaries = derive_plan_summaries(ensure_structure(document), document.metadata.carrier_name)
    return {
        "success": True,
        "processedData": document.to_payload(),
        "originalFileName": file_name,
        "category": category.value,
        "detectedPlans": [summary.model_dump(by_alias=True) for summary in summaries],
        "processingStats": {
            "processingTime": report.processing_time if report else None,
            "coverageCount": len(document.coverages),
            "coverageSummary": document.coverage_summary(),
            "validCount": report.valid_count if report else len(document.coverages),
            "invalidCount": report.invalid_count if report else 0,
            "droppedPlanRows": report.dropped_plan_rows if report else 0,
            "warnings": report.warnings if report else [],
            "processingStages": [
                record.model_dump(mode="json", by_alias=True) for record in report.stages
            ] if report else [],
        },
    }


@router.post(
    "/process",
    response_model=ApiResponse,
    summary="Process a quote document",
    operation_id="process_quote_document",
)
async def process_document(
    request: Request,
    file: UploadFile = File(..., description="Carrier quote PDF"),
    category: DocumentCategory = Form(DocumentCategory.CURRENT),
    carrier_name: Optional[str] = Form(None, alias="carrierName"),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    pipeline: Annotated[QuotePipeline, Depends(get_pipeline)] = None,
) -> ApiResponse:
    """Extract, validate and normalize one quote document."""
    content = await file.read()
    file_name = file.filename or "document.pdf"

    try:
        document = await pipeline.process_document(
            content,
            file_name,
            category=category,
            carrier_name=carrier_name,
            owner_id=user_id,
        )
    except PipelineError as e:
        raise pipeline_http_error(e, request) from e

    return create_api_response(
        data=_document_response(document, file_name, category),
        message=f"Processed {file_name}",
        request=request,
    )


@router.post(
    "/process/bulk",
    response_model=ApiResponse,
    summary="Process several quote documents",
    operation_id="process_quote_documents_bulk",
)
async def process_documents_bulk(
    request: Request,
    files: List[UploadFile] = File(..., description="Carrier quote PDFs"),
    category: DocumentCategory = Form(DocumentCategory.CURRENT),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    pipeline: Annotated[QuotePipeline, Depends(get_pipeline)] = None,
) -> ApiResponse:
    """Process each file independently; one failure does not stop the others."""
    raw_documents = [
        RawDocument(
            file_name=upload.filename or f"document-{index}.pdf",
            content=await upload.read(),
            category=category,
        )
        for index, upload in enumerate(files)
    ]

    outcomes = await pipeline.process_documents(raw_documents, owner_id=user_id)

    results = []
    for outcome in outcomes:
        if outcome.succeeded:
            results.append(
                _document_response(outcome.document, outcome.file_name, category)
            )
        else:
            description = describe_pipeline_error(outcome.error)
            results.append(
                {
                    "success": False,
                    "originalFileName": outcome.file_name,
                    "error": description["message"],
                    "technicalDetails": description["technical_details"],
                    "suggestedAction": description["suggested_action"],
                    "stage": description["stage"],
                }
            )

    succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
    return create_api_response(
        data={"results": results, "succeeded": succeeded, "failed": len(outcomes) - succeeded},
        message=f"Processed {succeeded} of {len(outcomes)} documents",
        request=request,
    )
