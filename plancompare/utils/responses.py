from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from fastapi import Request

from plancompare.core.exceptions import (
    EmptyModelResponseError,
    InvalidDocumentError,
    ModelTimeoutError,
    OCRTimeoutError,
    ParseError,
    PipelineError,
    ProcessingStage,
)
from plancompare.schemas.api import ApiResponse, ErrorDetail, ResponseMeta


def _request_id(request: Optional[Request]) -> str:
    if request is not None and hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary.

    Returns a dict to be compatible with FastAPI's response_model=dict.
    """
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version,
    )

    if isinstance(data, dict):
        data_dict = data
    elif hasattr(data, "model_dump"):
        data_dict = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data_dict = {
            "items": [
                item.model_dump(mode="json", by_alias=True) if hasattr(item, "model_dump") else item
                for item in data
            ]
        }
    elif data is None:
        data_dict = {}
    else:
        data_dict = {"value": data}

    response = ApiResponse(status=status, message=message, data=data_dict, meta=meta)
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
    **context: Any,
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
        **context,
    )


_STAGE_MESSAGES: Dict[ProcessingStage, Tuple[str, str, int]] = {
    ProcessingStage.AUTHENTICATION: (
        "Authentication error",
        "Please sign in again or contact support if the issue persists.",
        401,
    ),
    ProcessingStage.FORM_VALIDATION: (
        "Invalid form submission",
        "Upload a single PDF quote document under the size limit.",
        400,
    ),
    ProcessingStage.FILE_UPLOAD: (
        "File storage error",
        "Please try uploading again. If the problem persists, contact support.",
        500,
    ),
    ProcessingStage.TEXT_EXTRACTION: (
        "PDF extraction error",
        "Try a different PDF file or ensure your PDF is not password-protected.",
        500,
    ),
    ProcessingStage.AI_PROCESSING: (
        "AI processing error",
        "Please try again or try with a different document.",
        500,
    ),
    ProcessingStage.SAVE_RESULTS: (
        "Result storage error",
        "The document was processed but could not be saved. Please try again.",
        500,
    ),
}


def describe_pipeline_error(error: PipelineError) -> Dict[str, Any]:
    """Map a pipeline failure to a user-facing message and suggested action.

    Args:
        error: The failure raised by the pipeline

    Returns:
        Dict with ``message``, ``technical_details``, ``suggested_action``,
        ``stage`` and ``status_code``.
    """
    message, suggested_action, status_code = _STAGE_MESSAGES[error.stage]
    cause = error.original_error
    cause_text = str(cause or error).lower()

    if isinstance(cause, InvalidDocumentError):
        status_code = 400
    elif isinstance(cause, OCRTimeoutError):
        suggested_action = "The PDF processing timed out. Try with a smaller or simpler document."
    elif "payment required" in cause_text:
        suggested_action = "The text extraction service account needs attention. Contact support."
    elif "password" in cause_text or "encrypt" in cause_text:
        suggested_action = "The PDF appears to be password-protected. Please upload an unprotected version."
    elif isinstance(cause, ModelTimeoutError):
        suggested_action = "The AI service took too long to respond. Please try again shortly."
    elif "quota" in cause_text or "rate limit" in cause_text or "429" in cause_text:
        suggested_action = "Our AI service is experiencing high demand. Please try again in a few minutes."
    elif isinstance(cause, (ParseError, EmptyModelResponseError)):
        suggested_action = (
            "The document structure could not be properly interpreted. "
            "Try with a clearer document layout."
        )

    return {
        "message": message,
        "technical_details": str(cause or error),
        "suggested_action": suggested_action,
        "stage": error.stage.value,
        "status_code": status_code,
    }
