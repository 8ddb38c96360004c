"""Custom exception hierarchy."""

from enum import Enum
from typing import Optional


class ProcessingStage(str, Enum):
    """Named stages of the document processing pipeline."""

    AUTHENTICATION = "authentication"
    FORM_VALIDATION = "form_validation"
    FILE_UPLOAD = "file_upload"
    TEXT_EXTRACTION = "text_extraction"
    AI_PROCESSING = "ai_processing"
    SAVE_RESULTS = "save_results"


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class InvalidDocumentError(AppError):
    """Raised when an uploaded file is empty, not a PDF, or too large."""
    pass


class ExtractionError(AppError):
    """Text extraction service failed or returned no usable text."""
    pass


class OCRServiceError(ExtractionError):
    """The OCR provider rejected the request or reported a failed job."""
    pass


class OCRTimeoutError(ExtractionError):
    """The OCR provider did not finish within the configured time."""
    pass


class ModelError(AppError):
    """The generative model call failed."""
    pass


class ModelTimeoutError(ModelError):
    """The generative model did not answer within the configured time."""
    pass


class EmptyModelResponseError(ModelError):
    """The generative model answered without any text."""
    pass


class ParseError(AppError):
    """No JSON value could be recovered from the model response."""
    pass


class ResponseShapeError(ParseError):
    """The recovered JSON does not have the expected root object."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class CoverageValidationError(ValidationError):
    """A single coverage entry violates the field contract.

    Raised and caught inside the coverage validator; the entry is
    excluded and counted rather than failing the document.
    """

    def __init__(self, message: str, reasons: Optional[list] = None, index: Optional[int] = None):
        super().__init__(message)
        self.reasons = reasons or []
        self.index = index


class PipelineError(AppError):
    """A processing stage failed and the document was aborted."""

    def __init__(
        self,
        message: str,
        stage: ProcessingStage,
        original_error: Exception = None,
        stages: Optional[list] = None,
    ):
        super().__init__(message, original_error)
        self.stage = stage
        # Stage timeline up to the failure
        self.stages = stages or []

    def __str__(self) -> str:
        return f"[{self.stage.value}] {super().__str__()}"


class DocumentNotFoundError(AppError):
    """Raised when a document is not found."""
    pass
