"""Base OCR service interface for pluggable text extraction providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from plancompare.core.exceptions import ExtractionError


class OCRResult:
    """Text extraction result container.

    Attributes:
        text: Extracted text content
        metadata: Additional metadata (service, page_count, processing_time, etc.)
        success: Whether extraction was successful
        error: Optional error message
    """

    def __init__(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None,
    ):
        self.text = text
        self.metadata = metadata or {}
        self.success = success
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "text": self.text,
            "metadata": self.metadata,
            "success": self.success,
        }
        if self.error:
            result["error"] = self.error
        return result


class BaseOCRService(ABC):
    """Abstract base class for text extraction service implementations."""

    @abstractmethod
    async def extract_text(self, content: bytes, file_name: str) -> OCRResult:
        """Extract text from PDF bytes.

        Args:
            content: Raw PDF bytes
            file_name: Original file name

        Returns:
            OCRResult: Extracted text and metadata

        Raises:
            ExtractionError: If the service fails or returns no text
        """
        pass

    @abstractmethod
    def get_service_name(self) -> str:
        pass

    @staticmethod
    def _require_content(content: bytes) -> None:
        if not content:
            raise ExtractionError("Cannot extract text from an empty document")

    @staticmethod
    def _require_text(text: Optional[str], service_name: str) -> str:
        if not text or not text.strip():
            raise ExtractionError(f"{service_name} returned no text for the document")
        return text
