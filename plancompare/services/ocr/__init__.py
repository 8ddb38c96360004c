"""Text extraction services."""

from plancompare.core.exceptions import ConfigurationError
from plancompare.services.ocr.mistral_ocr import MistralOCRService
from plancompare.services.ocr.ocr_base import BaseOCRService, OCRResult
from plancompare.services.ocr.pdfco_ocr import PdfCoOCRService


def create_ocr_service(ocr_settings) -> BaseOCRService:
    """Build the extraction service selected by ``OCR_PROVIDER``."""
    provider = ocr_settings.provider.lower()
    if provider == "pdfco":
        return PdfCoOCRService(
            api_key=ocr_settings.pdfco_api_key,
            base_url=ocr_settings.pdfco_base_url,
            timeout=ocr_settings.timeout_seconds,
            poll_interval=ocr_settings.poll_interval_seconds,
            max_poll_attempts=ocr_settings.max_poll_attempts,
        )
    if provider == "mistral":
        return MistralOCRService(
            api_key=ocr_settings.mistral_api_key,
            api_url=ocr_settings.mistral_ocr_url,
            model=ocr_settings.mistral_ocr_model,
            timeout=ocr_settings.timeout_seconds,
        )
    raise ConfigurationError(f"Unsupported OCR provider: {ocr_settings.provider}")


__all__ = [
    "BaseOCRService",
    "MistralOCRService",
    "OCRResult",
    "PdfCoOCRService",
    "create_ocr_service",
]
