"""Mistral OCR service implementation."""

import asyncio
import base64
import time

import httpx

from plancompare.core.exceptions import OCRServiceError, OCRTimeoutError
from plancompare.services.ocr.ocr_base import BaseOCRService, OCRResult
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


class MistralOCRService(BaseOCRService):
    """Mistral OCR service implementation.

    The PDF is sent inline as a base64 data URL; the markdown of every
    returned page is joined into one text.

    Attributes:
        api_key: Mistral API key
        api_url: Mistral OCR endpoint URL
        model: OCR model name
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts
        retry_delay: Base delay between attempts in seconds
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.mistral.ai/v1/ocr",
        model: str = "mistral-ocr-latest",
        timeout: int = 180,
        max_retries: int = 1,
        retry_delay: int = 2,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

        LOGGER.info(
            "Initialized Mistral OCR service",
            extra={"model": self.model, "timeout": self.timeout, "max_retries": self.max_retries},
        )

    def get_service_name(self) -> str:
        return "Mistral OCR"

    async def extract_text(self, content: bytes, file_name: str) -> OCRResult:
        """Extract text from PDF bytes using Mistral OCR.

        Raises:
            OCRTimeoutError: If processing times out
            OCRServiceError: If the API call fails
            ExtractionError: If no text is returned
        """
        self._require_content(content)
        if not self.api_key:
            raise OCRServiceError("Mistral API key is not configured")

        LOGGER.info("Starting OCR extraction", extra={"file_name": file_name})
        start_time = time.time()

        try:
            text, page_count = await self._call_mistral_api(content, file_name)
        except httpx.TimeoutException as e:
            LOGGER.error("OCR extraction timed out", extra={"file_name": file_name})
            raise OCRTimeoutError(f"OCR processing timed out after {self.timeout}s", e) from e

        text = self._require_text(text, self.get_service_name())
        processing_time = time.time() - start_time

        LOGGER.info(
            "OCR extraction completed successfully",
            extra={
                "file_name": file_name,
                "text_length": len(text),
                "processing_time": round(processing_time, 2),
            },
        )

        return OCRResult(
            text=text,
            metadata={
                "service": self.get_service_name(),
                "model": self.model,
                "page_count": page_count,
                "processing_time_seconds": round(processing_time, 2),
                "file_name": file_name,
            },
        )

    async def _call_mistral_api(self, content: bytes, file_name: str) -> tuple:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        encoded = base64.b64encode(content).decode("ascii")
        payload = {
            "model": self.model,
            "document": {
                "type": "document_url",
                "document_url": f"data:application/pdf;base64,{encoded}",
            },
            "include_image_base64": False,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(self.api_url, json=payload, headers=headers)
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    LOGGER.warning(
                        f"Mistral OCR API error (attempt {attempt + 1}/{self.max_retries})",
                        extra={"file_name": file_name, "status_code": status_code},
                    )
                    if attempt < self.max_retries - 1 and (status_code == 429 or status_code >= 500):
                        await asyncio.sleep(self.retry_delay * (2 ** attempt))
                        continue
                    raise OCRServiceError(f"Mistral OCR API returned error: {status_code}", e) from e
                except httpx.RequestError as e:
                    if isinstance(e, httpx.TimeoutException):
                        raise
                    raise OCRServiceError(f"Failed to call Mistral OCR API: {e}", e) from e

                pages = response.json().get("pages", [])
                text = "\n\n".join(
                    page.get("markdown") or page.get("text") or "" for page in pages
                ).strip()
                return text, len(pages)

        raise OCRServiceError("Failed to extract text after all retry attempts")
