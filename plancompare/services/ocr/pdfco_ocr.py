"""PDF.co text extraction service implementation."""

import asyncio
import base64
import time
from typing import Any, Dict, Optional

import httpx

from plancompare.core.exceptions import ExtractionError, OCRServiceError, OCRTimeoutError
from plancompare.services.ocr.ocr_base import BaseOCRService, OCRResult
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PdfCoOCRService(BaseOCRService):
    """Text extraction through PDF.co's asynchronous PDF-to-text job API.

    The document is uploaded as base64, converted by an asynchronous job
    that is polled with a growing interval, and the resulting text file is
    downloaded. The whole exchange is bounded by ``timeout`` seconds.

    Attributes:
        api_key: PDF.co API key
        base_url: PDF.co API base URL
        timeout: Upper bound in seconds for one extraction
        poll_interval: Initial delay between job status checks
        max_poll_attempts: Maximum number of job status checks
        max_poll_interval: Ceiling for the growing poll delay
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.pdf.co",
        timeout: int = 180,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 30,
        max_poll_interval: float = 10.0,
        request_timeout: int = 60,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.max_poll_interval = max_poll_interval
        self.request_timeout = request_timeout

        LOGGER.info(
            "Initialized PDF.co OCR service",
            extra={"base_url": self.base_url, "timeout": self.timeout},
        )

    def get_service_name(self) -> str:
        return "PDF.co"

    async def extract_text(self, content: bytes, file_name: str) -> OCRResult:
        """Extract text from PDF bytes using PDF.co.

        Raises:
            OCRTimeoutError: If the extraction exceeds the configured timeout
            OCRServiceError: If PDF.co rejects the request or the job fails
            ExtractionError: If no text is returned
        """
        self._require_content(content)
        if not self.api_key:
            raise OCRServiceError("PDF.co API key is not configured")

        LOGGER.info(
            "Starting text extraction",
            extra={"file_name": file_name, "size_bytes": len(content)},
        )
        start_time = time.time()

        try:
            text = await asyncio.wait_for(self._convert(content, file_name), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            LOGGER.error("Text extraction timed out", extra={"file_name": file_name})
            raise OCRTimeoutError(f"PDF.co extraction timed out after {self.timeout}s", e) from e
        except httpx.TimeoutException as e:
            LOGGER.error("PDF.co request timed out", extra={"file_name": file_name})
            raise OCRTimeoutError(f"PDF.co request timed out: {e}", e) from e
        except httpx.RequestError as e:
            LOGGER.error(
                "PDF.co request failed",
                exc_info=True,
                extra={"file_name": file_name, "error": str(e)},
            )
            raise OCRServiceError(f"Failed to communicate with PDF.co: {e}", e) from e

        text = self._require_text(text, self.get_service_name())
        processing_time = time.time() - start_time

        LOGGER.info(
            "Text extraction completed successfully",
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
                "processing_time_seconds": round(processing_time, 2),
                "file_name": file_name,
            },
        )

    async def _convert(self, content: bytes, file_name: str) -> str:
        async with httpx.AsyncClient(timeout=self.request_timeout) as client:
            file_url = await self._upload(client, content, file_name)

            job = await self._post(
                client,
                "/v1/pdf/convert/to/text",
                {"url": file_url, "name": f"{file_name}.txt", "async": True},
            )

            job_id = job.get("jobId")
            if job_id:
                return await self._poll_job(client, job_id, job.get("url"))

            if isinstance(job.get("body"), str):
                return job["body"]
            if isinstance(job.get("text"), str):
                return job["text"]
            if job.get("url"):
                return await self._download_text(client, job["url"])

            raise ExtractionError("PDF.co returned neither a job nor a result")

    async def _upload(self, client: httpx.AsyncClient, content: bytes, file_name: str) -> str:
        data = await self._post(
            client,
            "/v1/file/upload/base64",
            {"file": base64.b64encode(content).decode("ascii"), "name": file_name},
        )
        file_url = data.get("url")
        if not file_url:
            raise OCRServiceError("PDF.co upload did not return a file URL")

        LOGGER.debug("Uploaded document to PDF.co", extra={"file_name": file_name})
        return file_url

    async def _poll_job(
        self, client: httpx.AsyncClient, job_id: str, result_url: Optional[str]
    ) -> str:
        interval = self.poll_interval

        for attempt in range(self.max_poll_attempts):
            await asyncio.sleep(interval)

            response = await client.get(
                f"{self.base_url}/v1/job/check",
                params={"jobId": job_id},
                headers=self._headers(),
            )
            data = self._read_json(response)
            status = data.get("status")

            LOGGER.debug(
                "Checked PDF.co job",
                extra={"job_id": job_id, "status": status, "attempt": attempt + 1},
            )

            if status == "success":
                url = data.get("url") or result_url
                if not url:
                    raise OCRServiceError(f"PDF.co job {job_id} succeeded without a result URL")
                return await self._download_text(client, url)
            if status in ("failed", "aborted"):
                raise OCRServiceError(
                    f"PDF.co job {job_id} {status}: {data.get('message', 'no details')}"
                )

            interval = min(interval * 1.5, self.max_poll_interval)

        raise OCRTimeoutError(
            f"PDF.co job {job_id} did not finish after {self.max_poll_attempts} checks"
        )

    async def _download_text(self, client: httpx.AsyncClient, url: str) -> str:
        response = await client.get(url)
        if response.status_code >= 400:
            raise OCRServiceError(f"Failed to download extracted text: HTTP {response.status_code}")
        return response.text

    async def _post(
        self, client: httpx.AsyncClient, path: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await client.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
        return self._read_json(response)

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    @staticmethod
    def _read_json(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code == 402:
            raise OCRServiceError("PDF.co rejected the request: Payment Required")
        if response.status_code >= 400:
            raise OCRServiceError(
                f"PDF.co returned HTTP {response.status_code}: {response.text[:200]}"
            )

        data = response.json()
        if data.get("error"):
            raise OCRServiceError(f"PDF.co error: {data.get('message', 'unknown error')}")
        return data
