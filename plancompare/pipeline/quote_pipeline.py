"""Quote document processing pipeline.

One uploaded PDF flows linearly through form validation, source upload,
text extraction, AI processing and result saving. Each stage reports a
tagged ``StageResult``; the first failed stage aborts the document with a
``PipelineError`` naming that stage. Nothing is retried here and nothing
is saved for a failed document.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath
from typing import List, Optional, Sequence

from plancompare.core.base_stage import BaseStage, StageResult
from plancompare.core.exceptions import (
    AppError,
    ExtractionError,
    InvalidDocumentError,
    ModelError,
    ParseError,
    PipelineError,
    ProcessingStage,
)
from plancompare.pipeline.stage_tracker import StageTracker
from plancompare.prompts.quote_extraction import build_quote_prompt
from plancompare.schemas.quote import (
    DocumentCategory,
    ProcessedDocument,
    ProcessingReport,
    RawDocument,
)
from plancompare.services.extraction.coverage_validator import CoverageValidationResult
from plancompare.services.extraction.response_extractor import extract_quote_payload
from plancompare.services.normalization.format_normalizer import normalize_document
from plancompare.services.ocr.ocr_base import BaseOCRService
from plancompare.services.storage.storage_base import BaseStorage
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_MAGIC = b"%PDF"


@dataclass
class DocumentContext:
    """Mutable state threaded through the stages of one run."""

    raw: RawDocument
    owner_id: str
    text: Optional[str] = None
    document: Optional[ProcessedDocument] = None
    validation: Optional[CoverageValidationResult] = None
    source_key: Optional[str] = None
    source_location: Optional[str] = None
    processed_location: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class DocumentOutcome:
    """Result of one document in a bulk run."""

    file_name: str
    document: Optional[ProcessedDocument] = None
    error: Optional[PipelineError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class FormValidationStage(BaseStage[None]):
    """Reject uploads that are empty, not PDFs, or too large."""

    def __init__(self, max_upload_bytes: int):
        self.max_upload_bytes = max_upload_bytes

    @property
    def name(self) -> ProcessingStage:
        return ProcessingStage.FORM_VALIDATION

    async def execute(self, context: DocumentContext) -> StageResult[None]:
        raw = context.raw
        if not raw.file_name.lower().endswith(".pdf"):
            return StageResult.err(InvalidDocumentError(f"'{raw.file_name}' is not a .pdf file"))
        if not raw.content:
            return StageResult.err(InvalidDocumentError("Uploaded file is empty"))
        if len(raw.content) > self.max_upload_bytes:
            return StageResult.err(
                InvalidDocumentError(
                    f"File is {len(raw.content)} bytes; the limit is {self.max_upload_bytes} bytes"
                )
            )
        if not raw.content.startswith(PDF_MAGIC):
            return StageResult.err(InvalidDocumentError("Invalid PDF format: missing %PDF header"))

        return StageResult.ok(None, size_bytes=len(raw.content))


class FileUploadStage(BaseStage[Optional[str]]):
    """Store the original upload when storage is configured."""

    def __init__(self, storage: Optional[BaseStorage]):
        self.storage = storage

    @property
    def name(self) -> ProcessingStage:
        return ProcessingStage.FILE_UPLOAD

    async def execute(self, context: DocumentContext) -> StageResult[Optional[str]]:
        if self.storage is None:
            return StageResult.ok(None, skipped=True)

        key = f"{context.owner_id}/upload/{context.raw.file_name}"
        try:
            location = await self.storage.upload(key, context.raw.content, "application/pdf")
        except Exception as e:
            return StageResult.err(AppError(f"Failed to upload source document: {e}", e))

        context.source_key = key
        context.source_location = location
        return StageResult.ok(location, location=location)


class TextExtractionStage(BaseStage[str]):
    def __init__(self, ocr_service: BaseOCRService):
        self.ocr_service = ocr_service

    @property
    def name(self) -> ProcessingStage:
        return ProcessingStage.TEXT_EXTRACTION

    async def execute(self, context: DocumentContext) -> StageResult[str]:
        try:
            result = await self.ocr_service.extract_text(context.raw.content, context.raw.file_name)
        except ExtractionError as e:
            return StageResult.err(e)
        except AppError as e:
            return StageResult.err(ExtractionError(str(e), e))

        context.text = result.text
        return StageResult.ok(
            result.text,
            service=self.ocr_service.get_service_name(),
            text_length=len(result.text),
        )


class AIProcessingStage(BaseStage[ProcessedDocument]):
    """Prompt the model, recover its JSON, validate and normalize it."""

    def __init__(
        self,
        llm_client,
        temperature: float = 0.1,
        max_output_tokens: int = 58192,
        min_survival_ratio: float = 0.5,
    ):
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.min_survival_ratio = min_survival_ratio

    @property
    def name(self) -> ProcessingStage:
        return ProcessingStage.AI_PROCESSING

    async def execute(self, context: DocumentContext) -> StageResult[ProcessedDocument]:
        raw = context.raw
        prompt = build_quote_prompt(context.text or "", raw.file_name, raw.category)

        try:
            response_text = await self.llm_client.generate(
                prompt,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            )
            payload = extract_quote_payload(response_text)
            document, validation = normalize_document(payload, carrier_name=raw.carrier_name)
        except (ModelError, ParseError) as e:
            return StageResult.err(e)

        metadata = document.metadata.model_copy(
            update={"file_name": raw.file_name, "file_category": raw.category.value}
        )
        document = document.model_copy(update={"metadata": metadata})

        context.document = document
        context.validation = validation
        context.warnings.extend(self._validation_warnings(validation))

        return StageResult.ok(
            document,
            valid_count=validation.valid_count,
            invalid_count=validation.invalid_count,
            dropped_plan_rows=validation.dropped_plan_rows,
        )

    def _validation_warnings(self, validation: CoverageValidationResult) -> List[str]:
        warnings = []
        if validation.placeholder_created:
            warnings.append(
                "No valid coverages were found in the document; a placeholder coverage was created."
            )
        elif validation.invalid_count and validation.survival_ratio < self.min_survival_ratio:
            warnings.append(
                f"Only {validation.valid_count} of {validation.total} extracted coverages "
                f"passed validation."
            )
        if validation.dropped_plan_rows:
            warnings.append(
                f"Dropped {validation.dropped_plan_rows} plan rows without a plan or benefit name."
            )
        for warning in warnings:
            LOGGER.warning(warning, extra={"invalid_count": validation.invalid_count})
        return warnings


class SaveResultsStage(BaseStage[Optional[str]]):
    """Persist ``{metadata, coverages, planNotes}`` as ``<name>-processed.json``."""

    def __init__(self, storage: Optional[BaseStorage]):
        self.storage = storage

    @property
    def name(self) -> ProcessingStage:
        return ProcessingStage.SAVE_RESULTS

    async def execute(self, context: DocumentContext) -> StageResult[Optional[str]]:
        if self.storage is None:
            return StageResult.ok(None, skipped=True)

        stem = PurePath(context.raw.file_name).stem
        key = f"{context.owner_id}/processed/{stem}-processed.json"
        body = json.dumps(context.document.to_payload(), indent=2).encode("utf-8")
        try:
            location = await self.storage.upload(key, body, "application/json")
        except Exception as e:
            return StageResult.err(AppError(f"Failed to save processed results: {e}", e))

        context.processed_location = location
        return StageResult.ok(location, location=location)


def _describe(result: StageResult) -> Optional[str]:
    if not result.details:
        return None
    return ", ".join(f"{key}={value}" for key, value in result.details.items())


class QuotePipeline:
    """Runs quote documents through every processing stage.

    Attributes:
        stages: Ordered stages after authentication
    """

    def __init__(
        self,
        ocr_service: BaseOCRService,
        llm_client,
        storage: Optional[BaseStorage] = None,
        max_upload_bytes: int = 10 * 1024 * 1024,
        temperature: float = 0.1,
        max_output_tokens: int = 58192,
        min_survival_ratio: float = 0.5,
    ):
        """Initialize the pipeline.

        Args:
            ocr_service: Text extraction service
            llm_client: Model client exposing ``generate``
            storage: Optional storage for sources and results
            max_upload_bytes: Upload size limit
            temperature: Model sampling temperature
            max_output_tokens: Model output ceiling
            min_survival_ratio: Share of coverages that must pass validation
                before a low-validity warning is reported
        """
        self.storage = storage
        self.stages: List[BaseStage] = [
            FormValidationStage(max_upload_bytes),
            FileUploadStage(storage),
            TextExtractionStage(ocr_service),
            AIProcessingStage(
                llm_client,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
                min_survival_ratio=min_survival_ratio,
            ),
            SaveResultsStage(storage),
        ]

    async def _discard_source(self, context: DocumentContext) -> None:
        """Remove the stored upload of a document that failed after it was saved."""
        if self.storage is None or context.source_key is None:
            return
        try:
            await self.storage.delete(context.source_key)
        except Exception as e:
            LOGGER.warning(
                f"Failed to remove source of failed document: {e}",
                extra={"key": context.source_key},
            )
            return
        context.source_location = None
        LOGGER.info("Removed source of failed document", extra={"key": context.source_key})

    async def process_document(
        self,
        content: bytes,
        file_name: str,
        category: DocumentCategory = DocumentCategory.CURRENT,
        carrier_name: Optional[str] = None,
        owner_id: str = "system",
    ) -> ProcessedDocument:
        """Process one uploaded quote document.

        Args:
            content: PDF bytes
            file_name: Original file name
            category: Current, Renegotiated or Alternative
            carrier_name: Carrier named by the uploader, if known
            owner_id: Authenticated user the document belongs to

        Returns:
            ProcessedDocument with its processing report attached

        Raises:
            PipelineError: Naming the stage that failed
        """
        context = DocumentContext(
            raw=RawDocument(
                file_name=file_name,
                content=content,
                category=category,
                carrier_name=carrier_name,
            ),
            owner_id=owner_id,
        )
        tracker = StageTracker()
        tracker.complete(ProcessingStage.AUTHENTICATION, f"owner={owner_id}")

        LOGGER.info(
            "Processing quote document",
            extra={"file_name": file_name, "category": category.value, "owner_id": owner_id},
        )

        for stage in self.stages:
            tracker.start(stage.name)
            try:
                result = await stage.execute(context)
            except Exception as e:
                LOGGER.error(
                    f"Unexpected error in stage {stage.name.value}",
                    exc_info=True,
                    extra={"file_name": file_name},
                )
                result = StageResult.err(AppError(str(e), e))

            if not result.is_ok:
                tracker.fail(stage.name, str(result.error))
                LOGGER.error(
                    f"Stage {stage.name.value} failed: {result.error}",
                    extra={"file_name": file_name, "stage": stage.name.value},
                )
                await self._discard_source(context)
                raise PipelineError(
                    f"Failed to process {file_name}: {result.error}",
                    stage=stage.name,
                    original_error=result.error,
                    stages=tracker.records(),
                )

            tracker.complete(stage.name, _describe(result))

        validation = context.validation
        report = ProcessingReport(
            valid_count=validation.valid_count if validation else 0,
            invalid_count=validation.invalid_count if validation else 0,
            dropped_plan_rows=validation.dropped_plan_rows if validation else 0,
            placeholder_created=bool(validation and validation.placeholder_created),
            warnings=list(context.warnings),
            stages=tracker.records(),
            processing_time=tracker.processing_time(),
            source_location=context.source_location,
            processed_location=context.processed_location,
            processed_at=datetime.now(timezone.utc),
        )

        LOGGER.info(
            "Processed quote document",
            extra={
                "file_name": file_name,
                "coverage_count": len(context.document.coverages),
                "processing_time": report.processing_time,
            },
        )
        return context.document.model_copy(update={"report": report})

    async def process_documents(
        self,
        raw_documents: Sequence[RawDocument],
        owner_id: str = "system",
    ) -> List[DocumentOutcome]:
        """Process documents one after another.

        A failure is recorded on that document's outcome and does not
        stop the remaining documents.
        """
        outcomes = []
        for raw in raw_documents:
            try:
                document = await self.process_document(
                    raw.content,
                    raw.file_name,
                    category=raw.category,
                    carrier_name=raw.carrier_name,
                    owner_id=owner_id,
                )
            except PipelineError as e:
                outcomes.append(DocumentOutcome(file_name=raw.file_name, error=e))
                continue
            outcomes.append(DocumentOutcome(file_name=raw.file_name, document=document))

        LOGGER.info(
            "Bulk processing finished",
            extra={
                "document_count": len(outcomes),
                "failed_count": sum(1 for outcome in outcomes if not outcome.succeeded),
            },
        )
        return outcomes
