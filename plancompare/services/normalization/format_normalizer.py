"""Reconcile the two historical quote layouts into one canonical document.

Documents describe their plan options either with the overview layout
(``metadata.highLevelOverview`` plus ``metadata.granularBreakdown``) or the
legacy layout (``metadata.planOptions`` plus a flat coverage list). The
layout is detected once and carried as a tagged ``PlanStructure`` so that
callers never re-check which keys are present.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from plancompare.core.exceptions import ResponseShapeError
from plancompare.schemas.quote import (
    CoverageEntry,
    LegacyShape,
    Metadata,
    NewShape,
    PlanNote,
    PlanStructure,
    PlanSummary,
    ProcessedDocument,
    UNKNOWN_CARRIER,
)
from plancompare.services.extraction.coverage_validator import (
    CoverageValidationResult,
    repair_coverages,
)
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Keys older persisted documents carried at the root instead of in metadata
_LEGACY_ROOT_MARKERS = ("highLevelOverview", "granularBreakdown", "planOptions")

# Field naming each row of a plan marker
_PLAN_ROW_NAMES = {
    "highLevelOverview": "planOption",
    "granularBreakdown": "benefitType",
    "planOptions": "planOptionName",
}


def detect_shape(source: Any) -> Literal["new", "legacy"]:
    """Return ``"new"`` when a ``highLevelOverview`` marker is present.

    Accepts a Metadata instance, a metadata mapping, or a whole document
    payload (checked in ``metadata`` and at the root).
    """
    if isinstance(source, Metadata):
        return "new" if source.high_level_overview is not None else "legacy"
    if isinstance(source, ProcessedDocument):
        return detect_shape(source.metadata)
    if isinstance(source, Mapping):
        metadata = source.get("metadata")
        if isinstance(metadata, Mapping) and metadata.get("highLevelOverview") is not None:
            return "new"
        if source.get("highLevelOverview") is not None:
            return "new"
    return "legacy"


def build_plan_structure(
    metadata: Metadata, coverages: Sequence[CoverageEntry] = ()
) -> PlanStructure:
    """Resolve the document's plan layout into its tagged form."""
    if detect_shape(metadata) == "new":
        return NewShape(
            overview=metadata.high_level_overview or [],
            breakdown=metadata.granular_breakdown or [],
        )
    return LegacyShape(plan_options=metadata.plan_options or [], coverages=list(coverages))


def _unique(values) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def derive_plan_summaries(
    structure: PlanStructure, carrier_name: Optional[str] = None
) -> List[PlanSummary]:
    """List the plan options of a document with their coverage types.

    Order follows first appearance in the structure; coverage types follow
    first appearance in the breakdown or coverage list.
    """
    summaries: List[PlanSummary] = []

    if isinstance(structure, NewShape):
        for plan_name in _unique(row.plan_option for row in structure.overview):
            row = next(r for r in structure.overview if r.plan_option == plan_name)
            coverage_types = _unique(
                breakdown.benefit_type
                for breakdown in structure.breakdown
                if any(
                    entry.plan_option == plan_name and entry.included
                    for entry in breakdown.carrier_data
                )
            )
            summaries.append(
                PlanSummary(
                    plan_option_name=plan_name,
                    carrier_name=row.carrier_name or carrier_name,
                    total_monthly_premium=row.total_monthly_premium,
                    rate_guarantee=row.rate_guarantee,
                    coverage_types=coverage_types,
                )
            )
        return summaries

    for plan_name in _unique(plan.plan_option_name for plan in structure.plan_options):
        plan = next(p for p in structure.plan_options if p.plan_option_name == plan_name)
        proposal = plan.carrier_proposals[0] if plan.carrier_proposals else None
        coverage_types = _unique(
            coverage.coverage_type
            for coverage in structure.coverages
            if coverage.plan_option_name == plan_name
        )
        summaries.append(
            PlanSummary(
                plan_option_name=plan_name,
                carrier_name=(proposal.carrier_name if proposal else None) or carrier_name,
                total_monthly_premium=(proposal.total_monthly_premium if proposal else None) or 0,
                rate_guarantee=proposal.rate_guarantee_text if proposal else None,
                coverage_types=coverage_types,
            )
        )
    return summaries


def ensure_structure(document: ProcessedDocument) -> PlanStructure:
    """Return the document's plan structure, resolving it if absent."""
    if document.structure is not None:
        return document.structure
    return build_plan_structure(document.metadata, document.coverages)


def list_plan_option_names(document: ProcessedDocument) -> List[str]:
    """All plan option names referenced anywhere in the document."""
    structure = ensure_structure(document)
    if isinstance(structure, NewShape):
        structure_names = [row.plan_option for row in structure.overview]
        structure_names += [
            entry.plan_option for row in structure.breakdown for entry in row.carrier_data
        ]
    else:
        structure_names = [plan.plan_option_name for plan in structure.plan_options]

    return _unique(
        structure_names
        + list(document.metadata.plan_option_totals)
        + [coverage.plan_option_name for coverage in document.coverages]
    )


def canonicalize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a stored document payload onto ``{metadata, coverages, planNotes}``.

    Older documents kept plan markers at the root, used ``allCoverages`` for
    the flat coverage list and ``documentNotes`` for free-text notes.
    """
    raw_metadata = payload.get("metadata")
    if raw_metadata is not None and not isinstance(raw_metadata, Mapping):
        raise ResponseShapeError("'metadata' must be an object")

    metadata = dict(raw_metadata or {})
    for marker in _LEGACY_ROOT_MARKERS:
        if marker in payload and marker not in metadata:
            metadata[marker] = payload[marker]

    coverages = payload.get("coverages")
    if coverages is None:
        coverages = payload.get("allCoverages", [])

    notes = payload.get("planNotes")
    if notes is None:
        notes = payload.get("documentNotes", [])

    return {"metadata": metadata, "coverages": coverages, "planNotes": notes}


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _clean_carrier_data(row: Mapping[str, Any]) -> Tuple[Dict[str, Any], int]:
    entries = row.get("carrierData")
    if not isinstance(entries, list):
        return {**row, "carrierData": []}, 0
    kept = [e for e in entries if isinstance(e, Mapping) and _has_text(e.get("planOption"))]
    return {**row, "carrierData": kept}, len(entries) - len(kept)


def drop_malformed_plan_rows(raw: Mapping[str, Any]) -> Tuple[Dict[str, Any], int]:
    """Remove plan rows the model left without a name.

    Overview rows need a ``planOption``, breakdown rows a ``benefitType`` and
    legacy plan options a ``planOptionName``. Breakdown rows also lose any
    ``carrierData`` entry without a ``planOption``; a missing ``carrierData``
    becomes an empty list. Markers that are not lists are left alone.

    Returns:
        Tuple of (cleaned metadata, number of rows dropped)
    """
    cleaned = dict(raw)
    dropped = 0
    for marker, name_key in _PLAN_ROW_NAMES.items():
        rows = cleaned.get(marker)
        if not isinstance(rows, list):
            continue

        kept = []
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping) or not _has_text(row.get(name_key)):
                dropped += 1
                LOGGER.warning(
                    f"Dropping {marker} row {index} without {name_key}",
                    extra={"marker": marker, "index": index},
                )
                continue
            if marker == "granularBreakdown":
                row, dropped_entries = _clean_carrier_data(row)
                dropped += dropped_entries
            kept.append(row)
        cleaned[marker] = kept

    return cleaned, dropped


def parse_metadata(raw: Mapping[str, Any], carrier_name: Optional[str] = None) -> Metadata:
    """Build typed metadata, filling the carrier from secondary sources.

    Raises:
        ResponseShapeError: If the metadata does not fit the model
    """
    try:
        metadata = Metadata.model_validate(dict(raw))
    except PydanticValidationError as e:
        LOGGER.error("Metadata does not match the expected structure", extra={"error": str(e)})
        raise ResponseShapeError(f"Invalid metadata: {e.error_count()} field error(s)", e) from e

    if not metadata.carrier_name:
        extra = metadata.model_extra or {}
        overview = metadata.high_level_overview or []
        fallback = (
            extra.get("primaryCarrierName")
            or (overview[0].carrier_name if overview else None)
            or carrier_name
        )
        if fallback:
            metadata = metadata.model_copy(update={"carrier_name": str(fallback)})

    return metadata


def parse_plan_notes(raw_notes: Any) -> List[PlanNote]:
    notes = []
    for item in raw_notes if isinstance(raw_notes, list) else []:
        text = item.get("note") if isinstance(item, dict) else item
        if isinstance(text, str) and text.strip():
            notes.append(PlanNote(note=text.strip()))
    return notes


def _backfill_metadata(
    metadata: Metadata, coverages: List[CoverageEntry], summaries: List[PlanSummary]
) -> Metadata:
    update: Dict[str, Any] = {}
    real_coverages = [c for c in coverages if not c.is_placeholder]

    if not metadata.carrier_name and real_coverages:
        update["carrier_name"] = real_coverages[0].carrier_name or None

    plan_names = _unique(
        [summary.plan_option_name for summary in summaries]
        + [coverage.plan_option_name for coverage in real_coverages]
    )
    if not metadata.plan_option_name and plan_names:
        update["plan_option_name"] = plan_names[0]

    totals = dict(metadata.plan_option_totals)
    if not totals and len(plan_names) > 1:
        for summary in summaries:
            if summary.total_monthly_premium:
                totals[summary.plan_option_name] = summary.total_monthly_premium
        for plan_name in plan_names:
            if plan_name not in totals:
                totals[plan_name] = round(
                    sum(c.monthly_premium for c in real_coverages if c.plan_option_name == plan_name),
                    2,
                )
        update["plan_option_totals"] = totals

    primary_plan = update.get("plan_option_name") or metadata.plan_option_name
    if metadata.total_proposed_monthly_plan_premium is None and primary_plan in totals:
        update["total_proposed_monthly_plan_premium"] = totals[primary_plan]

    if update:
        LOGGER.debug("Back-filled metadata", extra={"fields": sorted(update)})
        return metadata.model_copy(update=update)
    return metadata


def build_document(
    metadata: Metadata,
    valid_coverages: List[Dict[str, Any]],
    plan_notes: List[PlanNote],
) -> ProcessedDocument:
    """Assemble the canonical document from validated parts."""
    coverages = [CoverageEntry.model_validate(entry) for entry in valid_coverages]
    structure = build_plan_structure(metadata, coverages)
    summaries = derive_plan_summaries(structure, metadata.carrier_name)
    metadata = _backfill_metadata(metadata, coverages, summaries)

    return ProcessedDocument(
        metadata=metadata,
        coverages=coverages,
        plan_notes=plan_notes,
        structure=build_plan_structure(metadata, coverages),
    )


def _inherit_carrier(candidates: Any, carrier_name: str) -> Any:
    """Fill a blank ``carrierName`` on stored coverages from their document."""
    if not isinstance(candidates, list):
        return candidates
    inherited = []
    for entry in candidates:
        if isinstance(entry, dict) and not str(entry.get("carrierName") or "").strip():
            entry = {**entry, "carrierName": carrier_name}
        inherited.append(entry)
    return inherited


def normalize_document(
    payload: Mapping[str, Any],
    carrier_name: Optional[str] = None,
    inherit_carrier: bool = False,
) -> tuple:
    """Validate and normalize a quote payload.

    Accepts both fresh model output and stored documents in either layout.

    Args:
        payload: Quote object
        carrier_name: Carrier supplied by the uploader, used when the
            document does not name one
        inherit_carrier: Give coverages without a carrier the document's
            carrier before validation. Used for stored documents

    Returns:
        Tuple of (ProcessedDocument, CoverageValidationResult)

    Raises:
        ResponseShapeError: If the metadata cannot be interpreted
    """
    canonical = canonicalize_payload(payload)
    raw_metadata, dropped_rows = drop_malformed_plan_rows(canonical["metadata"])
    metadata = parse_metadata(raw_metadata, carrier_name)
    coverages = canonical["coverages"]
    if inherit_carrier:
        coverages = _inherit_carrier(coverages, metadata.carrier_name or UNKNOWN_CARRIER)
    validation: CoverageValidationResult = repair_coverages(coverages, metadata)
    validation.dropped_plan_rows = dropped_rows
    document = build_document(metadata, validation.valid, parse_plan_notes(canonical["planNotes"]))

    LOGGER.info(
        "Normalized quote document",
        extra={
            "shape": document.structure.shape,
            "coverage_count": len(document.coverages),
            "plan_count": len(list_plan_option_names(document)),
        },
    )
    return document, validation


def load_processed_document(payload: Mapping[str, Any]) -> ProcessedDocument:
    """Rebuild a canonical document from its stored payload.

    Coverages stored without a carrier belong to the document's carrier.
    """
    document, _ = normalize_document(payload, inherit_carrier=True)
    return document
