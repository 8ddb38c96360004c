"""Restrict processed documents to the plan options a user selected."""

from typing import Any, Dict, Iterable, Mapping, Optional

from plancompare.schemas.quote import DocumentCategory, ProcessedDocument
from plancompare.services.normalization.format_normalizer import (
    build_plan_structure,
    list_plan_option_names,
)
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Highest priority first
_QUOTE_TYPE_PRIORITY = (
    ("current", DocumentCategory.CURRENT),
    ("renegotiated", DocumentCategory.RENEGOTIATED),
    ("alternative", DocumentCategory.ALTERNATIVE),
)

__all__ = [
    "filter_by_selection",
    "infer_document_type",
    "list_plan_option_names",
    "resolve_hsa_details",
    "resolve_include_hsa",
]


def filter_by_selection(
    document: ProcessedDocument, selected_plans: Iterable[str]
) -> ProcessedDocument:
    """Return a copy of ``document`` containing only the selected plan options.

    Coverages, plan option totals, overview rows, per-plan breakdown data
    and legacy plan options are all restricted. The input is not modified
    and applying the same selection twice gives the same result.

    Args:
        document: Canonical processed document
        selected_plans: Plan option names to keep

    Returns:
        ProcessedDocument of the same layout as the input
    """
    selected = set(selected_plans)
    metadata = document.metadata

    update: Dict[str, Any] = {
        "plan_option_totals": {
            name: total for name, total in metadata.plan_option_totals.items() if name in selected
        }
    }
    if metadata.high_level_overview is not None:
        update["high_level_overview"] = [
            row.model_copy(deep=True)
            for row in metadata.high_level_overview
            if row.plan_option in selected
        ]
    if metadata.granular_breakdown is not None:
        update["granular_breakdown"] = [
            row.model_copy(
                update={
                    "carrier_data": [
                        entry.model_copy(deep=True)
                        for entry in row.carrier_data
                        if entry.plan_option in selected
                    ]
                },
                deep=True,
            )
            for row in metadata.granular_breakdown
        ]
    if metadata.plan_options is not None:
        update["plan_options"] = [
            plan.model_copy(deep=True)
            for plan in metadata.plan_options
            if plan.plan_option_name in selected
        ]

    filtered_metadata = metadata.model_copy(update=update, deep=True)
    coverages = [
        coverage.model_copy(deep=True)
        for coverage in document.coverages
        if coverage.plan_option_name in selected
    ]

    LOGGER.debug(
        "Filtered document by plan selection",
        extra={
            "selected_plans": sorted(selected),
            "coverages_before": len(document.coverages),
            "coverages_after": len(coverages),
        },
    )

    return ProcessedDocument(
        metadata=filtered_metadata,
        coverages=coverages,
        plan_notes=[note.model_copy() for note in document.plan_notes],
        structure=build_plan_structure(filtered_metadata, coverages),
    )


def infer_document_type(
    plan_quote_types: Mapping[str, str],
    fallback: DocumentCategory = DocumentCategory.CURRENT,
) -> DocumentCategory:
    """Pick the document category from per-plan quote-type tags.

    A tag containing "Current" (e.g. "Current Premium") wins over
    "Renegotiated", which wins over "Alternative".
    """
    tags = [str(tag).lower() for tag in plan_quote_types.values() if tag]
    for keyword, category in _QUOTE_TYPE_PRIORITY:
        if any(keyword in tag for tag in tags):
            return category
    return fallback


def resolve_include_hsa(
    plan_hsa_options: Mapping[str, bool],
    selected_plans: Iterable[str],
    fallback: bool = False,
) -> bool:
    """True when any selected plan has a health spending account enabled."""
    if not plan_hsa_options:
        return fallback
    return any(plan_hsa_options.get(plan, False) for plan in selected_plans)


def resolve_hsa_details(
    plan_hsa_details: Mapping[str, Any],
    plan_hsa_options: Mapping[str, bool],
    selected_plans: Iterable[str],
) -> Optional[Dict[str, Any]]:
    """Details of the first selected plan with an enabled spending account."""
    for plan in selected_plans:
        details = plan_hsa_details.get(plan)
        if plan_hsa_options.get(plan) and isinstance(details, dict):
            return dict(details)
    return None
