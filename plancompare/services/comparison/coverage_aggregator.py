"""Group coverages from many documents for side-by-side comparison."""

from typing import Dict, List, Optional, Sequence

from plancompare.schemas.comparison import CoverageAggregation
from plancompare.schemas.quote import COVERAGE_TYPES, UNKNOWN_CARRIER, CoverageEntry, ProcessedDocument
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _type_order(coverage_type: str) -> tuple:
    if coverage_type in COVERAGE_TYPES:
        return (0, COVERAGE_TYPES.index(coverage_type), coverage_type)
    return (1, 0, coverage_type)


def aggregate_by_coverage_type(
    documents: Sequence[ProcessedDocument],
    coverage_type_filter: Optional[str] = None,
) -> CoverageAggregation:
    """Bucket every coverage of every document by coverage type.

    Entries without a carrier take the owning document's carrier (or
    "Unknown Carrier"); nothing else about an entry changes. Entries
    without a coverage type are skipped.

    Args:
        documents: Processed documents, usually already filtered by selection
        coverage_type_filter: Restrict the result to one coverage type

    Returns:
        CoverageAggregation with buckets in coverage-type order and the
        sorted, de-duplicated carrier list. An empty result carries a
        diagnostic describing what was considered.
    """
    buckets: Dict[str, List[CoverageEntry]] = {}
    carriers = set()
    rows_considered = 0

    for document in documents:
        document_carrier = document.metadata.carrier_name or UNKNOWN_CARRIER
        carriers.add(document_carrier)

        for coverage in document.coverages:
            rows_considered += 1
            if not coverage.coverage_type:
                continue
            if coverage_type_filter and coverage.coverage_type != coverage_type_filter:
                continue

            if not coverage.carrier_name:
                coverage = coverage.model_copy(update={"carrier_name": document_carrier})
            carriers.add(coverage.carrier_name)
            buckets.setdefault(coverage.coverage_type, []).append(coverage)

    aggregation = CoverageAggregation(
        by_type={key: buckets[key] for key in sorted(buckets, key=_type_order)},
        carriers=sorted(carriers),
        documents_considered=len(documents),
        coverage_rows_considered=rows_considered,
        coverage_type_filter=coverage_type_filter,
    )

    if aggregation.is_empty:
        scope = f" of type '{coverage_type_filter}'" if coverage_type_filter else ""
        aggregation.diagnostic = (
            f"No coverages{scope} found across {len(documents)} document(s) "
            f"with {rows_considered} coverage row(s) considered."
        )
        LOGGER.warning(
            aggregation.diagnostic,
            extra={
                "documents_considered": len(documents),
                "coverage_rows_considered": rows_considered,
                "coverage_type_filter": coverage_type_filter,
            },
        )
    else:
        LOGGER.debug(
            "Aggregated coverages",
            extra={"coverage_types": list(aggregation.by_type), "carrier_count": len(aggregation.carriers)},
        )

    return aggregation
