"""Coverage entry validation and placeholder repair.

Every candidate coverage produced by the model is checked against the
field contract as a whole. Entries that fail any check are dropped and
counted; nothing is partially salvaged. A document whose coverages are
all rejected receives a single synthetic placeholder entry so downstream
consumers always see at least one coverage.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from plancompare.core.exceptions import CoverageValidationError
from plancompare.schemas.quote import (
    COVERAGE_TYPES,
    DEFAULT_PLAN_NAME,
    PLACEHOLDER_COVERAGE_TYPE,
    UNKNOWN_CARRIER,
    Metadata,
)
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)

NUMERIC_FIELDS = ("premium", "monthlyPremium", "unitRate", "volume", "lives")
TEXT_FIELDS = ("carrierName", "planOptionName", "unitRateBasis")

PLACEHOLDER_NOTE = "Default coverage created as no valid coverages were found in the document."


@dataclass
class CoverageIssue:
    index: int
    reasons: List[str]


@dataclass
class CoverageValidationResult:
    """Outcome of validating one document's candidate coverages."""

    valid: List[Dict[str, Any]] = field(default_factory=list)
    valid_count: int = 0
    invalid_count: int = 0
    issues: List[CoverageIssue] = field(default_factory=list)
    placeholder_created: bool = False
    # Unnamed plan rows removed from the metadata
    dropped_plan_rows: int = 0

    @property
    def total(self) -> int:
        return self.valid_count + self.invalid_count

    @property
    def survival_ratio(self) -> float:
        """Share of candidates that passed; 1.0 when there were none."""
        if self.total == 0:
            return 1.0
        return self.valid_count / self.total


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def check_coverage(entry: Any, index: Optional[int] = None) -> None:
    """Check one candidate against every coverage invariant.

    Args:
        entry: Candidate coverage as returned by the model
        index: Position of the candidate, reported on failure

    Raises:
        CoverageValidationError: Listing every violated invariant
    """
    if not isinstance(entry, dict):
        raise CoverageValidationError(
            "Coverage entry is not an object", reasons=["not an object"], index=index
        )

    reasons = []

    coverage_type = entry.get("coverageType")
    if not _is_text(coverage_type):
        reasons.append("coverageType missing")
    elif coverage_type not in COVERAGE_TYPES:
        reasons.append(f"coverageType '{coverage_type}' is not a recognised coverage type")

    for name in TEXT_FIELDS:
        if not _is_text(entry.get(name)):
            reasons.append(f"{name} missing")

    for name in NUMERIC_FIELDS:
        if not _is_number(entry.get(name)):
            reasons.append(f"{name} is not a number")

    premium = entry.get("premium")
    monthly_premium = entry.get("monthlyPremium")
    if _is_number(premium) and _is_number(monthly_premium):
        if premium != monthly_premium:
            reasons.append("premium does not equal monthlyPremium")

    if not isinstance(entry.get("benefitDetails"), dict):
        reasons.append("benefitDetails missing")

    if reasons:
        raise CoverageValidationError(
            f"Coverage entry {index} violates the field contract", reasons=reasons, index=index
        )


def validate_coverages(candidates: Any) -> CoverageValidationResult:
    """Split candidates into valid entries and counted rejections.

    Valid entries are returned unchanged and in their original order.
    A non-list input is treated as an empty list.
    """
    result = CoverageValidationResult()
    if not isinstance(candidates, list):
        if candidates is not None:
            LOGGER.warning(
                "Coverages are not a list; treating as empty",
                extra={"type": type(candidates).__name__},
            )
        return result

    for index, entry in enumerate(candidates):
        try:
            check_coverage(entry, index)
        except CoverageValidationError as e:
            result.invalid_count += 1
            result.issues.append(CoverageIssue(index=index, reasons=e.reasons))
            LOGGER.warning(
                f"Excluding invalid coverage entry {index}: {'; '.join(e.reasons)}",
                extra={
                    "index": index,
                    "coverage_type": entry.get("coverageType") if isinstance(entry, dict) else None,
                },
            )
            continue

        result.valid.append(entry)
        result.valid_count += 1

    LOGGER.info(
        "Coverage validation finished",
        extra={"valid_count": result.valid_count, "invalid_count": result.invalid_count},
    )
    return result


def create_placeholder_coverage(metadata: Optional[Metadata] = None) -> Dict[str, Any]:
    """Build the synthetic coverage used when nothing survives validation."""
    metadata = metadata or Metadata()
    premium = metadata.total_proposed_monthly_plan_premium or 0

    return {
        "coverageType": PLACEHOLDER_COVERAGE_TYPE,
        "carrierName": metadata.carrier_name or UNKNOWN_CARRIER,
        "planOptionName": metadata.plan_option_name or DEFAULT_PLAN_NAME,
        "premium": premium,
        "monthlyPremium": premium,
        "unitRate": 0,
        "unitRateBasis": "Unknown",
        "volume": 0,
        "lives": 0,
        "benefitDetails": {"note": PLACEHOLDER_NOTE, "synthetic": True},
    }


def repair_coverages(
    candidates: Any, metadata: Optional[Metadata] = None
) -> CoverageValidationResult:
    """Validate candidates and guarantee at least one coverage entry."""
    result = validate_coverages(candidates)

    if not result.valid:
        result.valid.append(create_placeholder_coverage(metadata))
        result.placeholder_created = True
        LOGGER.warning(
            "No valid coverages found; created placeholder coverage",
            extra={"invalid_count": result.invalid_count},
        )

    return result
