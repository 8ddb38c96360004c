"""Quote document models.

Wire names are camelCase; attribute names are snake_case. The persisted
form of a processed document is exactly ``{metadata, coverages, planNotes}``.
"""

import math
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DocumentCategory(str, Enum):
    CURRENT = "Current"
    RENEGOTIATED = "Renegotiated"
    ALTERNATIVE = "Alternative"


class CoverageType(str, Enum):
    """Closed set of benefit lines a coverage entry may carry."""

    TERM_LIFE = "Term Life"
    BASIC_LIFE = "Basic Life"
    ADD = "AD&D"
    DEPENDENT_LIFE = "Dependent Life"
    CRITICAL_ILLNESS = "Critical Illness"
    LTD = "LTD"
    STD = "STD"
    EXTENDED_HEALTHCARE = "Extended Healthcare"
    DENTAL_CARE = "Dental Care"
    VISION = "Vision"
    EAP = "EAP"
    PRESCRIPTION_DRUGS = "Prescription Drugs"
    PARAMEDICAL = "Paramedical"
    HEALTH_SPENDING_ACCOUNT = "Health Spending Account"
    HSA = "HSA"


COVERAGE_TYPES: tuple = tuple(member.value for member in CoverageType)

PLACEHOLDER_COVERAGE_TYPE = "Unknown"
UNKNOWN_CARRIER = "Unknown Carrier"
DEFAULT_PLAN_NAME = "Default Plan"

_CURRENCY_NOISE = re.compile(r"[$,\s%]")


def to_number(value: Any) -> Optional[float]:
    """Best-effort numeric coercion for metadata amounts.

    Returns None for anything that is not a finite number or a string
    that reads as one once currency symbols and separators are removed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = _CURRENCY_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "; ".join(str(item) for item in value if item is not None)
    return str(value)


LenientNumber = Annotated[Optional[float], BeforeValidator(to_number)]
LenientText = Annotated[Optional[str], BeforeValidator(_to_optional_str)]
Number = Union[int, float]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OverviewRow(CamelModel):
    """One plan option as summarised in ``metadata.highLevelOverview``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    plan_option: str
    carrier_name: LenientText = None
    total_monthly_premium: LenientNumber = None
    rate_guarantee: LenientText = None
    pooled_benefits_subtotal: LenientNumber = None
    experience_rated_subtotal: LenientNumber = None
    key_highlights: LenientText = None


class CarrierDataEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    plan_option: str
    carrier_name: LenientText = None
    included: bool = False
    volume: LenientNumber = None
    unit_rate: LenientNumber = None
    monthly_premium: LenientNumber = None
    coverage_details: Optional[Any] = None

    @field_validator("included", mode="before")
    @classmethod
    def _null_means_excluded(cls, value: Any) -> Any:
        return False if value is None else value


class BreakdownRow(CamelModel):
    """One benefit line in ``metadata.granularBreakdown`` with per-plan data."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    benefit_type: str
    benefit_category: LenientText = None
    carrier_data: List[CarrierDataEntry] = Field(default_factory=list)

    @field_validator("carrier_data", mode="before")
    @classmethod
    def _null_carrier_data(cls, value: Any) -> Any:
        return [] if value is None else value


class CarrierProposal(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    carrier_name: LenientText = None
    total_monthly_premium: LenientNumber = None
    rate_guarantee_text: LenientText = None


class PlanOption(CamelModel):
    """Legacy plan option entry in ``metadata.planOptions``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    plan_option_name: str
    carrier_proposals: List[CarrierProposal] = Field(default_factory=list)

    @field_validator("carrier_proposals", mode="before")
    @classmethod
    def _null_carrier_proposals(cls, value: Any) -> Any:
        return [] if value is None else value


class Metadata(CamelModel):
    """Document-level facts. Unknown keys from the model are preserved."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    document_type: LenientText = None
    client_name: LenientText = None
    carrier_name: LenientText = None
    effective_date: LenientText = None
    quote_date: LenientText = None
    policy_number: LenientText = None
    plan_option_name: LenientText = None
    total_proposed_monthly_plan_premium: LenientNumber = None
    plan_option_totals: Dict[str, float] = Field(default_factory=dict)
    rate_guarantees: Dict[str, str] = Field(default_factory=dict)

    # Plan structure markers
    high_level_overview: Optional[List[OverviewRow]] = None
    granular_breakdown: Optional[List[BreakdownRow]] = None
    plan_options: Optional[List[PlanOption]] = None

    file_name: Optional[str] = None
    file_category: Optional[str] = None

    @field_validator("plan_option_totals", mode="before")
    @classmethod
    def _coerce_plan_option_totals(cls, value: Any) -> Dict[str, float]:
        if value is None:
            return {}
        items = []
        if isinstance(value, dict):
            items = list(value.items())
        elif isinstance(value, list):
            for row in value:
                if isinstance(row, dict):
                    name = row.get("planOptionName") or row.get("planOption")
                    items.append((name, row.get("totalMonthlyPremium")))
        totals = {}
        for name, amount in items:
            number = to_number(amount)
            if name and number is not None:
                totals[str(name)] = number
        return totals

    @field_validator("rate_guarantees", mode="before")
    @classmethod
    def _coerce_rate_guarantees(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        if isinstance(value, str):
            return {"All": value} if value.strip() else {}
        if isinstance(value, dict):
            return {str(k): _to_optional_str(v) for k, v in value.items() if v is not None}
        if isinstance(value, list):
            guarantees = {}
            loose = []
            for row in value:
                if isinstance(row, dict):
                    key = row.get("coverageType") or row.get("benefit") or "All"
                    text = row.get("duration") or row.get("period") or row.get("details")
                    if text is not None:
                        guarantees[str(key)] = _to_optional_str(text)
                elif row is not None:
                    loose.append(str(row))
            if loose:
                guarantees.setdefault("All", "; ".join(loose))
            return guarantees
        return {}


class CoverageEntry(CamelModel):
    """One coverage line for one plan option from one carrier.

    Instances are built only from entries that passed the coverage
    validator, so the numeric fields are real numbers and
    ``premium == monthly_premium``.
    """

    coverage_type: str
    carrier_name: str = ""
    plan_option_name: str
    premium: Number
    monthly_premium: Number
    unit_rate: Number
    unit_rate_basis: str
    volume: Number
    lives: Number
    benefit_details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.coverage_type == PLACEHOLDER_COVERAGE_TYPE and bool(
            self.benefit_details.get("synthetic")
        )


class PlanNote(CamelModel):
    note: str


class PlanSummary(CamelModel):
    """A plan option detected in a document."""

    plan_option_name: str
    carrier_name: Optional[str] = None
    total_monthly_premium: Optional[float] = None
    rate_guarantee: Optional[str] = None
    coverage_types: List[str] = Field(default_factory=list)


class NewShape(CamelModel):
    shape: Literal["new"] = "new"
    overview: List[OverviewRow] = Field(default_factory=list)
    breakdown: List[BreakdownRow] = Field(default_factory=list)


class LegacyShape(CamelModel):
    shape: Literal["legacy"] = "legacy"
    plan_options: List[PlanOption] = Field(default_factory=list)
    coverages: List[CoverageEntry] = Field(default_factory=list)


PlanStructure = Annotated[Union[NewShape, LegacyShape], Field(discriminator="shape")]


class StageRecord(CamelModel):
    """Timeline entry for one processing stage."""

    stage: str
    status: str = "pending"
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    details: Optional[str] = None


class ProcessingReport(CamelModel):
    """Per-run facts that are reported but never persisted."""

    valid_count: int = 0
    invalid_count: int = 0
    dropped_plan_rows: int = 0
    placeholder_created: bool = False
    warnings: List[str] = Field(default_factory=list)
    stages: List[StageRecord] = Field(default_factory=list)
    processing_time: Optional[str] = None
    source_location: Optional[str] = None
    processed_location: Optional[str] = None
    processed_at: Optional[datetime] = None


class ProcessedDocument(CamelModel):
    """Canonical result of processing one quote document."""

    metadata: Metadata = Field(default_factory=Metadata)
    coverages: List[CoverageEntry] = Field(default_factory=list)
    plan_notes: List[PlanNote] = Field(default_factory=list)

    # Derived companions, recomputable and excluded from the persisted form
    structure: Optional[PlanStructure] = Field(default=None, exclude=True)
    report: Optional[ProcessingReport] = Field(default=None, exclude=True)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{metadata, coverages, planNotes}`` form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def coverage_summary(self) -> Dict[str, int]:
        """Count coverages per coverage type, in first-appearance order."""
        summary: Dict[str, int] = {}
        for coverage in self.coverages:
            summary[coverage.coverage_type] = summary.get(coverage.coverage_type, 0) + 1
        return summary


class RawDocument(CamelModel):
    """An uploaded quote file awaiting processing."""

    file_name: str
    content: bytes = Field(repr=False)
    category: DocumentCategory = DocumentCategory.CURRENT
    carrier_name: Optional[str] = None
