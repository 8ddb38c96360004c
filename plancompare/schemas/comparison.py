"""Market comparison models."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from plancompare.schemas.quote import CamelModel, CoverageEntry


class CoverageAggregation(CamelModel):
    """Coverage rows bucketed by coverage type across documents."""

    by_type: Dict[str, List[CoverageEntry]] = Field(default_factory=dict)
    carriers: List[str] = Field(default_factory=list)
    documents_considered: int = 0
    coverage_rows_considered: int = 0
    coverage_type_filter: Optional[str] = None
    diagnostic: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.by_type


class MarketComparisonRequest(CamelModel):
    documents: List[Dict[str, Any]]
    coverage_type: Optional[str] = None
