"""Plan selection request and session models."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from plancompare.schemas.quote import CamelModel, DocumentCategory, PlanSummary, ProcessedDocument


class DocumentSelection(CamelModel):
    """The user's plan choice for one processed document."""

    document_id: str
    file_name: str
    carrier_name: Optional[str] = None
    document_type: DocumentCategory = DocumentCategory.CURRENT
    selected_plans: List[str] = Field(default_factory=list)
    include_hsa: bool = Field(default=False, alias="includeHSA")
    hsa_details: Optional[Dict[str, Any]] = None
    plan_quote_types: Dict[str, str] = Field(default_factory=dict)
    plan_hsa_options: Dict[str, bool] = Field(default_factory=dict, alias="planHSAOptions")
    plan_hsa_details: Dict[str, Any] = Field(default_factory=dict, alias="planHSADetails")
    detected_plans: List[PlanSummary] = Field(default_factory=list)
    processed_data: ProcessedDocument
    filtered_data: ProcessedDocument


class PlanSelectionState(CamelModel):
    """All selections held for one user."""

    user_id: str
    documents: List[DocumentSelection] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DocumentSelectionRequest(CamelModel):
    document_id: str
    file_name: str
    carrier_name: Optional[str] = None
    selected_plans: List[str] = Field(default_factory=list)
    document_type: Optional[DocumentCategory] = None
    include_hsa: Optional[bool] = Field(default=None, alias="includeHSA")
    plan_quote_types: Dict[str, str] = Field(default_factory=dict)
    plan_hsa_options: Dict[str, bool] = Field(default_factory=dict, alias="planHSAOptions")
    plan_hsa_details: Dict[str, Any] = Field(default_factory=dict, alias="planHSADetails")
    processed_data: Dict[str, Any]


class SavePlanSelectionRequest(CamelModel):
    documents: List[DocumentSelectionRequest]


class UpdatePlanSelectionRequest(CamelModel):
    document_id: str
    selected_plans: List[str]
    plan_quote_types: Optional[Dict[str, str]] = None
    plan_hsa_options: Optional[Dict[str, bool]] = Field(default=None, alias="planHSAOptions")
    plan_hsa_details: Optional[Dict[str, Any]] = Field(default=None, alias="planHSADetails")
