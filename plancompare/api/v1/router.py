from fastapi import APIRouter

from plancompare.api.v1.endpoints import comparison, documents, plan_selection

api_router = APIRouter()

api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(plan_selection.router, prefix="/plan-selection", tags=["Plan Selection"])
api_router.include_router(comparison.router, prefix="/comparison", tags=["Comparison"])

__all__ = ["api_router"]
