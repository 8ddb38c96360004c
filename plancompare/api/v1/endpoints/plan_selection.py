from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from plancompare.api.v1.dependencies import get_current_user_id, get_selection_store
from plancompare.core.exceptions import DocumentNotFoundError, ParseError
from plancompare.schemas.api import ApiResponse
from plancompare.schemas.plan_selection import SavePlanSelectionRequest, UpdatePlanSelectionRequest
from plancompare.services.selection.selection_store import PlanSelectionStore
from plancompare.utils.logging import get_logger
from plancompare.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


def _not_found(request: Request, detail: str) -> HTTPException:
    error_detail = create_error_detail(
        title="Plan Selection Not Found",
        status=status.HTTP_404_NOT_FOUND,
        detail=detail,
        request=request,
    )
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error_detail.model_dump(mode="json"))


@router.get(
    "",
    response_model=ApiResponse,
    summary="Get plan selections",
    operation_id="get_plan_selections",
)
async def get_plan_selections(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    store: Annotated[PlanSelectionStore, Depends(get_selection_store)] = None,
) -> ApiResponse:
    """Return the caller's current selections, or an empty list."""
    state = await store.get(user_id)
    data = state if state is not None else {"userId": user_id, "documents": []}
    return create_api_response(data=data, message="Plan selections retrieved", request=request)


@router.post(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save plan selections",
    operation_id="save_plan_selections",
)
async def save_plan_selections(
    request: Request,
    body: SavePlanSelectionRequest,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    store: Annotated[PlanSelectionStore, Depends(get_selection_store)] = None,
) -> ApiResponse:
    """Replace all of the caller's selections."""
    try:
        state = await store.save(user_id, body.documents)
    except ParseError as e:
        error_detail = create_error_detail(
            title="Invalid processed data",
            status=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
            request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail.model_dump(mode="json")
        ) from e

    return create_api_response(
        data=state,
        message=f"Saved selections for {len(state.documents)} documents",
        request=request,
    )


@router.put(
    "",
    response_model=ApiResponse,
    summary="Update the selection for one document",
    operation_id="update_plan_selection",
)
async def update_plan_selection(
    request: Request,
    body: UpdatePlanSelectionRequest,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    store: Annotated[PlanSelectionStore, Depends(get_selection_store)] = None,
) -> ApiResponse:
    try:
        state = await store.update_document(
            user_id,
            body.document_id,
            body.selected_plans,
            plan_quote_types=body.plan_quote_types,
            plan_hsa_options=body.plan_hsa_options,
            plan_hsa_details=body.plan_hsa_details,
        )
    except DocumentNotFoundError as e:
        raise _not_found(request, str(e)) from e

    return create_api_response(data=state, message="Plan selection updated", request=request)


@router.delete(
    "",
    response_model=ApiResponse,
    summary="Remove one document from the selections",
    operation_id="delete_plan_selection",
)
async def delete_plan_selection(
    request: Request,
    document_id: str = Query(..., alias="documentId"),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    store: Annotated[PlanSelectionStore, Depends(get_selection_store)] = None,
) -> ApiResponse:
    state = await store.remove_document(user_id, document_id)
    if state is None:
        raise _not_found(request, "No plan selections found for the current user")

    return create_api_response(data=state, message="Document removed from selection", request=request)
