"""Per-user plan selection sessions.

Sessions live in process memory, keyed by user id, and expire after a
fixed time since their last write. The number of sessions is bounded; the
least recently written session is evicted first.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from plancompare.core.exceptions import DocumentNotFoundError
from plancompare.schemas.quote import DocumentCategory
from plancompare.schemas.plan_selection import (
    DocumentSelection,
    DocumentSelectionRequest,
    PlanSelectionState,
)
from plancompare.services.normalization.format_normalizer import (
    derive_plan_summaries,
    ensure_structure,
    load_processed_document,
)
from plancompare.services.selection.plan_filter import (
    filter_by_selection,
    infer_document_type,
    resolve_hsa_details,
    resolve_include_hsa,
)
from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class _Session:
    state: PlanSelectionState
    touched_at: float


def build_document_selection(request: DocumentSelectionRequest) -> DocumentSelection:
    """Turn a client selection into a stored selection with its filtered view."""
    source = load_processed_document(request.processed_data)
    selected = list(request.selected_plans)

    return DocumentSelection(
        document_id=request.document_id,
        file_name=request.file_name,
        carrier_name=request.carrier_name or source.metadata.carrier_name,
        document_type=infer_document_type(
            request.plan_quote_types, fallback=request.document_type or DocumentCategory.CURRENT
        ),
        selected_plans=selected,
        include_hsa=resolve_include_hsa(
            request.plan_hsa_options, selected, fallback=bool(request.include_hsa)
        ),
        hsa_details=resolve_hsa_details(
            request.plan_hsa_details, request.plan_hsa_options, selected
        ),
        plan_quote_types=dict(request.plan_quote_types),
        plan_hsa_options=dict(request.plan_hsa_options),
        plan_hsa_details=dict(request.plan_hsa_details),
        detected_plans=derive_plan_summaries(ensure_structure(source), source.metadata.carrier_name),
        processed_data=source,
        filtered_data=filter_by_selection(source, selected),
    )


class PlanSelectionStore:
    """In-memory plan selection sessions with expiry and bounded size."""

    def __init__(
        self,
        ttl_seconds: int = 8 * 3600,
        max_users: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            ttl_seconds: Session lifetime after its last write
            max_users: Maximum number of sessions held at once
            clock: Time source in seconds
        """
        self.ttl_seconds = ttl_seconds
        self.max_users = max_users
        self._clock = clock
        self._sessions: "OrderedDict[str, _Session]" = OrderedDict()
        self._lock = asyncio.Lock()

    def _is_session_valid(self, session: _Session) -> bool:
        return (self._clock() - session.touched_at) < self.ttl_seconds

    def _live_session(self, user_id: str) -> Optional[_Session]:
        session = self._sessions.get(user_id)
        if session is None:
            return None
        if not self._is_session_valid(session):
            del self._sessions[user_id]
            LOGGER.info("Plan selection session expired", extra={"user_id": user_id})
            return None
        return session

    def _put(self, user_id: str, state: PlanSelectionState) -> None:
        self._sessions[user_id] = _Session(state=state, touched_at=self._clock())
        self._sessions.move_to_end(user_id)
        while len(self._sessions) > self.max_users:
            evicted, _ = self._sessions.popitem(last=False)
            LOGGER.warning("Evicted plan selection session", extra={"user_id": evicted})

    async def get(self, user_id: str) -> Optional[PlanSelectionState]:
        async with self._lock:
            session = self._live_session(user_id)
            return session.state if session else None

    async def save(
        self, user_id: str, documents: List[DocumentSelectionRequest]
    ) -> PlanSelectionState:
        """Replace the user's selections with ``documents``.

        The whole state is replaced; the last writer wins. The original
        creation time is kept when a live session exists.
        """
        selections = [build_document_selection(request) for request in documents]
        now = datetime.now(timezone.utc)

        async with self._lock:
            previous = self._live_session(user_id)
            state = PlanSelectionState(
                user_id=user_id,
                documents=selections,
                created_at=previous.state.created_at if previous else now,
                updated_at=now,
            )
            self._put(user_id, state)

        LOGGER.info(
            "Saved plan selections",
            extra={"user_id": user_id, "document_count": len(selections)},
        )
        return state

    async def update_document(
        self,
        user_id: str,
        document_id: str,
        selected_plans: List[str],
        plan_quote_types: Optional[Dict[str, str]] = None,
        plan_hsa_options: Optional[Dict[str, bool]] = None,
        plan_hsa_details: Optional[Dict[str, object]] = None,
    ) -> PlanSelectionState:
        """Change the selection for one document.

        The filtered view is recomputed from the stored source document,
        never from the previous filtered view.

        Raises:
            DocumentNotFoundError: If the user has no selection for the document
        """
        async with self._lock:
            session = self._live_session(user_id)
            documents = session.state.documents if session else []
            index = next(
                (i for i, doc in enumerate(documents) if doc.document_id == document_id), None
            )
            if index is None:
                raise DocumentNotFoundError(f"No plan selection for document {document_id}")

            current = documents[index]
            quote_types = current.plan_quote_types if plan_quote_types is None else plan_quote_types
            hsa_options = current.plan_hsa_options if plan_hsa_options is None else plan_hsa_options
            hsa_details = current.plan_hsa_details if plan_hsa_details is None else plan_hsa_details

            updated = current.model_copy(
                update={
                    "selected_plans": list(selected_plans),
                    "document_type": infer_document_type(quote_types, fallback=current.document_type),
                    "include_hsa": resolve_include_hsa(
                        hsa_options, selected_plans, fallback=current.include_hsa
                    ),
                    "hsa_details": resolve_hsa_details(hsa_details, hsa_options, selected_plans),
                    "plan_quote_types": dict(quote_types),
                    "plan_hsa_options": dict(hsa_options),
                    "plan_hsa_details": dict(hsa_details),
                    "filtered_data": filter_by_selection(current.processed_data, selected_plans),
                }
            )
            new_documents = list(documents)
            new_documents[index] = updated
            state = session.state.model_copy(
                update={"documents": new_documents, "updated_at": datetime.now(timezone.utc)}
            )
            self._put(user_id, state)

        LOGGER.info(
            "Updated plan selection",
            extra={"user_id": user_id, "document_id": document_id, "selected_plans": selected_plans},
        )
        return state

    async def remove_document(self, user_id: str, document_id: str) -> Optional[PlanSelectionState]:
        """Drop one document from the user's selections.

        Returns:
            The remaining state, or None when the user has no session
        """
        async with self._lock:
            session = self._live_session(user_id)
            if session is None:
                return None

            remaining = [doc for doc in session.state.documents if doc.document_id != document_id]
            state = session.state.model_copy(
                update={"documents": remaining, "updated_at": datetime.now(timezone.utc)}
            )
            self._put(user_id, state)

        LOGGER.info(
            "Removed document from plan selection",
            extra={"user_id": user_id, "document_id": document_id},
        )
        return state

    async def clear(self, user_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(user_id, None) is not None

    async def purge_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        async with self._lock:
            expired = [
                user_id
                for user_id, session in self._sessions.items()
                if not self._is_session_valid(session)
            ]
            for user_id in expired:
                del self._sessions[user_id]

        if expired:
            LOGGER.info("Purged expired plan selection sessions", extra={"count": len(expired)})
        return len(expired)
