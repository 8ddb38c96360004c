"""Tests for per-user plan selection sessions."""

import pytest

from plancompare.core.exceptions import DocumentNotFoundError, ResponseShapeError
from plancompare.schemas.plan_selection import DocumentSelectionRequest
from plancompare.schemas.quote import DocumentCategory
from plancompare.services.selection.selection_store import PlanSelectionStore


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> PlanSelectionStore:
    return PlanSelectionStore(ttl_seconds=60, max_users=2, clock=clock)


@pytest.fixture
def selection_request(quote_payload) -> DocumentSelectionRequest:
    return DocumentSelectionRequest.model_validate(
        {
            "documentId": "doc-1",
            "fileName": "sunlife.pdf",
            "selectedPlans": ["Option A"],
            "planQuoteTypes": {"Option A": "Current Premium", "Option B": "Alternative"},
            "planHSAOptions": {"Option A": False, "Option B": True},
            "planHSADetails": {"Option B": {"annualMaximum": 1000}},
            "processedData": quote_payload,
        }
    )


class TestPlanSelectionStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, store, selection_request) -> None:
        state = await store.save("user-1", [selection_request])

        assert state.user_id == "user-1"
        document = state.documents[0]
        assert document.carrier_name == "Sun Life"
        assert document.document_type == DocumentCategory.CURRENT
        assert document.include_hsa is False
        assert document.hsa_details is None
        assert len(document.processed_data.coverages) == 8
        assert len(document.filtered_data.coverages) == 4
        assert [plan.plan_option_name for plan in document.detected_plans] == [
            "Option A",
            "Option B",
        ]

        assert await store.get("user-1") == state
        assert await store.get("someone-else") is None

    @pytest.mark.asyncio
    async def test_save_replaces_previous_state(self, store, selection_request) -> None:
        first = await store.save("user-1", [selection_request])
        second = await store.save("user-1", [])

        assert second.documents == []
        assert second.created_at == first.created_at

    @pytest.mark.asyncio
    async def test_update_refilters_from_source(self, store, selection_request) -> None:
        await store.save("user-1", [selection_request])

        state = await store.update_document("user-1", "doc-1", ["Option B"])

        document = state.documents[0]
        assert {c.plan_option_name for c in document.filtered_data.coverages} == {"Option B"}
        assert len(document.filtered_data.coverages) == 4
        assert document.include_hsa is True
        assert document.hsa_details == {"annualMaximum": 1000}

    @pytest.mark.asyncio
    async def test_update_with_new_quote_types(self, store, selection_request) -> None:
        await store.save("user-1", [selection_request])

        state = await store.update_document(
            "user-1", "doc-1", ["Option B"], plan_quote_types={"Option B": "Renegotiated"}
        )

        assert state.documents[0].document_type == DocumentCategory.RENEGOTIATED

    @pytest.mark.asyncio
    async def test_update_unknown_document(self, store, selection_request) -> None:
        await store.save("user-1", [selection_request])

        with pytest.raises(DocumentNotFoundError):
            await store.update_document("user-1", "doc-404", ["Option A"])
        with pytest.raises(DocumentNotFoundError):
            await store.update_document("user-2", "doc-1", ["Option A"])

    @pytest.mark.asyncio
    async def test_remove_document(self, store, selection_request) -> None:
        await store.save("user-1", [selection_request])

        state = await store.remove_document("user-1", "doc-1")

        assert state.documents == []
        assert await store.remove_document("user-2", "doc-1") is None

    @pytest.mark.asyncio
    async def test_session_expires(self, store, clock, selection_request) -> None:
        await store.save("user-1", [selection_request])

        clock.now += 61

        assert await store.get("user-1") is None

    @pytest.mark.asyncio
    async def test_oldest_session_evicted(self, store, clock, selection_request) -> None:
        await store.save("user-1", [selection_request])
        clock.now += 1
        await store.save("user-2", [selection_request])
        clock.now += 1
        await store.save("user-3", [selection_request])

        assert await store.get("user-1") is None
        assert await store.get("user-2") is not None
        assert await store.get("user-3") is not None

    @pytest.mark.asyncio
    async def test_purge_expired(self, store, clock, selection_request) -> None:
        await store.save("user-1", [selection_request])
        clock.now += 30
        await store.save("user-2", [selection_request])
        clock.now += 40

        assert await store.purge_expired() == 1
        assert await store.get("user-2") is not None

    @pytest.mark.asyncio
    async def test_clear(self, store, selection_request) -> None:
        await store.save("user-1", [selection_request])

        assert await store.clear("user-1") is True
        assert await store.clear("user-1") is False

    @pytest.mark.asyncio
    async def test_invalid_processed_data(self, store, selection_request) -> None:
        bad = selection_request.model_copy(update={"processed_data": {"metadata": "oops"}})

        with pytest.raises(ResponseShapeError):
            await store.save("user-1", [bad])
