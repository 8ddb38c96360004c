"""Tests for restricting documents to the selected plan options."""

from plancompare.schemas.quote import DocumentCategory, LegacyShape, NewShape
from plancompare.services.selection.plan_filter import (
    filter_by_selection,
    infer_document_type,
    resolve_hsa_details,
    resolve_include_hsa,
)


class TestFilterBySelection:
    def test_overview_document_restricted_everywhere(self, processed_document) -> None:
        filtered = filter_by_selection(processed_document, ["Option A"])

        assert len(filtered.coverages) == 4
        assert {c.plan_option_name for c in filtered.coverages} == {"Option A"}
        assert filtered.metadata.plan_option_totals == {"Option A": 2150.0}
        assert [row.plan_option for row in filtered.metadata.high_level_overview] == ["Option A"]

        breakdown = filtered.metadata.granular_breakdown
        assert len(breakdown) == 5
        assert all(
            [entry.plan_option for entry in row.carrier_data] == ["Option A"] for row in breakdown
        )
        assert isinstance(filtered.structure, NewShape)

    def test_source_is_not_modified(self, processed_document) -> None:
        before = processed_document.to_payload()

        filter_by_selection(processed_document, ["Option B"])

        assert processed_document.to_payload() == before

    def test_filter_is_idempotent(self, processed_document) -> None:
        once = filter_by_selection(processed_document, ["Option B"])
        twice = filter_by_selection(once, ["Option B"])

        assert twice.to_payload() == once.to_payload()

    def test_empty_selection_removes_all_plans(self, processed_document) -> None:
        filtered = filter_by_selection(processed_document, [])

        assert filtered.coverages == []
        assert filtered.metadata.plan_option_totals == {}
        assert filtered.metadata.high_level_overview == []
        assert filtered.plan_notes == processed_document.plan_notes

    def test_selecting_every_plan_keeps_all_rows(self, processed_document) -> None:
        filtered = filter_by_selection(processed_document, ["Option A", "Option B"])

        assert len(filtered.coverages) == len(processed_document.coverages)
        assert filtered.metadata.plan_option_totals == processed_document.metadata.plan_option_totals

    def test_unknown_plan_name_matches_nothing(self, processed_document) -> None:
        assert filter_by_selection(processed_document, ["option a"]).coverages == []

    def test_legacy_document(self, legacy_document) -> None:
        filtered = filter_by_selection(legacy_document, ["Enhanced"])

        assert isinstance(filtered.structure, LegacyShape)
        assert [p.plan_option_name for p in filtered.metadata.plan_options] == ["Enhanced"]
        assert [c.coverage_type for c in filtered.coverages] == ["Basic Life", "Dental Care"]
        assert filtered.metadata.plan_option_totals == {"Enhanced": 1200.0}


class TestInferDocumentType:
    def test_current_wins(self) -> None:
        tags = {"A": "Alternative Quote", "B": "Current Premium", "C": "Renegotiated"}
        assert infer_document_type(tags) == DocumentCategory.CURRENT

    def test_renegotiated_beats_alternative(self) -> None:
        tags = {"A": "alternative", "B": "Renegotiated Rates"}
        assert infer_document_type(tags) == DocumentCategory.RENEGOTIATED

    def test_alternative(self) -> None:
        assert infer_document_type({"A": "Alternative"}) == DocumentCategory.ALTERNATIVE

    def test_fallback_when_no_tags(self) -> None:
        assert infer_document_type({}, fallback=DocumentCategory.RENEGOTIATED) == (
            DocumentCategory.RENEGOTIATED
        )
        assert infer_document_type({"A": "Marketed"}) == DocumentCategory.CURRENT


class TestHsaResolution:
    def test_only_selected_plans_count(self) -> None:
        options = {"Option A": False, "Option B": True}

        assert resolve_include_hsa(options, ["Option A"]) is False
        assert resolve_include_hsa(options, ["Option A", "Option B"]) is True

    def test_fallback_without_options(self) -> None:
        assert resolve_include_hsa({}, ["Option A"], fallback=True) is True

    def test_details_from_first_enabled_selected_plan(self) -> None:
        details = {
            "Option A": {"annualMaximum": 500},
            "Option B": {"annualMaximum": 1000},
        }
        options = {"Option A": False, "Option B": True}

        assert resolve_hsa_details(details, options, ["Option A", "Option B"]) == {
            "annualMaximum": 1000
        }
        assert resolve_hsa_details(details, options, ["Option A"]) is None
