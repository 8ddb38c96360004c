"""Tests for reconciling the two quote layouts into one document."""

import pytest

from plancompare.core.exceptions import ResponseShapeError
from plancompare.schemas.quote import LegacyShape, NewShape, ProcessedDocument
from plancompare.services.normalization.format_normalizer import (
    canonicalize_payload,
    derive_plan_summaries,
    detect_shape,
    ensure_structure,
    list_plan_option_names,
    load_processed_document,
    normalize_document,
)


class TestDetectShape:
    def test_overview_marker_in_metadata(self, quote_payload) -> None:
        assert detect_shape(quote_payload) == "new"

    def test_overview_marker_at_root(self) -> None:
        assert detect_shape({"highLevelOverview": [], "metadata": {}}) == "new"

    def test_plan_options_means_legacy(self, legacy_payload) -> None:
        assert detect_shape(legacy_payload) == "legacy"

    def test_overview_wins_over_plan_options(self) -> None:
        payload = {"metadata": {"highLevelOverview": [], "planOptions": []}, "coverages": []}

        assert detect_shape(payload) == "new"

    def test_no_markers_means_legacy(self) -> None:
        assert detect_shape({"metadata": {}, "coverages": []}) == "legacy"

    def test_documents_and_metadata(self, processed_document, legacy_document) -> None:
        assert detect_shape(processed_document) == "new"
        assert detect_shape(legacy_document.metadata) == "legacy"


class TestNormalizeDocument:
    def test_overview_layout(self, quote_payload) -> None:
        document, validation = normalize_document(quote_payload)

        assert isinstance(document.structure, NewShape)
        assert len(document.coverages) == 8
        assert validation.invalid_count == 0
        assert document.metadata.carrier_name == "Sun Life"
        assert document.metadata.total_proposed_monthly_plan_premium == 2150.0
        assert document.metadata.plan_option_totals == {"Option A": 2150.0, "Option B": 1890.5}
        assert document.metadata.rate_guarantees == {"All": "12 months"}
        assert [note.note for note in document.plan_notes] == ["Rates guaranteed for 12 months."]

    def test_legacy_layout(self, legacy_payload) -> None:
        document, _ = normalize_document(legacy_payload)

        assert isinstance(document.structure, LegacyShape)
        assert [plan.plan_option_name for plan in document.structure.plan_options] == [
            "Standard",
            "Enhanced",
        ]
        assert [note.note for note in document.plan_notes] == ["Dental recall every 9 months."]

    def test_legacy_totals_back_filled_from_plan_options(self, legacy_payload) -> None:
        document, _ = normalize_document(legacy_payload)

        assert document.metadata.plan_option_totals == {"Standard": 900.0, "Enhanced": 1200.0}
        assert document.metadata.total_proposed_monthly_plan_premium == 900.0

    def test_no_markers_gives_empty_plans(self, coverage_factory) -> None:
        payload = {
            "metadata": {"carrierName": "Equitable"},
            "coverages": [
                coverage_factory("LTD", "Core", 100.0, carrier_name="Equitable"),
                coverage_factory("LTD", "Plus", 150.25, carrier_name="Equitable"),
                coverage_factory("Vision", "Plus", 20.0, carrier_name="Equitable"),
            ],
            "planNotes": [],
        }

        document, _ = normalize_document(payload)

        assert isinstance(document.structure, LegacyShape)
        assert document.structure.plan_options == []
        assert derive_plan_summaries(document.structure) == []
        assert document.metadata.plan_option_name == "Core"
        assert document.metadata.plan_option_totals == {"Core": 100.0, "Plus": 170.25}

    def test_carrier_taken_from_overview(self, quote_payload) -> None:
        del quote_payload["metadata"]["carrierName"]

        document, _ = normalize_document(quote_payload, carrier_name="Uploader Carrier")

        assert document.metadata.carrier_name == "Sun Life"

    def test_carrier_taken_from_uploader(self, legacy_payload) -> None:
        del legacy_payload["metadata"]["carrierName"]

        document, _ = normalize_document(legacy_payload, carrier_name="Manulife Financial")

        assert document.metadata.carrier_name == "Manulife Financial"

    def test_invalid_coverages_dropped(self, quote_payload) -> None:
        quote_payload["coverages"][0]["monthlyPremium"] = 999.0
        quote_payload["coverages"][1]["coverageType"] = "Travel"

        document, validation = normalize_document(quote_payload)

        assert len(document.coverages) == 6
        assert validation.invalid_count == 2

    def test_all_invalid_gives_placeholder(self, quote_payload) -> None:
        quote_payload["coverages"] = [{"coverageType": "LTD"}]

        document, validation = normalize_document(quote_payload)

        assert validation.placeholder_created
        assert len(document.coverages) == 1
        placeholder = document.coverages[0]
        assert placeholder.is_placeholder
        assert placeholder.carrier_name == "Sun Life"
        assert placeholder.plan_option_name == "Option A"
        assert placeholder.premium == 2150.0

    def test_metadata_must_be_an_object(self) -> None:
        with pytest.raises(ResponseShapeError):
            normalize_document({"metadata": "Sun Life", "coverages": [], "planNotes": []})

    def test_invalid_marker_structure_rejected(self) -> None:
        with pytest.raises(ResponseShapeError):
            normalize_document({"metadata": {"highLevelOverview": "Option A"}})

    def test_unnamed_overview_row_dropped_and_counted(self, quote_payload) -> None:
        overview = quote_payload["metadata"]["highLevelOverview"]
        overview.append({"planOption": None, "totalMonthlyPremium": 999.0})
        overview.append("Option C")

        document, validation = normalize_document(quote_payload)

        assert validation.dropped_plan_rows == 2
        assert [row.plan_option for row in document.metadata.high_level_overview] == [
            "Option A",
            "Option B",
        ]
        assert len(document.coverages) == 8

    def test_breakdown_rows_tolerate_missing_parts(self, quote_payload) -> None:
        breakdown = quote_payload["metadata"]["granularBreakdown"]
        breakdown[0]["carrierData"].append({"planOption": "", "included": True})
        breakdown.append({"benefitType": "EAP", "carrierData": None})
        breakdown.append({"benefitCategory": "Pooled"})

        document, validation = normalize_document(quote_payload)

        assert validation.dropped_plan_rows == 2
        rows = document.metadata.granular_breakdown
        assert [row.benefit_type for row in rows][-1] == "EAP"
        assert rows[-1].carrier_data == []
        assert len(rows[0].carrier_data) == 2

    def test_unnamed_legacy_plan_option_dropped(self, legacy_payload) -> None:
        legacy_payload["metadata"]["planOptions"].append({"carrierProposals": None})

        document, validation = normalize_document(legacy_payload)

        assert validation.dropped_plan_rows == 1
        assert [p.plan_option_name for p in document.metadata.plan_options] == [
            "Standard",
            "Enhanced",
        ]


class TestCanonicalizePayload:
    def test_root_markers_and_old_keys(self, coverage_factory) -> None:
        coverage = coverage_factory("Dental Care", "Standard", 80.0)
        payload = {
            "metadata": {"carrierName": "Sun Life"},
            "planOptions": [{"planOptionName": "Standard"}],
            "allCoverages": [coverage],
            "documentNotes": ["Quote valid for 60 days."],
        }

        canonical = canonicalize_payload(payload)

        assert canonical["metadata"]["planOptions"] == [{"planOptionName": "Standard"}]
        assert canonical["coverages"] == [coverage]
        assert canonical["planNotes"] == ["Quote valid for 60 days."]

    def test_stored_document_with_root_markers_loads(self, coverage_factory) -> None:
        payload = {
            "metadata": {"carrierName": "Sun Life"},
            "planOptions": [{"planOptionName": "Standard"}],
            "allCoverages": [coverage_factory("Dental Care", "Standard", 80.0)],
        }

        document = load_processed_document(payload)

        assert isinstance(document.structure, LegacyShape)
        assert list_plan_option_names(document) == ["Standard"]


class TestPlanSummaries:
    def test_overview_summaries_use_included_benefits(self, processed_document) -> None:
        summaries = derive_plan_summaries(ensure_structure(processed_document))

        assert [s.plan_option_name for s in summaries] == ["Option A", "Option B"]
        assert summaries[0].total_monthly_premium == 2150.0
        assert summaries[0].rate_guarantee == "12 months"
        assert summaries[0].coverage_types == [
            "Basic Life",
            "LTD",
            "Extended Healthcare",
            "Dental Care",
        ]

    def test_legacy_summaries(self, legacy_document) -> None:
        summaries = derive_plan_summaries(legacy_document.structure)

        assert summaries[0].carrier_name == "Manulife"
        assert summaries[0].total_monthly_premium == 900.0
        assert summaries[0].rate_guarantee == "24 months"
        assert summaries[1].coverage_types == ["Basic Life", "Dental Care"]

    def test_list_plan_option_names(self, processed_document) -> None:
        assert list_plan_option_names(processed_document) == ["Option A", "Option B"]


class TestPersistedForm:
    def test_payload_has_exactly_three_keys(self, processed_document) -> None:
        payload = processed_document.to_payload()

        assert set(payload) == {"metadata", "coverages", "planNotes"}
        assert "highLevelOverview" in payload["metadata"]
        assert payload["coverages"][0]["planOptionName"] == "Option A"

    def test_stored_payload_reloads_to_same_document(self, processed_document) -> None:
        reloaded = load_processed_document(processed_document.to_payload())

        assert isinstance(reloaded, ProcessedDocument)
        assert reloaded.to_payload() == processed_document.to_payload()

    def test_stored_coverage_without_carrier_takes_document_carrier(self, coverage_factory) -> None:
        row = coverage_factory("Extended Healthcare", "Option A", 310.0)
        del row["carrierName"]

        document = load_processed_document(
            {"metadata": {"carrierName": "Manulife"}, "coverages": [row], "planNotes": []}
        )

        assert len(document.coverages) == 1
        assert document.coverages[0].coverage_type == "Extended Healthcare"
        assert document.coverages[0].carrier_name == "Manulife"

    def test_model_output_without_carrier_is_still_rejected(self, coverage_factory) -> None:
        row = coverage_factory("Extended Healthcare", "Option A", 310.0)
        del row["carrierName"]

        document, validation = normalize_document(
            {"metadata": {"carrierName": "Manulife"}, "coverages": [row], "planNotes": []}
        )

        assert validation.invalid_count == 1
        assert document.coverages[0].is_placeholder
