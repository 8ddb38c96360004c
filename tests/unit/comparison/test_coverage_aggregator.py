"""Tests for multi-carrier coverage aggregation."""

from plancompare.schemas.quote import CoverageEntry, Metadata, ProcessedDocument
from plancompare.services.comparison.coverage_aggregator import aggregate_by_coverage_type
from plancompare.services.selection.plan_filter import filter_by_selection


def _entry(coverage_type: str, carrier_name: str = "", premium: float = 100.0) -> CoverageEntry:
    return CoverageEntry(
        coverage_type=coverage_type,
        carrier_name=carrier_name,
        plan_option_name="Option A",
        premium=premium,
        monthly_premium=premium,
        unit_rate=0.1,
        unit_rate_basis="per unit",
        volume=1000,
        lives=10,
    )


class TestAggregateByCoverageType:
    def test_groups_across_documents(self, processed_document, legacy_document) -> None:
        selected = filter_by_selection(processed_document, ["Option A"])

        aggregation = aggregate_by_coverage_type([selected, legacy_document])

        assert list(aggregation.by_type) == [
            "Basic Life",
            "LTD",
            "Extended Healthcare",
            "Dental Care",
        ]
        assert len(aggregation.by_type["Basic Life"]) == 3
        assert len(aggregation.by_type["LTD"]) == 1
        assert aggregation.carriers == ["Manulife", "Sun Life"]
        assert aggregation.documents_considered == 2
        assert aggregation.coverage_rows_considered == 8
        assert aggregation.diagnostic is None

    def test_entries_inherit_document_carrier(self) -> None:
        document = ProcessedDocument(
            metadata=Metadata(carrier_name="Desjardins"),
            coverages=[_entry("LTD"), _entry("LTD", carrier_name="GreenShield")],
        )

        aggregation = aggregate_by_coverage_type([document])

        assert [e.carrier_name for e in aggregation.by_type["LTD"]] == ["Desjardins", "GreenShield"]
        assert aggregation.carriers == ["Desjardins", "GreenShield"]
        assert document.coverages[0].carrier_name == ""

    def test_carrierless_rows_from_two_documents(self) -> None:
        first = ProcessedDocument(
            metadata=Metadata(carrier_name="Sun Life"),
            coverages=[_entry("Extended Healthcare")],
        )
        second = ProcessedDocument(
            metadata=Metadata(carrier_name="Manulife"),
            coverages=[_entry("Extended Healthcare", premium=80.0)],
        )

        aggregation = aggregate_by_coverage_type([first, second])

        rows = aggregation.by_type["Extended Healthcare"]
        assert [(e.carrier_name, e.premium) for e in rows] == [("Sun Life", 100.0), ("Manulife", 80.0)]
        assert aggregation.carriers == ["Manulife", "Sun Life"]

    def test_unknown_carrier_when_document_has_none(self) -> None:
        document = ProcessedDocument(coverages=[_entry("Vision")])

        aggregation = aggregate_by_coverage_type([document])

        assert aggregation.by_type["Vision"][0].carrier_name == "Unknown Carrier"
        assert aggregation.carriers == ["Unknown Carrier"]

    def test_filter_by_coverage_type(self, processed_document) -> None:
        aggregation = aggregate_by_coverage_type([processed_document], coverage_type_filter="LTD")

        assert list(aggregation.by_type) == ["LTD"]
        assert {e.premium for e in aggregation.by_type["LTD"]} == {450.0, 400.5}
        assert aggregation.coverage_type_filter == "LTD"

    def test_unrecognised_types_sorted_last(self) -> None:
        document = ProcessedDocument(
            metadata=Metadata(carrier_name="Sun Life"),
            coverages=[_entry("Unknown"), _entry("EAP"), _entry("Term Life")],
        )

        aggregation = aggregate_by_coverage_type([document])

        assert list(aggregation.by_type) == ["Term Life", "EAP", "Unknown"]

    def test_empty_result_has_diagnostic(self, processed_document) -> None:
        aggregation = aggregate_by_coverage_type([processed_document], coverage_type_filter="AD&D")

        assert aggregation.is_empty
        assert aggregation.carriers == ["Sun Life"]
        assert "AD&D" in aggregation.diagnostic
        assert "8 coverage row(s)" in aggregation.diagnostic

    def test_no_documents(self) -> None:
        aggregation = aggregate_by_coverage_type([])

        assert aggregation.is_empty
        assert aggregation.carriers == []
        assert "0 document(s)" in aggregation.diagnostic
