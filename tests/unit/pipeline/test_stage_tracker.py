"""Tests for stage timeline tracking."""

import pytest

from plancompare.core.base_stage import StageResult, StageStatus
from plancompare.core.exceptions import ModelError, ProcessingStage
from plancompare.pipeline.stage_tracker import StageTracker, format_duration


@pytest.mark.parametrize(
    "milliseconds, expected",
    [(0, "0ms"), (850.7, "850ms"), (1500, "1.5s"), (59_999, "60.0s"), (90_000, "1.5min")],
)
def test_format_duration(milliseconds, expected) -> None:
    assert format_duration(milliseconds) == expected


class TestStageTracker:
    def test_all_stages_start_pending(self) -> None:
        records = StageTracker().records()

        assert [r.stage for r in records] == [stage.value for stage in ProcessingStage]
        assert {r.status for r in records} == {"pending"}

    def test_lifecycle(self) -> None:
        tracker = StageTracker()

        tracker.start(ProcessingStage.FORM_VALIDATION)
        tracker.complete(ProcessingStage.FORM_VALIDATION, "size_bytes=10")
        tracker.start(ProcessingStage.TEXT_EXTRACTION)
        tracker.fail(ProcessingStage.TEXT_EXTRACTION, "timed out")

        records = {r.stage: r for r in tracker.records()}
        validation = records["form_validation"]
        assert validation.status == "completed"
        assert validation.details == "size_bytes=10"
        assert validation.end_time >= validation.start_time
        assert records["text_extraction"].status == "failed"
        assert records["text_extraction"].details == "timed out"
        assert records["save_results"].start_time is None

    def test_complete_without_start_sets_both_times(self) -> None:
        tracker = StageTracker()

        tracker.complete(ProcessingStage.AUTHENTICATION)

        record = tracker.records()[0]
        assert record.start_time is not None
        assert record.end_time is not None

    def test_records_are_copies(self) -> None:
        tracker = StageTracker()
        snapshot = tracker.records()

        tracker.start(ProcessingStage.FILE_UPLOAD)

        assert snapshot[2].status == "pending"

    def test_processing_time_before_any_stage(self) -> None:
        assert StageTracker().processing_time() == "0ms"


class TestStageResult:
    def test_ok(self) -> None:
        result = StageResult.ok("text", text_length=4)

        assert result.is_ok
        assert result.status == StageStatus.COMPLETED
        assert result.details == {"text_length": 4}

    def test_err(self) -> None:
        error = ModelError("boom")
        result = StageResult.err(error)

        assert not result.is_ok
        assert result.error is error
        assert result.value is None
