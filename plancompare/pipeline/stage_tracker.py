"""Timeline of processing stages for one document."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from plancompare.core.base_stage import StageStatus
from plancompare.core.exceptions import ProcessingStage
from plancompare.schemas.quote import StageRecord


def format_duration(milliseconds: float) -> str:
    """Render a duration as ms, seconds or minutes."""
    if milliseconds < 1000:
        return f"{int(milliseconds)}ms"
    if milliseconds < 60_000:
        return f"{milliseconds / 1000:.1f}s"
    return f"{milliseconds / 60_000:.1f}min"


class StageTracker:
    """Records start, end, status and details of every pipeline stage."""

    def __init__(self):
        self._records: Dict[ProcessingStage, StageRecord] = {
            stage: StageRecord(stage=stage.value, status=StageStatus.PENDING.value)
            for stage in ProcessingStage
        }

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def start(self, stage: ProcessingStage, details: Optional[str] = None) -> None:
        record = self._records[stage]
        record.status = StageStatus.IN_PROGRESS.value
        record.start_time = self._now()
        record.details = details

    def complete(self, stage: ProcessingStage, details: Optional[str] = None) -> None:
        record = self._records[stage]
        if record.start_time is None:
            record.start_time = self._now()
        record.status = StageStatus.COMPLETED.value
        record.end_time = self._now()
        if details:
            record.details = details

    def fail(self, stage: ProcessingStage, details: Optional[str] = None) -> None:
        record = self._records[stage]
        if record.start_time is None:
            record.start_time = self._now()
        record.status = StageStatus.FAILED.value
        record.end_time = self._now()
        record.details = details

    def records(self) -> List[StageRecord]:
        return [record.model_copy() for record in self._records.values()]

    def processing_time(self) -> str:
        """Elapsed time from the first stage start to the last stage end."""
        starts = [r.start_time for r in self._records.values() if r.start_time]
        ends = [r.end_time for r in self._records.values() if r.end_time]
        if not starts or not ends:
            return format_duration(0)
        elapsed = (max(ends) - min(starts)).total_seconds() * 1000
        return format_duration(elapsed)
