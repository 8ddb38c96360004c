"""Base stage interface for the document processing pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from plancompare.core.exceptions import AppError, ProcessingStage

T = TypeVar("T")


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StageResult(Generic[T]):
    """Tagged result from stage execution.

    Exactly one of ``value`` or ``error`` is meaningful, selected by
    ``status``. Stages return this instead of raising so the pipeline can
    attach the failing stage to the error it reports.
    """
    status: StageStatus
    value: Optional[T] = None
    error: Optional[AppError] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: T, **details: Any) -> "StageResult[T]":
        return cls(status=StageStatus.COMPLETED, value=value, details=details)

    @classmethod
    def err(cls, error: AppError, **details: Any) -> "StageResult[T]":
        return cls(status=StageStatus.FAILED, error=error, details=details)

    @property
    def is_ok(self) -> bool:
        return self.status == StageStatus.COMPLETED


class BaseStage(ABC, Generic[T]):
    """Base class for pipeline stages."""

    @property
    @abstractmethod
    def name(self) -> ProcessingStage:
        """Stage identifier reported on failure."""
        pass

    @abstractmethod
    async def execute(self, context: Any) -> StageResult[T]:
        """Execute the stage against the running document context."""
        pass
