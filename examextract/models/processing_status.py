"""Pipeline progress models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ProcessingState(Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProcessingStatus:
    """Snapshot of a run's progress, rebuilt on every pipeline step."""

    state: ProcessingState = ProcessingState.IDLE
    total: int = 0
    current: int = 0
    message: Optional[str] = None

    @property
    def progress_percentage(self) -> int:
        if self.total <= 0:
            return 0
        return min(100, round(self.current / self.total * 100))

    @property
    def is_processing(self) -> bool:
        return self.state in (ProcessingState.ANALYZING, ProcessingState.EXTRACTING)

    @property
    def is_terminal(self) -> bool:
        return not self.is_processing
