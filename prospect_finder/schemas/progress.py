from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProgressPhase(str, Enum):
    INIT = "init"
    SEARCHING = "searching"
    SCRAPING = "scraping"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    DESCRIPTIONS = "descriptions"
    SAVING = "saving"
    DONE = "done"
    ERROR = "error"


# Searching and scraping are the same stage for businesses and jobs respectively;
# analyzing and descriptions likewise.
PHASE_ORDER = {
    ProgressPhase.INIT: 0,
    ProgressPhase.SEARCHING: 1,
    ProgressPhase.SCRAPING: 1,
    ProgressPhase.EXTRACTING: 2,
    ProgressPhase.ANALYZING: 3,
    ProgressPhase.DESCRIPTIONS: 3,
    ProgressPhase.SAVING: 4,
    ProgressPhase.DONE: 5,
    ProgressPhase.ERROR: 5,
}


class ProgressEvent(BaseModel):
    phase: ProgressPhase
    current: int = 0
    total: int = 0
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = ""
    item: Optional[str] = None

    # Only set on the terminal "done" event
    items_found: Optional[int] = None
    total_found: Optional[int] = None
    errors: list[str] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        """SSE event name: progress, complete or error."""
        if self.phase == ProgressPhase.DONE:
            return "complete"
        if self.phase == ProgressPhase.ERROR:
            return "error"
        return "progress"

    @property
    def is_terminal(self) -> bool:
        return self.phase in (ProgressPhase.DONE, ProgressPhase.ERROR)
