from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    """Lifecycle events emitted by the processing queue."""
    PROCESSING_STARTED = "processing_started"
    ANALYSIS_STARTED = "analysis_started"
    ANALYSIS_COMPLETE = "analysis_complete"
    ANALYSIS_ERROR = "analysis_error"
    PROCESSING_COMPLETE = "processing_complete"
    PROCESSING_ERROR = "processing_error"


TERMINAL_EVENTS = {EventType.PROCESSING_COMPLETE, EventType.PROCESSING_ERROR, EventType.ANALYSIS_ERROR}


@dataclass
class DocumentEvent:
    """A single queue event. payload always carries document_id."""
    type: EventType
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=datetime.now)

    @property
    def document_id(self) -> str:
        return self.payload["document_id"]
