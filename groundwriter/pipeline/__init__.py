"""Job processing and status propagation."""

from groundwriter.pipeline.document_processor import DocumentProcessor
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.pipeline.status_events import (
    analyzing_event,
    completed_event,
    failed_event,
    processing_event,
    uploaded_event,
)

__all__ = [
    "DocumentProcessor",
    "JobStatusBus",
    "analyzing_event",
    "completed_event",
    "failed_event",
    "processing_event",
    "uploaded_event",
]
