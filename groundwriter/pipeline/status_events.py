"""Milestone event constructors with the standard user-facing messages."""

from __future__ import annotations

from typing import Any

from groundwriter.models.jobs import (
    AnalyzingEvent,
    CompletedEvent,
    FailedEvent,
    ProcessingEvent,
    UploadedEvent,
)


def uploaded_event(job_id: str, filename: str) -> UploadedEvent:
    return UploadedEvent(job_id=job_id, message=f'Document "{filename}" uploaded successfully')


def processing_event(job_id: str, message: str = "Processing document...") -> ProcessingEvent:
    return ProcessingEvent(job_id=job_id, message=message)


def analyzing_event(job_id: str, message: str = "AI analysis in progress...") -> AnalyzingEvent:
    return AnalyzingEvent(job_id=job_id, message=message)


def completed_event(job_id: str, data: dict[str, Any] | None = None) -> CompletedEvent:
    """Terminal success event.

    When *data* carries ``type`` and ``confidence`` the message summarises
    them, e.g. ``Analysis complete: PDF Document (100% confidence)``.
    """
    data = dict(data or {})
    if "type" in data and "confidence" in data:
        pct = round(float(data["confidence"]) * 100)
        message = f"Analysis complete: {data['type']} ({pct}% confidence)"
    else:
        message = "Processing complete"
    return CompletedEvent(job_id=job_id, message=message, data=data)


def failed_event(job_id: str, error: str) -> FailedEvent:
    return FailedEvent(job_id=job_id, message=f"Processing failed: {error}", error=error)
