"""groundwriter API layer: routes, schemas, status streams, and middleware."""

from groundwriter.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwriter.api.routes import router
from groundwriter.api.schemas import ErrorResponse, HealthResponse
from groundwriter.api.status_stream import StatusStream, format_sse, sse_events
from groundwriter.api.websocket import websocket_status

__all__ = [
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "StatusStream",
    "configure_cors",
    "format_sse",
    "router",
    "sse_events",
    "websocket_status",
]
