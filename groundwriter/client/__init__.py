"""Client for following document status streams."""

from groundwriter.client.status_client import (
    ConnectionState,
    ConnectionStatus,
    ReconnectStateMachine,
    StatusStreamClient,
    parse_sse,
)

__all__ = [
    "ConnectionState",
    "ConnectionStatus",
    "ReconnectStateMachine",
    "StatusStreamClient",
    "parse_sse",
]
