"""The message boundary between page hosts and the engine."""

from usmcore.bridge.local import EngineBridge, HttpBridge, LocalBridge
from usmcore.bridge.messages import (
    ReportRunNotification,
    ScriptPayload,
    SelectForPhaseRequest,
    SelectForPhaseResponse,
)

__all__ = [
    "EngineBridge",
    "HttpBridge",
    "LocalBridge",
    "ReportRunNotification",
    "ScriptPayload",
    "SelectForPhaseRequest",
    "SelectForPhaseResponse",
]
