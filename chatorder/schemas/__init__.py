"""Pydantic schemas for webhook payloads and dialogue state"""

from chatorder.schemas.session import (
    Stage,
    CartLine,
    CollectedProfile,
    SessionState,
)
from chatorder.schemas.messenger import (
    MessagingEvent,
    InboundEvent,
    EventKind,
    QuickReply,
    PostbackButton,
    TemplateElement,
)

__all__ = [
    "Stage",
    "CartLine",
    "CollectedProfile",
    "SessionState",
    "MessagingEvent",
    "InboundEvent",
    "EventKind",
    "QuickReply",
    "PostbackButton",
    "TemplateElement",
]
