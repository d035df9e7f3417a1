"""Webhook entry normalization and event classification"""

from typing import Any, List, Optional

from pydantic import ValidationError
import structlog

from chatorder.schemas.messenger import EventKind, InboundEvent, MessagingEvent

logger = structlog.get_logger()


def extract_messaging_events(entry: Any) -> List[Any]:
    """
    Flatten one webhook entry into its messaging events.

    Primary events come first, then events delivered on the standby channel.
    Event shapes are not checked here.
    """
    if not isinstance(entry, dict):
        return []

    events = []
    for key in ("messaging", "standby"):
        batch = entry.get(key) or []
        if isinstance(batch, list):
            events.extend(batch)
    return events


def classify_event(raw_event: Any) -> Optional[InboundEvent]:
    """
    Turn a raw messaging event into a text or action event.

    Quick-reply taps win over the text they carry, then free text, then
    postbacks. Anything else (reads, deliveries, attachments) returns None.
    """
    try:
        event = MessagingEvent.model_validate(raw_event)
    except ValidationError as e:
        logger.warning("Ignoring malformed messaging event", error_count=e.error_count())
        return None

    sender_id = event.sender.id if event.sender else None
    if not sender_id:
        return None

    message = event.message
    if message and message.quick_reply and message.quick_reply.payload:
        return InboundEvent(
            sender_id=sender_id,
            kind=EventKind.ACTION,
            value=message.quick_reply.payload,
        )

    if message and message.text:
        trimmed = message.text.strip()
        return InboundEvent(
            sender_id=sender_id,
            kind=EventKind.TEXT,
            value=trimmed.lower(),
            raw_text=trimmed,
        )

    if event.postback and event.postback.payload:
        return InboundEvent(
            sender_id=sender_id,
            kind=EventKind.ACTION,
            value=event.postback.payload,
        )

    return None
