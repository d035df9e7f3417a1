"""Messenger webhook and Send API schemas"""

import enum
from typing import Optional, List
from pydantic import BaseModel


# Inbound webhook events. Every field is optional; the platform sends many
# shapes (messages, postbacks, reads, deliveries) through the same list.

class Participant(BaseModel):
    id: Optional[str] = None


class QuickReplyPayload(BaseModel):
    payload: Optional[str] = None


class IncomingMessage(BaseModel):
    mid: Optional[str] = None
    text: Optional[str] = None
    quick_reply: Optional[QuickReplyPayload] = None


class Postback(BaseModel):
    title: Optional[str] = None
    payload: Optional[str] = None


class MessagingEvent(BaseModel):
    """One entry of entry.messaging / entry.standby"""
    sender: Optional[Participant] = None
    recipient: Optional[Participant] = None
    timestamp: Optional[int] = None
    message: Optional[IncomingMessage] = None
    postback: Optional[Postback] = None

    class Config:
        extra = "allow"


class EventKind(str, enum.Enum):
    TEXT = "text"
    ACTION = "action"


class InboundEvent(BaseModel):
    """A classified event the dialogue can act on"""
    sender_id: str
    kind: EventKind
    value: str  # Normalized text or raw payload
    raw_text: Optional[str] = None  # Trimmed text as typed, for names/addresses


# Outbound Send API building blocks

class QuickReply(BaseModel):
    content_type: str = "text"
    title: str
    payload: str


class PostbackButton(BaseModel):
    type: str = "postback"
    title: str
    payload: str


class TemplateElement(BaseModel):
    """Generic template (carousel) card"""
    title: str
    subtitle: Optional[str] = None
    image_url: Optional[str] = None
    buttons: List[PostbackButton] = []
