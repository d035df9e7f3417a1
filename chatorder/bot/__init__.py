"""Messenger ordering bot"""

from chatorder.bot.dialogue import OrderingDialogue
from chatorder.bot.events import classify_event, extract_messaging_events
from chatorder.bot.messenger import MessageSender, MessengerClient
from chatorder.bot.store import Store

__all__ = [
    "OrderingDialogue",
    "classify_event",
    "extract_messaging_events",
    "MessageSender",
    "MessengerClient",
    "Store",
]
