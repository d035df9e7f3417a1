"""Commands understood by the ordering bot"""

import enum
from dataclasses import dataclass
from typing import Optional


class CommandKind(str, enum.Enum):
    SHOW_MENU = "show_menu"
    SHOW_CART = "show_cart"
    CHECKOUT = "checkout"
    PLACE_ORDER = "place_order"
    ADD_BY_NAME = "add_by_name"
    ADD_BY_ID = "add_by_id"
    REMOVE = "remove"
    CLEAR_CART = "clear_cart"
    PRINT_RECEIPT = "print_receipt"
    HELP = "help"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    argument: Optional[str] = None  # Item name or item id


# Postback / quick-reply payloads
ADD_PREFIX = "ADD_"
REMOVE_PREFIX = "REMOVE_"

PAYLOAD_COMMANDS = {
    "VIEW_CART": CommandKind.SHOW_CART,
    "CHECKOUT": CommandKind.CHECKOUT,
    "PLACE_ORDER": CommandKind.PLACE_ORDER,
    "MENU": CommandKind.SHOW_MENU,
    "HELP": CommandKind.HELP,
    "GET_STARTED": CommandKind.HELP,
    "CLEAR_CART": CommandKind.CLEAR_CART,
    "PRINT_RECEIPT": CommandKind.PRINT_RECEIPT,
}


def parse_text(text: str) -> Command:
    """Map normalized (trimmed, lower-cased) text to a command; first rule wins"""
    if "menu" in text or text == "1":
        return Command(CommandKind.SHOW_MENU)
    if text in ("cart", "2"):
        return Command(CommandKind.SHOW_CART)
    if text in ("checkout", "3"):
        return Command(CommandKind.CHECKOUT)
    if text in ("place order", "placeorder"):
        return Command(CommandKind.PLACE_ORDER)
    if text.startswith("add "):
        return Command(CommandKind.ADD_BY_NAME, text[len("add "):].strip())
    if text in ("clear", "reset"):
        return Command(CommandKind.CLEAR_CART)
    if text == "receipt":
        return Command(CommandKind.PRINT_RECEIPT)
    return Command(CommandKind.HELP)


def parse_payload(payload: str) -> Optional[Command]:
    """Map a button payload to a command, or None when it is not one of ours"""
    if payload.startswith(ADD_PREFIX):
        return Command(CommandKind.ADD_BY_ID, payload[len(ADD_PREFIX):])
    if payload.startswith(REMOVE_PREFIX):
        return Command(CommandKind.REMOVE, payload[len(REMOVE_PREFIX):])

    kind = PAYLOAD_COMMANDS.get(payload)
    if kind is None:
        return None
    return Command(kind)
