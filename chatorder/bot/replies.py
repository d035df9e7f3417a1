"""Reply texts and message builders"""

from decimal import Decimal
from typing import List

from chatorder.models.menu import MenuItem
from chatorder.models.order import Order
from chatorder.schemas.messenger import PostbackButton, QuickReply, TemplateElement
from chatorder.schemas.session import CartLine

UNAVAILABLE = "Bot is temporarily unavailable. Please try again later."
MENU_ERROR = "Sorry, there was an error loading the menu. Please try again later."
NO_MENU_TODAY = "Sorry, there's no menu available today. Please check back later!"
CART_EMPTY_PROMPT = "Your cart is empty. Choose an option:"
CART_EMPTY_CHECKOUT = "Your cart is empty. Reply with 'menu' to see today's items."
CART_CLEARED = "Cart cleared! What next?"
ITEM_REMOVED = "Item removed from cart. Reply with 'cart' to view your order."
SELECT_ACTION = "Select an action:"
ASK_NAME = "Please provide your name for the order:"
ASK_ADDRESS = "Please provide your block and lot number (e.g., Block 5, Lot 12):"
NAME_SAVED = "Great! Now please provide your block and lot number (e.g., Block 5, Lot 12):"
ADDRESS_SAVED = (
    "Perfect! Now you can place your order. "
    "Reply with 'place order' to complete your order."
)
SESSION_ERROR = "Session error. Please try again."
SESSION_BUSY = "Sorry, we couldn't save your last action. Please try again."
NO_RECENT_ORDER = "No recent orders found. Please place an order first."
RECEIPT_ERROR = "Sorry, there was an error generating your receipt. Please try again later."

NOTES_PREFIX = "Order placed via Messenger - Address: "
RULE = "━" * 32


def default_quick_replies() -> List[QuickReply]:
    return [
        QuickReply(title="Today's Menu", payload="MENU"),
        QuickReply(title="Cart", payload="VIEW_CART"),
        QuickReply(title="Checkout", payload="CHECKOUT"),
        QuickReply(title="Help", payload="HELP"),
    ]


def menu_quick_replies() -> List[QuickReply]:
    return [
        QuickReply(title="Cart", payload="VIEW_CART"),
        QuickReply(title="Place Order", payload="PLACE_ORDER"),
        QuickReply(title="Help", payload="HELP"),
    ]


def cart_quick_replies() -> List[QuickReply]:
    return [
        QuickReply(title="Checkout", payload="CHECKOUT"),
        QuickReply(title="Clear Cart", payload="CLEAR_CART"),
        QuickReply(title="Today's Menu", payload="MENU"),
    ]


def money(amount, currency: str) -> str:
    return f"{currency}{Decimal(amount):.2f}"


def welcome(restaurant_name: str) -> str:
    return f"👋 Welcome to {restaurant_name}!\n\nTap a button below to begin."


def store_error(reason: str) -> str:
    return f"Sorry, there was an error: {reason}. Please try again."


def order_error(reason: str) -> str:
    return f"Order error: {reason}. Please try again."


def item_added(name: str) -> str:
    return f"Added {name} to your cart! Reply with 'cart' to view your order."


def item_not_available(name: str) -> str:
    return f"Sorry, \"{name}\" is not available today. Reply with 'menu' to see available items."


def menu_elements(items: List[MenuItem], currency: str) -> List[TemplateElement]:
    return [
        TemplateElement(
            title=f"{item.name} - {money(item.price, currency)}",
            subtitle=item.description or "Tap to add to cart",
            image_url=item.image_url or None,
            buttons=[
                PostbackButton(title="Add to Cart", payload=f"ADD_{item.id}"),
                PostbackButton(title="View Cart", payload="VIEW_CART"),
            ],
        )
        for item in items
    ]


def cart_summary(lines: List[CartLine], currency: str) -> str:
    message = "🛒 *Your Order*\n\n"
    total = Decimal("0")
    for line in lines:
        total += line.subtotal
        message += f"{line.name} x{line.quantity} - {money(line.subtotal, currency)}\n"
    message += f"\n*Total: {money(total, currency)}*\n\n"
    return message


def order_confirmation(
    order_id: str,
    customer_name: str,
    address: str,
    total: Decimal,
    currency: str,
) -> str:
    message = "✅ *Order Placed Successfully!*\n\n"
    message += f"Order #{order_id}\n"
    message += f"Customer: {customer_name}\n"
    message += f"Address: {address}\n"
    message += f"Total: {money(total, currency)}\n\n"
    message += "Your order is being prepared. You'll receive updates soon!\n\n"
    message += "Reply with 'menu' to place another order."
    return message


def receipt(order: Order, currency: str) -> str:
    notes = order.staff_notes or ""
    address = notes[len(NOTES_PREFIX):] if notes.startswith(NOTES_PREFIX) else "N/A"

    text = "🖨️ *RECEIPT*\n\n"
    text += f"Order #{order.id}\n"
    text += f"Customer: {order.customer_name}\n"
    text += f"Address: {address or 'N/A'}\n"
    text += f"Date: {order.created_at:%Y-%m-%d %H:%M}\n"
    text += f"Status: {(order.status or '').upper()}\n\n"
    text += f"{RULE}\nITEMS ORDERED:\n\n"

    total = Decimal("0")
    for item in order.items:
        item_total = Decimal(item.unit_price) * item.quantity
        total += item_total
        name = item.menu_item.name if item.menu_item else item.menu_item_id
        text += f"{name}\n"
        text += (
            f"  Qty: {item.quantity} × {money(item.unit_price, currency)}"
            f" = {money(item_total, currency)}\n"
        )
        if item.special_instructions:
            text += f"  Note: {item.special_instructions}\n"
        text += "\n"

    text += f"{RULE}\n"
    text += f"TOTAL: {money(total, currency)}\n\n"
    text += "Thank you for your order! 🙏\n"
    text += "Keep this receipt for your records."
    return text
