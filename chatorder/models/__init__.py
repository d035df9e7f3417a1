"""Database models"""

from chatorder.models.customer import Customer
from chatorder.models.session import BotSession
from chatorder.models.menu import MenuItem
from chatorder.models.order import Order, OrderItem

__all__ = [
    "Customer",
    "BotSession",
    "MenuItem",
    "Order",
    "OrderItem",
]
