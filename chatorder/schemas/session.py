"""Session and cart schemas"""

import enum
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel


class Stage(str, enum.Enum):
    """Position in the name/address collection flow"""
    IDLE = "idle"
    COLLECTING_NAME = "collecting_name"
    COLLECTING_ADDRESS = "collecting_address"


class CartLine(BaseModel):
    """A quantity of one orderable menu item, priced when it was added"""
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class CollectedProfile(BaseModel):
    """Customer details gathered during checkout"""
    name: Optional[str] = None
    address: Optional[str] = None


class SessionState(BaseModel):
    """Snapshot of a bot_sessions row"""
    messenger_psid: str
    stage: Stage = Stage.IDLE
    cart_items: List[CartLine] = []
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    version: int = 1

    class Config:
        from_attributes = True

    @property
    def profile(self) -> CollectedProfile:
        return CollectedProfile(name=self.customer_name, address=self.customer_address)

    @property
    def cart_total(self) -> Decimal:
        return sum((line.subtotal for line in self.cart_items), Decimal("0"))

    def find_line(self, item_id: str) -> Optional[CartLine]:
        for line in self.cart_items:
            if line.item_id == item_id:
                return line
        return None


def dump_cart(lines: List[CartLine]) -> List[dict]:
    """Serialize cart lines for the JSON column"""
    return [line.model_dump(mode="json") for line in lines]
