"""Order creation from a checked-out cart"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel
import structlog

from chatorder.bot.errors import OrderFailed, StoreError
from chatorder.bot.replies import NOTES_PREFIX
from chatorder.bot.store import Store
from chatorder.schemas.session import CartLine

logger = structlog.get_logger()


class PlacedOrder(BaseModel):
    order_id: str
    customer_name: str
    customer_address: str
    total: Decimal
    line_count: int


class OrderFinalizer:
    """Writes an order and its items, deleting the order if the items fail"""

    def __init__(self, store: Store):
        self.store = store

    async def finalize(
        self,
        lines: List[CartLine],
        customer_name: str,
        customer_address: str,
        source_psid: Optional[str] = None,
    ) -> PlacedOrder:
        if not lines:
            raise OrderFailed("cart is empty")

        total = sum((line.subtotal for line in lines), Decimal("0"))

        try:
            order = await self.store.create_order(
                customer_name=customer_name,
                total_amount=total,
                status="active",
                table_id=None,
                staff_notes=f"{NOTES_PREFIX}{customer_address}",
                source_psid=source_psid,
            )
        except StoreError as e:
            logger.error("Order creation failed", psid=source_psid, error=e.reason)
            raise OrderFailed(e.reason) from e

        order_id = order.id

        rows = [
            {
                "order_id": order_id,
                "menu_item_id": line.item_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "special_instructions": None,
            }
            for line in lines
        ]

        try:
            await self.store.create_order_items(rows)
        except StoreError as e:
            logger.error(
                "Order items creation failed, removing order",
                order_id=order_id,
                error=e.reason,
            )
            try:
                await self.store.delete_order(order_id)
            except StoreError as cleanup_error:
                logger.error(
                    "Could not remove order after item failure",
                    order_id=order_id,
                    error=cleanup_error.reason,
                )
            raise OrderFailed(e.reason) from e

        logger.info(
            "Order placed",
            order_id=order_id,
            psid=source_psid,
            total=str(total),
            line_count=len(rows),
        )

        return PlacedOrder(
            order_id=order_id,
            customer_name=customer_name,
            customer_address=customer_address,
            total=total,
            line_count=len(rows),
        )
