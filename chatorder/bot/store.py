"""Persistent store adapter over the restaurant database"""

from contextlib import asynccontextmanager
from typing import List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import structlog

from chatorder.bot.errors import StoreError, StaleSessionError
from chatorder.models.customer import Customer
from chatorder.models.menu import MenuItem
from chatorder.models.order import Order, OrderItem
from chatorder.models.session import BotSession
from chatorder.schemas.session import SessionState, Stage

logger = structlog.get_logger()


def _reason(error: SQLAlchemyError) -> str:
    """Short, user-presentable description of a database error"""
    orig = getattr(error, "orig", None)
    return str(orig or error).strip().splitlines()[0]


class Store:
    """
    Record access for customers, bot sessions, menu items and orders.

    Every method commits its own work. Database errors are rolled back and
    re-raised as StoreError so callers deal with a single failure type.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Store operation failed", operation=operation, error=str(e))
            raise StoreError(operation, _reason(e)) from e

    # Customers

    async def get_customer(self, psid: str) -> Optional[Customer]:
        async with self._guard("get_customer"):
            result = await self.db.execute(
                select(Customer).where(Customer.messenger_psid == psid)
            )
            return result.scalar_one_or_none()

    async def create_customer(self, psid: str, name: str) -> Customer:
        async with self._guard("create_customer"):
            customer = Customer(messenger_psid=psid, name=name)
            self.db.add(customer)
            await self.db.commit()
            return customer

    # Sessions

    async def get_session(self, psid: str) -> Optional[SessionState]:
        async with self._guard("get_session"):
            result = await self.db.execute(
                select(BotSession)
                .where(BotSession.messenger_psid == psid)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
            return SessionState.model_validate(row) if row else None

    async def create_session(self, psid: str) -> SessionState:
        async with self._guard("create_session"):
            row = BotSession(
                messenger_psid=psid,
                stage=Stage.IDLE.value,
                cart_items=[],
                version=1,
            )
            self.db.add(row)
            await self.db.commit()
            return SessionState.model_validate(row)

    async def update_session(
        self,
        psid: str,
        values: dict,
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Apply a partial update to a session row.

        When expected_version is given the write only happens if the row is
        still at that version; otherwise StaleSessionError is raised.
        """
        async with self._guard("update_session"):
            stmt = update(BotSession).where(BotSession.messenger_psid == psid)
            if expected_version is not None:
                stmt = stmt.where(BotSession.version == expected_version)
            stmt = stmt.values(**values, version=BotSession.version + 1)
            stmt = stmt.execution_options(synchronize_session=False)

            result = await self.db.execute(stmt)
            if result.rowcount == 0:
                await self.db.rollback()
                if expected_version is not None:
                    raise StaleSessionError(psid, expected_version)
                raise StoreError("update_session", "session not found")
            await self.db.commit()

    # Menu

    async def list_today_menu(self) -> List[MenuItem]:
        async with self._guard("list_today_menu"):
            result = await self.db.execute(
                select(MenuItem)
                .where(MenuItem.is_today_menu == True, MenuItem.is_available == True)
                .order_by(MenuItem.name)
            )
            return list(result.scalars().all())

    async def find_today_menu_item(self, name: str) -> Optional[MenuItem]:
        """First orderable item whose name contains `name`, ignoring case"""
        async with self._guard("find_today_menu_item"):
            result = await self.db.execute(
                select(MenuItem)
                .where(
                    MenuItem.is_today_menu == True,
                    MenuItem.is_available == True,
                    func.lower(MenuItem.name).contains(name.lower(), autoescape=True),
                )
                .order_by(MenuItem.name)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_menu_item(self, item_id: str) -> Optional[MenuItem]:
        async with self._guard("get_menu_item"):
            result = await self.db.execute(select(MenuItem).where(MenuItem.id == item_id))
            return result.scalar_one_or_none()

    # Orders

    async def create_order(self, **fields) -> Order:
        async with self._guard("create_order"):
            order = Order(**fields)
            self.db.add(order)
            await self.db.commit()
            return order

    async def create_order_items(self, rows: List[dict]) -> None:
        async with self._guard("create_order_items"):
            self.db.add_all([OrderItem(**row) for row in rows])
            await self.db.commit()

    async def delete_order(self, order_id: str) -> None:
        async with self._guard("delete_order"):
            await self.db.execute(
                delete(OrderItem)
                .where(OrderItem.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                delete(Order)
                .where(Order.id == order_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

    async def latest_order_for(self, psid: str) -> Optional[Order]:
        async with self._guard("latest_order_for"):
            result = await self.db.execute(
                select(Order)
                .where(Order.source_psid == psid)
                .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
                .order_by(Order.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
