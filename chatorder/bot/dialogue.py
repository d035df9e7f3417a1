"""
Conversational ordering state machine.

Each inbound event is one turn: the user's session is loaded, the event is
interpreted against the session stage, the cart or stage is written back and
replies are sent. Nothing is kept in memory between turns.

Stages:
    idle                 text is parsed as a command
    collecting_name      the next text is the customer's name
    collecting_address   the next text is the customer's block/lot address

Button payloads always run their command, whatever the stage.
"""

from typing import Awaitable, Callable, Optional

import structlog

from chatorder.bot import replies
from chatorder.bot.commands import Command, CommandKind, parse_payload, parse_text
from chatorder.bot.errors import OrderFailed, StaleSessionError, StoreError
from chatorder.bot.finalizer import OrderFinalizer
from chatorder.bot.messenger import MAX_TEMPLATE_ELEMENTS, MessageSender
from chatorder.bot.sessions import SessionManager
from chatorder.bot.store import Store
from chatorder.config import Settings
from chatorder.models.menu import MenuItem
from chatorder.schemas.messenger import EventKind, InboundEvent
from chatorder.schemas.session import CartLine, SessionState, Stage

logger = structlog.get_logger()

Turn = Callable[[SessionState], Awaitable[None]]


class OrderingDialogue:
    """Drives one Messenger user's ordering conversation, one event at a time"""

    def __init__(self, store: Optional[Store], sender: MessageSender, settings: Settings):
        self.store = store
        self.sender = sender
        self.settings = settings
        self.currency = settings.currency_symbol
        self.sessions = SessionManager(store, settings.default_customer_name) if store else None
        self.finalizer = OrderFinalizer(store) if store else None

    async def handle_event(self, event: InboundEvent) -> None:
        if event.kind == EventKind.TEXT:
            await self.handle_text(event.sender_id, event.value, event.raw_text)
        else:
            await self.handle_action(event.sender_id, event.value)

    async def handle_text(self, psid: str, text: str, raw_text: Optional[str] = None) -> None:
        """Handle free text; `text` is normalized, `raw_text` keeps the user's casing"""
        if self.store is None:
            await self.sender.send_text(psid, replies.UNAVAILABLE)
            return

        await self.sessions.ensure_customer(psid)

        async def turn(session: SessionState) -> None:
            await self._text_turn(session, text, raw_text or text)

        await self._run_turn(psid, turn)

    async def handle_action(self, psid: str, payload: str) -> None:
        """Handle a postback or quick-reply payload"""
        if self.store is None:
            await self.sender.send_text(psid, replies.UNAVAILABLE)
            return

        command = parse_payload(payload)
        if command is None:
            logger.info("Ignoring unknown payload", psid=psid, payload=payload)
            return

        await self.sessions.ensure_customer(psid)

        async def turn(session: SessionState) -> None:
            await self._dispatch(session, command)

        await self._run_turn(psid, turn)

    async def _run_turn(self, psid: str, turn: Turn) -> None:
        """
        Run a turn against the latest session row.

        A conditional write that loses a race re-runs the turn on a fresh
        read. Turns write before they reply, so a re-run never repeats a reply.
        """
        attempts = max(1, self.settings.session_write_attempts)
        for attempt in range(1, attempts + 1):
            try:
                session = await self.sessions.get_or_create_session(psid)
                await turn(session)
                return
            except StaleSessionError:
                logger.warning("Session changed during turn", psid=psid, attempt=attempt)
            except StoreError as e:
                logger.error(
                    "Turn aborted by store error",
                    psid=psid,
                    operation=e.operation,
                    error=e.reason,
                )
                await self.sender.send_text(psid, replies.store_error(e.reason))
                return

        logger.error("Giving up on turn after repeated conflicts", psid=psid, attempts=attempts)
        await self.sender.send_text(psid, replies.SESSION_BUSY)

    async def _text_turn(self, session: SessionState, text: str, raw_text: str) -> None:
        psid = session.messenger_psid
        raw_text = raw_text.strip()

        # Blank replies keep the stage and ask again
        if session.stage == Stage.COLLECTING_NAME and not raw_text:
            await self.sender.send_text(psid, replies.ASK_NAME)
            return

        if session.stage == Stage.COLLECTING_ADDRESS and not raw_text:
            await self.sender.send_text(psid, replies.ASK_ADDRESS)
            return

        if session.stage == Stage.COLLECTING_NAME:
            await self.sessions.persist(
                session,
                stage=Stage.COLLECTING_ADDRESS,
                customer_name=raw_text,
            )
            logger.info("Customer name collected", psid=psid)
            await self.sender.send_text(psid, replies.NAME_SAVED)
            return

        if session.stage == Stage.COLLECTING_ADDRESS:
            await self.sessions.persist(
                session,
                stage=Stage.IDLE,
                customer_address=raw_text,
            )
            logger.info("Customer address collected", psid=psid)
            await self.sender.send_text(psid, replies.ADDRESS_SAVED)
            return

        await self._dispatch(session, parse_text(text))

    async def _dispatch(self, session: SessionState, command: Command) -> None:
        psid = session.messenger_psid
        logger.debug("Dispatching command", psid=psid, command=command.kind.value)

        if command.kind == CommandKind.SHOW_MENU:
            await self.show_menu(psid)
        elif command.kind == CommandKind.SHOW_CART:
            await self.show_cart(session)
        elif command.kind in (CommandKind.CHECKOUT, CommandKind.PLACE_ORDER):
            await self.checkout(session)
        elif command.kind == CommandKind.ADD_BY_NAME:
            await self.add_by_name(session, command.argument or "")
        elif command.kind == CommandKind.ADD_BY_ID:
            await self.add_by_id(session, command.argument or "")
        elif command.kind == CommandKind.REMOVE:
            await self.remove_item(session, command.argument or "")
        elif command.kind == CommandKind.CLEAR_CART:
            await self.clear_cart(session)
        elif command.kind == CommandKind.PRINT_RECEIPT:
            await self.print_receipt(psid)
        elif command.kind == CommandKind.HELP:
            await self.send_welcome(psid)
        else:
            raise ValueError(f"Unhandled command: {command.kind}")

    # Commands

    async def send_welcome(self, psid: str) -> None:
        await self.sender.send_quick_replies(
            psid,
            replies.welcome(self.settings.restaurant_name),
            replies.default_quick_replies(),
        )

    async def show_menu(self, psid: str) -> None:
        try:
            items = await self.store.list_today_menu()
        except StoreError:
            await self.sender.send_text(psid, replies.MENU_ERROR)
            return

        if not items:
            await self.sender.send_text(psid, replies.NO_MENU_TODAY)
            return

        elements = replies.menu_elements(items, self.currency)
        for start in range(0, len(elements), MAX_TEMPLATE_ELEMENTS):
            await self.sender.send_generic_template(
                psid, elements[start:start + MAX_TEMPLATE_ELEMENTS]
            )

        await self.sender.send_quick_replies(
            psid, replies.SELECT_ACTION, replies.menu_quick_replies()
        )

    async def show_cart(self, session: SessionState) -> None:
        psid = session.messenger_psid
        if not session.cart_items:
            await self.sender.send_quick_replies(
                psid, replies.CART_EMPTY_PROMPT, replies.default_quick_replies()
            )
            return

        await self.sender.send_quick_replies(
            psid,
            replies.cart_summary(session.cart_items, self.currency),
            replies.cart_quick_replies(),
        )

    async def add_by_name(self, session: SessionState, item_name: str) -> None:
        item = await self.store.find_today_menu_item(item_name)
        if item is None:
            await self.sender.send_text(
                session.messenger_psid, replies.item_not_available(item_name)
            )
            return

        await self._add_item(session, item)

    async def add_by_id(self, session: SessionState, item_id: str) -> None:
        item = await self.store.get_menu_item(item_id)
        if item is None:
            logger.info("Add for unknown menu item", psid=session.messenger_psid, item_id=item_id)
            return

        await self._add_item(session, item)

    async def _add_item(self, session: SessionState, item: MenuItem) -> None:
        item_id, item_name, price = str(item.id), item.name, item.price

        lines = [line.model_copy() for line in session.cart_items]
        for line in lines:
            if line.item_id == item_id:
                line.quantity += 1
                break
        else:
            lines.append(CartLine(item_id=item_id, name=item_name, unit_price=price, quantity=1))

        await self.sessions.persist(session, cart_items=lines)
        await self.sender.send_text(session.messenger_psid, replies.item_added(item_name))

    async def remove_item(self, session: SessionState, item_id: str) -> None:
        lines = [line for line in session.cart_items if line.item_id != item_id]
        await self.sessions.persist(session, cart_items=lines)
        await self.sender.send_text(session.messenger_psid, replies.ITEM_REMOVED)

    async def clear_cart(self, session: SessionState) -> None:
        """Empty the cart and forget any collected name/address"""
        await self.sessions.persist(
            session,
            cart_items=[],
            customer_name=None,
            customer_address=None,
            stage=Stage.IDLE,
        )
        await self.sender.send_quick_replies(
            session.messenger_psid, replies.CART_CLEARED, replies.default_quick_replies()
        )

    async def checkout(self, session: SessionState) -> None:
        """
        Collect missing customer details or place the order.

        The session is re-read first so name/address written by a turn that
        raced this one are taken into account.
        """
        psid = session.messenger_psid

        if not session.cart_items:
            await self.sender.send_text(psid, replies.CART_EMPTY_CHECKOUT)
            return

        fresh = await self.sessions.refresh(psid)
        if fresh is None:
            await self.sender.send_text(psid, replies.SESSION_ERROR)
            return

        if not fresh.cart_items:
            await self.sender.send_text(psid, replies.CART_EMPTY_CHECKOUT)
            return

        profile = fresh.profile

        if not profile.name:
            await self.sessions.persist(fresh, stage=Stage.COLLECTING_NAME)
            await self.sender.send_text(psid, replies.ASK_NAME)
            return

        if not profile.address:
            await self.sessions.persist(fresh, stage=Stage.COLLECTING_ADDRESS)
            await self.sender.send_text(psid, replies.ASK_ADDRESS)
            return

        try:
            placed = await self.finalizer.finalize(
                fresh.cart_items,
                profile.name,
                profile.address,
                source_psid=psid,
            )
        except OrderFailed as e:
            await self.sender.send_text(psid, replies.order_error(e.reason))
            return

        # The order is committed; clear unconditionally so a concurrent
        # write cannot trigger a second order on retry.
        try:
            await self.sessions.persist(
                fresh,
                force=True,
                cart_items=[],
                customer_name=None,
                customer_address=None,
                stage=Stage.IDLE,
            )
        except StoreError as e:
            logger.error(
                "Could not reset session after order",
                psid=psid,
                order_id=placed.order_id,
                error=e.reason,
            )

        await self.sender.send_text(
            psid,
            replies.order_confirmation(
                placed.order_id,
                placed.customer_name,
                placed.customer_address,
                placed.total,
                self.currency,
            ),
        )

    async def print_receipt(self, psid: str) -> None:
        try:
            order = await self.store.latest_order_for(psid)
        except StoreError:
            await self.sender.send_text(psid, replies.RECEIPT_ERROR)
            return

        if order is None:
            await self.sender.send_text(psid, replies.NO_RECENT_ORDER)
            return

        await self.sender.send_text(psid, replies.receipt(order, self.currency))
