"""Tests for the ordering conversation"""

from decimal import Decimal

import pytest
from sqlalchemy import select, func

from chatorder.bot import replies
from chatorder.bot.dialogue import OrderingDialogue
from chatorder.bot.errors import StoreError
from chatorder.models.customer import Customer
from chatorder.models.menu import MenuItem
from chatorder.models.order import Order, OrderItem
from chatorder.schemas.session import Stage, dump_cart

PSID = "1000000001"


async def count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


async def say(dialogue, text):
    """Send text the way the webhook does: trimmed and lower-cased"""
    await dialogue.handle_text(PSID, text.strip().lower(), text.strip())


@pytest.mark.asyncio
async def test_first_contact_creates_customer_and_session(dialogue, store, sender, test_db):
    """Test first contact creates customer and session"""
    await say(dialogue, "hello")

    customer = await store.get_customer(PSID)
    assert customer is not None
    assert customer.name == "Messenger Customer"

    session = await store.get_session(PSID)
    assert session.stage == Stage.IDLE
    assert session.cart_items == []

    kind, recipient, payload = sender.sent[-1]
    assert kind == "quick_replies"
    assert recipient == PSID
    assert "Welcome to Ate Lorie's POS" in payload["text"]
    assert payload["payloads"] == ["MENU", "VIEW_CART", "CHECKOUT", "HELP"]

    # A second turn reuses both records
    await say(dialogue, "hi again")
    assert await count(test_db, Customer) == 1


@pytest.mark.asyncio
async def test_add_same_item_twice_increments_quantity(dialogue, store, sender, menu_items):
    """Test add same item twice increments quantity"""
    await dialogue.handle_action(PSID, "ADD_42")
    await dialogue.handle_action(PSID, "ADD_42")

    session = await store.get_session(PSID)
    assert len(session.cart_items) == 1
    line = session.cart_items[0]
    assert line.item_id == "42"
    assert line.quantity == 2
    assert line.unit_price == Decimal("120")
    assert sender.last_text == replies.item_added("Pork Sinigang")


@pytest.mark.asyncio
async def test_add_by_name_matches_substring_ignoring_case(dialogue, store, menu_items):
    """Test add by name matches substring ignoring case"""
    await say(dialogue, "Add ADOBO")

    session = await store.get_session(PSID)
    assert [(line.item_id, line.quantity) for line in session.cart_items] == [("A", 1)]


@pytest.mark.asyncio
async def test_add_by_name_unknown_item(dialogue, store, sender, menu_items):
    """Test adding an unknown item by name"""
    await say(dialogue, "add burger")

    assert '"burger"' in sender.last_text
    assert "not available today" in sender.last_text
    session = await store.get_session(PSID)
    assert session.cart_items == []


@pytest.mark.asyncio
async def test_add_by_name_only_matches_orderable_items(dialogue, store, sender, menu_items):
    """Test add by name only matches orderable items"""
    await say(dialogue, "add caldereta")  # not on today's menu
    await say(dialogue, "add halo")  # unavailable

    assert sender.texts[-2] == replies.item_not_available("caldereta")
    assert sender.texts[-1] == replies.item_not_available("halo")
    session = await store.get_session(PSID)
    assert session.cart_items == []


@pytest.mark.asyncio
async def test_add_unknown_id_is_ignored(dialogue, store, sender, menu_items):
    """Test add unknown id is ignored"""
    await dialogue.handle_action(PSID, "ADD_does-not-exist")

    session = await store.get_session(PSID)
    assert session.cart_items == []
    assert sender.sent == []


@pytest.mark.asyncio
async def test_price_is_snapshotted_when_added(dialogue, store, test_db, menu_items):
    """Test price is snapshotted when added"""
    await dialogue.handle_action(PSID, "ADD_A")

    menu_items[0].price = Decimal("65.00")
    await test_db.commit()

    session = await store.get_session(PSID)
    assert session.cart_items[0].unit_price == Decimal("50")


@pytest.mark.asyncio
async def test_remove_item(dialogue, store, sender, menu_items):
    """Test removing an item from the cart"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "ADD_42")
    await dialogue.handle_action(PSID, "REMOVE_A")

    session = await store.get_session(PSID)
    assert [line.item_id for line in session.cart_items] == ["42"]
    assert sender.last_text == replies.ITEM_REMOVED


@pytest.mark.asyncio
async def test_remove_absent_item_leaves_cart_unchanged(dialogue, store, sender, menu_items):
    """Test remove absent item leaves cart unchanged"""
    await dialogue.handle_action(PSID, "ADD_A")
    before = await store.get_session(PSID)

    await dialogue.handle_action(PSID, "REMOVE_42")

    after = await store.get_session(PSID)
    assert after.cart_items == before.cart_items
    assert sender.last_text == replies.ITEM_REMOVED


@pytest.mark.asyncio
async def test_show_cart_lists_lines_and_total(dialogue, sender, menu_items):
    """Test show cart lists lines and total"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "ADD_42")

    await dialogue.handle_action(PSID, "VIEW_CART")

    kind, _, payload = sender.sent[-1]
    assert kind == "quick_replies"
    assert "Chicken Adobo x2 - ₱100.00" in payload["text"]
    assert "Pork Sinigang x1 - ₱120.00" in payload["text"]
    assert "Total: ₱220.00" in payload["text"]
    assert payload["payloads"] == ["CHECKOUT", "CLEAR_CART", "MENU"]


@pytest.mark.asyncio
async def test_show_empty_cart(dialogue, sender):
    """Test showing an empty cart"""
    await say(dialogue, "cart")

    kind, _, payload = sender.sent[-1]
    assert payload["text"] == replies.CART_EMPTY_PROMPT
    assert payload["payloads"] == ["MENU", "VIEW_CART", "CHECKOUT", "HELP"]


@pytest.mark.asyncio
async def test_show_menu_sends_carousel_then_quick_replies(dialogue, sender, menu_items):
    """Test show menu sends carousel then quick replies"""
    await say(dialogue, "menu")

    assert len(sender.templates) == 1
    elements = sender.templates[0]
    assert [e.title for e in elements] == ["Chicken Adobo - ₱50.00", "Pork Sinigang - ₱120.00"]
    assert elements[0].subtitle == "Braised in soy and vinegar"
    assert elements[1].subtitle == "Tap to add to cart"
    assert [b.payload for b in elements[0].buttons] == ["ADD_A", "VIEW_CART"]

    kind, _, payload = sender.sent[-1]
    assert kind == "quick_replies"
    assert payload["payloads"] == ["VIEW_CART", "PLACE_ORDER", "HELP"]


@pytest.mark.asyncio
async def test_show_menu_pages_in_tens(dialogue, sender, test_db, menu_items):
    """Test show menu pages in tens"""
    for n in range(11):
        test_db.add(MenuItem(
            name=f"Special {n:02d}",
            price=Decimal("10.00"),
            is_available=True,
            is_today_menu=True,
        ))
    await test_db.commit()

    await dialogue.handle_action(PSID, "MENU")

    assert [len(page) for page in sender.templates] == [10, 3]


@pytest.mark.asyncio
async def test_show_menu_when_nothing_is_served_today(dialogue, sender):
    """Test show menu when nothing is served today"""
    await say(dialogue, "1")

    assert sender.sent == [("text", PSID, replies.NO_MENU_TODAY)]


@pytest.mark.asyncio
async def test_checkout_with_empty_cart_creates_nothing(dialogue, store, sender, test_db):
    """Test checkout with empty cart creates nothing"""
    await dialogue.handle_action(PSID, "CHECKOUT")
    await say(dialogue, "place order")

    assert sender.texts == [replies.CART_EMPTY_CHECKOUT, replies.CART_EMPTY_CHECKOUT]
    assert await count(test_db, Order) == 0
    assert await count(test_db, OrderItem) == 0
    session = await store.get_session(PSID)
    assert session.stage == Stage.IDLE


@pytest.mark.asyncio
async def test_checkout_without_name_asks_for_name(dialogue, store, sender, test_db, menu_items):
    """Test checkout without name asks for name"""
    await dialogue.handle_action(PSID, "ADD_A")
    await say(dialogue, "checkout")

    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_NAME
    assert sender.last_text == replies.ASK_NAME
    assert await count(test_db, Order) == 0


@pytest.mark.asyncio
async def test_name_then_address_collection(dialogue, store, sender, menu_items):
    """Test name then address collection"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "PLACE_ORDER")

    # While collecting, text is data, not a command
    await say(dialogue, "Jane Dela Cruz")
    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_ADDRESS
    assert session.customer_name == "Jane Dela Cruz"
    assert sender.last_text == replies.NAME_SAVED

    await say(dialogue, "Block 1 Lot 2")
    session = await store.get_session(PSID)
    assert session.stage == Stage.IDLE
    assert session.customer_address == "Block 1 Lot 2"
    assert sender.last_text == replies.ADDRESS_SAVED


@pytest.mark.asyncio
async def test_checkout_with_name_but_no_address_asks_for_address(dialogue, store, sender, menu_items):
    """Test checkout with name but no address asks for address"""
    await dialogue.handle_action(PSID, "ADD_A")
    await store.update_session(PSID, {"customer_name": "Jane"})

    await dialogue.handle_action(PSID, "CHECKOUT")

    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_ADDRESS
    assert sender.last_text == replies.ASK_ADDRESS


@pytest.mark.asyncio
async def test_buttons_work_during_collection(dialogue, store, sender, menu_items):
    """Test buttons work during collection"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "CHECKOUT")

    await dialogue.handle_action(PSID, "VIEW_CART")

    assert "Chicken Adobo x1" in sender.last_text
    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_NAME


@pytest.mark.asyncio
async def test_full_order_cycle(dialogue, store, sender, test_db, menu_items):
    """Test a full order from first item to confirmation"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "ADD_A")
    await say(dialogue, "checkout")
    await say(dialogue, "Jane")
    await say(dialogue, "Block 1 Lot 2")
    await say(dialogue, "place order")

    result = await test_db.execute(select(Order))
    orders = result.scalars().all()
    assert len(orders) == 1
    order = orders[0]
    assert order.customer_name == "Jane"
    assert order.total_amount == Decimal("100")
    assert order.status == "active"
    assert order.table_id is None
    assert order.staff_notes == "Order placed via Messenger - Address: Block 1 Lot 2"
    assert order.source_psid == PSID

    result = await test_db.execute(select(OrderItem))
    items = result.scalars().all()
    assert len(items) == 1
    assert items[0].order_id == order.id
    assert items[0].menu_item_id == "A"
    assert items[0].quantity == 2
    assert items[0].unit_price == Decimal("50")
    assert items[0].special_instructions is None

    session = await store.get_session(PSID)
    assert session.cart_items == []
    assert session.stage == Stage.IDLE
    assert session.customer_name is None
    assert session.customer_address is None

    confirmation = sender.last_text
    assert f"Order #{order.id}" in confirmation
    assert "Customer: Jane" in confirmation
    assert "Address: Block 1 Lot 2" in confirmation
    assert "Total: ₱100.00" in confirmation

    # Ordering again starts from an empty cart on the same session row
    await dialogue.handle_action(PSID, "CHECKOUT")
    assert sender.last_text == replies.CART_EMPTY_CHECKOUT


@pytest.mark.asyncio
async def test_one_order_item_per_cart_line(dialogue, store, test_db, menu_items):
    """Test one order item per cart line"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "ADD_42")
    await dialogue.handle_action(PSID, "ADD_42")
    await store.update_session(PSID, {"customer_name": "Jane", "customer_address": "Block 9"})

    await dialogue.handle_action(PSID, "PLACE_ORDER")

    assert await count(test_db, Order) == 1
    assert await count(test_db, OrderItem) == 2
    order = (await test_db.execute(select(Order))).scalar_one()
    assert order.total_amount == Decimal("290")


@pytest.mark.asyncio
async def test_clear_cart_drops_lines_and_profile(dialogue, store, sender, menu_items):
    """Test clear cart drops lines and profile"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "CHECKOUT")
    await say(dialogue, "Jane")

    await say(dialogue, "clear")  # stage is collecting_address: this is the address
    await dialogue.handle_action(PSID, "CLEAR_CART")

    session = await store.get_session(PSID)
    assert session.cart_items == []
    assert session.customer_name is None
    assert session.customer_address is None
    assert session.stage == Stage.IDLE

    kind, _, payload = sender.sent[-1]
    assert payload["text"] == replies.CART_CLEARED


@pytest.mark.asyncio
async def test_receipt_for_latest_order(dialogue, store, sender, menu_items):
    """Test printing the receipt for the latest order"""
    await say(dialogue, "receipt")
    assert sender.last_text == replies.NO_RECENT_ORDER

    await dialogue.handle_action(PSID, "ADD_42")
    await store.update_session(PSID, {"customer_name": "Jane", "customer_address": "Block 1 Lot 2"})
    await dialogue.handle_action(PSID, "PLACE_ORDER")

    await dialogue.handle_action(PSID, "PRINT_RECEIPT")

    receipt = sender.last_text
    assert "RECEIPT" in receipt
    assert "Customer: Jane" in receipt
    assert "Address: Block 1 Lot 2" in receipt
    assert "Pork Sinigang" in receipt
    assert "Qty: 1 × ₱120.00 = ₱120.00" in receipt
    assert "TOTAL: ₱120.00" in receipt


@pytest.mark.asyncio
async def test_unknown_payload_does_nothing(dialogue, store, sender):
    """Test unknown payload does nothing"""
    await dialogue.handle_action(PSID, "SOMETHING_ELSE")

    assert sender.sent == []
    assert await store.get_session(PSID) is None


@pytest.mark.asyncio
async def test_store_unavailable(sender, test_settings):
    """Test replies when no database is configured"""
    dialogue = OrderingDialogue(None, sender, test_settings)

    await dialogue.handle_text(PSID, "menu")
    await dialogue.handle_action(PSID, "MENU")

    assert sender.texts == [replies.UNAVAILABLE, replies.UNAVAILABLE]


@pytest.mark.asyncio
async def test_session_write_failure_is_reported(dialogue, store, sender, menu_items, monkeypatch):
    """Test session write failure is reported"""
    async def failing_update(*args, **kwargs):
        raise StoreError("update_session", "database is locked")

    monkeypatch.setattr(store, "update_session", failing_update)

    await dialogue.handle_action(PSID, "ADD_A")

    assert sender.sent == [
        ("text", PSID, "Sorry, there was an error: database is locked. Please try again."),
    ]


@pytest.mark.asyncio
async def test_menu_read_failure_is_reported(dialogue, store, sender, monkeypatch):
    """Test menu read failure is reported"""
    async def failing_menu():
        raise StoreError("list_today_menu", "connection refused")

    monkeypatch.setattr(store, "list_today_menu", failing_menu)

    await dialogue.handle_action(PSID, "MENU")

    assert sender.last_text == replies.MENU_ERROR


@pytest.mark.asyncio
async def test_customer_write_failure_does_not_block_ordering(dialogue, store, sender, menu_items, monkeypatch):
    """Test customer write failure does not block ordering"""
    async def failing_create(*args, **kwargs):
        raise StoreError("create_customer", "permission denied")

    monkeypatch.setattr(store, "create_customer", failing_create)

    await dialogue.handle_action(PSID, "ADD_A")

    assert sender.last_text == replies.item_added("Chicken Adobo")


@pytest.mark.asyncio
async def test_concurrent_write_reruns_turn(dialogue, store, sender, menu_items, monkeypatch):
    """Test a concurrent write re-runs the turn"""
    await dialogue.handle_action(PSID, "ADD_A")

    original_get_menu_item = store.get_menu_item
    calls = 0

    async def racing_get_menu_item(item_id):
        nonlocal calls
        calls += 1
        if calls == 1:
            # Another request adds the same item between our read and write
            session = await store.get_session(PSID)
            lines = [line.model_copy(update={"quantity": line.quantity + 1}) for line in session.cart_items]
            await store.update_session(
                PSID, {"cart_items": dump_cart(lines)}, expected_version=session.version
            )
        return await original_get_menu_item(item_id)

    monkeypatch.setattr(store, "get_menu_item", racing_get_menu_item)

    await dialogue.handle_action(PSID, "ADD_A")

    session = await store.get_session(PSID)
    assert session.cart_items[0].quantity == 3
    assert calls == 2
    assert sender.texts.count(replies.item_added("Chicken Adobo")) == 2


@pytest.mark.asyncio
async def test_persistent_conflicts_give_up(dialogue, store, sender, menu_items, monkeypatch):
    """Test giving up after repeated write conflicts"""
    await dialogue.handle_action(PSID, "ADD_A")

    original_get_menu_item = store.get_menu_item

    async def always_racing(item_id):
        await store.update_session(PSID, {"stage": Stage.IDLE.value})
        return await original_get_menu_item(item_id)

    monkeypatch.setattr(store, "get_menu_item", always_racing)

    await dialogue.handle_action(PSID, "ADD_A")

    assert sender.last_text == replies.SESSION_BUSY
    session = await store.get_session(PSID)
    assert session.cart_items[0].quantity == 1


@pytest.mark.asyncio
async def test_blank_name_asks_again(dialogue, store, sender, menu_items):
    """Test a blank reply while collecting the name keeps asking for it"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "CHECKOUT")

    await dialogue.handle_text(PSID, "", "   ")

    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_NAME
    assert session.customer_name is None
    assert sender.texts[-2:] == [replies.ASK_NAME, replies.ASK_NAME]


@pytest.mark.asyncio
async def test_blank_address_asks_again(dialogue, store, sender, menu_items):
    """Test a blank reply while collecting the address keeps asking for it"""
    await dialogue.handle_action(PSID, "ADD_A")
    await dialogue.handle_action(PSID, "CHECKOUT")
    await say(dialogue, "Jane")

    await dialogue.handle_text(PSID, "", "  ")

    session = await store.get_session(PSID)
    assert session.stage == Stage.COLLECTING_ADDRESS
    assert session.customer_name == "Jane"
    assert session.customer_address is None
    assert sender.last_text == replies.ASK_ADDRESS


@pytest.mark.asyncio
async def test_racing_first_contact_reuses_session(dialogue, store, sender, menu_items, monkeypatch):
    """Test a session created by a concurrent delivery is reused instead of failing"""
    original_create_session = store.create_session

    async def racing_create_session(psid):
        # The other delivery wins the insert
        await original_create_session(psid)
        raise StoreError("create_session", "duplicate key value violates unique constraint")

    monkeypatch.setattr(store, "create_session", racing_create_session)

    await dialogue.handle_action(PSID, "ADD_A")

    assert sender.last_text == replies.item_added("Chicken Adobo")
    session = await store.get_session(PSID)
    assert [line.item_id for line in session.cart_items] == ["A"]
