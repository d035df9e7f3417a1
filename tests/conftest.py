"""Test configuration and fixtures"""

from decimal import Decimal
from typing import List

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from chatorder.main import app
from chatorder.config import Settings, get_settings
from chatorder.database import Base, get_db
from chatorder.models.menu import MenuItem
from chatorder.bot.dialogue import OrderingDialogue
from chatorder.bot.messenger import MessageSender
from chatorder.bot.store import Store
from chatorder.schemas.messenger import QuickReply, TemplateElement
from chatorder.webhooks.messenger import get_sender


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PSID = "1000000001"


class RecordingSender(MessageSender):
    """MessageSender that keeps every outbound message in memory"""

    def __init__(self):
        self.sent = []
        self.profile_calls = 0

    async def send_text(self, recipient_id: str, text: str) -> None:
        self.sent.append(("text", recipient_id, text))

    async def send_quick_replies(
        self,
        recipient_id: str,
        text: str,
        quick_replies: List[QuickReply],
    ) -> None:
        self.sent.append((
            "quick_replies",
            recipient_id,
            {"text": text, "payloads": [reply.payload for reply in quick_replies]},
        ))

    async def send_generic_template(
        self,
        recipient_id: str,
        elements: List[TemplateElement],
    ) -> None:
        self.sent.append(("template", recipient_id, elements))

    async def setup_profile(self) -> dict:
        self.profile_calls += 1
        return {"result": "success"}

    @property
    def texts(self) -> List[str]:
        """Text of every text and quick-reply message, in order"""
        return [
            payload if kind == "text" else payload["text"]
            for kind, _, payload in self.sent
            if kind in ("text", "quick_replies")
        ]

    @property
    def last_text(self) -> str:
        return self.texts[-1]

    @property
    def templates(self) -> list:
        return [payload for kind, _, payload in self.sent if kind == "template"]


@pytest.fixture
def test_settings():
    """Settings isolated from the environment"""
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        fb_page_access_token="",
        fb_app_secret="",
        fb_verify_token="verify-me",
        restaurant_name="Ate Lorie's POS",
    )


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def menu_items(test_db):
    """Create test menu items; only the first two are orderable today"""
    items = [
        MenuItem(
            id="A",
            name="Chicken Adobo",
            description="Braised in soy and vinegar",
            price=Decimal("50.00"),
            is_available=True,
            is_today_menu=True,
        ),
        MenuItem(
            id="42",
            name="Pork Sinigang",
            description=None,
            price=Decimal("120.00"),
            is_available=True,
            is_today_menu=True,
        ),
        MenuItem(
            id="B",
            name="Beef Caldereta",
            price=Decimal("150.00"),
            is_available=True,
            is_today_menu=False,
        ),
        MenuItem(
            id="C",
            name="Halo-Halo",
            price=Decimal("80.00"),
            is_available=False,
            is_today_menu=True,
        ),
    ]

    for item in items:
        test_db.add(item)

    await test_db.commit()
    return items


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def store(test_db):
    return Store(test_db)


@pytest.fixture
def dialogue(store, sender, test_settings):
    return OrderingDialogue(store, sender, test_settings)


@pytest.fixture
async def client(test_db, test_settings, sender):
    """Create test client with overridden database, settings and sender"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_sender] = lambda: sender

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
