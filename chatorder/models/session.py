"""Bot session model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Text

from chatorder.database import Base


class BotSession(Base):
    """Per-user dialogue state"""
    __tablename__ = "bot_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    messenger_psid = Column(String(64), unique=True, nullable=False)

    # idle, collecting_name, collecting_address
    stage = Column(String(32), nullable=False, default="idle")

    # [{"item_id": "...", "name": "...", "unit_price": "50.00", "quantity": 1}, ...]
    cart_items = Column(JSON, nullable=False, default=list)

    # Collected profile
    customer_name = Column(String(255))
    customer_address = Column(Text)

    # Bumped on every write, checked by conditional updates
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
