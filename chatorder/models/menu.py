"""Menu-related models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Text

from chatorder.database import Base


class MenuItem(Base):
    """Menu items, managed from the dashboard and read by the bot"""
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(String(36))
    is_available = Column(Boolean, default=True)
    is_today_menu = Column(Boolean, default=False)  # Shown to Messenger customers
    image_url = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow)
