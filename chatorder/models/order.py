"""Order models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from chatorder.database import Base


class Order(Base):
    """Customer orders"""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    table_id = Column(String(36))  # Dine-in only; null for Messenger orders

    customer_name = Column(String(255))
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    # Status
    status = Column(String(50), default="active")  # active, completed, cancelled

    # "Order placed via Messenger - Address: ..."
    staff_notes = Column(Text)

    # Page-scoped id of the Messenger user who placed the order
    source_psid = Column(String(64), index=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Line items of an order"""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)  # Price at order time
    special_instructions = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
