"""Customer model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from chatorder.database import Base


class Customer(Base):
    """Messenger customers, one per page-scoped user id"""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    messenger_psid = Column(String(64), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
