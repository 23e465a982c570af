"""Menu item model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text, Uuid

from tablehaus.database import Base


class MenuItem(Base):
    """Menu items"""
    __tablename__ = "menu_items"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Integer, nullable=False)  # Smallest currency unit
    category = Column(String(100))
    is_active = Column(Boolean, default=True)
    is_available = Column(Boolean, default=True)  # Temporary availability
    # [{"name": "Doneness", "options": [{"name": "Medium", "price": 0}], "required": true}, ...]
    option_groups = Column(JSON, default=list)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
