"""Dining table model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Float, Uuid

from tablehaus.database import Base


class DiningTable(Base):
    """Bookable tables"""
    __tablename__ = "dining_tables"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False, default=2)
    
    # Layout position, owned by the floor-plan editor
    position_x = Column(Float, default=0)
    position_y = Column(Float, default=0)
    
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
