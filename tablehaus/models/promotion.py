"""Promotion model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Uuid

from tablehaus.database import Base


class Promotion(Base):
    """Discount codes, managed outside the booking engine"""
    __tablename__ = "promotions"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), unique=True, nullable=False)  # Upper-case
    discount_type = Column(String(20), nullable=False)  # percent, fixed
    discount_value = Column(Integer, nullable=False)
    min_subtotal = Column(Integer, nullable=False, default=0)
    channels = Column(JSON, default=lambda: ["dine_in", "pickup"])
    starts_at = Column(DateTime(timezone=True))
    ends_at = Column(DateTime(timezone=True))
    usage_limit = Column(Integer)
    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
