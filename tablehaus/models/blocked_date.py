"""Store closure dates"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Uuid

from tablehaus.database import Base


class BlockedDate(Base):
    """Dates on which no booking is accepted"""
    __tablename__ = "blocked_dates"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date = Column(Date, unique=True, nullable=False)
    reason = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
