"""Reservation and order line models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, Text, Uuid, Index
from sqlalchemy.orm import relationship

from tablehaus.database import Base


class Reservation(Base):
    """Dine-in bookings and pickup orders"""
    __tablename__ = "reservations"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    channel = Column(String(20), nullable=False)  # dine_in, pickup
    table_id = Column(Uuid, ForeignKey("dining_tables.id"))
    
    # Stored in UTC
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True))
    
    # Status
    status = Column(String(20), nullable=False, default="pending")
    party_size = Column(Integer, nullable=False, default=1)
    
    # Pricing
    subtotal = Column(Integer, nullable=False, default=0)
    discount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    promotion_code = Column(String(50))
    
    # Customer information
    customer_id = Column(String(255), index=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255))
    customer_note = Column(Text)
    
    proof_reference = Column(String(500))
    tracking_token = Column(String(64), unique=True, nullable=False)
    token_expires_at = Column(DateTime(timezone=True))
    
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    lines = relationship(
        "OrderLine",
        back_populates="reservation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderLine.position",
    )

    __table_args__ = (
        Index("ix_reservations_table_start", "table_id", "start_at"),
        Index("ix_reservations_status_start", "status", "start_at"),
    )


class OrderLine(Base):
    """Items ordered with a reservation, priced at order time"""
    __tablename__ = "order_lines"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False, index=True)
    menu_item_id = Column(Uuid, ForeignKey("menu_items.id"))
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    selected_options = Column(JSON, default=dict)
    
    # Relationships
    reservation = relationship("Reservation", back_populates="lines")
