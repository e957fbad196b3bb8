"""
catalog/orm/offer.py
Promotional offers with a limited number of discounted seats
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index
)

from catalog.orm.base import BaseModel


class Offer(BaseModel):
    __tablename__ = "offers"

    code = Column(String(20), unique=True, nullable=False)  # stored uppercase
    description = Column(Text, nullable=False)
    slogan = Column(String(100), nullable=True)
    discount_percentage = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("discount_percentage BETWEEN 0 AND 100", name="ck_offers_discount"),
        CheckConstraint("seats_available >= 0", name="ck_offers_seats"),
        Index("ix_offers_active_valid", "is_active", "valid_until"),
    )

    def __repr__(self):
        return f"<Offer(code='{self.code}', seats={self.seats_available})>"

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "slogan": self.slogan,
            "discount_percentage": self.discount_percentage,
            "seats_available": self.seats_available,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "is_active": self.is_active,
            "course_id": self.course_id,
        }
