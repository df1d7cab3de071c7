from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime
from database import Base
from decimal import Decimal
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    vehicle_type = Column(String, nullable=False)
    rc_image_id = Column(String, nullable=True)
    carbon_credits = Column(Numeric(precision=12, scale=6), nullable=False, default=Decimal("0"))
    balance_inr = Column(Numeric(precision=12, scale=2), nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Upload(Base):
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    image_id = Column(String, nullable=False)
    estimated_km = Column(Integer, nullable=False)
    carbon_saved_kg = Column(Numeric(precision=12, scale=3), nullable=False)
    carbon_credits = Column(Numeric(precision=12, scale=6), nullable=False)
    reward_inr = Column(Numeric(precision=12, scale=2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
