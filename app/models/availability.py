# ===== app/models/availability.py =====
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, DateTime, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID
import uuid

from app.models.base import Base
from app.utils.clock import utcnow


class WorkingHourRule(Base):
    """Recurring weekly hours, one row per owner and weekday"""
    __tablename__ = "working_hour_rules"
    __table_args__ = (
        UniqueConstraint("owner_id", "day_of_week", name="uq_working_hour_rules_owner_day"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(String(5), nullable=False)  # "09:00"
    end_time = Column(String(5), nullable=False)  # "17:00"
    is_working = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class AvailabilitySettings(Base):
    """Per-owner slot sizing and booking horizon"""
    __tablename__ = "availability_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    slot_duration_minutes = Column(Integer, default=60, nullable=False)
    break_duration_minutes = Column(Integer, default=0, nullable=False)  # Between windows
    advance_booking_days = Column(Integer, default=30, nullable=False)
    time_format_12h = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class DateException(Base):
    """Specific date overrides (holidays, time-off, extra working days)"""
    __tablename__ = "date_exceptions"
    __table_args__ = (
        UniqueConstraint("owner_id", "date", name="uq_date_exceptions_owner_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)  # False = day off
    reason = Column(String(255), nullable=True)  # "Holiday", "Vacation", etc.

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class TimeSlot(Base):
    """Explicit window stored for a date; overrides or extends the generated baseline"""
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("owner_id", "date", "start_time", "end_time", name="uq_time_slots_owner_window"),
        Index("ix_time_slots_owner_date", "owner_id", "date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    is_booked = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<TimeSlot {self.date} {self.start_time}-{self.end_time}>"
