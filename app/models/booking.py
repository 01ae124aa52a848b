# ===== app/models/booking.py =====
from enum import Enum

from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
import uuid

from app.models.base import Base
from app.utils.clock import utcnow


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


# Statuses that hold a window
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

_ACTIVE_PREDICATE = text("status IN ('pending', 'confirmed')")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one active booking per owner window
        Index(
            "uq_bookings_active_window",
            "owner_id", "date", "start_time", "end_time",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("ix_bookings_owner_date", "owner_id", "date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Window
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    # Client info
    client_name = Column(String(100), nullable=False)
    client_email = Column(String(100), nullable=False)
    client_phone = Column(String(32), nullable=True)
    notes = Column(Text, nullable=True)

    # Status tracking
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)  # pending, confirmed, cancelled, completed, no-show

    # Client self-service link
    access_token = Column(String(64), nullable=False, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<Booking {self.id} {self.date} {self.start_time}-{self.end_time} {self.status}>"
