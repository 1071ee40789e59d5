"""
Time entry model: one check-in or check-out event.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Float,
    BigInteger,
    DateTime,
    ForeignKey,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from storeclock.db.base import Base


class TimeEntryType(str, enum.Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class TimeEntryStatus(str, enum.Enum):
    APPROVED = "APPROVED"
    PENDING_REVIEW = "PENDING_REVIEW"
    REJECTED = "REJECTED"  # only via manager review


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        # Replay guard: one accepted entry per scanned code window
        UniqueConstraint("user_id", "store_id", "type", "time_window", name="uq_time_entries_replay_guard"),
        Index("ix_time_entries_store_user_timestamp", "store_id", "user_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # CHECK_IN / CHECK_OUT
    status = Column(String, nullable=False, default=TimeEntryStatus.PENDING_REVIEW.value)
    client_timestamp = Column(DateTime(timezone=True), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)  # server-received
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    accuracy_meters = Column(Float, nullable=True)  # GPS accuracy reported by the scanner
    distance_miles = Column(Float, nullable=True)
    location_verified = Column(Boolean, nullable=False, default=False)
    time_window = Column(BigInteger, nullable=False)  # window the scanned token matched
    secret_generation = Column(Integer, nullable=False)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
