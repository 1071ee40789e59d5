"""
Store, membership and per-store check-in secret models
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    LargeBinary,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from storeclock.db.base import Base


class MembershipRole(str, enum.Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    WORKER = "WORKER"


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Labor rules
    week_starts_on = Column(Integer, nullable=False, default=0)  # 0=Sun, 1=Mon, ..., 6=Sat
    overtime_daily_enabled = Column(Boolean, nullable=False, default=False)
    overtime_daily_minutes = Column(Integer, nullable=False, default=480)
    overtime_weekly_enabled = Column(Boolean, nullable=False, default=True)
    overtime_weekly_minutes = Column(Integer, nullable=False, default=2400)
    overtime_monthly_enabled = Column(Boolean, nullable=False, default=True)
    overtime_monthly_minutes = Column(Integer, nullable=False, default=10440)

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    memberships = relationship("Membership", back_populates="store", cascade="all, delete-orphan")
    secret = relationship("StoreSecret", back_populates="store", uselist=False, cascade="all, delete-orphan")


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "store_id", name="uq_memberships_user_store"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default=MembershipRole.WORKER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    user = relationship("User", back_populates="memberships")
    store = relationship("Store", back_populates="memberships")


class StoreSecret(Base):
    """
    Versioned token secret. secret and generation only ever change together,
    in a single UPDATE; readers load the row once per verification.
    """
    __tablename__ = "store_secrets"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, unique=True, index=True)
    secret = Column(LargeBinary, nullable=False)
    generation = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False)

    store = relationship("Store", back_populates="secret")
