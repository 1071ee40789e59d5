"""
Store and membership setup
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from storeclock.core.config import settings
from storeclock.models.store import Membership, MembershipRole, Store
from storeclock.models.user import User
from storeclock.services.audit_service import log_audit

_log = logging.getLogger(__name__)


def create_store(
    db: Session,
    name: str,
    owner: User,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Store:
    """Create a store with the configured default labor rules; `owner` becomes its OWNER."""
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Store name is required")

    store = Store(
        name=name,
        latitude=latitude,
        longitude=longitude,
        week_starts_on=settings.DEFAULT_WEEK_STARTS_ON,
        overtime_daily_enabled=settings.DEFAULT_OVERTIME_DAILY_ENABLED,
        overtime_daily_minutes=settings.DEFAULT_OVERTIME_DAILY_MINUTES,
        overtime_weekly_enabled=True,
        overtime_weekly_minutes=settings.DEFAULT_OVERTIME_WEEKLY_MINUTES,
        overtime_monthly_enabled=True,
        overtime_monthly_minutes=settings.DEFAULT_OVERTIME_MONTHLY_MINUTES,
    )
    db.add(store)
    db.flush()
    db.add(Membership(user_id=owner.id, store_id=store.id, role=MembershipRole.OWNER.value))

    log_audit(
        db=db,
        actor_id=owner.id,
        action="STORE_CREATE",
        entity_type="stores",
        entity_id=store.id,
        meta={"name": name},
        commit=False,
    )
    db.commit()
    db.refresh(store)
    _log.info("Created store %s (%s) owned by user_id=%s", store.id, name, owner.id)
    return store


def add_member(
    db: Session,
    store_id: int,
    actor_id: int,
    email: str,
    role: MembershipRole = MembershipRole.WORKER,
) -> Membership:
    """
    Add the user with this email to a store, or change the role of an existing member.

    Raises:
        HTTPException: 404 when no user has this email, 400 when the actor targets their own membership
    """
    email = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == actor_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own membership")

    role = MembershipRole(role)
    membership = db.query(Membership).filter(
        Membership.store_id == store_id,
        Membership.user_id == user.id,
    ).first()
    old_role = membership.role if membership else None
    if membership is None:
        membership = Membership(store_id=store_id, user_id=user.id, role=role.value)
        db.add(membership)
    else:
        membership.role = role.value
    db.flush()

    if old_role != role.value:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="MEMBERSHIP_UPSERT",
            entity_type="memberships",
            entity_id=membership.id,
            meta={"user_id": user.id, "old_role": old_role, "new_role": role.value},
            commit=False,
        )
    db.commit()
    db.refresh(membership)
    _log.info("Store %s member user_id=%s role %s -> %s", store_id, user.id, old_role, role.value)
    return membership
