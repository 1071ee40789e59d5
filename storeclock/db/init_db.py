"""
Database initialization script
Helper function to seed a first owner and store
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from storeclock.core.security import hash_password, validate_password
from storeclock.models.store import Membership, MembershipRole, Store
from storeclock.models.user import User
from storeclock.services.store_service import create_store

logger = logging.getLogger(__name__)


def init_db(
    db: Session,
    owner_email: str,
    owner_password: str,
    store_name: str,
    owner_name: str = "Store Owner",
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Store:
    """
    Create the owner account (if missing) and a store they own (if they own none yet)

    This is a helper function and should NOT be auto-run on startup.
    Call manually when needed for initial setup.
    """
    email = owner_email.strip().lower()
    owner = db.query(User).filter(User.email == email).first()
    if owner is None:
        owner = User(
            email=email,
            name=owner_name,
            password_hash=hash_password(validate_password(owner_password)),
            active=True,
        )
        db.add(owner)
        db.commit()
        db.refresh(owner)
        logger.info("Owner user created: %s", email)

    owned = (
        db.query(Store)
        .join(Membership, Membership.store_id == Store.id)
        .filter(Membership.user_id == owner.id, Membership.role == MembershipRole.OWNER.value)
        .first()
    )
    if owned is not None:
        logger.info("User %s already owns store %s, skipping initialization", email, owned.id)
        return owned

    return create_store(db, store_name, owner, latitude=latitude, longitude=longitude)
