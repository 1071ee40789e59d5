"""
Dependencies and guards for FastAPI endpoints
"""
from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from storeclock.core.clock import Clock, get_clock  # noqa: F401  re-exported for routers
from storeclock.core.security import decode_token
from storeclock.db.session import get_db
from storeclock.models.store import Membership, MembershipRole, Store
from storeclock.models.user import User


security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        # sub is a string (RFC 7519)
        user_id: int = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return user


def get_store_membership(
    store_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Membership:
    """
    Membership of the current user in the store named by the `store_id`
    path parameter. 404 for an unknown store, 403 for non-members.
    """
    store = db.query(Store.id).filter(Store.id == store_id).first()
    if store is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")

    membership = db.query(Membership).filter(
        Membership.store_id == store_id,
        Membership.user_id == current_user.id,
    ).first()
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a member of this store"
        )
    return membership


def require_store_roles(*allowed_roles: MembershipRole):
    """
    Dependency factory for store-scoped role checks

    Usage:
        @router.post("/stores/{store_id}/totp/reset")
        async def reset(membership: Membership = Depends(require_store_roles(MembershipRole.OWNER))):
            ...
    """
    allowed = {r.value for r in allowed_roles}

    def role_checker(membership: Membership = Depends(get_store_membership)) -> Membership:
        if membership.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return membership
    return role_checker


def is_store_admin(membership: Membership) -> bool:
    """OWNER or MANAGER"""
    return membership.role in (MembershipRole.OWNER.value, MembershipRole.MANAGER.value)
