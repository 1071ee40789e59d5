"""
Authentication endpoints
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storeclock.core.deps import get_db
from storeclock.core.security import verify_password, create_access_token
from storeclock.models.user import User
from storeclock.schemas.auth import LoginRequest, TokenResponse
from storeclock.services.audit_service import log_audit

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Validates email and password, rejects inactive users.
    """
    email = login_data.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user or user.password_hash is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    if not verify_password(login_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    # JWT 'sub' claim must be a string
    access_token = create_access_token(data={"sub": str(user.id), "email": user.email})

    log_audit(
        db=db,
        actor_id=user.id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="auth",
        meta={"email": user.email},
    )
    logger.info("User %s logged in", user.id)

    return TokenResponse(access_token=access_token, token_type="bearer")
