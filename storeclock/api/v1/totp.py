"""
QR check-in endpoints: show the current code, rotate the secret, check in/out
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storeclock.core.deps import get_clock, get_db, get_store_membership, require_store_roles
from storeclock.core.clock import Clock
from storeclock.models.store import Membership, MembershipRole
from storeclock.schemas.time_entry import TimeEntryOut
from storeclock.schemas.totp import CheckinRequest, QRCodeResponse, ResetResponse
from storeclock.services import qr_session_service
from storeclock.services.checkin_service import check_in

router = APIRouter()


@router.get("/{store_id}/totp/qrcode", response_model=QRCodeResponse)
async def get_qr_code(
    store_id: int,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER, MembershipRole.MANAGER)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Current check-in code for the store display (OWNER/MANAGER).

    The first call provisions the store's secret. The display should ask
    again once expires_at is less than the safety margin away.
    """
    return qr_session_service.issue(db, store_id, clock.now())


@router.post("/{store_id}/totp/reset", response_model=ResetResponse)
async def reset_secret(
    store_id: int,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Rotate the store's secret (OWNER). Every code shown so far stops working."""
    generation = qr_session_service.rotate_secret(db, store_id, membership.user_id, clock.now())
    return ResetResponse(message="Check-in secret has been reset", generation=generation)


@router.post("/{store_id}/totp/checkin", response_model=TimeEntryOut, status_code=status.HTTP_201_CREATED)
async def checkin(
    store_id: int,
    body: CheckinRequest,
    membership: Membership = Depends(get_store_membership),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record a CHECK_IN or CHECK_OUT from a scanned code (any store member).

    400 "Invalid or expired code" for any rejected code, 409 when the same
    code window was already used for this action.
    """
    return check_in(
        db,
        store_id=store_id,
        user_id=membership.user_id,
        entry_type=body.type,
        now=clock.now(),
        payload=body.payload or None,
        token=body.token or None,
        latitude=body.latitude,
        longitude=body.longitude,
        accuracy=body.accuracy,
        client_timestamp=body.client_timestamp,
    )
