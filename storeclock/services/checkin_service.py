"""
Check-in validation: turn a scanned code plus a CHECK_IN/CHECK_OUT attempt
into a recorded time entry.

Each submission is evaluated on its own:

    RECEIVED -> STORE_MISMATCH | TOKEN_INVALID | ACCEPTED

Malformed payloads, store mismatches and bad tokens all reach the caller as
the same "Invalid or expired code"; which one it was only goes to the log.
A code that verifies is recorded even without usable GPS, as PENDING_REVIEW.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeclock.core.config import settings
from storeclock.core.exceptions import (
    CheckinRejected,
    DuplicateSubmission,
    MalformedPayload,
    StoreMismatch,
    TokenInvalid,
)
from storeclock.models.store import Store
from storeclock.models.time_entry import TimeEntry, TimeEntryStatus, TimeEntryType
from storeclock.services import token_engine
from storeclock.services.audit_service import log_audit
from storeclock.services.qr_session_service import get_secret_snapshot, parse_payload
from storeclock.utils.datetime_utils import ensure_utc
from storeclock.utils.geo import distance_miles, is_plausible_coordinate

_log = logging.getLogger(__name__)


class CheckinState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    STORE_MISMATCH = "STORE_MISMATCH"
    TOKEN_INVALID = "TOKEN_INVALID"
    ACCEPTED = "ACCEPTED"


@dataclass(frozen=True)
class AcceptedCode:
    window: int
    generation: int


def validate_code(
    db: Session,
    store_id: int,
    now: datetime,
    *,
    payload: Optional[str] = None,
    token: Optional[str] = None,
) -> AcceptedCode:
    """
    Check a scanned payload (or bare token) against the store context.

    Raises:
        MalformedPayload: payload does not parse
        StoreMismatch: payload names another store; the token is not checked
        TokenInvalid: token wrong, expired or from a rotated-away generation
        SecretNotProvisioned: the store has no secret yet
    """
    if payload is not None:
        scanned = parse_payload(payload)
        if scanned.store_id != store_id:
            raise StoreMismatch(f"payload store_id={scanned.store_id}")
        token = scanned.token
    elif token is None:
        raise MalformedPayload("neither payload nor token supplied")

    snapshot = get_secret_snapshot(db, store_id)
    check = token_engine.check_token(
        snapshot.secret,
        snapshot.generation,
        token,
        now,
        tolerance_windows=settings.TOTP_TOLERANCE_WINDOWS,
        step_seconds=settings.TOTP_STEP_SECONDS,
        digits=settings.TOTP_DIGITS,
    )
    if not check.valid:
        raise TokenInvalid(f"{check.reason} generation={snapshot.generation}")
    return AcceptedCode(window=check.matched_window, generation=snapshot.generation)


def determine_trust(
    store: Optional[Store],
    latitude: Optional[float],
    longitude: Optional[float],
) -> Tuple[TimeEntryStatus, bool, Optional[float]]:
    """
    Returns (status, location_verified, distance_miles).

    Plausible GPS -> APPROVED. Missing or implausible GPS -> PENDING_REVIEW.
    With CHECKIN_GEOFENCE_ENFORCED, plausible GPS outside the radius of a
    store that has coordinates is PENDING_REVIEW as well.
    """
    if not is_plausible_coordinate(latitude, longitude):
        return TimeEntryStatus.PENDING_REVIEW, False, None

    distance = None
    if store is not None and is_plausible_coordinate(store.latitude, store.longitude):
        distance = distance_miles(store.latitude, store.longitude, float(latitude), float(longitude))

    if (
        settings.CHECKIN_GEOFENCE_ENFORCED
        and distance is not None
        and distance > settings.CHECKIN_GEOFENCE_RADIUS_MILES
    ):
        return TimeEntryStatus.PENDING_REVIEW, False, distance

    return TimeEntryStatus.APPROVED, True, distance


def _replay_exists(db: Session, user_id: int, store_id: int, entry_type: str, window: int) -> bool:
    return (
        db.query(TimeEntry.id)
        .filter(
            TimeEntry.user_id == user_id,
            TimeEntry.store_id == store_id,
            TimeEntry.type == entry_type,
            TimeEntry.time_window == window,
        )
        .first()
        is not None
    )


def check_in(
    db: Session,
    store_id: int,
    user_id: int,
    entry_type: TimeEntryType,
    now: datetime,
    *,
    payload: Optional[str] = None,
    token: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    accuracy: Optional[float] = None,
    client_timestamp: Optional[datetime] = None,
) -> TimeEntry:
    """
    Validate a scanned code and record the time entry.

    Raises:
        CheckinRejected (MalformedPayload, StoreMismatch, TokenInvalid): 400, generic detail
        DuplicateSubmission: same user/store/type already accepted for this code window (409)
        SecretNotProvisioned: the store never issued a code
    """
    entry_type = TimeEntryType(entry_type)
    try:
        accepted = validate_code(db, store_id, now, payload=payload, token=token)
    except StoreMismatch as exc:
        _log.warning(
            "Check-in rejected state=%s store_id=%s user_id=%s %s",
            CheckinState.STORE_MISMATCH.value, store_id, user_id, exc.diagnostic,
        )
        raise
    except CheckinRejected as exc:
        _log.warning(
            "Check-in rejected state=%s reason=%s store_id=%s user_id=%s %s",
            CheckinState.TOKEN_INVALID.value, exc.reason, store_id, user_id, exc.diagnostic,
        )
        raise

    store = db.query(Store).filter(Store.id == store_id).first()
    entry_status, location_verified, distance = determine_trust(store, latitude, longitude)
    if not is_plausible_coordinate(latitude, longitude):
        latitude = longitude = accuracy = None

    entry = TimeEntry(
        store_id=store_id,
        user_id=user_id,
        type=entry_type.value,
        status=entry_status.value,
        client_timestamp=ensure_utc(client_timestamp),
        timestamp=now,
        latitude=latitude,
        longitude=longitude,
        accuracy_meters=accuracy,
        distance_miles=distance,
        location_verified=location_verified,
        time_window=accepted.window,
        secret_generation=accepted.generation,
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        if _replay_exists(db, user_id, store_id, entry_type.value, accepted.window):
            _log.info(
                "Duplicate check-in store_id=%s user_id=%s type=%s window=%s",
                store_id, user_id, entry_type.value, accepted.window,
            )
            raise DuplicateSubmission()
        raise

    log_audit(
        db=db,
        actor_id=user_id,
        action="TIME_ENTRY_CHECKIN",
        entity_type="time_entries",
        entity_id=entry.id,
        meta={
            "store_id": store_id,
            "type": entry_type.value,
            "status": entry_status.value,
            "window": accepted.window,
            "generation": accepted.generation,
        },
        commit=False,
    )
    db.commit()
    db.refresh(entry)

    _log.info(
        "Check-in accepted state=%s store_id=%s user_id=%s type=%s status=%s",
        CheckinState.ACCEPTED.value, store_id, user_id, entry_type.value, entry_status.value,
    )
    return entry
