"""
QR session service: per-store secret provisioning and rotation, issuing the
current check-in code as a scannable payload, and parsing scanned payloads.

Payload format: {scheme}://checkin/{storeId}/{token}
"""
import base64
import io
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

import qrcode
from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeclock.core.config import settings
from storeclock.core.exceptions import MalformedPayload, SecretNotProvisioned
from storeclock.models.store import Store, StoreSecret
from storeclock.services import token_engine
from storeclock.services.audit_service import log_audit

_log = logging.getLogger(__name__)

SECRET_BYTES = 20
PAYLOAD_HOST = "checkin"


@dataclass(frozen=True)
class SecretSnapshot:
    store_id: int
    secret: bytes
    generation: int


@dataclass(frozen=True)
class ScannedPayload:
    store_id: int
    token: str


@dataclass(frozen=True)
class IssuedCode:
    payload: str
    qr_code_data_url: str
    token: str
    expires_at: datetime
    generation: int
    window: int


def get_secret_snapshot(db: Session, store_id: int) -> SecretSnapshot:
    """
    Read (secret, generation) in one statement so a concurrent rotation is seen
    either entirely or not at all.

    Raises:
        SecretNotProvisioned: the store never had a secret
    """
    row = (
        db.query(StoreSecret.secret, StoreSecret.generation)
        .filter(StoreSecret.store_id == store_id)
        .one_or_none()
    )
    if row is None:
        raise SecretNotProvisioned(store_id)
    return SecretSnapshot(store_id=store_id, secret=bytes(row.secret), generation=row.generation)


def _require_store(db: Session, store_id: int) -> Store:
    store = db.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    return store


def get_or_create_secret(db: Session, store_id: int, now: datetime) -> SecretSnapshot:
    """Return the store's secret, generating generation 1 on first use."""
    try:
        return get_secret_snapshot(db, store_id)
    except SecretNotProvisioned:
        pass

    _require_store(db, store_id)
    db.add(StoreSecret(
        store_id=store_id,
        secret=secrets.token_bytes(SECRET_BYTES),
        generation=1,
        created_at=now,
    ))
    try:
        db.commit()
    except IntegrityError:
        # Another request provisioned it first; use theirs
        db.rollback()
        return get_secret_snapshot(db, store_id)

    _log.info("Provisioned check-in secret for store_id=%s", store_id)
    return get_secret_snapshot(db, store_id)


def rotate_secret(db: Session, store_id: int, actor_id: int, now: datetime) -> int:
    """
    Replace the store's secret and bump its generation in a single UPDATE.
    Every code issued under an earlier generation stops verifying immediately.

    Caller must have checked that actor_id is the store OWNER.

    Returns:
        The new generation
    """
    _require_store(db, store_id)
    result = db.execute(
        update(StoreSecret)
        .where(StoreSecret.store_id == store_id)
        .values(
            secret=secrets.token_bytes(SECRET_BYTES),
            generation=StoreSecret.generation + 1,
            created_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise SecretNotProvisioned(store_id)

    generation = (
        db.query(StoreSecret.generation)
        .filter(StoreSecret.store_id == store_id)
        .scalar()
    )
    log_audit(
        db=db,
        actor_id=actor_id,
        action="TOTP_SECRET_ROTATE",
        entity_type="store_secrets",
        entity_id=store_id,
        meta={"generation": generation, "rotated_at": now},
        commit=False,
    )
    db.commit()
    db.expire_all()

    _log.info("Rotated check-in secret for store_id=%s to generation=%s", store_id, generation)
    return generation


def build_payload(store_id: int, token: str, scheme: Optional[str] = None) -> str:
    scheme = scheme or settings.CHECKIN_URI_SCHEME
    return f"{scheme}://{PAYLOAD_HOST}/{store_id}/{token}"


def parse_payload(payload: str, scheme: Optional[str] = None, digits: Optional[int] = None) -> ScannedPayload:
    """
    Parse a scanned payload.

    Raises:
        MalformedPayload: wrong scheme or host, missing/extra segments,
            non-numeric store id, token not exactly `digits` digits
    """
    scheme = (scheme or settings.CHECKIN_URI_SCHEME).lower()
    digits = digits or settings.TOTP_DIGITS

    if not isinstance(payload, str) or not payload.strip():
        raise MalformedPayload("empty payload")

    try:
        parts = urlsplit(payload.strip())
    except ValueError as exc:
        raise MalformedPayload(f"unparseable payload: {exc}")

    if parts.scheme.lower() != scheme or parts.netloc.lower() != PAYLOAD_HOST:
        raise MalformedPayload("unexpected scheme or host")
    if parts.query or parts.fragment:
        raise MalformedPayload("unexpected query or fragment")

    segments = parts.path.split("/")
    # "/{storeId}/{token}" -> ["", storeId, token]
    if len(segments) != 3 or segments[0] != "":
        raise MalformedPayload("expected /{storeId}/{token}")
    store_segment, token = segments[1], segments[2]

    if not (store_segment.isascii() and store_segment.isdigit()):
        raise MalformedPayload("non-numeric store id")
    if not token_engine.is_well_formed(token, digits):
        raise MalformedPayload("token is not a fixed-width decimal string")

    return ScannedPayload(store_id=int(store_segment), token=token)


def render_qr_data_url(payload: str) -> str:
    """PNG of the payload as a data URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.QR_BOX_SIZE,
        border=settings.QR_BORDER,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def issue(db: Session, store_id: int, now: datetime) -> IssuedCode:
    """
    Current code for the store. `expires_at` is the end of the current window;
    verification still accepts the code for the configured tolerance after that.
    """
    snapshot = get_or_create_secret(db, store_id, now)
    window = token_engine.time_window(now, settings.TOTP_STEP_SECONDS)
    token = token_engine.compute_token(snapshot.secret, snapshot.generation, window, settings.TOTP_DIGITS)
    _, expires_at = token_engine.window_bounds(window, settings.TOTP_STEP_SECONDS)

    payload = build_payload(store_id, token)
    _log.debug("Issued code store_id=%s generation=%s window=%s", store_id, snapshot.generation, window)
    return IssuedCode(
        payload=payload,
        qr_code_data_url=render_qr_data_url(payload),
        token=token,
        expires_at=expires_at,
        generation=snapshot.generation,
        window=window,
    )


def should_refresh(expires_at: datetime, now: datetime, safety_margin_seconds: Optional[int] = None) -> bool:
    """Display policy: re-issue once remaining validity drops below the margin."""
    if safety_margin_seconds is None:
        safety_margin_seconds = settings.QR_SAFETY_MARGIN_SECONDS
    return (expires_at - now).total_seconds() < safety_margin_seconds
