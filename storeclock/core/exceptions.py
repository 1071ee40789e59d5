"""
Domain errors for check-in codes and time accounting.

All of them are HTTPExceptions so the central handlers render them with the
usual JSON envelope. `reason` is for server-side logs only and never leaves
the process.
"""
from fastapi import HTTPException, status

INVALID_CODE_DETAIL = "Invalid or expired code"


class CheckinRejected(HTTPException):
    """Scanned code rejected. Every subclass answers with the same generic detail."""

    reason = "CHECKIN_REJECTED"

    def __init__(self, diagnostic: str = ""):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CODE_DETAIL)
        self.diagnostic = diagnostic


class MalformedPayload(CheckinRejected):
    reason = "MALFORMED_PAYLOAD"


class StoreMismatch(CheckinRejected):
    reason = "STORE_MISMATCH"


class TokenInvalid(CheckinRejected):
    reason = "TOKEN_INVALID"


class DuplicateSubmission(HTTPException):
    """Same (user, store, type, window) already accepted."""

    reason = "DUPLICATE_SUBMISSION"

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="This code has already been used for this check-in",
        )


class SecretNotProvisioned(HTTPException):
    reason = "SECRET_NOT_PROVISIONED"

    def __init__(self, store_id: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="QR check-in has not been set up for this store",
        )
        self.store_id = store_id


class InvalidTimeRange(HTTPException):
    reason = "INVALID_TIME_RANGE"

    def __init__(self, detail: str = "period end must not be before period start"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
