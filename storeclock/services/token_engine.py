"""
Time-windowed check-in tokens.

A token is a fixed-width decimal string derived from a store secret, the
secret's generation counter and the index of the current time window:

    HMAC-SHA256(secret, generation || window)  ->  dynamic truncation  ->  N digits

Nothing is stored. Verification recomputes the token for the window that
contains `now` and for `tolerance_windows` windows on either side, so any
service instance holding the secret can verify without shared state.

Everything here is a pure function of its arguments.
"""
import hashlib
import hmac
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from storeclock.utils.datetime_utils import UTC, ensure_utc

DEFAULT_STEP_SECONDS = 30
DEFAULT_DIGITS = 6
DEFAULT_TOLERANCE_WINDOWS = 1

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Diagnostic reasons reported by check_token
REASON_EMPTY_SECRET = "EMPTY_SECRET"
REASON_BAD_GENERATION = "BAD_GENERATION"
REASON_NEGATIVE_WINDOW = "NEGATIVE_WINDOW"
REASON_BAD_TOLERANCE = "BAD_TOLERANCE"
REASON_MALFORMED_TOKEN = "MALFORMED_TOKEN"
REASON_NO_MATCH = "NO_MATCH"
REASON_BAD_TIME = "BAD_TIME"


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    matched_window: Optional[int] = None
    reason: Optional[str] = None


def time_window(now: datetime, step_seconds: int = DEFAULT_STEP_SECONDS) -> int:
    """Index of the window containing `now` (floor of epoch seconds / step)."""
    seconds = (ensure_utc(now) - EPOCH) // timedelta(seconds=1)
    return seconds // step_seconds


def window_bounds(window: int, step_seconds: int = DEFAULT_STEP_SECONDS) -> Tuple[datetime, datetime]:
    """[start, end) instants of a window."""
    start = EPOCH + timedelta(seconds=window * step_seconds)
    return start, start + timedelta(seconds=step_seconds)


def compute_token(secret: bytes, generation: int, window: int, digits: int = DEFAULT_DIGITS) -> str:
    """
    Token for one (generation, window).

    Raises ValueError on an empty secret or a negative generation/window;
    callers that must not raise go through verify/check_token.
    """
    if not secret:
        raise ValueError("secret must not be empty")
    if generation < 0 or window < 0:
        raise ValueError("generation and window must not be negative")

    message = struct.pack(">QQ", generation, window)
    digest = hmac.new(secret, message, hashlib.sha256).digest()

    # RFC 4226 dynamic truncation
    offset = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(code % (10 ** digits)).zfill(digits)


def current_token(
    secret: bytes,
    generation: int,
    now: datetime,
    step_seconds: int = DEFAULT_STEP_SECONDS,
    digits: int = DEFAULT_DIGITS,
) -> str:
    return compute_token(secret, generation, time_window(now, step_seconds), digits)


def is_well_formed(token, digits: int = DEFAULT_DIGITS) -> bool:
    return isinstance(token, str) and len(token) == digits and token.isascii() and token.isdigit()


def check_token(
    secret: bytes,
    generation: int,
    submitted: str,
    now: datetime,
    tolerance_windows: int = DEFAULT_TOLERANCE_WINDOWS,
    step_seconds: int = DEFAULT_STEP_SECONDS,
    digits: int = DEFAULT_DIGITS,
) -> TokenCheck:
    """
    Verify a submitted token and report why it failed.

    The windows are tried nearest-first (current, then -1/+1, -2/+2, ...),
    and every candidate is compared in constant time.
    """
    if not isinstance(secret, (bytes, bytearray)) or not secret:
        return TokenCheck(False, reason=REASON_EMPTY_SECRET)
    if not isinstance(now, datetime):
        return TokenCheck(False, reason=REASON_BAD_TIME)
    if not isinstance(generation, int) or generation < 0:
        return TokenCheck(False, reason=REASON_BAD_GENERATION)
    if not isinstance(tolerance_windows, int) or tolerance_windows < 0:
        return TokenCheck(False, reason=REASON_BAD_TOLERANCE)
    if not is_well_formed(submitted, digits):
        return TokenCheck(False, reason=REASON_MALFORMED_TOKEN)

    current = time_window(now, step_seconds)
    if current < 0:
        return TokenCheck(False, reason=REASON_NEGATIVE_WINDOW)

    candidates = [current]
    for distance in range(1, tolerance_windows + 1):
        candidates.extend([current - distance, current + distance])

    matched = None
    for window in candidates:
        if window < 0:
            continue
        expected = compute_token(secret, generation, window, digits)
        if hmac.compare_digest(expected, submitted) and matched is None:
            matched = window

    if matched is None:
        return TokenCheck(False, reason=REASON_NO_MATCH)
    return TokenCheck(True, matched_window=matched)


def verify(
    secret: bytes,
    generation: int,
    submitted: str,
    now: datetime,
    tolerance_windows: int = DEFAULT_TOLERANCE_WINDOWS,
    step_seconds: int = DEFAULT_STEP_SECONDS,
    digits: int = DEFAULT_DIGITS,
) -> bool:
    """True if `submitted` matches any window within the tolerance. Never raises."""
    return check_token(
        secret, generation, submitted, now,
        tolerance_windows=tolerance_windows,
        step_seconds=step_seconds,
        digits=digits,
    ).valid
