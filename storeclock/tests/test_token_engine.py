"""
Tests for time-windowed token generation and verification
"""
import hashlib
import hmac
import struct
from datetime import datetime, timedelta, timezone

import pytest

from storeclock.services import token_engine
from storeclock.services.token_engine import (
    REASON_BAD_GENERATION,
    REASON_BAD_TOLERANCE,
    REASON_EMPTY_SECRET,
    REASON_MALFORMED_TOKEN,
    REASON_NEGATIVE_WINDOW,
    REASON_NO_MATCH,
    check_token,
    compute_token,
    current_token,
    time_window,
    verify,
    window_bounds,
)

SECRET = b"0123456789abcdefghij"
STEP = timedelta(seconds=30)

NOWS = [
    datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc),
    datetime(2025, 1, 15, 12, 0, 29, 999999, tzinfo=timezone.utc),
    datetime(2024, 2, 29, 23, 59, 45, tzinfo=timezone.utc),
    datetime(2030, 6, 1, 8, 15, 10, tzinfo=timezone.utc),
]


def test_time_window_is_floor_of_epoch_seconds():
    now = datetime(1970, 1, 1, 0, 1, 29, tzinfo=timezone.utc)
    assert time_window(now) == 2
    assert time_window(now, step_seconds=60) == 1


def test_time_window_treats_naive_as_utc():
    aware = datetime(2025, 1, 15, 12, 0, 5, tzinfo=timezone.utc)
    assert time_window(aware.replace(tzinfo=None)) == time_window(aware)


def test_window_bounds_contain_now():
    now = NOWS[0] + timedelta(seconds=7)
    start, end = window_bounds(time_window(now))
    assert start <= now < end
    assert end - start == STEP


def test_compute_token_matches_hmac_sha256_truncation():
    generation, window = 3, 58_000_000
    digest = hmac.new(SECRET, struct.pack(">QQ", generation, window), hashlib.sha256).digest()
    offset = digest[-1] & 0x0F
    expected = (struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF) % 1_000_000

    assert compute_token(SECRET, generation, window) == f"{expected:06d}"


@pytest.mark.parametrize("now", NOWS)
def test_token_is_six_decimal_digits(now):
    token = current_token(SECRET, 1, now)
    assert len(token) == 6
    assert token.isdigit()


@pytest.mark.parametrize("now", NOWS)
@pytest.mark.parametrize("generation", [0, 1, 7, 2 ** 31])
def test_current_token_verifies_with_zero_tolerance(now, generation):
    token = current_token(SECRET, generation, now)
    assert verify(SECRET, generation, token, now, 0)


@pytest.mark.parametrize("now", NOWS)
def test_token_two_windows_ahead_is_rejected(now):
    ahead = current_token(SECRET, 1, now + 2 * STEP)
    assert not verify(SECRET, 1, ahead, now, 1)


@pytest.mark.parametrize("now", NOWS)
def test_token_two_windows_behind_is_rejected(now):
    behind = current_token(SECRET, 1, now - 2 * STEP)
    assert not verify(SECRET, 1, behind, now, 1)


@pytest.mark.parametrize("offset", [-1, 1])
def test_adjacent_window_accepted_within_tolerance(offset):
    now = NOWS[0]
    token = current_token(SECRET, 1, now + offset * STEP)

    result = check_token(SECRET, 1, token, now, tolerance_windows=1)
    assert result.valid
    assert result.matched_window == time_window(now) + offset


def test_previous_window_rejected_without_tolerance():
    now = NOWS[0]
    previous = current_token(SECRET, 1, now - STEP)
    assert not verify(SECRET, 1, previous, now, 0)


def test_matched_window_is_current_window():
    now = NOWS[2]
    result = check_token(SECRET, 5, current_token(SECRET, 5, now), now)
    assert result.valid
    assert result.matched_window == time_window(now)
    assert result.reason is None


def test_generation_changes_tokens():
    now = NOWS[0]
    windows = [time_window(now) + i for i in range(10)]
    gen1 = [compute_token(SECRET, 1, w) for w in windows]
    gen2 = [compute_token(SECRET, 2, w) for w in windows]
    assert gen1 != gen2


def test_other_secret_does_not_verify():
    now = NOWS[0]
    token = current_token(SECRET, 1, now)
    assert not verify(b"another-secret-value", 1, token, now, 1)


@pytest.mark.parametrize("secret,generation,submitted,now,tolerance,reason", [
    (b"", 1, "123456", NOWS[0], 1, REASON_EMPTY_SECRET),
    (None, 1, "123456", NOWS[0], 1, REASON_EMPTY_SECRET),
    (SECRET, -1, "123456", NOWS[0], 1, REASON_BAD_GENERATION),
    (SECRET, 1, "123456", NOWS[0], -1, REASON_BAD_TOLERANCE),
    (SECRET, 1, "12345", NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, "1234567", NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, "12a456", NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, " 12345", NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, "１２３４５６", NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, None, NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, 123456, NOWS[0], 1, REASON_MALFORMED_TOKEN),
    (SECRET, 1, "123456", datetime(1969, 12, 31, 23, 59, 0, tzinfo=timezone.utc), 1, REASON_NEGATIVE_WINDOW),
])
def test_invalid_inputs_return_false_with_reason(secret, generation, submitted, now, tolerance, reason):
    result = check_token(secret, generation, submitted, now, tolerance_windows=tolerance)
    assert result.valid is False
    assert result.reason == reason
    assert verify(secret, generation, submitted, now, tolerance) is False


def test_wrong_token_reports_no_match():
    now = NOWS[0]
    token = current_token(SECRET, 1, now)
    wrong = f"{(int(token) + 1) % 1_000_000:06d}"
    result = check_token(SECRET, 1, wrong, now, tolerance_windows=0)
    assert not result.valid
    assert result.reason == REASON_NO_MATCH


@pytest.mark.parametrize("secret,generation,window", [
    (b"", 1, 10),
    (SECRET, -1, 10),
    (SECRET, 1, -1),
])
def test_compute_token_rejects_invalid_arguments(secret, generation, window):
    with pytest.raises(ValueError):
        compute_token(secret, generation, window)


def test_digits_are_configurable():
    now = NOWS[0]
    token = token_engine.current_token(SECRET, 1, now, digits=8)
    assert len(token) == 8
    assert verify(SECRET, 1, token, now, 0, digits=8)
    assert not verify(SECRET, 1, token, now, 0)
