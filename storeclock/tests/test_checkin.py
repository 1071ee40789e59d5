"""
Tests for QR check-in validation and the replay guard
"""
import logging

import pytest
from fastapi import status

from storeclock.core.config import settings
from storeclock.core.exceptions import DuplicateSubmission, INVALID_CODE_DETAIL, StoreMismatch
from storeclock.models.audit_log import AuditLog
from storeclock.models.time_entry import TimeEntry, TimeEntryStatus, TimeEntryType
from storeclock.services.checkin_service import check_in, determine_trust
from storeclock.services.qr_session_service import build_payload, issue

SEOUL = {"latitude": 37.5665, "longitude": 126.9780}
# Incheon airport, roughly 30 miles away
FAR_AWAY = {"latitude": 37.4602, "longitude": 126.4407}


def _code(client, store, headers):
    response = client.get(f"/api/v1/stores/{store.id}/totp/qrcode", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def _checkin(client, store, headers, **body):
    body.setdefault("type", "CHECK_IN")
    return client.post(f"/api/v1/stores/{store.id}/totp/checkin", json=body, headers=headers)


@pytest.fixture
def owner_headers(owner, store, auth_headers):
    return auth_headers(owner)


@pytest.fixture
def worker_headers(worker, store, auth_headers):
    return auth_headers(worker)


def test_checkin_with_gps_is_approved(client, db, store, worker, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "APPROVED"
    assert data["type"] == "CHECK_IN"
    assert data["user_id"] == worker.id
    assert data["store_id"] == store.id
    assert data["location_verified"] is True
    assert data["distance_miles"] == pytest.approx(0.0, abs=1e-6)
    assert data["timestamp"] == "2025-01-15T12:00:05Z"


def test_checkin_without_gps_is_pending_review(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, payload=code["payload"])

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "PENDING_REVIEW"
    assert data["location_verified"] is False
    assert data["distance_miles"] is None


@pytest.mark.parametrize("gps", [
    {"latitude": 95.0, "longitude": 10.0},
    {"latitude": 10.0, "longitude": -181.0},
    {"latitude": 37.5},
])
def test_checkin_with_implausible_gps_is_pending_review(client, store, owner_headers, worker_headers, gps):
    code = _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, payload=code["payload"], **gps)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "PENDING_REVIEW"
    assert data["latitude"] is None
    assert data["longitude"] is None


def test_checkin_with_bare_token(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, token=code["token"], **SEOUL)

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "APPROVED"


def test_checkin_records_gps_accuracy(client, db, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, payload=code["payload"], accuracy=12.5, **SEOUL)

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["accuracy_meters"] == 12.5
    assert db.query(TimeEntry).one().accuracy_meters == 12.5


def test_accuracy_dropped_with_implausible_gps(db, clock, store, worker):
    code = issue(db, store.id, clock.now())

    entry = check_in(
        db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(),
        payload=code.payload, latitude=95.0, longitude=10.0, accuracy=8.0,
    )

    assert entry.latitude is None
    assert entry.accuracy_meters is None


def test_negative_accuracy_rejected(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    response = _checkin(client, store, worker_headers, payload=code["payload"], accuracy=-1, **SEOUL)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_checkin_records_client_timestamp(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    response = _checkin(
        client, store, worker_headers,
        payload=code["payload"], client_timestamp="2025-01-15T21:00:03+09:00", **SEOUL,
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["client_timestamp"] == "2025-01-15T12:00:03Z"


def test_checkin_requires_payload_or_token(client, store, worker_headers):
    response = _checkin(client, store, worker_headers, **SEOUL)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_checkin_rejects_unknown_type(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    response = _checkin(client, store, worker_headers, payload=code["payload"], type="BREAK")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_checkin_non_member_forbidden(client, store, outsider, owner_headers, auth_headers):
    code = _code(client, store, owner_headers)
    response = _checkin(client, store, auth_headers(outsider), payload=code["payload"])
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_checkin_before_store_provisioned(client, store, worker_headers):
    response = _checkin(client, store, worker_headers, payload=build_payload(store.id, "123456"))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "QR check-in has not been set up for this store"


# --- rejections ---

def test_store_mismatch_rejected_even_with_valid_token(client, db, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    # Valid token for this store, but the payload names another store
    payload = build_payload(store.id + 100, code["token"])

    response = _checkin(client, store, worker_headers, payload=payload, **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL
    assert db.query(TimeEntry).count() == 0


def test_other_stores_code_rejected(client, db, clock, store, other_store, owner_headers, worker_headers):
    _code(client, store, owner_headers)
    foreign = issue(db, other_store.id, clock.now())

    response = _checkin(client, store, worker_headers, payload=foreign.payload, **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL


def test_store_mismatch_does_not_consult_token(db, clock, store, worker):
    # Store not even provisioned: a mismatch is decided before any secret lookup
    with pytest.raises(StoreMismatch):
        check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(),
                 payload=build_payload(store.id + 1, "123456"))


def test_wrong_token_rejected(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    wrong = f"{(int(code['token']) + 1) % 1_000_000:06d}"

    response = _checkin(client, store, worker_headers, payload=build_payload(store.id, wrong), **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL


@pytest.mark.parametrize("payload", [
    "not a uri",
    "workhaja://checkin/1/12345",
    "https://example.com/checkin",
])
def test_malformed_payload_rejected_with_same_message(client, store, owner_headers, worker_headers, payload):
    _code(client, store, owner_headers)

    response = _checkin(client, store, worker_headers, payload=payload, **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL


def test_rejection_reason_only_in_logs(client, store, owner_headers, worker_headers, caplog):
    code = _code(client, store, owner_headers)

    with caplog.at_level(logging.WARNING, logger="storeclock.services.checkin_service"):
        response = _checkin(client, store, worker_headers, payload=build_payload(store.id + 5, code["token"]))

    assert "STORE_MISMATCH" in caplog.text
    assert "STORE_MISMATCH" not in response.text
    assert code["token"] not in caplog.text


def test_token_from_previous_window_accepted(client, clock, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    clock.advance(30)

    response = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)

    assert response.status_code == status.HTTP_201_CREATED


def test_token_two_windows_old_rejected(client, clock, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    clock.advance(60)

    response = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL


def test_token_invalid_after_rotation(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    assert client.post(f"/api/v1/stores/{store.id}/totp/reset", headers=owner_headers).status_code == 200

    response = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == INVALID_CODE_DETAIL


# --- replay guard ---

def test_duplicate_submission_rejected(client, db, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    first = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)
    second = _checkin(client, store, worker_headers, payload=code["payload"], **SEOUL)

    assert first.status_code == status.HTTP_201_CREATED
    assert second.status_code == status.HTTP_409_CONFLICT
    assert db.query(TimeEntry).count() == 1


def test_duplicate_detected_across_window_boundary(client, db, clock, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    assert _checkin(client, store, worker_headers, payload=code["payload"]).status_code == 201

    # Same frame replayed in the next window, still inside tolerance
    clock.advance(30)
    response = _checkin(client, store, worker_headers, payload=code["payload"])

    assert response.status_code == status.HTTP_409_CONFLICT
    assert db.query(TimeEntry).count() == 1


def test_bare_token_and_payload_share_replay_key(client, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)
    assert _checkin(client, store, worker_headers, payload=code["payload"]).status_code == 201
    assert _checkin(client, store, worker_headers, token=code["token"]).status_code == 409


def test_check_out_with_same_code_is_separate(client, db, store, owner_headers, worker_headers):
    code = _code(client, store, owner_headers)

    check_in_resp = _checkin(client, store, worker_headers, payload=code["payload"], type="CHECK_IN")
    check_out_resp = _checkin(client, store, worker_headers, payload=code["payload"], type="CHECK_OUT")

    assert check_in_resp.status_code == status.HTTP_201_CREATED
    assert check_out_resp.status_code == status.HTTP_201_CREATED
    assert db.query(TimeEntry).count() == 2


def test_same_code_for_different_users(client, db, store, manager, owner_headers, worker_headers, auth_headers):
    code = _code(client, store, owner_headers)

    assert _checkin(client, store, worker_headers, payload=code["payload"]).status_code == 201
    assert _checkin(client, store, auth_headers(manager), payload=code["payload"]).status_code == 201


@pytest.mark.parametrize("first_gps,second_gps,expected_status", [
    (SEOUL, None, TimeEntryStatus.APPROVED.value),
    (None, SEOUL, TimeEntryStatus.PENDING_REVIEW.value),
])
def test_replay_first_arrival_wins(db, clock, store, worker, first_gps, second_gps, expected_status):
    code = issue(db, store.id, clock.now())

    check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(),
             payload=code.payload, **(first_gps or {}))
    with pytest.raises(DuplicateSubmission):
        check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(),
                 payload=code.payload, **(second_gps or {}))

    entries = db.query(TimeEntry).all()
    assert len(entries) == 1
    assert entries[0].status == expected_status


def test_duplicate_does_not_break_session(db, clock, store, worker):
    code = issue(db, store.id, clock.now())
    check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(), payload=code.payload)
    with pytest.raises(DuplicateSubmission):
        check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(), payload=code.payload)

    entry = check_in(db, store.id, worker.id, TimeEntryType.CHECK_OUT, clock.now(), payload=code.payload)
    assert entry.id is not None


def test_accepted_checkin_is_audited(db, clock, store, worker):
    code = issue(db, store.id, clock.now())
    entry = check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(), payload=code.payload, **SEOUL)

    log = db.query(AuditLog).filter(AuditLog.action == "TIME_ENTRY_CHECKIN").one()
    assert log.actor_id == worker.id
    assert log.entity_id == entry.id
    assert log.meta_json["window"] == code.window
    assert log.meta_json["generation"] == code.generation


def test_entry_stores_matched_window_and_generation(db, clock, store, worker):
    code = issue(db, store.id, clock.now())
    clock.advance(30)

    entry = check_in(db, store.id, worker.id, TimeEntryType.CHECK_IN, clock.now(), payload=code.payload)

    assert entry.time_window == code.window
    assert entry.secret_generation == code.generation


# --- trust policy ---

def test_determine_trust_plausible_gps(store):
    entry_status, verified, distance = determine_trust(store, **SEOUL)
    assert entry_status == TimeEntryStatus.APPROVED
    assert verified is True
    assert distance == pytest.approx(0.0, abs=1e-6)


def test_determine_trust_far_gps_without_geofence(store):
    entry_status, verified, distance = determine_trust(store, **FAR_AWAY)
    assert entry_status == TimeEntryStatus.APPROVED
    assert distance > 3


def test_determine_trust_far_gps_with_geofence(store, monkeypatch):
    monkeypatch.setattr(settings, "CHECKIN_GEOFENCE_ENFORCED", True)

    entry_status, verified, distance = determine_trust(store, **FAR_AWAY)

    assert entry_status == TimeEntryStatus.PENDING_REVIEW
    assert verified is False
    assert distance > settings.CHECKIN_GEOFENCE_RADIUS_MILES


def test_determine_trust_geofence_ignored_without_store_location(db, other_store, monkeypatch):
    monkeypatch.setattr(settings, "CHECKIN_GEOFENCE_ENFORCED", True)

    entry_status, verified, distance = determine_trust(other_store, **FAR_AWAY)

    assert entry_status == TimeEntryStatus.APPROVED
    assert distance is None


@pytest.mark.parametrize("lat,lng", [
    (None, None),
    (float("nan"), 10.0),
    (10.0, float("inf")),
    (-90.5, 0.0),
])
def test_determine_trust_implausible(store, lat, lng):
    entry_status, verified, distance = determine_trust(store, lat, lng)
    assert entry_status == TimeEntryStatus.PENDING_REVIEW
    assert verified is False
    assert distance is None
