"""
Name: Domain Entities Unit Tests

Responsibilities:
  - Payload parsing for User (nested and flat shapes)
  - Session invariants
  - SOSRequest / NotificationItem read models

Notes:
  - Pure unit tests (no external dependencies)
"""

from dataclasses import FrozenInstanceError

import pytest

from pharmeasy_client.domain.entities import (
    NotificationItem,
    PharmacyStatus,
    RoleId,
    Session,
    SOSRequest,
    User,
)


@pytest.mark.unit
class TestUser:
    def test_from_nested_payload(self):
        user = User.from_payload(
            {
                "user": {"id": 7, "email": "a@b.co", "name": "Ana", "roleId": 2},
                "pharmacy": {"id": "p1", "verificationStatus": "PENDING"},
            }
        )

        assert user.id == "7"
        assert user.role is RoleId.PHARMACY
        assert user.pharmacy == {"id": "p1", "verificationStatus": "PENDING"}
        assert user.pharmacy_status is PharmacyStatus.PENDING

    def test_from_flat_login_payload(self):
        user = User.from_payload(
            {
                "userId": "u-9",
                "email": "p@x.io",
                "firstName": "Pat",
                "lastName": "Lee",
                "roleId": "3",
                "accessToken": "secret",
            }
        )

        assert user.id == "u-9"
        assert user.name == "Pat Lee"
        assert user.role_id == 3

    def test_needs_onboarding_flag_maps_to_onboarding_status(self):
        user = User.from_payload({"userId": "u", "roleId": 2, "needsOnboarding": True})
        assert user.pharmacy_status is PharmacyStatus.ONBOARDING_REQUIRED

    def test_unknown_role_is_preserved(self):
        user = User.from_payload({"id": "u", "roleId": 42})
        assert user.role_id == 42
        assert user.role is None

    def test_status_is_ignored_for_patients(self):
        user = User(id="u", email="e", name="n", role_id=3, status="APPROVED")
        assert user.pharmacy_status is None

    def test_payload_round_trip_keeps_role_and_status(self):
        user = User(id="u", email="e@x.io", name="n", role_id=2, status="REJECTED")
        assert User.from_payload(user.to_payload()) == user

    def test_user_is_immutable(self):
        user = User(id="u", email="e", name="n", role_id=3)
        with pytest.raises(FrozenInstanceError):
            user.role_id = 1  # type: ignore[misc]


@pytest.mark.unit
class TestSession:
    def test_session_requires_token(self):
        user = User(id="u", email="e", name="n", role_id=3)
        with pytest.raises(ValueError):
            Session(token="", user=user)


@pytest.mark.unit
class TestReadModels:
    def test_sos_request_from_payload(self):
        sos = SOSRequest.from_payload(
            {
                "id": "s1",
                "status": "pending",
                "distance": "2.5",
                "createdAt": "2026-01-01T10:00:00Z",
                "patient": {"name": "Ram"},
            }
        )

        assert sos.distance == 2.5
        assert sos.is_pending is True
        assert sos.patient_name == "Ram"
        assert sos.created_at is not None and sos.created_at.tzinfo is not None

    def test_sos_with_status_returns_new_object(self):
        sos = SOSRequest(id="s1", status="pending")
        accepted = sos.with_status("accepted")

        assert accepted.status == "accepted"
        assert sos.status == "pending"

    def test_notification_from_payload(self):
        item = NotificationItem.from_payload(
            {
                "id": "n1",
                "type": "SOS_UPDATE",
                "message": "Your SOS was accepted",
                "isRead": False,
                "metadata": {"link": "/sos"},
            }
        )

        assert item.title == "Your SOS was accepted"
        assert item.link == "/sos"
        assert item.is_high_priority is True
        assert item.mark_read().is_read is True
