"""
Name: Navigation Policy Unit Tests

Responsibilities:
  - Status Router: every role/status pair lands on a defined route
  - Access Guard: role mismatch, pharmacy approval and ADMIN override rules
  - Route table: every route has a declared requirement

Notes:
  - Pure functions, no fixtures beyond the user factory
"""

import pytest

from pharmeasy_client.domain.entities import PharmacyStatus, RoleId
from pharmeasy_client.domain.navigation_policy import (
    PUBLIC,
    ROUTE_REQUIREMENTS,
    Route,
    RouteRequirement,
    can_access,
    can_access_route,
    requirement_for,
    resolve_landing_route,
)


@pytest.mark.unit
class TestResolveLandingRoute:
    def test_no_user_goes_to_login(self):
        assert resolve_landing_route(None) is Route.LOGIN

    def test_admin_goes_to_admin_dashboard(self, make_user):
        assert resolve_landing_route(make_user(RoleId.ADMIN)) is Route.ADMIN_DASHBOARD

    def test_patient_goes_to_patient_home(self, make_user):
        assert resolve_landing_route(make_user(RoleId.PATIENT)) is Route.PATIENT_HOME

    @pytest.mark.parametrize(
        "status, expected",
        [
            ("ONBOARDING_REQUIRED", Route.PHARMACY_ONBOARDING),
            ("PENDING", Route.PHARMACY_WAITING_APPROVAL),
            ("REJECTED", Route.PHARMACY_APPLICATION_REJECTED),
            ("APPROVED", Route.PHARMACY_DASHBOARD),
            ("approved", Route.PHARMACY_DASHBOARD),
            (None, Route.PHARMACY_ONBOARDING),
            ("SUSPENDED", Route.PHARMACY_ONBOARDING),
        ],
    )
    def test_pharmacy_routes_by_status(self, make_user, status, expected):
        assert resolve_landing_route(make_user(RoleId.PHARMACY, status)) is expected

    def test_unknown_role_falls_back_to_landing(self, make_user):
        assert resolve_landing_route(make_user(99)) is Route.LANDING

    def test_status_is_ignored_for_non_pharmacy_roles(self, make_user):
        user = make_user(RoleId.PATIENT, "REJECTED")
        assert resolve_landing_route(user) is Route.PATIENT_HOME

    def test_router_is_deterministic(self, make_user):
        user = make_user(RoleId.PHARMACY, "PENDING")
        assert {resolve_landing_route(user) for _ in range(5)} == {
            Route.PHARMACY_WAITING_APPROVAL
        }

    @pytest.mark.parametrize("role_id", [0, 1, 2, 3, 4, -1])
    @pytest.mark.parametrize("status", [None, *[s.value for s in PharmacyStatus], "???"])
    def test_landing_route_is_always_reachable_by_that_user(self, make_user, role_id, status):
        user = make_user(role_id, status)
        assert can_access_route(user, resolve_landing_route(user))


@pytest.mark.unit
class TestCanAccess:
    def test_public_route_allows_anonymous(self):
        assert can_access(None, PUBLIC) is True

    def test_protected_route_denies_anonymous(self):
        assert can_access_route(None, Route.PATIENT_HOME) is False

    def test_patient_cannot_open_admin_route(self, make_user):
        assert can_access_route(make_user(RoleId.PATIENT), Route.ADMIN_USERS) is False

    def test_pending_pharmacy_cannot_open_approved_only_route(self, make_user):
        user = make_user(RoleId.PHARMACY, "PENDING")
        assert can_access_route(user, Route.PHARMACY_DASHBOARD) is False
        assert can_access_route(user, Route.PHARMACY_WAITING_APPROVAL) is True

    def test_approved_pharmacy_opens_operational_routes(self, make_user):
        user = make_user(RoleId.PHARMACY, "APPROVED")
        assert can_access_route(user, Route.PHARMACY_SOS_REQUESTS) is True
        assert can_access_route(user, Route.PHARMACY_INVENTORY) is True

    def test_admin_overrides_patient_routes(self, make_user):
        assert can_access_route(make_user(RoleId.ADMIN), Route.PATIENT_ORDERS) is True

    def test_admin_never_opens_pharmacy_routes(self, make_user):
        admin = make_user(RoleId.ADMIN)
        assert can_access_route(admin, Route.PHARMACY_DASHBOARD) is False
        assert can_access_route(admin, Route.PHARMACY_ONBOARDING) is False

    def test_pharmacy_cannot_open_patient_routes(self, make_user):
        user = make_user(RoleId.PHARMACY, "APPROVED")
        assert can_access_route(user, Route.PATIENT_SOS) is False

    def test_requirement_without_role_only_needs_a_user(self, make_user):
        requirement = RouteRequirement()
        assert can_access(None, requirement) is False
        assert can_access(make_user(99), requirement) is True


@pytest.mark.unit
class TestRouteTable:
    def test_every_route_declares_a_requirement(self):
        assert set(ROUTE_REQUIREMENTS) == set(Route)

    def test_auth_routes_are_public(self):
        for route in (Route.LOGIN, Route.REGISTER, Route.VERIFY_OTP, Route.LANDING):
            assert requirement_for(route).public is True
