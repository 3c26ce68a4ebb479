"""
Name: Composition Root + Polling Scope Tests

Responsibilities:
  - build_container wires the global 401 contract
  - PollingScope starts only the pollers the session enables
  - A 401 on a poller tick tears the whole session down
"""

import asyncio

import pytest

from pharmeasy_client.container import build_container, build_storage_backend
from pharmeasy_client.crosscutting.config import Settings
from pharmeasy_client.domain.entities import RoleId
from pharmeasy_client.domain.navigation_policy import Route
from pharmeasy_client.infrastructure.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)


async def _eventually(predicate, timeout: float = 1.0) -> None:
    async def _loop():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_loop(), timeout)


@pytest.fixture
def fast_container(settings, backend, storage, navigator):
    fast = settings.model_copy(
        update={"sos_poll_interval_seconds": 0.05, "notification_poll_interval_seconds": 0.05}
    )
    return build_container(fast, transport=backend.transport, navigator=navigator, storage=storage)


async def _login(container, backend, payloads, role_id, status=None):
    backend.on("POST", "/auth/login", (200, payloads.auth(role_id=role_id, status=status)))
    await container.session_manager.login("jane@example.com", "secret123")


@pytest.mark.unit
class TestBuildContainer:
    def test_storage_backend_follows_settings(self, tmp_path):
        assert isinstance(build_storage_backend(Settings()), InMemoryKeyValueStore)
        on_disk = Settings(credential_store_path=str(tmp_path / "creds.json"))
        assert isinstance(build_storage_backend(on_disk), JsonFileKeyValueStore)

    def test_pollers_take_intervals_from_settings(self, container, settings):
        assert container.sos_board.engine.interval_seconds == settings.sos_poll_interval_seconds
        assert (
            container.notifications.engine.interval_seconds
            == settings.notification_poll_interval_seconds
        )

    @pytest.mark.asyncio
    async def test_requests_carry_the_session_token(self, container, backend, payloads):
        backend.on("POST", "/auth/login", (200, payloads.auth(token="abc")))
        backend.on("GET", "/notifications/unread-count", payloads.ok({"unreadCount": 1}))
        await container.session_manager.login("jane@example.com", "secret123")

        await container.notifications.fetch_unread_summary()

        (request,) = backend.calls("GET", "/notifications/unread-count")
        assert request.headers["Authorization"] == "Bearer abc"


@pytest.mark.unit
class TestPollingScope:
    @pytest.mark.asyncio
    async def test_patient_runs_notifications_only(self, fast_container, backend, payloads):
        backend.on("GET", "/notifications/unread-count", payloads.ok({"unreadCount": 2}))
        await _login(fast_container, backend, payloads, RoleId.PATIENT)

        async with fast_container.polling_scope():
            await _eventually(lambda: fast_container.notifications.unread_count == 2)
            assert fast_container.notifications.engine.running is True
            assert fast_container.sos_board.engine.running is False

        assert fast_container.notifications.engine.running is False
        assert backend.calls("GET", "/pharmacy/sos/nearby") == []

    @pytest.mark.asyncio
    async def test_pending_pharmacy_gets_no_sos_poller(self, fast_container, backend, payloads):
        backend.on("GET", "/notifications/unread-count", payloads.ok({"unreadCount": 0}))
        await _login(fast_container, backend, payloads, RoleId.PHARMACY, "PENDING")

        async with fast_container.polling_scope():
            assert fast_container.sos_board.engine.running is False

    @pytest.mark.asyncio
    async def test_no_session_starts_nothing(self, fast_container):
        async with fast_container.polling_scope():
            assert fast_container.notifications.engine.running is False
            assert fast_container.sos_board.engine.running is False

    @pytest.mark.asyncio
    async def test_revoked_token_on_poller_tick_tears_down_session(
        self, fast_container, backend, payloads, navigator, storage
    ):
        backend.on("GET", "/notifications/unread-count", payloads.ok({"unreadCount": 3}))
        backend.on(
            "GET",
            "/pharmacy/sos/nearby",
            payloads.ok({"sosRequests": [{"id": "s1", "status": "pending", "distance": 1.2}]}),
            (401, {"success": False, "message": "jwt expired"}),
        )
        await _login(fast_container, backend, payloads, RoleId.PHARMACY, "APPROVED")

        async with fast_container.polling_scope():
            await _eventually(lambda: fast_container.sos_board.badge_count == 1)
            await _eventually(lambda: fast_container.state.session is None)
            await asyncio.sleep(0.12)

            assert navigator.current is Route.LOGIN
            assert fast_container.sos_board.engine.running is False
            assert fast_container.notifications.engine.running is False
            assert fast_container.sos_board.badge_count == 0
            assert fast_container.notifications.unread_count == 0
            assert storage.snapshot() == {}
            sos_calls = len(backend.calls("GET", "/pharmacy/sos/nearby"))

        assert len(backend.calls("GET", "/pharmacy/sos/nearby")) == sos_calls

    @pytest.mark.asyncio
    async def test_logout_stops_pollers(self, fast_container, backend, payloads):
        backend.on("GET", "/notifications/unread-count", payloads.ok({"unreadCount": 1}))
        backend.on("POST", "/auth/logout", payloads.ok({}))
        await _login(fast_container, backend, payloads, RoleId.PATIENT)

        async with fast_container.polling_scope():
            await _eventually(lambda: fast_container.notifications.unread_count == 1)
            await fast_container.session_manager.logout()

            assert fast_container.notifications.engine.running is False
            assert fast_container.notifications.unread_count == 0
