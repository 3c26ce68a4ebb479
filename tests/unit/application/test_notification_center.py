"""
Name: Notification Center Unit Tests

Responsibilities:
  - Unread badge from the poller
  - On-demand inbox paging
  - Optimistic read / read-all with rollback and transient notice
  - mark_all_as_read is idempotent and always reaches the backend
  - A failed write that overlaps other writes or a badge refresh reverts only itself
"""

import asyncio

import httpx
import pytest

from pharmeasy_client.application.notification_center import (
    NotificationCenter,
    UnreadSummary,
)
from pharmeasy_client.infrastructure.http.api_client import ApiClient


def _items(*specs):
    return [
        {"id": item_id, "type": "SYSTEM_MESSAGE", "title": item_id, "isRead": read}
        for item_id, read in specs
    ]


@pytest.fixture
def notices():
    return []


@pytest.fixture
def center(settings, backend, notices):
    api = ApiClient(
        base_url=settings.api_base_url, token_provider=lambda: "tok", transport=backend.transport
    )
    return NotificationCenter(api=api, interval_seconds=60, page_size=2, on_notice=notices.append)


@pytest.mark.unit
class TestNotificationCenter:
    @pytest.mark.asyncio
    async def test_poll_result_updates_badge(self, center, backend, payloads):
        backend.on(
            "GET",
            "/notifications/unread-count",
            payloads.ok({"unreadCount": 4, "hasHighPriority": True}),
        )

        summary = await center.fetch_unread_summary()
        center.apply_summary(summary)

        assert center.unread_count == 4
        assert center.has_high_priority is True

    @pytest.mark.asyncio
    async def test_open_inbox_sends_paging_params(self, center, backend, payloads):
        backend.on("GET", "/notifications", payloads.ok(_items(("n1", False), ("n2", True))))

        items = await center.open_inbox()

        (request,) = backend.calls("GET", "/notifications")
        assert request.url.params["limit"] == "2"
        assert request.url.params["skip"] == "0"
        assert [i.id for i in items] == ["n1", "n2"]
        assert center.state.loaded is True

    @pytest.mark.asyncio
    async def test_open_inbox_appends_next_page(self, center, backend, payloads):
        backend.on(
            "GET",
            "/notifications",
            payloads.ok(_items(("n1", False), ("n2", False))),
            payloads.ok({"notifications": _items(("n3", False))}),
        )

        await center.open_inbox()
        await center.open_inbox(skip=2)

        assert [i.id for i in center.items] == ["n1", "n2", "n3"]

    @pytest.mark.asyncio
    async def test_mark_as_read_is_optimistic(self, center, backend, payloads):
        backend.on("GET", "/notifications", payloads.ok(_items(("n1", False))))
        backend.on("PATCH", "/notifications/n1/read", payloads.ok({}))
        await center.open_inbox()
        center.apply_summary(_summary(1))

        assert await center.mark_as_read("n1") is True

        assert center.items[0].is_read is True
        assert center.unread_count == 0

    @pytest.mark.asyncio
    async def test_mark_as_read_failure_rolls_back_and_notifies(
        self, center, backend, payloads, notices
    ):
        backend.on("GET", "/notifications", payloads.ok(_items(("n1", False))))
        backend.on("PATCH", "/notifications/n1/read", (500, {"message": "db down"}))
        await center.open_inbox()
        center.apply_summary(_summary(1))

        assert await center.mark_as_read("n1") is False

        assert center.items[0].is_read is False
        assert center.unread_count == 1
        assert len(notices) == 1
        assert center.last_error == notices[0]

    @pytest.mark.asyncio
    async def test_notice_callback_receives_message(self, center, backend, notices):
        backend.on("PATCH", "/notifications/read-all", (503, {"message": "busy"}))

        assert await center.mark_all_as_read() is False

        assert len(notices) == 1
        assert "busy" in notices[0]

    @pytest.mark.asyncio
    async def test_unauthorized_rolls_back_silently(self, center, backend, notices):
        backend.on("PATCH", "/notifications/read-all", (401, {"message": "jwt expired"}))
        center.apply_summary(_summary(3))

        assert await center.mark_all_as_read() is False

        assert center.unread_count == 3
        assert notices == []

    @pytest.mark.asyncio
    async def test_mark_all_is_idempotent(self, center, backend, payloads):
        backend.on("GET", "/notifications", payloads.ok(_items(("n1", False), ("n2", False))))
        backend.on("PATCH", "/notifications/read-all", payloads.ok({"markedCount": 2}))
        await center.open_inbox()
        center.apply_summary(_summary(2))

        assert await center.mark_all_as_read() is True
        first = center.state
        assert await center.mark_all_as_read() is True

        assert center.state == first
        assert center.unread_count == 0
        assert all(i.is_read for i in center.items)
        assert len(backend.calls("PATCH", "/notifications/read-all")) == 2

    @pytest.mark.asyncio
    async def test_already_read_item_skips_backend(self, center, backend, payloads):
        backend.on("GET", "/notifications", payloads.ok(_items(("n1", True))))
        await center.open_inbox()

        assert await center.mark_as_read("n1") is True
        assert backend.calls("PATCH", "/notifications/n1/read") == []


def _summary(count: int) -> UnreadSummary:
    return UnreadSummary(unread_count=count, has_high_priority=False)


def _held_failure(gate: asyncio.Event):
    async def respond(request: httpx.Request) -> httpx.Response:
        await gate.wait()
        return httpx.Response(500, json={"success": False, "message": "db down"})

    return respond


async def _wait_for_call(backend, method: str, path: str, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not backend.calls(method, path):
        if loop.time() > deadline:
            raise AssertionError(f"{method} {path} was never sent")
        await asyncio.sleep(0)


@pytest.mark.unit
class TestOverlappingWrites:
    @pytest.mark.asyncio
    async def test_failed_mark_reverts_after_a_later_mark_succeeds(
        self, center, backend, payloads, notices
    ):
        gate = asyncio.Event()
        backend.on("GET", "/notifications", payloads.ok(_items(("a", False), ("b", False))))
        backend.on("PATCH", "/notifications/a/read", _held_failure(gate))
        backend.on("PATCH", "/notifications/b/read", payloads.ok({}))
        await center.open_inbox()
        center.apply_summary(_summary(2))

        first = asyncio.create_task(center.mark_as_read("a"))
        await _wait_for_call(backend, "PATCH", "/notifications/a/read")
        assert await center.mark_as_read("b") is True
        assert center.unread_count == 0

        gate.set()
        assert await first is False

        read = {item.id: item.is_read for item in center.items}
        assert read == {"a": False, "b": True}
        assert center.unread_count == 1
        assert len(notices) == 1

    @pytest.mark.asyncio
    async def test_failed_read_all_reverts_onto_the_refreshed_badge(
        self, center, backend, payloads
    ):
        gate = asyncio.Event()
        backend.on("GET", "/notifications", payloads.ok(_items(("a", False), ("b", False))))
        backend.on("PATCH", "/notifications/read-all", _held_failure(gate))
        await center.open_inbox()
        center.apply_summary(_summary(2))

        pending = asyncio.create_task(center.mark_all_as_read())
        await _wait_for_call(backend, "PATCH", "/notifications/read-all")
        center.apply_summary(UnreadSummary(unread_count=5, has_high_priority=True))

        assert center.unread_count == 0
        assert center.has_high_priority is False

        gate.set()
        assert await pending is False

        assert center.unread_count == 5
        assert center.has_high_priority is True
        assert not any(item.is_read for item in center.items)
