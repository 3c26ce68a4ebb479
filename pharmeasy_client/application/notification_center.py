"""
============================================================
TARJETA CRC - application/notification_center.py
============================================================
Class: NotificationCenter

Responsibilities:
  - Mantener el badge de no leídas (poller de 60 s sobre
    GET /notifications/unread-count).
  - Cargar la bandeja bajo demanda (GET /notifications?limit=&skip=).
  - Marcar como leída una / todas con update optimista de dos fases;
    ante error revertir y emitir un aviso transitorio.

Collaborators:
  - application.polling.PollingEngine
  - application.optimistic.OptimisticStore
  - infrastructure.http.ApiClient
  - domain.entities.NotificationItem

Constraints:
  - mark_all_as_read siempre consulta al backend y es idempotente.
  - Un 401 durante una mutación revierte en silencio: el teardown global
    ya se encarga de la sesión.
============================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from ..crosscutting.exceptions import ClientError, UnauthorizedError
from ..crosscutting.logger import logger
from ..domain.entities import NotificationItem
from ..infrastructure.http.api_client import ApiClient
from .optimistic import OptimisticStore
from .polling import PollingEngine

UNREAD_COUNT_PATH = "/notifications/unread-count"
NOTIFICATIONS_PATH = "/notifications"
READ_ALL_PATH = "/notifications/read-all"


def read_path(notification_id: str) -> str:
    return f"/notifications/{notification_id}/read"


@dataclass(frozen=True, slots=True)
class InboxState:
    unread_count: int = 0
    has_high_priority: bool = False
    items: tuple[NotificationItem, ...] = ()
    loaded: bool = False


@dataclass(frozen=True, slots=True)
class UnreadSummary:
    unread_count: int
    has_high_priority: bool


def _parse_summary(data: Any) -> UnreadSummary:
    if not isinstance(data, Mapping):
        return UnreadSummary(unread_count=0, has_high_priority=False)
    try:
        count = max(0, int(data.get("unreadCount") or 0))
    except (TypeError, ValueError):
        count = 0
    return UnreadSummary(
        unread_count=count, has_high_priority=bool(data.get("hasHighPriority", False))
    )


def _parse_items(data: Any) -> list[NotificationItem]:
    raw = data
    if isinstance(data, Mapping):
        raw = data.get("notifications") or data.get("items") or []
    if not isinstance(raw, list):
        return []
    return [NotificationItem.from_payload(item) for item in raw if isinstance(item, Mapping)]


def _mark_one(notification_id: str) -> Callable[[InboxState], InboxState]:
    def mutate(state: InboxState) -> InboxState:
        items = list(state.items)
        for index, item in enumerate(items):
            if item.id == notification_id and not item.is_read:
                items[index] = item.mark_read()
                unread = max(0, state.unread_count - 1)
                return replace(
                    state,
                    items=tuple(items),
                    unread_count=unread,
                    has_high_priority=state.has_high_priority and unread > 0,
                )
        return state

    return mutate


def _mark_all(state: InboxState) -> InboxState:
    return replace(
        state,
        items=tuple(i.mark_read() if not i.is_read else i for i in state.items),
        unread_count=0,
        has_high_priority=False,
    )


class NotificationCenter:
    def __init__(
        self,
        *,
        api: ApiClient,
        interval_seconds: float = 60.0,
        page_size: int = 20,
        on_notice: Callable[[str], None] | None = None,
        on_change: Callable[[InboxState], None] | None = None,
    ) -> None:
        self._api = api
        self._page_size = page_size
        self._on_notice = on_notice
        self.last_error: str | None = None
        self.store: OptimisticStore[InboxState] = OptimisticStore(
            InboxState(), name="notifications", on_change=on_change
        )
        self.engine: PollingEngine[UnreadSummary] = PollingEngine(
            name="notifications",
            interval_seconds=interval_seconds,
            fetch_fn=self.fetch_unread_summary,
            on_result=self.apply_summary,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> InboxState:
        return self.store.value

    @property
    def unread_count(self) -> int:
        return self.store.value.unread_count

    @property
    def has_high_priority(self) -> bool:
        return self.store.value.has_high_priority

    @property
    def items(self) -> tuple[NotificationItem, ...]:
        return self.store.value.items

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.engine.start()

    def stop(self) -> None:
        self.engine.stop()

    async def aclose(self) -> None:
        await self.engine.aclose()

    def reset(self) -> None:
        self.store.replace(InboxState())
        self.last_error = None

    # ------------------------------------------------------------------
    # Remote
    # ------------------------------------------------------------------

    async def fetch_unread_summary(self) -> UnreadSummary:
        return _parse_summary(await self._api.get(UNREAD_COUNT_PATH))

    def apply_summary(self, summary: UnreadSummary) -> None:
        # R: sobre la base confirmada; las marcas pendientes se re-aplican encima.
        self.store.reconcile(
            lambda state: replace(
                state,
                unread_count=summary.unread_count,
                has_high_priority=summary.has_high_priority,
            )
        )

    async def open_inbox(self, *, skip: int = 0) -> list[NotificationItem]:
        """Carga una página de la bandeja (bajo demanda, sin polling)."""
        data = await self._api.get(
            NOTIFICATIONS_PATH, params={"limit": self._page_size, "skip": max(0, skip)}
        )
        items = _parse_items(data)

        def merge(state: InboxState) -> InboxState:
            merged = tuple(items) if skip <= 0 else state.items + tuple(items)
            return replace(state, items=merged, loaded=True)

        self.store.reconcile(merge)
        return items

    async def mark_as_read(self, notification_id: str) -> bool:
        known = next((i for i in self.store.value.items if i.id == notification_id), None)
        if known is not None and known.is_read:
            return True
        return await self._mutate(
            _mark_one(notification_id),
            lambda: self._api.patch(read_path(notification_id)),
            label=f"read:{notification_id}",
        )

    async def mark_all_as_read(self) -> bool:
        return await self._mutate(
            _mark_all, lambda: self._api.patch(READ_ALL_PATH), label="read-all"
        )

    async def _mutate(self, mutate, commit, *, label: str) -> bool:
        try:
            await self.store.run(mutate, commit, label=label)
        except UnauthorizedError:
            return False
        except ClientError as exc:
            self._notice(f"Could not update notifications: {exc.message}")
            logger.warning(
                "Notification update rolled back",
                extra={"change": label, "error_code": exc.error_code},
            )
            return False
        self.last_error = None
        return True

    def _notice(self, message: str) -> None:
        self.last_error = message
        if self._on_notice is not None:
            self._on_notice(message)
