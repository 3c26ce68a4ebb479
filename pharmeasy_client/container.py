"""
===============================================================================
TARJETA CRC - pharmeasy_client/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer dependencias (store, API, auditor, sesión, navegación, pollers)
    a partir de Settings.
  - Conectar el contrato global 401 (ApiClient -> SessionManager).
  - Proveer PollingScope: el contexto dueño de los pollers, que los detiene
    al salir y ante cualquier teardown de sesión.

Colaboradores:
  - crosscutting.config.Settings / get_settings
  - infrastructure.* (implementaciones)
  - application.* (servicios)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - El transporte HTTP y el Navigator son inyectables (tests / UI real).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import httpx

from .application.navigation import NavigationService, Navigator, RecordingNavigator
from .application.notification_center import NotificationCenter
from .application.session_manager import SessionManager
from .application.session_state import SessionState
from .application.sos_board import SOSBoard
from .audit import ViolationAuditor
from .crosscutting.config import Settings, get_settings
from .crosscutting.logger import logger
from .domain.repositories import KeyValueStore
from .infrastructure.http.api_client import ApiClient
from .infrastructure.repositories import InMemoryViolationRepository
from .infrastructure.services.retry import create_retry_decorator
from .infrastructure.storage import (
    CredentialStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)


def build_storage_backend(settings: Settings) -> KeyValueStore:
    """JSON en disco si hay path configurado; memoria en caso contrario."""
    if settings.credential_store_path:
        return JsonFileKeyValueStore(settings.credential_store_path)
    return InMemoryKeyValueStore()


@dataclass
class ClientContainer:
    settings: Settings
    state: SessionState
    credentials: CredentialStore
    api: ApiClient
    violations: InMemoryViolationRepository
    auditor: ViolationAuditor
    navigator: Navigator
    session_manager: SessionManager
    navigation: NavigationService
    sos_board: SOSBoard
    notifications: NotificationCenter

    def polling_scope(self) -> "PollingScope":
        return PollingScope(self)

    async def aclose(self) -> None:
        await self.sos_board.aclose()
        await self.notifications.aclose()
        await self.api.aclose()


def build_container(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    navigator: Navigator | None = None,
    storage: KeyValueStore | None = None,
    on_notice: Callable[[str], None] | None = None,
) -> ClientContainer:
    settings = settings or get_settings()

    state = SessionState()
    credentials = CredentialStore(storage or build_storage_backend(settings))
    api = ApiClient(
        base_url=settings.api_base_url,
        token_provider=lambda: state.token,
        timeout_s=settings.http_timeout_seconds,
        transport=transport,
    )
    violations = InMemoryViolationRepository(
        max_violations=settings.violation_history_size,
        max_transitions=settings.state_history_size,
    )
    auditor = ViolationAuditor(violations)
    navigator = navigator or RecordingNavigator()

    session_manager = SessionManager(
        api=api,
        credentials=credentials,
        state=state,
        auditor=auditor,
        navigator=navigator,
        retry_decorator=create_retry_decorator(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        ),
    )
    # R: contrato global 401, cualquier subsistema que reciba 401 desmonta la sesión.
    api.set_unauthorized_handler(session_manager.handle_unauthorized)

    navigation = NavigationService(
        state=state,
        session_manager=session_manager,
        auditor=auditor,
        navigator=navigator,
    )
    sos_board = SOSBoard(
        api=api,
        interval_seconds=settings.sos_poll_interval_seconds,
        radius_km=settings.sos_radius_km,
        nearby_threshold_km=settings.sos_nearby_threshold_km,
        on_notice=on_notice,
    )
    notifications = NotificationCenter(
        api=api,
        interval_seconds=settings.notification_poll_interval_seconds,
        page_size=settings.notification_page_size,
        on_notice=on_notice,
    )

    logger.info(
        "Client container built",
        extra={"api_base_url": settings.api_base_url, "app_env": settings.app_env},
    )
    return ClientContainer(
        settings=settings,
        state=state,
        credentials=credentials,
        api=api,
        violations=violations,
        auditor=auditor,
        navigator=navigator,
        session_manager=session_manager,
        navigation=navigation,
        sos_board=sos_board,
        notifications=notifications,
    )


class PollingScope:
    """
    Contexto dueño de los pollers de una sesión.

    - Al entrar (o en sync()) arranca los pollers que la sesión habilita.
    - Ante cualquier teardown de sesión detiene todos y limpia los badges.
    - Al salir detiene todos y espera su cierre.
    """

    def __init__(self, container: ClientContainer) -> None:
        self._container = container
        self._unsubscribe: Callable[[], None] | None = None

    async def __aenter__(self) -> "PollingScope":
        self._unsubscribe = self._container.session_manager.on_teardown(self._on_teardown)
        self.sync()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._container.sos_board.aclose()
        await self._container.notifications.aclose()

    def sync(self) -> None:
        """Arranca / detiene pollers según la sesión actual (idempotente)."""
        user = self._container.state.user
        if user is None:
            self.stop_all()
            return

        self._container.notifications.start()
        if SOSBoard.should_run(user):
            self._container.sos_board.start()
        else:
            self._container.sos_board.stop()

    def stop_all(self) -> None:
        self._container.sos_board.stop()
        self._container.notifications.stop()

    def _on_teardown(self, action: str) -> None:
        self.stop_all()
        self._container.sos_board.reset()
        self._container.notifications.reset()
        logger.info("Pollers stopped after session teardown", extra={"action": action})
