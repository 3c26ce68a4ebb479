"""
============================================================
TARJETA CRC - application/navigation.py
============================================================
Class: NavigationService (+ Navigator port)

Responsibilities:
  - Aplicar el Access Guard contra la sesión VIVA en cada navegación.
  - En denegación: auditar (ruta intentada + rol/status reales) y redirigir
    al destino del Status Router. Nunca una página de error.
  - Abandonar el registro pendiente al navegar a LOGIN / REGISTER.

Collaborators:
  - domain.navigation_policy (can_access, resolve_landing_route)
  - application.session_state (lectura de la sesión)
  - application.session_manager (abandon_pending_registration)
  - audit.ViolationAuditor
  - Navigator (adaptador de la UI: cambia la pantalla visible)

Constraints:
  - La decisión se toma con la sesión del momento; nunca se cachea.
============================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ..audit import ViolationAuditor
from ..crosscutting.logger import logger
from ..domain.navigation_policy import (
    Route,
    can_access,
    requirement_for,
    resolve_landing_route,
)
from .session_state import SessionState

if TYPE_CHECKING:
    from .session_manager import SessionManager


class Navigator(Protocol):
    """R: Puerto hacia la UI: muestra una ruta."""

    def go(self, route: Route) -> None:
        ...


class RecordingNavigator:
    """Navigator sin UI: recuerda la ruta actual y el historial."""

    def __init__(self, initial: Route | None = None) -> None:
        self.current: Route | None = initial
        self.history: list[Route] = [initial] if initial is not None else []

    def go(self, route: Route) -> None:
        self.current = route
        self.history.append(route)


@dataclass(frozen=True, slots=True)
class NavigationOutcome:
    """Resultado de un intento de navegación."""

    requested: Route
    route: Route
    allowed: bool


_REGISTRATION_EXIT_ROUTES = frozenset({Route.LOGIN, Route.REGISTER})


class NavigationService:
    def __init__(
        self,
        *,
        state: SessionState,
        session_manager: "SessionManager",
        auditor: ViolationAuditor,
        navigator: Navigator,
    ) -> None:
        self._state = state
        self._session_manager = session_manager
        self._auditor = auditor
        self._navigator = navigator

    def navigate(self, route: Route) -> NavigationOutcome:
        """
        Intenta mostrar `route`.

        Si el guard deniega, se registra la violación y se redirige a la ruta
        canónica del usuario actual.
        """
        user = self._state.user
        requirement = requirement_for(route)

        if can_access(user, requirement):
            if route in _REGISTRATION_EXIT_ROUTES:
                self._session_manager.abandon_pending_registration()
            self._navigator.go(route)
            return NavigationOutcome(requested=route, route=route, allowed=True)

        self._auditor.audit_navigation(user, route, requirement)
        destination = resolve_landing_route(user)
        logger.info(
            "Navigation denied, redirecting",
            extra={"attempted_route": route.value, "redirect_to": destination.value},
        )
        self._navigator.go(destination)
        return NavigationOutcome(requested=route, route=destination, allowed=False)

    def go_home(self) -> Route:
        """Navega al destino canónico del usuario actual."""
        destination = resolve_landing_route(self._state.user)
        self._navigator.go(destination)
        return destination
