"""
============================================================
TARJETA CRC - application/session_state.py
============================================================
Class: SessionState / SessionWriter

Responsibilities:
  - Guardar la sesión viva en memoria (Session | None, nunca parcial).
  - Exponer lectura libre para cualquier componente (pollers, guard, API).
  - Entregar UN único escritor (claim_writer) al SessionManager.

Collaborators:
  - domain.entities.Session
  - application.session_manager (dueño del escritor)
  - infrastructure.http.api_client (lee el token)
  - application.navigation (lee el usuario)

Constraints:
  - Un solo escritor: claim_writer() falla si se llama dos veces.
  - swap() es sincrónico: no hay punto de suspensión entre la escritura
    durable y el reemplazo en memoria.
============================================================
"""

from __future__ import annotations

from ..domain.entities import Session, User


class SessionState:
    """Estado observable de la sesión (solo lectura para todos salvo el escritor)."""

    def __init__(self) -> None:
        self._session: Session | None = None
        self._writer: SessionWriter | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def token(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def claim_writer(self) -> "SessionWriter":
        if self._writer is not None:
            raise RuntimeError("SessionState writer already claimed")
        self._writer = SessionWriter(self)
        return self._writer


class SessionWriter:
    """Único handle con permiso para reemplazar la sesión."""

    __slots__ = ("_state",)

    def __init__(self, state: SessionState) -> None:
        self._state = state

    def swap(self, session: Session | None) -> Session | None:
        """Reemplaza la sesión y devuelve la anterior."""
        previous = self._state._session
        self._state._session = session
        return previous
