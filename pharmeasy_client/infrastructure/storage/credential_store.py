"""
============================================================
TARJETA CRC - infrastructure/storage/credential_store.py
============================================================
Class: CredentialStore

Responsibilities:
  - Envolver un KeyValueStore con accesos tipados para credenciales.
  - Persistir token + refresh token + usuario en una sola escritura.
  - Persistir / leer / borrar el marcador de registro pendiente (OTP).
  - Borrar TODAS las claves juntas en logout.

Collaborators:
  - domain.repositories.KeyValueStore
  - domain.entities.User, PendingRegistration
  - application.session_manager (único escritor)

Constraints:
  - Almacenamiento puro: cero política. Qué guardar y cuándo lo decide
    el SessionManager.
============================================================
"""

from __future__ import annotations

import json
from typing import Final

from ...crosscutting.logger import logger
from ...domain.entities import PendingRegistration, User
from ...domain.repositories import KeyValueStore

TOKEN_KEY: Final[str] = "token"
REFRESH_TOKEN_KEY: Final[str] = "refreshToken"
USER_KEY: Final[str] = "user"
PENDING_EMAIL_KEY: Final[str] = "pendingEmail"
PENDING_USER_ID_KEY: Final[str] = "pendingUserId"

SESSION_KEYS: Final[tuple[str, ...]] = (TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)
PENDING_KEYS: Final[tuple[str, ...]] = (PENDING_EMAIL_KEY, PENDING_USER_ID_KEY)
ALL_KEYS: Final[tuple[str, ...]] = SESSION_KEYS + PENDING_KEYS


class CredentialStore:
    """Accesos tipados sobre el almacenamiento durable de credenciales."""

    def __init__(self, backend: KeyValueStore) -> None:
        self._backend = backend

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def save_session(
        self, *, token: str, user: User, refresh_token: str | None = None
    ) -> None:
        values = {
            TOKEN_KEY: token,
            USER_KEY: json.dumps(user.to_payload(), ensure_ascii=False),
        }
        if refresh_token:
            values[REFRESH_TOKEN_KEY] = refresh_token
        self._backend.set_many(values)
        if not refresh_token:
            self._backend.delete_many([REFRESH_TOKEN_KEY])

    def load_token(self) -> str | None:
        return self._backend.get(TOKEN_KEY) or None

    def load_refresh_token(self) -> str | None:
        return self._backend.get(REFRESH_TOKEN_KEY) or None

    def load_user(self) -> User | None:
        """Usuario cacheado; NO implica sesión válida (ver SessionManager)."""
        raw = self._backend.get(USER_KEY)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored user is not valid JSON, ignoring it")
            return None
        if not isinstance(payload, dict):
            return None
        return User.from_payload(payload)

    def clear_all(self) -> None:
        self._backend.delete_many(list(ALL_KEYS))

    # ------------------------------------------------------------------
    # Pending registration (OTP)
    # ------------------------------------------------------------------

    def save_pending(self, pending: PendingRegistration) -> None:
        values = {PENDING_EMAIL_KEY: pending.email}
        if pending.user_id:
            values[PENDING_USER_ID_KEY] = pending.user_id
        self._backend.set_many(values)
        if not pending.user_id:
            self._backend.delete_many([PENDING_USER_ID_KEY])

    def load_pending(self) -> PendingRegistration | None:
        email = self._backend.get(PENDING_EMAIL_KEY)
        if not email:
            return None
        return PendingRegistration(
            email=email, user_id=self._backend.get(PENDING_USER_ID_KEY) or None
        )

    def clear_pending(self) -> None:
        self._backend.delete_many(list(PENDING_KEYS))
