"""
===============================================================================
TARJETA CRC - pharmeasy_client/context.py (Contexto por request / poller)
===============================================================================

Responsabilidades:
  - Mantener contexto de correlación usando ContextVars (async-safe).
  - Permitir que cada log lleve request_id / usuario / poller sin pasar
    parámetros por todo el stack.
  - Proveer helpers mínimos: set_*(), get_context_dict(), clear_context().

Colaboradores:
  - infrastructure.http.api_client: setea request_id por llamada HTTP.
  - application.session_manager: setea user_id/role_id al confirmar sesión.
  - application.polling: setea el nombre del poller dentro de cada tick.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

# Identificador de la llamada HTTP en curso.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Identidad de la sesión activa (nunca el token).
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
role_id_var: ContextVar[str] = ContextVar("role_id", default="")

# Nombre del poller que ejecuta el tick (sos / notifications).
poller_var: ContextVar[str] = ContextVar("poller", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_USER_ID: Final[str] = "user_id"
_CTX_ROLE_ID: Final[str] = "role_id"
_CTX_POLLER: Final[str] = "poller"


def set_request_context(*, request_id: str = "") -> None:
    request_id_var.set(request_id or "")


def set_session_context(*, user_id: str = "", role_id: str = "") -> None:
    """
    Setea la identidad de la sesión.

    Regla:
      - Strings vacíos significan “sin sesión”.
    """
    user_id_var.set(user_id or "")
    role_id_var.set(role_id or "")


def set_poller_context(*, poller: str = "") -> None:
    poller_var.set(poller or "")


def get_context_dict() -> dict[str, str]:
    """
    Devuelve el contexto actual como dict, omitiendo claves vacías.
    """
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := user_id_var.get():
        ctx[_CTX_USER_ID] = val
    if val := role_id_var.get():
        ctx[_CTX_ROLE_ID] = val
    if val := poller_var.get():
        ctx[_CTX_POLLER] = val

    return ctx


def clear_context() -> None:
    """
    Limpia el contexto (logout / teardown).
    """
    request_id_var.set("")
    user_id_var.set("")
    role_id_var.set("")
    poller_var.set("")
