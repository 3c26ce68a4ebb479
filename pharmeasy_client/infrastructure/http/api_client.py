"""
============================================================
TARJETA CRC - infrastructure/http/api_client.py
============================================================
Class: ApiClient

Responsibilities:
  - Único punto de salida HTTP hacia el backend del marketplace.
  - Adjuntar el bearer token de la sesión vigente (o uno explícito durante
    la validación de bootstrap).
  - Desenvolver el envelope `{success, data, error}`.
  - Mapear non-2xx a la taxonomía tipada (error_mapping).
  - Contrato global 401: cualquier 401 fuera de los endpoints de credenciales
    dispara el handler de teardown ANTES de propagar el error, sin importar
    qué subsistema hizo la llamada.
  - Loguear cada llamada (feature/método/path/status/duración) sin secretos.

Collaborators:
  - httpx.AsyncClient (transporte; inyectable para tests)
  - infrastructure.http.error_mapping
  - application.session_state (token_provider)
  - application.session_manager.handle_unauthorized (on_unauthorized)
============================================================
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping
from uuid import uuid4

import httpx

from ...context import set_request_context
from ...crosscutting.exceptions import ApiError, NetworkError
from ...crosscutting.logger import logger
from .error_mapping import CREDENTIAL_EXCHANGE_PATHS, map_http_error

_USE_SESSION_TOKEN = object()


def _feature(path: str) -> str:
    parts = [p for p in path.split("/") if p]
    return (parts[0] if parts else "api").upper()


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ApiClient:
    """
    Cliente HTTP asíncrono del marketplace.

    El token NO se guarda acá: se lee en cada request desde token_provider,
    así una sesión reemplazada o destruida se refleja en la llamada siguiente.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token_provider: Callable[[], str | None],
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ):
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    def set_unauthorized_handler(self, handler: Callable[[], None] | None) -> None:
        self._on_unauthorized = handler

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    async def get(self, path: str, *, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, *, json: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def patch(self, path: str, *, json: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Mapping[str, Any] | None = None,
        token: Any = _USE_SESSION_TOKEN,
    ) -> Any:
        """
        Ejecuta la request y devuelve `data` del envelope.

        Raises:
            NetworkError: timeout / conexión / respuesta ilegible
            ClientError: subclase según error_mapping para non-2xx
        """
        bearer = self._token_provider() if token is _USE_SESSION_TOKEN else token
        request_id = uuid4().hex[:12]
        set_request_context(request_id=request_id)

        headers = {"X-Request-ID": request_id}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        feature = _feature(path)
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "API call timed out",
                extra={"feature": feature, "method": method, "path": path},
            )
            raise NetworkError("The server took too long to respond", original_error=exc) from exc
        except httpx.TransportError as exc:
            logger.warning(
                "API call failed at transport level",
                extra={"feature": feature, "method": method, "path": path, "error": str(exc)},
            )
            raise NetworkError("Unable to reach the server", original_error=exc) from exc

        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        payload = self._decode(response)

        if response.is_success:
            logger.debug(
                "API call succeeded",
                extra={
                    "feature": feature,
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            return self._unwrap(payload, response.status_code)

        logger.warning(
            "API call failed",
            extra={
                "feature": feature,
                "method": method,
                "path": path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        if response.status_code == 401 and path not in CREDENTIAL_EXCHANGE_PATHS:
            self._notify_unauthorized(path)

        raise map_http_error(
            response.status_code,
            payload,
            path=path,
            request_body=json,
            retry_after=_parse_retry_after(response),
        )

    def _notify_unauthorized(self, path: str) -> None:
        if self._on_unauthorized is None:
            return
        logger.info("401 received, tearing down session", extra={"path": path})
        self._on_unauthorized()

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            if response.is_success:
                raise NetworkError(
                    "The server returned an unreadable response",
                    status_code=response.status_code,
                )
            return None

    @staticmethod
    def _unwrap(payload: Any, status_code: int) -> Any:
        if not isinstance(payload, dict):
            return payload
        if payload.get("success") is False:
            raise ApiError(
                str(payload.get("message") or payload.get("error") or "Request failed"),
                status_code=status_code,
            )
        return payload.get("data", payload)
