# pharmeasy_client/crosscutting/exceptions.py
"""
===============================================================================
MÓDULO: Excepciones tipadas del cliente
===============================================================================

Objetivo
--------
Tener una taxonomía de errores coherente, con:
- error_code estable (lo consume la UI para decidir qué mostrar)
- error_id para correlación con logs
- message “humana” (sin filtrar secretos)
- status_code HTTP cuando el error vino del backend

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  ClientError + subclases

Responsabilidades:
  - Estandarizar errores de autenticación, red y validación
  - Generar error_id para rastreo

Colaboradores:
  - infrastructure/http/error_mapping.py (HTTP -> excepción)
  - application/session_manager.py (propaga errores de auth al caller)
  - application/polling.py (traga errores en el borde del poller)
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class ClientError(Exception):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      ClientError

    Responsabilidades:
      - Base para todos los errores del cliente
      - Proveer error_code + error_id + message (+ status_code)
    ----------------------------------------------------------------------------
    """

    error_code: str = "CLIENT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class AuthError(ClientError):
    """Base de los errores que la UI de autenticación muestra al usuario."""

    error_code: str = "AUTH_ERROR"


class InvalidCredentialsError(AuthError):
    error_code: str = "INVALID_CREDENTIALS"


class EmailNotVerifiedError(AuthError):
    """Login rechazado porque el email no pasó la verificación OTP.

    Lleva el email (y el user_id si el backend lo informa) para que el caller
    pueda retomar la pantalla de OTP.
    """

    error_code: str = "EMAIL_NOT_VERIFIED"

    def __init__(self, message: str, *, email: str, user_id: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.email = email
        self.user_id = user_id


class InvalidOtpError(AuthError):
    error_code: str = "INVALID_OTP"


class OtpExpiredError(AuthError):
    error_code: str = "OTP_EXPIRED"


class RateLimitedError(AuthError):
    """429 en endpoints sensibles; el mensaje siempre es legible por humanos."""

    error_code: str = "RATE_LIMITED"

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class UnauthorizedError(AuthError):
    """401 fuera de los endpoints de credenciales: la sesión ya no es válida."""

    error_code: str = "UNAUTHORIZED"


class ValidationError(AuthError):
    """Validación pre-flight en el cliente o 400/409/422 del backend."""

    error_code: str = "VALIDATION_ERROR"


class SessionSupersededError(AuthError):
    """La sesión cambió (logout / 401 / otro login) mientras se validaba."""

    error_code: str = "SESSION_SUPERSEDED"


class NetworkError(ClientError):
    """Timeout, conexión rechazada o respuesta ilegible."""

    error_code: str = "NETWORK_ERROR"


class StorageError(ClientError):
    """El almacenamiento local de credenciales no pudo escribirse."""

    error_code: str = "STORAGE_ERROR"


class ApiError(ClientError):
    """Cualquier otro non-2xx (404, 5xx, ...)."""

    error_code: str = "API_ERROR"
