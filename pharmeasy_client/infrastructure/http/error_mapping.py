"""
===============================================================================
TARJETA CRC - infrastructure/http/error_mapping.py (HTTP -> excepción tipada)
===============================================================================

Responsabilidades:
  - Traducir respuestas non-2xx del backend a la taxonomía de errores del cliente.
  - Centralizar el mapeo para que ningún servicio interprete status codes a mano.
  - Producir mensajes humanos distintos para 429 en endpoints sensibles.

Reglas:
  - 401 en /auth/login => InvalidCredentialsError (credenciales malas).
  - 401 en cualquier otro endpoint => UnauthorizedError (sesión revocada).
  - 403 con code EMAIL_NOT_VERIFIED => EmailNotVerifiedError (retomar OTP).
  - 400 en /auth/verify-otp => InvalidOtpError u OtpExpiredError.
  - 429 => RateLimitedError con mensaje específico por endpoint.
  - 400/409/422 => ValidationError.
  - Resto => ApiError.

Colaboradores:
  - infrastructure.http.api_client (invoca map_http_error)
  - crosscutting.exceptions (taxonomía)
===============================================================================
"""

from __future__ import annotations

from typing import Any, Mapping

from ...crosscutting.exceptions import (
    ApiError,
    AuthError,
    ClientError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOtpError,
    OtpExpiredError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
VERIFY_OTP_PATH = "/auth/verify-otp"
RESEND_OTP_PATH = "/auth/resend-otp"
FORGOT_PASSWORD_PATH = "/auth/forgot-password"
REFRESH_PATH = "/auth/refresh"
LOGOUT_PATH = "/auth/logout"
ME_PATH = "/auth/me"

# R: en estos endpoints un 401 significa “input inválido”, no “sesión revocada”.
CREDENTIAL_EXCHANGE_PATHS: frozenset[str] = frozenset(
    {
        LOGIN_PATH,
        REGISTER_PATH,
        VERIFY_OTP_PATH,
        RESEND_OTP_PATH,
        FORGOT_PASSWORD_PATH,
        LOGOUT_PATH,
    }
)

_RATE_LIMIT_MESSAGES: dict[str, str] = {
    RESEND_OTP_PATH: (
        "Too many verification code requests. "
        "Please wait a few minutes before requesting a new code."
    ),
    FORGOT_PASSWORD_PATH: (
        "Too many password reset requests. "
        "Please wait a few minutes before trying again."
    ),
    LOGIN_PATH: "Too many login attempts. Please wait a few minutes and try again.",
    VERIFY_OTP_PATH: (
        "Too many verification attempts. Please wait a few minutes and try again."
    ),
}
_DEFAULT_RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."

_VALIDATION_STATUSES = frozenset({400, 409, 422})


def extract_error_message(payload: Any, default: str) -> str:
    """Mensaje del envelope (`error` string/objeto o `message`)."""
    if not isinstance(payload, Mapping):
        return default
    error = payload.get("error")
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error.strip():
        return error.strip()
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return default


def extract_error_code(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    code = payload.get("code")
    error = payload.get("error")
    if not code and isinstance(error, Mapping):
        code = error.get("code")
    return str(code).upper() if code else None


def _is_expired_otp(code: str | None, message: str) -> bool:
    if code == "OTP_EXPIRED":
        return True
    lowered = message.lower()
    # "Invalid or expired OTP" es ambiguo: se trata como inválido.
    return "expired" in lowered and "invalid" not in lowered


def map_http_error(
    status_code: int,
    payload: Any,
    *,
    path: str,
    request_body: Mapping[str, Any] | None = None,
    retry_after: float | None = None,
) -> ClientError:
    """Traduce un non-2xx a la excepción tipada correspondiente."""
    code = extract_error_code(payload)
    message = extract_error_message(payload, f"Request failed ({status_code})")

    if status_code == 429:
        return RateLimitedError(
            _RATE_LIMIT_MESSAGES.get(path, _DEFAULT_RATE_LIMIT_MESSAGE),
            status_code=status_code,
            retry_after=retry_after,
        )

    if code == "EMAIL_NOT_VERIFIED" or (
        path == LOGIN_PATH and status_code == 403 and "not verified" in message.lower()
    ):
        body = payload if isinstance(payload, Mapping) else {}
        data = body.get("data") if isinstance(body.get("data"), Mapping) else {}
        email = str(
            data.get("email")
            or body.get("email")
            or (request_body or {}).get("email")
            or ""
        )
        user_id = data.get("userId")
        return EmailNotVerifiedError(
            message,
            email=email,
            user_id=str(user_id) if user_id else None,
            status_code=status_code,
        )

    if status_code == 401:
        if path == LOGIN_PATH:
            return InvalidCredentialsError(
                extract_error_message(payload, "Invalid email or password"),
                status_code=status_code,
            )
        if path in CREDENTIAL_EXCHANGE_PATHS:
            return AuthError(message, status_code=status_code)
        return UnauthorizedError(
            extract_error_message(payload, "Your session has expired"),
            status_code=status_code,
        )

    if path == VERIFY_OTP_PATH and status_code in _VALIDATION_STATUSES:
        if _is_expired_otp(code, message):
            return OtpExpiredError(message, status_code=status_code)
        return InvalidOtpError(message, status_code=status_code)

    if status_code == 403 and path in CREDENTIAL_EXCHANGE_PATHS:
        return AuthError(message, status_code=status_code)

    if status_code in _VALIDATION_STATUSES:
        return ValidationError(message, status_code=status_code)

    return ApiError(message, status_code=status_code)
