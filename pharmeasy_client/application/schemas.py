"""
===============================================================================
TARJETA CRC - application/schemas.py
===============================================================================

Módulo:
    Validación pre-flight de los formularios de autenticación

Responsabilidades:
    - Validar credenciales / perfil de registro / OTP ANTES de llamar al backend.
    - Producir el body camelCase que espera el backend.

Colaboradores:
    - pydantic (BaseModel + field_validator)
    - domain.entities.RoleId
    - application.session_manager (convierte errores a ValidationError)
===============================================================================
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.entities import RoleId

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_OTP_RE = re.compile(r"^\d{6}$")

MIN_PASSWORD_LENGTH = 8


def _normalize_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValueError("Please enter a valid email address")
    return email


class Credentials(BaseModel):
    """Request de login."""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        return _normalize_email(v)


class OtpSubmission(BaseModel):
    """Código de verificación de 6 dígitos."""

    email: str
    code: str

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("code")
    @classmethod
    def six_digits(cls, v: str) -> str:
        code = (v or "").strip()
        if not _OTP_RE.match(code):
            raise ValueError("The verification code must be 6 digits")
        return code


class EmailOnly(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        return _normalize_email(v)


class RegistrationProfile(BaseModel):
    """Perfil de alta (paciente o farmacia). ADMIN no se auto-registra."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    phone: str | None = None
    role_id: int = Field(..., alias="roleId")
    pharmacy_details: dict[str, Any] | None = Field(
        default=None, alias="pharmacyDetails"
    )

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()

    @field_validator("role_id")
    @classmethod
    def self_service_role(cls, v: int) -> int:
        if v not in (RoleId.PHARMACY, RoleId.PATIENT):
            raise ValueError("Only patient or pharmacy accounts can register")
        return int(v)

    def to_request_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def first_error_message(exc: Exception) -> str:
    """Primer mensaje legible de un pydantic.ValidationError."""
    errors = getattr(exc, "errors", None)
    if callable(errors):
        details = errors()
        if details:
            msg = str(details[0].get("msg") or "Invalid input")
            return msg.removeprefix("Value error, ")
    return str(exc)
