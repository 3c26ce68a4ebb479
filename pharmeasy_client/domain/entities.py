"""
===============================================================================
TARJETA CRC - domain/entities.py
===============================================================================

Módulo:
    Entidades del cliente (identidad, sesión y modelos de lectura)

Responsabilidades:
    - Definir User / Session / PendingRegistration (estado de identidad).
    - Definir SOSRequest / NotificationItem (modelos de lectura del backend).
    - Traducir payloads del backend (camelCase, anidados o planos) a entidades.

Colaboradores:
    - domain.navigation_policy: decide rutas a partir de User.
    - application.session_manager: crea Session y PendingRegistration.
    - infrastructure.storage.credential_store: serializa User (to_payload).

Notas:
    - Todas las entidades son inmutables; los cambios son reemplazos.
    - role_id puede traer valores desconocidos: se preservan tal cual para que
      el router aplique su fallback, nunca se “corrigen”.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class RoleId(IntEnum):
    """Roles del marketplace (ids del backend)."""

    ADMIN = 1
    PHARMACY = 2
    PATIENT = 3


class PharmacyStatus(str, Enum):
    """Estados de onboarding de una farmacia (los maneja el backend)."""

    ONBOARDING_REQUIRED = "ONBOARDING_REQUIRED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class User:
    """Snapshot del usuario asociado a un token."""

    id: str
    email: str
    name: str
    role_id: int
    status: str | None = None
    pharmacy: dict[str, Any] | None = None

    @property
    def role(self) -> RoleId | None:
        try:
            return RoleId(self.role_id)
        except ValueError:
            return None

    @property
    def pharmacy_status(self) -> PharmacyStatus | None:
        """Estado de onboarding; None si no es farmacia o el valor es desconocido."""
        if self.role != RoleId.PHARMACY or not self.status:
            return None
        try:
            return PharmacyStatus(str(self.status).strip().upper())
        except ValueError:
            return None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "User":
        """Construye un User desde la respuesta del backend.

        Acepta tanto `{"user": {...}, "pharmacy": {...}}` como el formato plano
        del login (`{"userId": ..., "roleId": ...}`).
        """
        raw = payload.get("user") if isinstance(payload.get("user"), dict) else payload
        pharmacy = raw.get("pharmacy", payload.get("pharmacy"))

        first = str(raw.get("firstName") or "").strip()
        last = str(raw.get("lastName") or "").strip()
        name = raw.get("name") or " ".join(p for p in (first, last) if p)

        pharmacy = pharmacy if isinstance(pharmacy, dict) else None
        status = raw.get("status") or payload.get("status")
        if not status and pharmacy:
            status = pharmacy.get("verificationStatus")
        if not status and payload.get("needsOnboarding"):
            status = PharmacyStatus.ONBOARDING_REQUIRED.value

        role_id = _to_int(raw.get("roleId"))
        return cls(
            id=str(raw.get("id") or raw.get("userId") or ""),
            email=str(raw.get("email") or ""),
            name=str(name or ""),
            role_id=role_id if role_id is not None else 0,
            status=status or None,
            pharmacy=pharmacy,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "roleId": self.role_id,
            "status": self.status,
            "pharmacy": self.pharmacy,
        }


@dataclass(frozen=True, slots=True)
class Session:
    """Par atómico token + usuario. La ausencia de sesión es None."""

    token: str
    user: User
    refresh_token: str | None = None

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("Session requires a token")


@dataclass(frozen=True, slots=True)
class PendingRegistration:
    """Marcador durable para retomar la verificación OTP tras un reload."""

    email: str
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class SOSRequest:
    """Pedido de emergencia cercano a la farmacia autenticada."""

    id: str
    status: str
    distance: float | None = None
    created_at: datetime | None = None
    patient_name: str | None = None
    prescription_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_pending(self) -> bool:
        return self.status.lower() == "pending"

    def with_status(self, status: str) -> "SOSRequest":
        return replace(self, status=status)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SOSRequest":
        distance = payload.get("distance")
        try:
            distance = float(distance) if distance is not None else None
        except (TypeError, ValueError):
            distance = None
        patient = payload.get("patient") if isinstance(payload.get("patient"), dict) else {}
        return cls(
            id=str(payload.get("id") or ""),
            status=str(payload.get("status") or "pending"),
            distance=distance,
            created_at=_to_datetime(payload.get("createdAt")),
            patient_name=payload.get("patientName") or patient.get("name"),
            prescription_url=payload.get("prescriptionUrl"),
            raw=dict(payload),
        )


@dataclass(frozen=True, slots=True)
class NotificationItem:
    """Notificación del usuario (modelo de lectura)."""

    id: str
    type: str
    title: str
    is_read: bool = False
    priority: str = "normal"
    created_at: datetime | None = None
    link: str | None = None

    @property
    def is_high_priority(self) -> bool:
        return self.priority == "high" or self.type == "SOS_UPDATE"

    def mark_read(self) -> "NotificationItem":
        return replace(self, is_read=True)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NotificationItem":
        metadata = payload.get("metadata")
        link = metadata.get("link") if isinstance(metadata, dict) else None
        return cls(
            id=str(payload.get("id") or ""),
            type=str(payload.get("type") or "SYSTEM_MESSAGE"),
            title=str(payload.get("title") or payload.get("message") or ""),
            is_read=bool(payload.get("isRead", False)),
            priority=str(payload.get("priority") or "normal"),
            created_at=_to_datetime(payload.get("createdAt")),
            link=link,
        )
