"""
===============================================================================
TARJETA CRC - domain/audit.py
===============================================================================

Módulo:
    Modelos de Auditoría (Dominio)

Responsabilidades:
    - Definir ViolationRecord (acceso denegado o estado anómalo).
    - Definir StateTransitionRecord (historial de transiciones de sesión).
    - Mantener el contrato de auditoría independiente del almacenamiento.

Colaboradores:
    - domain.repositories.ViolationRepository: guarda y lista registros.
    - pharmeasy_client/audit.py: emite registros (orquestación).

Notas:
    - Auditoría es append-only y solo diagnóstica: nada de esto decide rutas.
    - details es flexible (dict) pero siempre serializable.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ViolationType(str, Enum):
    """Clases de violación registradas por el auditor."""

    NAVIGATION_UNAUTHORIZED = "NAVIGATION_UNAUTHORIZED"
    NAVIGATION_ROLE_MISMATCH = "NAVIGATION_ROLE_MISMATCH"
    INCOMPLETE_AUTH_STATE = "INCOMPLETE_AUTH_STATE"
    SESSION_REVOKED = "SESSION_REVOKED"


@dataclass(frozen=True, slots=True)
class ViolationRecord:
    """Intento de acceso denegado o transición anómala."""

    timestamp: datetime
    type: ViolationType
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "details": self.details,
        }


@dataclass(frozen=True, slots=True)
class StateTransitionRecord:
    """Transición de sesión con snapshots sanitizados (sin tokens)."""

    timestamp: datetime
    action: str
    previous: dict[str, Any] | None = None
    current: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "previous": self.previous,
            "current": self.current,
        }
