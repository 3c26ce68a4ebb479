"""
===============================================================================
TARJETA CRC - domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la Capa de Dominio

Responsabilidades:
    - Centralizar exports para imports limpios en application/infrastructure.
    - Mantener estable el “surface area” del dominio.

Reglas:
    - Solo re-exporta contratos/entidades/policies del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .audit import StateTransitionRecord, ViolationRecord, ViolationType
from .entities import (
    NotificationItem,
    PendingRegistration,
    PharmacyStatus,
    RoleId,
    Session,
    SOSRequest,
    User,
)
from .navigation_policy import (
    ROUTE_REQUIREMENTS,
    Route,
    RouteRequirement,
    can_access,
    can_access_route,
    requirement_for,
    resolve_landing_route,
)
from .repositories import KeyValueStore, ViolationRepository

__all__ = [
    # Entities
    "User",
    "Session",
    "PendingRegistration",
    "RoleId",
    "PharmacyStatus",
    "SOSRequest",
    "NotificationItem",
    # Audit
    "ViolationRecord",
    "ViolationType",
    "StateTransitionRecord",
    # Navigation policy
    "Route",
    "RouteRequirement",
    "ROUTE_REQUIREMENTS",
    "resolve_landing_route",
    "can_access",
    "can_access_route",
    "requirement_for",
    # Ports
    "KeyValueStore",
    "ViolationRepository",
]
