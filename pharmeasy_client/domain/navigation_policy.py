"""
===============================================================================
TARJETA CRC - domain/navigation_policy.py
===============================================================================

Módulo:
    Política de Navegación (Status Router + Access Guard)

Responsabilidades:
    - Mapear un User a su ruta canónica de aterrizaje (resolve_landing_route).
    - Decidir si un User puede entrar a una ruta (can_access).
    - Ser la ÚNICA tabla de requisitos por ruta (ROUTE_REQUIREMENTS).
    - Ser 100% testeable: funciones puras, inputs explícitos, sin estado.

Colaboradores:
    - domain.entities.User, RoleId, PharmacyStatus
    - application.navigation: aplica la policy contra la sesión viva,
      audita denegaciones y redirige.
    - application.session_manager: calcula el landing route en cada
      login / verify / refresh.

Reglas (intención):
    - Sin usuario: solo rutas públicas.
    - Rol distinto: deny, salvo ADMIN sobre rutas que no son de farmacia.
    - Rutas operativas de farmacia exigen status APPROVED.
    - El router es total: cualquier combinación rol/status tiene destino.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .entities import PharmacyStatus, RoleId, User


class Route(str, Enum):
    """Rutas canónicas del cliente (el valor es el path)."""

    LANDING = "/"
    LOGIN = "/login"
    REGISTER = "/register"
    VERIFY_OTP = "/verify-otp"
    FORGOT_PASSWORD = "/forgot-password"
    RESET_PASSWORD = "/reset-password"

    ADMIN_DASHBOARD = "/admin/dashboard"
    ADMIN_USERS = "/admin/users"
    ADMIN_PHARMACIES = "/admin/pharmacies"
    ADMIN_LOGS = "/admin/logs"

    PATIENT_HOME = "/patient"
    PATIENT_ORDERS = "/patient/orders"
    PATIENT_PROFILE = "/patient/profile"
    PATIENT_SOS = "/sos"
    PATIENT_NOTIFICATIONS = "/notifications"

    PHARMACY_ONBOARDING = "/pharmacy/onboarding"
    PHARMACY_WAITING_APPROVAL = "/pharmacy/waiting-approval"
    PHARMACY_APPLICATION_REJECTED = "/pharmacy/application-rejected"
    PHARMACY_DASHBOARD = "/pharmacy/dashboard"
    PHARMACY_SOS_REQUESTS = "/pharmacy/sos"
    PHARMACY_INVENTORY = "/pharmacy/inventory"
    PHARMACY_ORDERS = "/pharmacy/orders"


@dataclass(frozen=True, slots=True)
class RouteRequirement:
    """Requisitos declarados por una ruta."""

    public: bool = False
    required_role: RoleId | None = None
    requires_approved_pharmacy: bool = False


PUBLIC = RouteRequirement(public=True)
_ADMIN = RouteRequirement(required_role=RoleId.ADMIN)
_PATIENT = RouteRequirement(required_role=RoleId.PATIENT)
_PHARMACY = RouteRequirement(required_role=RoleId.PHARMACY)
_APPROVED_PHARMACY = RouteRequirement(
    required_role=RoleId.PHARMACY, requires_approved_pharmacy=True
)

ROUTE_REQUIREMENTS: dict[Route, RouteRequirement] = {
    Route.LANDING: PUBLIC,
    Route.LOGIN: PUBLIC,
    Route.REGISTER: PUBLIC,
    Route.VERIFY_OTP: PUBLIC,
    Route.FORGOT_PASSWORD: PUBLIC,
    Route.RESET_PASSWORD: PUBLIC,
    Route.ADMIN_DASHBOARD: _ADMIN,
    Route.ADMIN_USERS: _ADMIN,
    Route.ADMIN_PHARMACIES: _ADMIN,
    Route.ADMIN_LOGS: _ADMIN,
    Route.PATIENT_HOME: _PATIENT,
    Route.PATIENT_ORDERS: _PATIENT,
    Route.PATIENT_PROFILE: _PATIENT,
    Route.PATIENT_SOS: _PATIENT,
    Route.PATIENT_NOTIFICATIONS: _PATIENT,
    Route.PHARMACY_ONBOARDING: _PHARMACY,
    Route.PHARMACY_WAITING_APPROVAL: _PHARMACY,
    Route.PHARMACY_APPLICATION_REJECTED: _PHARMACY,
    Route.PHARMACY_DASHBOARD: _APPROVED_PHARMACY,
    Route.PHARMACY_SOS_REQUESTS: _APPROVED_PHARMACY,
    Route.PHARMACY_INVENTORY: _APPROVED_PHARMACY,
    Route.PHARMACY_ORDERS: _APPROVED_PHARMACY,
}

_PHARMACY_LANDING: dict[PharmacyStatus, Route] = {
    PharmacyStatus.ONBOARDING_REQUIRED: Route.PHARMACY_ONBOARDING,
    PharmacyStatus.PENDING: Route.PHARMACY_WAITING_APPROVAL,
    PharmacyStatus.REJECTED: Route.PHARMACY_APPLICATION_REJECTED,
    PharmacyStatus.APPROVED: Route.PHARMACY_DASHBOARD,
}


def requirement_for(route: Route) -> RouteRequirement:
    """Requisito de una ruta; las no declaradas se tratan como protegidas."""
    return ROUTE_REQUIREMENTS.get(route, RouteRequirement())


def resolve_landing_route(user: User | None) -> Route:
    """Status Router: destino canónico para un usuario (o su ausencia).

    Total y determinista. Roles desconocidos caen en LANDING.
    """
    if user is None:
        return Route.LOGIN

    role = user.role
    if role == RoleId.ADMIN:
        return Route.ADMIN_DASHBOARD
    if role == RoleId.PATIENT:
        return Route.PATIENT_HOME
    if role == RoleId.PHARMACY:
        status = user.pharmacy_status
        if status is None:
            return Route.PHARMACY_ONBOARDING
        return _PHARMACY_LANDING[status]

    return Route.LANDING


def can_access(user: User | None, requirement: RouteRequirement) -> bool:
    """Access Guard: True si el usuario puede entrar a una ruta con ese requisito."""
    if requirement.public:
        return True

    if user is None:
        return False

    required = requirement.required_role
    if required is not None and user.role != required:
        # ADMIN puede ver pantallas de otros roles, nunca las de farmacia.
        if user.role != RoleId.ADMIN or required == RoleId.PHARMACY:
            return False

    if requirement.requires_approved_pharmacy:
        return user.pharmacy_status == PharmacyStatus.APPROVED

    return True


def can_access_route(user: User | None, route: Route) -> bool:
    return can_access(user, requirement_for(route))
