"""
===============================================================================
TARJETA CRC - pharmeasy_client/audit.py (Auditoría de violaciones)
===============================================================================

Responsabilidades:
  - Registrar violaciones de navegación con formato consistente
    (ruta intentada + rol/status reales).
  - Detectar estados de autenticación incompletos (usuario sin id/email/rol).
  - Guardar un historial acotado de transiciones de sesión, sin tokens.
  - Exportar un reporte serializable para diagnóstico.
  - “Best-effort”: si falla el registro, NO rompe el flujo del caller.

Colaboradores:
  - domain.audit.ViolationRecord / StateTransitionRecord / ViolationType
  - domain.repositories.ViolationRepository
  - domain.navigation_policy (Route, RouteRequirement)
  - crosscutting.logger.logger

Decisiones de seguridad:
  - Los snapshots guardan id, rol y status; nunca tokens ni email.
  - Los details se sanitizan a valores serializables.
  - Nada de lo registrado acá participa en decisiones de ruteo.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from .crosscutting.logger import logger
from .domain.audit import StateTransitionRecord, ViolationRecord, ViolationType
from .domain.entities import Session, User
from .domain.navigation_policy import Route, RouteRequirement, requirement_for
from .domain.repositories import ViolationRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sanitize(value: Any) -> Any:
    """
    Convierte valores a tipos serializables para JSON.
    - primitives -> OK
    - dict/list/tuple -> sanitiza recursivamente
    - Enum -> su value
    - otros -> str(value)
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, dict):
        return {str(k): _sanitize(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_sanitize(v) for v in value]

    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, (str, int)):
        return enum_value

    return str(value)


def user_snapshot(user: User | None) -> dict[str, Any] | None:
    """Snapshot mínimo (sin PII innecesaria) de un usuario."""
    if user is None:
        return None
    return {"user_id": user.id, "role_id": user.role_id, "status": user.status}


def session_snapshot(session: Session | None) -> dict[str, Any] | None:
    """Snapshot de sesión sin token: solo si existe y a quién pertenece."""
    if session is None:
        return None
    return {
        "authenticated": True,
        "has_refresh_token": bool(session.refresh_token),
        "user": user_snapshot(session.user),
    }


class ViolationAuditor:
    """
    Registro append-only de violaciones y transiciones de sesión.

    Ningún método lanza: los errores del repositorio se loguean y se ignoran.
    """

    def __init__(
        self,
        repository: ViolationRepository,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    # ------------------------------------------------------------------
    # Violations
    # ------------------------------------------------------------------

    def record_violation(
        self, violation_type: ViolationType, details: dict[str, Any] | None = None
    ) -> ViolationRecord | None:
        record = ViolationRecord(
            timestamp=self._clock(),
            type=violation_type,
            details=_sanitize(details or {}),
        )
        try:
            self._repository.record_violation(record)
        except Exception as exc:
            logger.warning(
                "Failed to record violation",
                extra={"violation_type": violation_type.value, "error": str(exc)},
            )
            return None

        logger.warning(
            "Access violation recorded",
            extra={"violation_type": violation_type.value, "details": record.details},
        )
        return record

    def audit_navigation(
        self,
        user: User | None,
        route: Route,
        requirement: RouteRequirement | None = None,
    ) -> ViolationRecord | None:
        """
        Registra una navegación denegada.

        Clasificación:
          - sin usuario -> NAVIGATION_UNAUTHORIZED
          - rol distinto o farmacia no aprobada -> NAVIGATION_ROLE_MISMATCH
        """
        requirement = requirement or requirement_for(route)
        details: dict[str, Any] = {
            "attempted_route": route.value,
            "required_role": requirement.required_role,
            "requires_approved_pharmacy": requirement.requires_approved_pharmacy,
        }

        if user is None:
            return self.record_violation(ViolationType.NAVIGATION_UNAUTHORIZED, details)

        details.update(
            {
                "actual_role": user.role_id,
                "actual_status": user.status,
                "user_id": user.id,
            }
        )
        if requirement.required_role is not None and user.role != requirement.required_role:
            details["reason"] = "role_mismatch"
        else:
            details["reason"] = "pharmacy_not_approved"
        return self.record_violation(ViolationType.NAVIGATION_ROLE_MISMATCH, details)

    def audit_auth(self, user: User | None, action: str) -> bool:
        """
        Verifica que un usuario recién confirmado esté completo.

        Returns:
            True si el estado es consistente; False si se registró
            INCOMPLETE_AUTH_STATE.
        """
        if user is None:
            return True

        missing = [
            name
            for name, present in (
                ("id", bool(user.id)),
                ("email", bool(user.email)),
                ("role", user.role is not None),
            )
            if not present
        ]
        if not missing:
            return True

        self.record_violation(
            ViolationType.INCOMPLETE_AUTH_STATE,
            {"action": action, "missing": missing, "user": user_snapshot(user)},
        )
        return False

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    def record_transition(
        self,
        action: str,
        previous: Session | None,
        current: Session | None,
    ) -> None:
        record = StateTransitionRecord(
            timestamp=self._clock(),
            action=action,
            previous=session_snapshot(previous),
            current=session_snapshot(current),
        )
        try:
            self._repository.record_transition(record)
        except Exception as exc:
            logger.warning(
                "Failed to record session transition",
                extra={"action": action, "error": str(exc)},
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def violations(self) -> list[ViolationRecord]:
        return self._repository.list_violations()

    def history(self) -> list[StateTransitionRecord]:
        return self._repository.list_transitions()

    def clear(self) -> None:
        self._repository.clear()

    def export_report(self) -> dict[str, Any]:
        """Reporte JSON-serializable (violaciones + transiciones + resumen)."""
        violations = self.violations()
        summary: dict[str, int] = {}
        for record in violations:
            summary[record.type.value] = summary.get(record.type.value, 0) + 1

        return {
            "generated_at": self._clock().isoformat(),
            "summary": summary,
            "violations": [v.to_dict() for v in violations],
            "transitions": [t.to_dict() for t in self.history()],
        }
