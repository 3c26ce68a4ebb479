"""
============================================================
TARJETA CRC - application/sos_board.py
============================================================
Class: SOSBoard

Responsibilities:
  - Poller de 30 s sobre GET /pharmacy/sos/nearby?radius=N.
  - Badge = cantidad de pedidos de la última respuesta (nunca acumulado).
  - Ordenar pedidos por distancia y contar los "cercanos" (< umbral km).
  - Responder un SOS (aceptar / rechazar) con update optimista y re-poll.

Collaborators:
  - application.polling.PollingEngine
  - application.optimistic.OptimisticStore
  - infrastructure.http.ApiClient
  - domain.entities.SOSRequest, User

Constraints:
  - Solo corre para una farmacia APROBADA (ver should_run).
============================================================
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from ..crosscutting.exceptions import ClientError, UnauthorizedError
from ..crosscutting.logger import logger
from ..domain.entities import PharmacyStatus, RoleId, SOSRequest, User
from ..infrastructure.http.api_client import ApiClient
from .optimistic import OptimisticStore
from .polling import PollingEngine

NEARBY_PATH = "/pharmacy/sos/nearby"


def respond_path(sos_id: str) -> str:
    return f"/pharmacy/sos/{sos_id}/respond"


@dataclass(frozen=True, slots=True)
class SOSBoardState:
    requests: tuple[SOSRequest, ...] = ()
    pharmacy_location: dict[str, Any] | None = None
    loaded: bool = False


def _distance_key(request: SOSRequest) -> tuple[bool, float]:
    # Sin distancia al final.
    return (request.distance is None, request.distance or 0.0)


def _parse_board(data: Any) -> SOSBoardState:
    raw: Any = data
    location = None
    if isinstance(data, Mapping):
        raw = data.get("sosRequests") or []
        location = data.get("pharmacy") if isinstance(data.get("pharmacy"), dict) else None
    if not isinstance(raw, list):
        raw = []
    requests = sorted(
        (SOSRequest.from_payload(item) for item in raw if isinstance(item, Mapping)),
        key=_distance_key,
    )
    return SOSBoardState(requests=tuple(requests), pharmacy_location=location, loaded=True)


class SOSBoard:
    def __init__(
        self,
        *,
        api: ApiClient,
        interval_seconds: float = 30.0,
        radius_km: float = 10.0,
        nearby_threshold_km: float = 5.0,
        on_notice: Callable[[str], None] | None = None,
        on_change: Callable[[SOSBoardState], None] | None = None,
    ) -> None:
        self._api = api
        self._radius_km = radius_km
        self._nearby_threshold_km = nearby_threshold_km
        self._on_notice = on_notice
        self.last_error: str | None = None
        self.store: OptimisticStore[SOSBoardState] = OptimisticStore(
            SOSBoardState(), name="sos", on_change=on_change
        )
        self.engine: PollingEngine[SOSBoardState] = PollingEngine(
            name="sos",
            interval_seconds=interval_seconds,
            fetch_fn=self.fetch_nearby,
            on_result=self.store.replace,
        )

    @staticmethod
    def should_run(user: User | None) -> bool:
        return (
            user is not None
            and user.role == RoleId.PHARMACY
            and user.pharmacy_status == PharmacyStatus.APPROVED
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def requests(self) -> tuple[SOSRequest, ...]:
        return self.store.value.requests

    @property
    def badge_count(self) -> int:
        return len(self.store.value.requests)

    @property
    def nearby_count(self) -> int:
        return sum(
            1
            for r in self.store.value.requests
            if r.distance is not None and r.distance < self._nearby_threshold_km
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.engine.start()

    def stop(self) -> None:
        self.engine.stop()

    async def aclose(self) -> None:
        await self.engine.aclose()

    def reset(self) -> None:
        self.store.replace(SOSBoardState())
        self.last_error = None

    # ------------------------------------------------------------------
    # Remote
    # ------------------------------------------------------------------

    async def fetch_nearby(self) -> SOSBoardState:
        data = await self._api.get(NEARBY_PATH, params={"radius": self._radius_km})
        return _parse_board(data)

    async def respond(self, sos_id: str, *, accept: bool, note: str = "") -> bool:
        """Acepta / rechaza un SOS. Devuelve False si se revirtió."""
        decision = "accepted" if accept else "rejected"

        def mutate(state: SOSBoardState) -> SOSBoardState:
            return replace(
                state,
                requests=tuple(
                    r.with_status(decision) if r.id == sos_id else r for r in state.requests
                ),
            )

        try:
            await self.store.run(
                mutate,
                lambda: self._api.post(
                    respond_path(sos_id), json={"response": decision, "note": note}
                ),
                label=f"respond:{sos_id}",
            )
        except UnauthorizedError:
            return False
        except ClientError as exc:
            self.last_error = f"Could not respond to the SOS request: {exc.message}"
            if self._on_notice is not None:
                self._on_notice(self.last_error)
            logger.warning(
                "SOS response rolled back",
                extra={"sos_id": sos_id, "error_code": exc.error_code},
            )
            self.engine.poll_now()
            return False

        self.last_error = None
        logger.info("SOS response sent", extra={"sos_id": sos_id, "decision": decision})
        self.engine.poll_now()
        return True
