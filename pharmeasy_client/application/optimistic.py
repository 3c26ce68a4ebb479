"""
============================================================
TARJETA CRC - application/optimistic.py
============================================================
Class: OptimisticStore

Responsibilities:
  - Aplicar una mutación tentativa al estado local (fase 1).
  - Confirmarla o revertirla según el resultado remoto (fase 2).
  - Revertir SOLO la mutación fallida: el valor visible se recalcula como
    base confirmada + mutaciones pendientes, así un rollback no pisa otras
    mutaciones en vuelo ni una reconciliación del poller.

Collaborators:
  - application.notification_center (read / read-all)
  - application.sos_board (responder SOS)

Constraints:
  - El estado es inmutable y las mutaciones son funciones puras del estado
    (se re-aplican sobre cada nueva base).
============================================================
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from ..crosscutting.logger import logger

S = TypeVar("S")
R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class PendingChange(Generic[S]):
    """Mutación tentativa aún no confirmada por el backend."""

    id: int
    label: str
    mutate: Callable[[S], S]


class OptimisticStore(Generic[S]):
    """
    Valor visible = base confirmada + mutaciones pendientes (en orden).

    - replace()/reconcile() actualizan la base (datos del backend).
    - confirm() consolida la mutación en la base.
    - rollback() la descarta; las demás pendientes se re-aplican.
    """

    def __init__(
        self,
        initial: S,
        *,
        name: str = "store",
        on_change: Callable[[S], None] | None = None,
    ) -> None:
        self.name = name
        self._confirmed = initial
        self._value = initial
        self._on_change = on_change
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingChange[S]] = {}

    @property
    def value(self) -> S:
        return self._value

    @property
    def confirmed(self) -> S:
        return self._confirmed

    @property
    def pending(self) -> list[PendingChange[S]]:
        return list(self._pending.values())

    def replace(self, value: S) -> None:
        """Reconciliación completa con datos del backend (poller / fetch)."""
        self._confirmed = value
        self._rebuild()

    def reconcile(self, update: Callable[[S], S]) -> None:
        """Reconciliación parcial: `update` se aplica sobre la base confirmada."""
        self._confirmed = update(self._confirmed)
        self._rebuild()

    def apply(self, mutate: Callable[[S], S], *, label: str = "") -> PendingChange[S]:
        change = PendingChange(id=next(self._ids), label=label, mutate=mutate)
        self._pending[change.id] = change
        self._set(mutate(self._value))
        return change

    def confirm(self, change: PendingChange[S]) -> None:
        if self._pending.pop(change.id, None) is None:
            return
        self._confirmed = change.mutate(self._confirmed)
        self._rebuild()

    def rollback(self, change: PendingChange[S]) -> bool:
        """Descarta la mutación. False si ya no estaba pendiente."""
        if self._pending.pop(change.id, None) is None:
            return False
        self._rebuild()
        logger.debug(
            "Optimistic change rolled back",
            extra={"store": self.name, "change": change.label, "pending": len(self._pending)},
        )
        return True

    async def run(
        self,
        mutate: Callable[[S], S],
        commit: Callable[[], Awaitable[R]],
        *,
        label: str = "",
    ) -> R:
        """apply -> commit remoto -> confirm; ante error rollback y re-lanza."""
        change = self.apply(mutate, label=label)
        try:
            result = await commit()
        except BaseException:
            self.rollback(change)
            raise
        self.confirm(change)
        return result

    def _rebuild(self) -> None:
        value = self._confirmed
        for change in self._pending.values():
            value = change.mutate(value)
        self._set(value)

    def _set(self, value: S) -> None:
        changed = value != self._value
        self._value = value
        if changed and self._on_change is not None:
            self._on_change(value)
