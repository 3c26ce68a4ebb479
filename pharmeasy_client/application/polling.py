"""
============================================================
TARJETA CRC - application/polling.py
============================================================
Class: PollingEngine

Responsibilities:
  - Ejecutar fetch_fn con cadencia fija (referida al instante de arranque).
  - Garantizar a lo sumo UN fetch en vuelo: el tick que encuentra un fetch
    pendiente se descarta (no se encola).
  - Tragar y loguear errores del fetch sin alterar la agenda.
  - stop() sincrónico e idempotente: incrementa la generación (token de
    cancelación) y cancela scheduler + fetch en vuelo. Ningún on_result
    dispara después de stop().

Collaborators:
  - asyncio (event loop único)
  - context.set_poller_context (correlación en logs)
  - application.sos_board / application.notification_center (instancias)

Constraints:
  - on_result es sincrónico: aplica el resultado sin puntos de suspensión.
  - La generación se verifica justo antes de on_result.
============================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from ..context import set_poller_context
from ..crosscutting.logger import logger

T = TypeVar("T")


@dataclass
class PollingStats:
    """Contadores de diagnóstico del poller."""

    ticks: int = 0
    fetches: int = 0
    successes: int = 0
    failures: int = 0
    skipped_ticks: int = 0
    last_error: str | None = None


class PollingEngine(Generic[T]):
    def __init__(
        self,
        *,
        name: str,
        interval_seconds: float,
        fetch_fn: Callable[[], Awaitable[T]],
        on_result: Callable[[T], None],
        fire_immediately: bool = True,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")
        self.name = name
        self.interval_seconds = float(interval_seconds)
        self._fetch_fn = fetch_fn
        self._on_result = on_result
        self._on_error = on_error
        self._fire_immediately = fire_immediately

        self.stats = PollingStats()
        self._generation = 0
        self._scheduler: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._scheduler is not None and not self._scheduler.done()

    @property
    def generation(self) -> int:
        return self._generation

    def start(self) -> None:
        """Arranca el scheduler. Idempotente; requiere un loop corriendo."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._scheduler = loop.create_task(
            self._run(self._generation), name=f"poller:{self.name}"
        )
        logger.info(
            "Poller started",
            extra={"poller_name": self.name, "interval_seconds": self.interval_seconds},
        )

    def stop(self) -> None:
        """Detiene el poller. Sincrónico e idempotente."""
        was_running = self.running or self._inflight_pending()
        self._generation += 1

        current = asyncio.current_task() if _loop_running() else None
        for task in (self._scheduler, self._inflight):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._scheduler = None
        # R: un fetch que se detiene a sí mismo sigue en vuelo hasta retornar.
        if self._inflight is not current or not self._inflight_pending():
            self._inflight = None

        if was_running:
            logger.info("Poller stopped", extra={"poller_name": self.name})

    async def aclose(self) -> None:
        """stop() + espera a que las tareas canceladas terminen."""
        tasks = [
            t
            for t in (self._scheduler, self._inflight)
            if t is not None and t is not asyncio.current_task()
        ]
        self.stop()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def poll_now(self) -> bool:
        """Dispara un fetch inmediato si no hay uno en vuelo."""
        if not self.running:
            return False
        return self._launch_fetch(self._generation)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _inflight_pending(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def _run(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        interval = self.interval_seconds
        start = loop.time()
        slot = 0 if self._fire_immediately else 1

        while generation == self._generation:
            now = loop.time()
            due = start + slot * interval
            if now - due >= interval:
                # Loop bloqueado: se saltan los slots vencidos, sin ráfagas.
                missed = int((now - due) // interval)
                slot += missed
                self.stats.skipped_ticks += missed
                due = start + slot * interval

            delay = due - now
            if delay > 0:
                await asyncio.sleep(delay)
            if generation != self._generation:
                return

            self.stats.ticks += 1
            self._launch_fetch(generation)
            slot += 1

    def _launch_fetch(self, generation: int) -> bool:
        if self._inflight_pending():
            self.stats.skipped_ticks += 1
            logger.debug(
                "Tick skipped, fetch still in flight", extra={"poller_name": self.name}
            )
            return False
        self._inflight = asyncio.get_running_loop().create_task(
            self._fetch(generation), name=f"poller:{self.name}:fetch"
        )
        return True

    async def _fetch(self, generation: int) -> None:
        set_poller_context(poller=self.name)
        self.stats.fetches += 1
        try:
            result = await self._fetch_fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if generation != self._generation:
                return
            self.stats.failures += 1
            self.stats.last_error = str(exc)
            logger.warning(
                "Poll failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            if self._on_error is not None:
                self._call_handler(self._on_error, exc)
            return

        if generation != self._generation:
            return

        self.stats.successes += 1
        self._call_handler(self._on_result, result)

    def _call_handler(self, handler: Callable[[object], None], value: object) -> None:
        try:
            handler(value)
        except Exception:
            logger.exception("Poller handler failed")


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
