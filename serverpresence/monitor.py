"""
Monitor de servidores para ServerPresence.
Un ServerMonitor por servidor consulta A2S_INFO en cada tick, cuenta los
fallos consecutivos y solo publica cuando cambia el estado visible.
By Killerbite95
"""

import asyncio
import functools
import logging
from typing import Callable, Dict, List, Optional, Tuple

from discord.ext import tasks

from .a2s import query, validate_address
from .exceptions import QueryError, ServerAlreadyExistsError, ServerNotFoundError
from .keywords import apply_keywords
from .models import (
    DisplayConfig,
    MonitorEvent,
    QueryState,
    ServerConfig,
    ServerEndpoint,
    ServerInfo
)
from .presence import PresencePublisher
from .status import format_status, resolve_period

logger = logging.getLogger("red.killerbite95.serverpresence.monitor")

SHUTDOWN_GRACE = 10.0

QueryFunc = Callable[[ServerEndpoint, float], ServerInfo]


class ServerMonitor:
    """
    Máquina de estados de polling para un servidor.

    Idle -> Querying -> {Success, Failure} -> Idle, con un tick por
    intervalo. Un fallo nunca detiene el loop; solo stop() lo termina.
    """

    def __init__(
        self,
        config: ServerConfig,
        display: DisplayConfig,
        publisher: PresencePublisher,
        query_func: QueryFunc = query
    ):
        self.config = config
        self.display = display
        self.publisher = publisher
        self.state = QueryState()
        self._query = query_func

        self.last_info: Optional[ServerInfo] = None
        self.last_text: Optional[str] = None
        self.skipped_ticks = 0

        self._inflight: Optional[asyncio.Task] = None
        self._loop: Optional[tasks.Loop] = None
        self._stopping = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def stop(self) -> None:
        """Detiene nuevos ticks; la query en curso termina sola."""
        self._stopping = True
        if self._loop is not None:
            # Cancela la espera entre ticks; el task de la query no es hijo del loop
            self._loop.cancel()

    async def run(self) -> None:
        """
        Loop principal del monitor.

        Raises:
            InvalidAddressError: Si la IP configurada no es válida
        """
        validate_address(self.config.endpoint.ip)
        if self._stopping:
            return

        self._loop = tasks.loop(seconds=self.config.update_interval)(self._iteration)
        self._loop.before_loop(self._before_loop)

        try:
            await self._loop.start()
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        finally:
            if self.in_flight:
                await asyncio.wait({self._inflight})
            await self.publisher.close()
            logger.info(f"Monitor de '{self.name}' detenido")

    async def _before_loop(self) -> None:
        """Prepara el publicador antes del primer tick."""
        await self.publisher.start()
        logger.info(
            f"Monitor de '{self.name}' iniciado "
            f"({self.config.endpoint.address}, cada {self.config.update_interval}s)"
        )

    async def _iteration(self) -> None:
        self.trigger()

    def trigger(self) -> bool:
        """
        Lanza un tick si no hay otra query en curso.

        Returns:
            False si el tick se descartó
        """
        if self.in_flight:
            self.skipped_ticks += 1
            logger.debug(f"Tick descartado para '{self.name}': query aún en curso")
            return False
        self._inflight = asyncio.create_task(self.tick())
        return True

    async def tick(self) -> Optional[MonitorEvent]:
        """
        Ejecuta una query y procesa su resultado.

        Returns:
            El evento emitido, o None si el tick fue silencioso
        """
        try:
            info = await asyncio.to_thread(
                self._query, self.config.endpoint, self.config.timeout
            )
        except QueryError as e:
            return await self._on_failure(e)
        except Exception as e:
            logger.error(f"Error inesperado consultando '{self.name}': {e!r}")
            return await self._on_failure(e)

        return await self._on_success(apply_keywords(info))

    async def _on_failure(self, error: Exception) -> Optional[MonitorEvent]:
        threshold = self.config.failure_threshold
        offline_due = self.state.record_failure(threshold)
        logger.warning(
            f"Query fallida para '{self.name}' ({self.config.endpoint.address}) "
            f"[{self.state.consecutive_failures}/{threshold}]: {error}"
        )
        if not offline_due:
            return None

        logger.warning(
            f"'{self.name}' lleva {self.state.consecutive_failures} fallos seguidos, marcando offline"
        )
        if await self._publish(self.display.offline_text, online=False):
            self.state.mark_offline_reported()
        return MonitorEvent.OFFLINE

    async def _on_success(self, info: ServerInfo) -> Optional[MonitorEvent]:
        self.last_info = info
        if not self.state.record_success(info.snapshot):
            logger.debug(f"Sin cambios para '{self.name}': {info.snapshot}")
            return None

        period = resolve_period(info.time, self.display.time_fallback)
        text = format_status(info, period, self.display.emojis)
        await self._publish(text, online=True)
        return MonitorEvent.PUBLISH

    async def _publish(self, text: str, online: bool) -> bool:
        try:
            await self.publisher.publish(text, online)
        except Exception as e:
            logger.error(f"No se pudo actualizar la presencia de '{self.name}': {e!r}")
            # Se reintenta en el siguiente tick
            self.state.forget_snapshot()
            return False

        self.last_text = text
        logger.info(f"Presencia de '{self.name}' actualizada: {text.strip()!r}")
        return True


class MonitorSupervisor:
    """Ejecuta un task por monitor y coordina el cierre ordenado."""

    def __init__(self):
        self._monitors: Dict[str, Tuple[ServerMonitor, asyncio.Task]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._monitors

    def __len__(self) -> int:
        return len(self._monitors)

    @property
    def names(self) -> List[str]:
        return list(self._monitors)

    def get(self, name: str) -> Optional[ServerMonitor]:
        entry = self._monitors.get(name)
        return entry[0] if entry else None

    def start(self, monitor: ServerMonitor) -> asyncio.Task:
        """
        Arranca el task de un monitor.

        Raises:
            ServerAlreadyExistsError: Si ya hay un monitor con ese nombre
        """
        if monitor.name in self._monitors:
            raise ServerAlreadyExistsError(monitor.name)

        task = asyncio.create_task(monitor.run())
        task.add_done_callback(functools.partial(self._on_task_done, monitor.name))
        self._monitors[monitor.name] = (monitor, task)
        return task

    def _on_task_done(self, name: str, task: asyncio.Task) -> None:
        entry = self._monitors.get(name)
        if entry is not None and entry[1] is task:
            del self._monitors[name]

        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"El monitor de '{name}' terminó con error: {exc!r}", exc_info=exc)

    async def stop(self, name: str, grace: float = SHUTDOWN_GRACE) -> bool:
        """
        Detiene un monitor y espera a que termine.

        Returns:
            False si se abandonó tras el periodo de gracia

        Raises:
            ServerNotFoundError: Si no hay monitor con ese nombre
        """
        entry = self._monitors.pop(name, None)
        if entry is None:
            raise ServerNotFoundError(name)

        monitor, task = entry
        monitor.stop()
        _, pending = await asyncio.wait({task}, timeout=grace)
        if pending:
            logger.warning(f"El monitor de '{name}' no terminó en {grace}s, se abandona")
            return False
        return True

    async def shutdown(self, grace: float = SHUTDOWN_GRACE) -> bool:
        """
        Detiene todos los monitores.

        Los tasks que no terminen dentro de grace se abandonan sin cancelarlos.

        Returns:
            True si todos terminaron a tiempo
        """
        entries = list(self._monitors.values())
        self._monitors.clear()
        if not entries:
            return True

        logger.info(f"Deteniendo {len(entries)} monitores...")
        for monitor, _ in entries:
            monitor.stop()

        _, pending = await asyncio.wait({task for _, task in entries}, timeout=grace)
        if pending:
            logger.warning(f"Cierre forzado tras {grace}s: {len(pending)} monitores abandonados")
            return False

        logger.info("Todos los monitores se detuvieron correctamente")
        return True
