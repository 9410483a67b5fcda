"""
Publicadores de presencia para ServerPresence.
Implementa el patrón Strategy: presencia del propio bot de Red o de un
cliente de Discord dedicado por servidor.
By Killerbite95
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import discord

from .exceptions import PresenceError

logger = logging.getLogger("red.killerbite95.serverpresence.presence")

READY_TIMEOUT = 30.0
CLOSE_TIMEOUT = 5.0


def build_presence(text: str, online: bool) -> Tuple[discord.Status, discord.CustomActivity]:
    """
    Traduce el texto de estado a status + actividad de Discord.

    Offline se muestra como "no molestar" con el texto de offline.
    """
    status = discord.Status.online if online else discord.Status.dnd
    return status, discord.CustomActivity(name=text)


class PresencePublisher(ABC):
    """Clase base abstracta para destinos de presencia."""

    async def start(self) -> None:
        """Prepara el destino antes del primer publish."""

    async def close(self) -> None:
        """Libera los recursos del destino."""

    @abstractmethod
    async def publish(self, text: str, online: bool) -> None:
        """
        Publica un texto de estado.

        Args:
            text: Texto ya formateado
            online: False cuando el servidor se considera offline
        """


class BotPresencePublisher(PresencePublisher):
    """Publica en la presencia del propio bot de Red."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def start(self) -> None:
        await self.bot.wait_until_ready()

    async def publish(self, text: str, online: bool) -> None:
        status, activity = build_presence(text, online)
        await self.bot.change_presence(status=status, activity=activity)


class DedicatedClientPublisher(PresencePublisher):
    """
    Publica con un cliente de Discord propio del servidor.

    Cada servidor monitoreado puede tener su bot con su token; el bot se
    renombra con el nombre del servidor en todos sus guilds.
    """

    def __init__(self, name: str, token: str, ready_timeout: float = READY_TIMEOUT):
        self.name = name
        self._token = token
        self._ready_timeout = ready_timeout
        intents = discord.Intents.none()
        intents.guilds = True
        self.client = discord.Client(intents=intents)
        self._runner: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """
        Inicia sesión y espera a que el cliente esté listo.

        Raises:
            discord.LoginFailure: Si el token es inválido
            PresenceError: Si el cliente no está listo a tiempo
        """
        self._runner = asyncio.create_task(self.client.start(self._token))
        ready = asyncio.create_task(self.client.wait_until_ready())

        done, _ = await asyncio.wait(
            {self._runner, ready},
            timeout=self._ready_timeout,
            return_when=asyncio.FIRST_COMPLETED
        )

        if ready not in done:
            ready.cancel()
            if self._runner in done:
                # Propaga el error de login
                self._runner.result()
            raise PresenceError(self.name, f"cliente no listo tras {self._ready_timeout}s")

        logger.info(f"Cliente de presencia para '{self.name}' conectado como {self.client.user}")
        await self._rename_in_guilds()

    async def _rename_in_guilds(self) -> None:
        for guild in self.client.guilds:
            if guild.me is None or guild.me.nick == self.name:
                continue
            try:
                await guild.me.edit(nick=self.name)
            except discord.HTTPException as e:
                logger.warning(f"No se pudo renombrar a '{self.name}' en {guild.name}: {e}")

    async def publish(self, text: str, online: bool) -> None:
        if self.client.is_closed() or not self.client.is_ready():
            raise PresenceError(self.name, "cliente desconectado")
        status, activity = build_presence(text, online)
        await self.client.change_presence(status=status, activity=activity)

    async def close(self) -> None:
        if not self.client.is_closed():
            await self.client.close()
        if self._runner is not None:
            await asyncio.wait({self._runner}, timeout=CLOSE_TIMEOUT)
            self._runner = None
