"""
ServerPresence - Cog para Red Discord Bot
Muestra el estado de servidores de juego (A2S_INFO) en la presencia de Discord.
By Killerbite95

Versión: 1.0.0
Compatible con: Red-DiscordBot 3.5.0+
"""

import asyncio
import logging
import typing
from typing import Any, Dict, Optional

import discord
from redbot.core import commands, Config, checks
from redbot.core.bot import Red
from redbot.core.i18n import Translator, cog_i18n

from .a2s import query, validate_address
from .exceptions import QueryError, ServerNotFoundError, ServerPresenceError
from .keywords import apply_keywords
from .models import (
    DEFAULT_OFFLINE_TEXT,
    DEFAULT_UPDATE_INTERVAL,
    MIN_UPDATE_INTERVAL,
    DisplayConfig,
    Emojis,
    ServerConfig,
    ServerEndpoint,
    TimeFallback
)
from .monitor import SHUTDOWN_GRACE, MonitorSupervisor, ServerMonitor
from .presence import BotPresencePublisher, DedicatedClientPublisher, PresencePublisher
from .status import format_status, resolve_period

# Configuración de logging
logger = logging.getLogger("red.killerbite95.serverpresence")

# Internacionalización
_ = Translator("ServerPresence", __file__)


@cog_i18n(_)
class ServerPresence(commands.Cog):
    """Muestra jugadores, cola y hora de servidores de juego en la presencia de Discord. By Killerbite95"""

    __author__ = "Killerbite95"
    __version__ = "1.0.0"

    def __init__(self, bot: Red) -> None:
        self.bot: Red = bot
        self.config: Config = Config.get_conf(
            self,
            identifier=4250193817,
            force_registration=True
        )

        default_global: Dict[str, Any] = {
            "servers": {},
            "emojis": Emojis().to_dict(),
            "offline_text": DEFAULT_OFFLINE_TEXT,
            "time_fallback": TimeFallback.NIGHT.value
        }
        self.config.register_global(**default_global)

        self.supervisor: MonitorSupervisor = MonitorSupervisor()

    async def cog_load(self) -> None:
        """Se ejecuta cuando el cog se carga."""
        await self._start_all()

    async def cog_unload(self) -> None:
        """Limpieza al descargar el cog."""
        await self.supervisor.shutdown(SHUTDOWN_GRACE)

    async def red_delete_data_for_user(self, **kwargs) -> None:
        """Requerido por Red para GDPR compliance."""
        pass

    # ==================== Utilidades ====================

    async def _display_config(self) -> DisplayConfig:
        return DisplayConfig.from_dict(await self.config.all())

    def _build_publisher(self, server: ServerConfig) -> PresencePublisher:
        """Bot dedicado si el servidor tiene token, si no el propio bot de Red."""
        if server.token:
            return DedicatedClientPublisher(server.name, server.token)
        return BotPresencePublisher(self.bot)

    async def _load_server(self, name: str) -> ServerConfig:
        """
        Carga y valida la configuración de un servidor.

        Raises:
            ServerNotFoundError: Si no existe
            ConfigurationError: Si la configuración guardada es inválida
        """
        servers = await self.config.servers()
        data = servers.get(name)
        if data is None:
            raise ServerNotFoundError(name)
        server = ServerConfig.from_dict(name, data)
        server.validate()
        return server

    def _start_monitor(self, server: ServerConfig, display: DisplayConfig) -> None:
        monitor = ServerMonitor(server, display, self._build_publisher(server))
        self.supervisor.start(monitor)

    async def _start_all(self) -> None:
        """Arranca un monitor por cada servidor configurado."""
        servers = await self.config.servers()
        display = await self._display_config()

        shared = [name for name, data in servers.items() if not data.get("token")]
        if len(shared) > 1:
            logger.warning(
                f"{len(shared)} servidores sin token comparten la presencia del bot: {', '.join(shared)}"
            )

        for name in servers:
            try:
                server = await self._load_server(name)
            except ServerPresenceError as e:
                logger.error(f"Configuración inválida para '{name}': {e.message}")
                continue
            self._start_monitor(server, display)

        logger.info(f"{len(self.supervisor)} monitores iniciados")

    async def _restart_monitor(self, name: str) -> None:
        """Reinicia un monitor tras un cambio de configuración."""
        if name in self.supervisor:
            await self.supervisor.stop(name)

        try:
            server = await self._load_server(name)
        except ServerNotFoundError:
            return
        self._start_monitor(server, await self._display_config())

    async def _restart_all(self) -> None:
        await self.supervisor.shutdown(SHUTDOWN_GRACE)
        await self._start_all()

    async def _update_server(self, ctx: commands.Context, name: str, **changes: Any) -> bool:
        """
        Aplica cambios a un servidor, valida y reinicia su monitor.

        Returns:
            True si los cambios se guardaron
        """
        async with self.config.servers() as servers:
            data = servers.get(name)
            if data is None:
                await ctx.send(_("❌ No se encontró el servidor **{}**.").format(name))
                return False

            updated = {**data, **changes}
            try:
                ServerConfig.from_dict(name, updated).validate()
            except ServerPresenceError as e:
                await ctx.send(_("❌ {}").format(e.message))
                return False

            servers[name] = updated

        await self._restart_monitor(name)
        return True

    # ==================== Comandos ====================

    @commands.group(name="serverpresence", aliases=["spres"])
    async def serverpresence(self, ctx: commands.Context) -> None:
        """Shows game server status (A2S_INFO) as Discord presence."""

    @serverpresence.command(name="add")
    @checks.is_owner()
    async def sp_add(
        self,
        ctx: commands.Context,
        name: str,
        ip: str,
        query_port: int,
        game_port: typing.Optional[int] = None,
        interval: int = DEFAULT_UPDATE_INTERVAL,
    ) -> None:
        """
        Adds a server to monitor.

        **Usage:**
        `[p]serverpresence add <name> <ip> <query_port> [game_port] [interval]`

        Example: `[p]serverpresence add Chernarus 1.2.3.4 27016 2302 30`
        """
        try:
            validate_address(ip)
            server = ServerConfig(
                name=name,
                endpoint=ServerEndpoint(ip=ip, query_port=query_port),
                game_port=game_port,
                update_interval=interval
            )
            server.validate()
        except ServerPresenceError as e:
            await ctx.send(_("❌ {}").format(e.message))
            return

        async with self.config.servers() as servers:
            if name in servers:
                await ctx.send(_("❌ El servidor **{}** ya está siendo monitoreado.").format(name))
                return
            servers[name] = server.to_dict()

        await ctx.send(
            _("✅ Servidor **{}** ({}) añadido. Actualización cada **{}** segundos.").format(
                name, server.display_address, interval
            )
        )
        await self._restart_monitor(name)

    @serverpresence.command(name="remove")
    @checks.is_owner()
    async def sp_remove(self, ctx: commands.Context, name: str) -> None:
        """
        Removes a server from monitoring.

        Example: `[p]serverpresence remove Chernarus`
        """
        async with self.config.servers() as servers:
            if name not in servers:
                await ctx.send(_("❌ No se encontró el servidor **{}**.").format(name))
                return
            del servers[name]

        if name in self.supervisor:
            await self.supervisor.stop(name)
        await ctx.send(_("✅ Servidor **{}** eliminado del monitoreo.").format(name))

    @serverpresence.command(name="interval")
    @checks.is_owner()
    async def sp_interval(self, ctx: commands.Context, name: str, seconds: int) -> None:
        """
        Sets the refresh interval of a server in seconds.

        Minimum: 5 seconds

        Example: `[p]serverpresence interval Chernarus 30`
        """
        if seconds < MIN_UPDATE_INTERVAL:
            await ctx.send(
                _("❌ El tiempo debe ser al menos {} segundos.").format(MIN_UPDATE_INTERVAL)
            )
            return
        if await self._update_server(ctx, name, update_interval=seconds):
            await ctx.send(
                _("✅ Tiempo de actualización de **{}** establecido en **{}** segundos.").format(name, seconds)
            )

    @serverpresence.command(name="threshold")
    @checks.is_owner()
    async def sp_threshold(self, ctx: commands.Context, name: str, failures: int) -> None:
        """
        Sets how many consecutive failed queries mark a server offline.

        Example: `[p]serverpresence threshold Chernarus 5`
        """
        if await self._update_server(ctx, name, failure_threshold=failures):
            await ctx.send(
                _("✅ **{}** se mostrará offline tras **{}** fallos seguidos.").format(name, failures)
            )

    @serverpresence.command(name="timeout")
    @checks.is_owner()
    async def sp_timeout(self, ctx: commands.Context, name: str, seconds: float) -> None:
        """
        Sets the UDP query timeout of a server in seconds.

        Example: `[p]serverpresence timeout Chernarus 3`
        """
        if await self._update_server(ctx, name, timeout=seconds):
            await ctx.send(_("✅ Timeout de **{}** establecido en **{}**s.").format(name, seconds))

    @serverpresence.command(name="token")
    @checks.is_owner()
    async def sp_token(self, ctx: commands.Context, name: str, token: Optional[str] = None) -> None:
        """
        Sets a dedicated Discord bot token for a server.

        Without a token, the server uses this bot's own presence.
        The command message is deleted to avoid leaking the token.

        Example: `[p]serverpresence token Chernarus <token>`
        """
        if token is not None:
            try:
                await ctx.message.delete()
            except discord.HTTPException as e:
                logger.warning(f"No se pudo borrar el mensaje con el token de '{name}': {e}")

        if await self._update_server(ctx, name, token=token):
            if token:
                await ctx.send(_("✅ **{}** usará un bot dedicado.").format(name))
            else:
                await ctx.send(_("✅ **{}** usará la presencia de este bot.").format(name))

    @serverpresence.command(name="emojis")
    @checks.is_owner()
    async def sp_emojis(self, ctx: commands.Context, human: str, day: str, night: str) -> None:
        """
        Sets the emojis used for players, day and night.

        Example: `[p]serverpresence emojis 👤 ☀️ 🌙`
        """
        await self.config.emojis.set(Emojis(human=human, day=day, night=night).to_dict())
        await self._restart_all()
        await ctx.send(_("✅ Emojis actualizados: {} {} {}").format(human, day, night))

    @serverpresence.command(name="offline")
    @checks.is_owner()
    async def sp_offline(self, ctx: commands.Context, *, text: str) -> None:
        """
        Sets the text shown while a server is offline.

        Example: `[p]serverpresence offline Server offline`
        """
        if not text.strip():
            await ctx.send(_("❌ El texto de offline no puede estar vacío."))
            return
        await self.config.offline_text.set(text.strip())
        await self._restart_all()
        await ctx.send(_("✅ Texto de offline establecido: {}").format(text.strip()))

    @serverpresence.command(name="timefallback")
    @checks.is_owner()
    async def sp_time_fallback(self, ctx: commands.Context, mode: str) -> None:
        """
        Sets what to show when the in-game time cannot be parsed.

        Modes: `night` (default), `day`, `hide`

        Example: `[p]serverpresence timefallback hide`
        """
        fallback = TimeFallback.from_string(mode)
        if fallback is None:
            await ctx.send(
                _("❌ Modo '{}' no válido. Disponibles: {}").format(mode, ", ".join(TimeFallback.choices()))
            )
            return
        await self.config.time_fallback.set(fallback.value)
        await self._restart_all()
        await ctx.send(_("✅ Fallback de hora establecido en **{}**.").format(fallback.value))

    @serverpresence.command(name="list")
    async def sp_list(self, ctx: commands.Context) -> None:
        """Lists all monitored servers."""
        servers = await self.config.servers()

        if not servers:
            await ctx.send(_("📋 No hay servidores siendo monitoreados."))
            return

        embed = discord.Embed(
            title=_("📋 Servidores Monitoreados"),
            color=discord.Color.blue()
        )

        for name, data in servers.items():
            try:
                server = ServerConfig.from_dict(name, data)
            except ServerPresenceError as e:
                embed.add_field(name=f"⚠️ {name}", value=e.message, inline=False)
                continue

            value = (
                f"**{_('Address')}:** {server.display_address}\n"
                f"**{_('Query')}:** {server.endpoint.address}\n"
                f"**{_('Interval')}:** {server.update_interval}s | "
                f"**{_('Threshold')}:** {server.failure_threshold}\n"
                f"**{_('Presence')}:** {_('dedicated bot') if server.token else _('this bot')}"
            )

            monitor = self.supervisor.get(name)
            if monitor is None:
                value += f"\n**{_('Monitor')}:** {_('stopped')}"
            else:
                value += f"\n**{_('Failures')}:** {monitor.state.consecutive_failures}"
                if monitor.last_text:
                    value += f"\n**{_('Status')}:** {monitor.last_text.strip()}"

            embed.add_field(name=f"📡 {name}", value=value, inline=False)

        await ctx.send(embed=embed)

    @serverpresence.command(name="query")
    async def sp_query(self, ctx: commands.Context, name: str) -> None:
        """
        Queries a server once and shows the decoded reply.

        Example: `[p]serverpresence query Chernarus`
        """
        try:
            server = await self._load_server(name)
        except ServerPresenceError as e:
            await ctx.send(_("❌ {}").format(e.message))
            return

        async with ctx.typing():
            try:
                info = await asyncio.to_thread(query, server.endpoint, server.timeout)
            except QueryError as e:
                await ctx.send(_("🔴 **{}** no respondió: {}").format(name, e.message))
                return

        apply_keywords(info)
        display = await self._display_config()
        period = resolve_period(info.time, display.time_fallback)

        embed = discord.Embed(
            title=info.name or name,
            description=format_status(info, period, display.emojis).strip(),
            color=discord.Color.green()
        )
        embed.add_field(name=_("Map"), value=info.map or "N/A", inline=True)
        embed.add_field(name=_("Players"), value=info.player_display, inline=True)
        embed.add_field(name=_("Bots"), value=str(info.bots), inline=True)
        embed.add_field(name=_("Queue"), value=info.queue or "-", inline=True)
        embed.add_field(name=_("Time"), value=info.time or "-", inline=True)
        embed.add_field(name=_("Version"), value=info.version or "N/A", inline=True)
        embed.add_field(
            name=_("Password"),
            value=_("Sí") if info.is_passworded else _("No"),
            inline=True
        )
        if info.keywords:
            embed.add_field(name=_("Keywords"), value=f"`{info.keywords[:1000]}`", inline=False)
        embed.set_footer(text=f"{server.endpoint.address} | app {info.app_id} | EDF 0x{info.edf:02X}")

        await ctx.send(embed=embed)

    @serverpresence.command(name="restart")
    @checks.is_owner()
    async def sp_restart(self, ctx: commands.Context) -> None:
        """Restarts all server monitors."""
        await self._restart_all()
        await ctx.send(_("✅ {} monitores reiniciados.").format(len(self.supervisor)))

    @serverpresence.command(name="version")
    async def sp_version(self, ctx: commands.Context) -> None:
        """Shows the current ServerPresence cog version."""
        await ctx.send(_("🎮 **ServerPresence** v{version} by {author}").format(
            version=self.__version__,
            author=self.__author__
        ))
