"""
ServerPresence - Cog para Red Discord Bot
Muestra el estado de servidores de juego en la presencia de Discord.

By Killerbite95

Estructura del paquete:
    - serverpresence.py: Cog principal con comandos y ciclo de vida
    - a2s.py: Cliente A2S_INFO (UDP) y decodificador binario
    - keywords.py: Cola y hora del juego desde las keywords
    - status.py: Clasificador día/noche y formateador de presencia
    - monitor.py: Monitor por servidor y supervisor de tasks
    - presence.py: Publicadores de presencia (patrón Strategy)
    - models.py: Dataclasses y Enums para estructuración de datos
    - exceptions.py: Excepciones personalizadas
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redbot.core.bot import Red

__all__ = ["setup"]
__version__ = "1.0.0"
__author__ = "Killerbite95"


async def setup(bot: "Red") -> None:
    """
    Función de setup requerida por Red-DiscordBot.

    Args:
        bot: Instancia del bot de Red
    """
    # Red solo se importa al cargar el cog
    from .serverpresence import ServerPresence

    cog = ServerPresence(bot)
    await bot.add_cog(cog)
