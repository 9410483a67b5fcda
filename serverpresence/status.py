"""
Clasificador día/noche y formateador del texto de presencia.
By Killerbite95
"""

import logging
import re
from typing import Optional

from .exceptions import InvalidTimeFormatError
from .models import DayPeriod, Emojis, ServerInfo, TimeFallback

logger = logging.getLogger("red.killerbite95.serverpresence.status")

DAY_START_HOUR = 6
NIGHT_START_HOUR = 20

HOUR_PATTERN = re.compile(r"[+-]?[0-9]+")


def classify_time(value: str) -> DayPeriod:
    """
    Clasifica una hora "HH:MM" del juego.

    Raises:
        InvalidTimeFormatError: Si la hora no es un entero
    """
    hour_part = value.split(":", 1)[0]
    # int() acepta espacios, "_" y dígitos no ASCII
    if not HOUR_PATTERN.fullmatch(hour_part):
        raise InvalidTimeFormatError(value)
    hour = int(hour_part)

    if DAY_START_HOUR <= hour < NIGHT_START_HOUR:
        return DayPeriod.DAY
    return DayPeriod.NIGHT


def is_day(value: str) -> bool:
    return classify_time(value) == DayPeriod.DAY


def resolve_period(value: str, fallback: TimeFallback) -> Optional[DayPeriod]:
    """
    Clasifica la hora aplicando el fallback configurado si no se puede leer.

    Returns:
        La franja, o None si no hay hora o el fallback es ocultarla
    """
    if not value:
        return None
    try:
        return classify_time(value)
    except InvalidTimeFormatError as e:
        logger.debug(f"{e.message} Usando fallback '{fallback.value}'")
        return fallback.period


def format_status(info: ServerInfo, period: Optional[DayPeriod], emojis: Emojis) -> str:
    """
    Construye el texto de presencia.

    Formato: " 👤 12/60 (+3) | ☀️ 08:45"
    """
    text = f" {emojis.human} {info.players}/{info.max_players}"

    if info.queue and info.queue != "0":
        text += f" (+{info.queue})"

    if info.time and period is not None:
        text += f" | {period.emoji(emojis)} {info.time}"

    return text
