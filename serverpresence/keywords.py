"""
Decodificador de keywords A2S_INFO.
Extrae la cola y la hora del juego del string de keywords (DayZ).
By Killerbite95
"""

from typing import Tuple

from .models import ServerInfo

QUEUE_MARKER = "lqs"
TIME_MARKER = ":"


def decode_keywords(keywords: str) -> Tuple[str, str]:
    """
    Extrae (queue, time) de un string de keywords separado por comas.

    Ejemplo: "battleye,lqs3,08:45" -> ("3", "08:45")

    Un valor vacío significa "no reportado" y es distinto de "0".
    Si varios tokens coinciden gana el último.
    """
    queue = ""
    time = ""
    if not keywords:
        return queue, time

    for token in keywords.split(","):
        if QUEUE_MARKER in token:
            queue = token.removeprefix(QUEUE_MARKER)
        if TIME_MARKER in token:
            time = token

    return queue, time


def apply_keywords(info: ServerInfo) -> ServerInfo:
    """Rellena info.queue e info.time desde info.keywords."""
    info.queue, info.time = decode_keywords(info.keywords)
    return info
