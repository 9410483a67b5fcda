"""
Excepciones personalizadas para ServerPresence.
By Killerbite95
"""

from typing import Optional


class ServerPresenceError(Exception):
    """Excepción base para todos los errores del cog ServerPresence."""

    def __init__(self, message: str = "Error en ServerPresence"):
        self.message = message
        super().__init__(self.message)


class QueryError(ServerPresenceError):
    """
    Excepción base para errores en el camino de la query A2S_INFO.

    El monitor trata cualquier QueryError como un único fallo.
    """

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None
    ):
        self.host = host
        self.port = port
        super().__init__(message)


class InvalidAddressError(QueryError):
    """Se lanza cuando la IP del servidor no es un literal IP válido."""

    def __init__(self, host: str):
        super().__init__(f"Dirección IP inválida: {host!r}", host=host)


class NetworkError(QueryError):
    """Se lanza cuando falla el envío o la recepción por UDP."""

    def __init__(self, host: str, port: int, reason: Optional[str] = None):
        self.reason = reason
        message = f"Error de red al consultar {host}:{port}"
        if reason:
            message += f": {reason}"
        super().__init__(message, host=host, port=port)


class QueryTimeoutError(NetworkError):
    """Se lanza cuando el servidor no responde dentro del plazo."""

    def __init__(self, host: str, port: int, timeout: float):
        self.timeout = timeout
        super().__init__(host, port, f"timeout ({timeout}s)")


class MalformedResponseError(QueryError):
    """Se lanza cuando la respuesta no se puede decodificar."""

    def __init__(self, reason: str, offset: Optional[int] = None):
        self.reason = reason
        self.offset = offset
        message = f"Respuesta A2S_INFO malformada: {reason}"
        if offset is not None:
            message += f" (offset {offset})"
        super().__init__(message)


class OptionalFieldDecodeError(MalformedResponseError):
    """Se lanza cuando falla un campo opcional marcado en el byte EDF."""

    def __init__(self, field_name: str, reason: str, offset: Optional[int] = None):
        self.field_name = field_name
        super().__init__(f"campo opcional '{field_name}': {reason}", offset)


class InvalidTimeFormatError(ServerPresenceError):
    """Se lanza cuando la hora del juego no tiene formato HH:MM."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Hora inválida: {value!r}. Se esperaba HH:MM.")


class PresenceError(ServerPresenceError):
    """Se lanza cuando no se puede publicar la presencia en Discord."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Presencia de '{name}' no disponible: {reason}")


class InvalidPortError(ServerPresenceError):
    """Se lanza cuando se proporciona un puerto inválido."""

    def __init__(self, port: int):
        self.port = port
        message = f"Puerto inválido: {port}. Debe estar entre 1 y 65535."
        super().__init__(message)


class ServerNotFoundError(ServerPresenceError):
    """Se lanza cuando no se encuentra un servidor en la configuración."""

    def __init__(self, name: str):
        self.name = name
        message = f"Servidor '{name}' no encontrado en la configuración."
        super().__init__(message)


class ServerAlreadyExistsError(ServerPresenceError):
    """Se lanza cuando se intenta añadir un servidor que ya existe."""

    def __init__(self, name: str):
        self.name = name
        message = f"El servidor '{name}' ya está siendo monitoreado."
        super().__init__(message)


class ConfigurationError(ServerPresenceError):
    """Se lanza cuando hay un error en la configuración del cog."""

    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        message = f"Error de configuración en '{key}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
