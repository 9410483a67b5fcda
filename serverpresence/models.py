"""
Modelos de datos para ServerPresence.
Incluye Enums, dataclasses y estructuras de datos.
By Killerbite95
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Dict, Any, List, NamedTuple

from .exceptions import ConfigurationError, InvalidPortError

MIN_UPDATE_INTERVAL = 5
DEFAULT_UPDATE_INTERVAL = 60
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_TIMEOUT = 4.0
DEFAULT_OFFLINE_TEXT = "Server offline"


class DayPeriod(Enum):
    """Franja horaria del reloj del juego."""
    DAY = "day"
    NIGHT = "night"

    def emoji(self, emojis: "Emojis") -> str:
        """Retorna el emoji configurado para esta franja."""
        if self == DayPeriod.DAY:
            return emojis.day
        return emojis.night


class TimeFallback(Enum):
    """Qué hacer cuando la hora del juego no se puede interpretar."""
    NIGHT = "night"
    DAY = "day"
    HIDE = "hide"

    @property
    def period(self) -> Optional[DayPeriod]:
        """Franja a usar como fallback, None para ocultar la hora."""
        if self == TimeFallback.DAY:
            return DayPeriod.DAY
        if self == TimeFallback.NIGHT:
            return DayPeriod.NIGHT
        return None

    @classmethod
    def from_string(cls, value: str) -> Optional["TimeFallback"]:
        """Convierte un string al TimeFallback correspondiente."""
        value = value.lower().strip()
        for fallback in cls:
            if fallback.value == value:
                return fallback
        return None

    @classmethod
    def choices(cls) -> List[str]:
        return [fallback.value for fallback in cls]


class MonitorEvent(Enum):
    """Eventos que un tick del monitor puede emitir hacia la presencia."""
    PUBLISH = auto()
    OFFLINE = auto()


@dataclass(frozen=True)
class ServerEndpoint:
    """Identidad inmutable de un servidor monitoreado."""
    ip: str
    query_port: int

    def __post_init__(self) -> None:
        if not isinstance(self.query_port, int) or not 1 <= self.query_port <= 65535:
            raise InvalidPortError(self.query_port)

    @property
    def address(self) -> str:
        if ":" in self.ip:
            return f"[{self.ip}]:{self.query_port}"
        return f"{self.ip}:{self.query_port}"


class Snapshot(NamedTuple):
    """Último estado publicado: (players, queue, time)."""
    players: int
    queue: str
    time: str


@dataclass
class ServerInfo:
    """Respuesta A2S_INFO decodificada."""
    protocol: int = 0
    name: str = ""
    map: str = ""
    folder: str = ""
    game: str = ""
    app_id: int = 0
    players: int = 0
    max_players: int = 0
    bots: int = 0
    server_type: int = 0
    environment: int = 0
    visibility: int = 0
    vac: int = 0
    version: str = ""

    # Extra Data Flag y campos opcionales (valor cero si su bit no viene)
    edf: int = 0
    port: int = 0
    steam_id: int = 0
    tv_port: int = 0
    keywords: str = ""
    game_id: int = 0

    # Derivados de keywords, "" significa "no reportado"
    queue: str = ""
    time: str = ""

    @property
    def snapshot(self) -> Snapshot:
        return Snapshot(self.players, self.queue, self.time)

    @property
    def is_passworded(self) -> bool:
        return self.visibility == 1

    @property
    def player_display(self) -> str:
        """Retorna string formateado de jugadores."""
        return f"{self.players}/{self.max_players}"


@dataclass
class QueryState:
    """
    Estado de queries de un único monitor.

    Solo el monitor propietario lo modifica.
    """
    consecutive_failures: int = 0
    last_reported_snapshot: Optional[Snapshot] = None
    offline_pending: bool = False

    def record_failure(self, threshold: int) -> bool:
        """
        Registra un fallo.

        Returns:
            True si hay que publicar offline: en el tick en que la racha
            alcanza el umbral y en los siguientes hasta que se confirme
        """
        self.consecutive_failures += 1
        if self.consecutive_failures == threshold:
            # Tras mostrar offline, la primera respuesta debe volver a publicarse
            self.last_reported_snapshot = None
            self.offline_pending = True
        return self.offline_pending

    def mark_offline_reported(self) -> None:
        self.offline_pending = False

    def record_success(self, snapshot: Snapshot) -> bool:
        """
        Registra una query exitosa.

        Returns:
            True si el snapshot cambió y hay que publicarlo
        """
        self.consecutive_failures = 0
        self.offline_pending = False
        if snapshot == self.last_reported_snapshot:
            return False
        self.last_reported_snapshot = snapshot
        return True

    def forget_snapshot(self) -> None:
        self.last_reported_snapshot = None


@dataclass
class Emojis:
    """Emojis usados en el texto de presencia."""
    human: str = "👤"
    day: str = "☀️"
    night: str = "🌙"

    def to_dict(self) -> Dict[str, str]:
        return {"human": self.human, "day": self.day, "night": self.night}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Emojis":
        defaults = cls()
        return cls(
            human=data.get("human") or defaults.human,
            day=data.get("day") or defaults.day,
            night=data.get("night") or defaults.night
        )


@dataclass
class DisplayConfig:
    """Configuración de presentación compartida por todos los monitores."""
    emojis: Emojis = field(default_factory=Emojis)
    offline_text: str = DEFAULT_OFFLINE_TEXT
    time_fallback: TimeFallback = TimeFallback.NIGHT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisplayConfig":
        """Crea una instancia desde los valores globales de Config."""
        fallback = TimeFallback.from_string(data.get("time_fallback") or "")
        offline_text = (data.get("offline_text") or "").strip()
        return cls(
            emojis=Emojis.from_dict(data.get("emojis") or {}),
            offline_text=offline_text or DEFAULT_OFFLINE_TEXT,
            time_fallback=fallback or TimeFallback.NIGHT
        )


@dataclass
class ServerConfig:
    """Datos de configuración de un servidor monitoreado."""
    name: str
    endpoint: ServerEndpoint
    game_port: Optional[int] = None
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    timeout: float = DEFAULT_TIMEOUT
    token: Optional[str] = None

    @property
    def display_address(self) -> str:
        """IP con el puerto de juego si existe, si no el de query."""
        if self.game_port:
            return f"{self.endpoint.ip}:{self.game_port}"
        return self.endpoint.address

    def validate(self) -> None:
        """
        Valida la configuración.

        Raises:
            ConfigurationError: Si algún valor está fuera de rango
            InvalidPortError: Si el puerto de juego es inválido
        """
        if not self.name.strip():
            raise ConfigurationError("name", "el nombre no puede estar vacío")
        if self.update_interval < MIN_UPDATE_INTERVAL:
            raise ConfigurationError(
                "update_interval",
                f"debe ser al menos {MIN_UPDATE_INTERVAL} segundos para evitar rate limits"
            )
        if self.failure_threshold < 1:
            raise ConfigurationError("failure_threshold", "debe ser al menos 1")
        if self.timeout <= 0:
            raise ConfigurationError("timeout", "debe ser positivo")
        if self.game_port is not None and not 1 <= self.game_port <= 65535:
            raise InvalidPortError(self.game_port)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para almacenamiento en Config."""
        return {
            "ip": self.endpoint.ip,
            "query_port": self.endpoint.query_port,
            "game_port": self.game_port,
            "update_interval": self.update_interval,
            "failure_threshold": self.failure_threshold,
            "timeout": self.timeout,
            "token": self.token
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ServerConfig":
        """Crea una instancia desde un diccionario de Config."""
        try:
            endpoint = ServerEndpoint(ip=data["ip"], query_port=int(data["query_port"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"servers.{name}", f"endpoint inválido: {e!r}")

        return cls(
            name=name,
            endpoint=endpoint,
            game_port=data.get("game_port"),
            update_interval=data.get("update_interval", DEFAULT_UPDATE_INTERVAL),
            failure_threshold=data.get("failure_threshold", DEFAULT_FAILURE_THRESHOLD),
            timeout=data.get("timeout", DEFAULT_TIMEOUT),
            token=data.get("token")
        )
