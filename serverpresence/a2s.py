"""
Cliente A2S_INFO para ServerPresence.
Envía la query Source Engine por UDP y decodifica la respuesta.
By Killerbite95

Protocolo: https://developer.valvesoftware.com/wiki/Server_queries#A2S_INFO
"""

import ipaddress
import logging
import socket
import struct
from typing import Callable, Tuple, Union

from .exceptions import (
    InvalidAddressError,
    MalformedResponseError,
    NetworkError,
    OptionalFieldDecodeError,
    QueryTimeoutError
)
from .models import DEFAULT_TIMEOUT, ServerEndpoint, ServerInfo

logger = logging.getLogger("red.killerbite95.serverpresence.a2s")

A2S_INFO_REQUEST = b"\xFF\xFF\xFF\xFFTSource Engine Query\x00"
HEADER_SIZE = 4
MIN_RESPONSE_SIZE = 5
MAX_PACKET_SIZE = 1400

# Bits del Extra Data Flag
EDF_PORT = 0x80
EDF_STEAM_ID = 0x10
EDF_SOURCE_TV = 0x40
EDF_KEYWORDS = 0x20
EDF_GAME_ID = 0x01


class PacketReader:
    """Lector secuencial little-endian sobre el payload de una respuesta."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = data
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def _unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        if self.remaining < size:
            raise MalformedResponseError(
                f"se esperaban {size} bytes, quedan {max(self.remaining, 0)}",
                self.offset
            )
        (value,) = struct.unpack_from(fmt, self._data, self.offset)
        self.offset += size
        return value

    def read_byte(self) -> int:
        return self._unpack("<B")

    def read_uint16(self) -> int:
        return self._unpack("<H")

    def read_uint64(self) -> int:
        return self._unpack("<Q")

    def read_string(self) -> str:
        """Lee un string terminado en byte nulo."""
        end = self._data.find(b"\x00", self.offset)
        if end == -1:
            raise MalformedResponseError("string sin terminador nulo", self.offset)
        raw = self._data[self.offset:end]
        self.offset = end + 1
        return raw.decode("utf-8", errors="replace")


def _read_source_tv(reader: PacketReader) -> int:
    """Puerto de SourceTV; el nombre del espectador se descarta."""
    tv_port = reader.read_uint16()
    reader.read_string()
    return tv_port


# Orden fijo del protocolo, cada entrada consume su ancho antes de la siguiente
EXTRA_DATA_FIELDS: Tuple[Tuple[int, str, Callable[[PacketReader], Union[int, str]]], ...] = (
    (EDF_PORT, "port", PacketReader.read_uint16),
    (EDF_STEAM_ID, "steam_id", PacketReader.read_uint64),
    (EDF_SOURCE_TV, "tv_port", _read_source_tv),
    (EDF_KEYWORDS, "keywords", PacketReader.read_string),
    (EDF_GAME_ID, "game_id", PacketReader.read_uint64),
)


def decode_extra_data(reader: PacketReader, info: ServerInfo) -> None:
    """
    Lee el byte EDF y los campos opcionales que marca.

    Raises:
        OptionalFieldDecodeError: Si cualquier campo marcado está truncado
    """
    try:
        edf = reader.read_byte()
    except MalformedResponseError as e:
        raise OptionalFieldDecodeError("edf", e.reason, e.offset) from e
    info.edf = edf

    for flag, attr, decoder in EXTRA_DATA_FIELDS:
        if not edf & flag:
            continue
        try:
            setattr(info, attr, decoder(reader))
        except MalformedResponseError as e:
            raise OptionalFieldDecodeError(attr, e.reason, e.offset) from e


def decode_info(data: bytes) -> ServerInfo:
    """
    Decodifica una respuesta A2S_INFO.

    Los primeros 4 bytes de cabecera se saltan sin validar.

    Args:
        data: Datagrama recibido completo

    Returns:
        ServerInfo con los campos fijos y los opcionales presentes

    Raises:
        MalformedResponseError: Si la respuesta es corta o está truncada
    """
    if len(data) < MIN_RESPONSE_SIZE:
        raise MalformedResponseError(
            f"respuesta de {len(data)} bytes, mínimo {MIN_RESPONSE_SIZE}"
        )

    reader = PacketReader(data, HEADER_SIZE)
    info = ServerInfo()

    info.protocol = reader.read_byte()
    info.name = reader.read_string()
    info.map = reader.read_string()
    info.folder = reader.read_string()
    info.game = reader.read_string()
    info.app_id = reader.read_uint16()
    info.players = reader.read_byte()
    info.max_players = reader.read_byte()
    info.bots = reader.read_byte()
    info.server_type = reader.read_byte()
    info.environment = reader.read_byte()
    info.visibility = reader.read_byte()
    info.vac = reader.read_byte()
    info.version = reader.read_string()

    if reader.remaining > 0:
        decode_extra_data(reader, info)

    return info


def validate_address(host: str) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    """
    Valida que el host sea un literal IP.

    Raises:
        InvalidAddressError: Si no es una IP válida
    """
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        raise InvalidAddressError(host)


def query(endpoint: ServerEndpoint, timeout: float = DEFAULT_TIMEOUT) -> ServerInfo:
    """
    Realiza una query A2S_INFO bloqueante.

    Abre un socket UDP por llamada, envía la petición y espera una
    única respuesta.

    Args:
        endpoint: Servidor a consultar
        timeout: Plazo en segundos para enviar y recibir

    Returns:
        ServerInfo decodificado (sin los campos derivados de keywords)

    Raises:
        InvalidAddressError: Si la IP no es válida
        QueryTimeoutError: Si no llega respuesta a tiempo
        NetworkError: Si falla el socket
        MalformedResponseError: Si la respuesta no se puede decodificar
    """
    address = validate_address(endpoint.ip)
    family = socket.AF_INET6 if address.version == 6 else socket.AF_INET

    try:
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.settimeout(timeout)
            sock.connect((str(address), endpoint.query_port))
            sock.send(A2S_INFO_REQUEST)
            data = sock.recv(MAX_PACKET_SIZE)
    except socket.timeout as e:
        raise QueryTimeoutError(endpoint.ip, endpoint.query_port, timeout) from e
    except OSError as e:
        raise NetworkError(endpoint.ip, endpoint.query_port, str(e)) from e

    logger.debug(f"A2S_INFO de {endpoint.address}: {len(data)} bytes")
    return decode_info(data)
