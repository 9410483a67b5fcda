"""
Shared fixtures for ServerPresence tests
"""

import socket
import struct
import threading

import pytest


def cstring(value: str) -> bytes:
    return value.encode("utf-8") + b"\x00"


def build_info_packet(
    name="DayZ Server",
    map_name="chernarusplus",
    folder="dayz",
    game="DayZ",
    app_id=240,
    players=12,
    max_players=60,
    bots=0,
    server_type=ord("d"),
    environment=ord("w"),
    visibility=0,
    vac=1,
    version="1.25.158593",
    protocol=0x11,
    header=b"\xFF\xFF\xFF\xFF",
    extra=b"",
):
    """Build an A2S_INFO reply: 4-byte header, fixed fields, optional trailer"""
    return (
        header
        + bytes([protocol])
        + cstring(name)
        + cstring(map_name)
        + cstring(folder)
        + cstring(game)
        + struct.pack("<H", app_id)
        + bytes([players, max_players, bots, server_type, environment, visibility, vac])
        + cstring(version)
        + extra
    )


@pytest.fixture
def info_packet():
    return build_info_packet


@pytest.fixture
def udp_responder():
    """Local UDP socket answering a single datagram with a canned reply"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(3)
    received = []
    threads = []

    def serve(reply):
        def run():
            try:
                data, addr = sock.recvfrom(2048)
            except OSError:
                return
            received.append(data)
            if reply is not None:
                sock.sendto(reply, addr)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        threads.append(thread)

    yield sock.getsockname()[1], serve, received

    for thread in threads:
        thread.join(timeout=5)
    sock.close()
