"""UDP transports for master and game server queries."""

from __future__ import annotations

from masterq.transport.base import MasterTransport
from masterq.transport.udp_socket import (
    GameServerSocket,
    MasterServerSocket,
    UDPQueryProtocol,
    UDPSocket,
)

__all__ = [
    "GameServerSocket",
    "MasterServerSocket",
    "MasterTransport",
    "UDPQueryProtocol",
    "UDPSocket",
]
