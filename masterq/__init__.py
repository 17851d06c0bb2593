"""masterq - a client for the Valve master server directory protocol."""

from __future__ import annotations

__version__ = "0.1.0"

from masterq.address import SENTINEL, Region, ServerAddress
from masterq.game.server import GameServer
from masterq.master.fetcher import BatchFetcher
from masterq.master.server import MasterServer
from masterq.utils.exceptions import (
    InvalidArgumentError,
    MasterQueryError,
    ProtocolError,
    QueryTimeoutError,
    TransportError,
)

__all__ = [
    "SENTINEL",
    "BatchFetcher",
    "GameServer",
    "InvalidArgumentError",
    "MasterQueryError",
    "MasterServer",
    "ProtocolError",
    "QueryTimeoutError",
    "Region",
    "ServerAddress",
    "TransportError",
    "__version__",
]
