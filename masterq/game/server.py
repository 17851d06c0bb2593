"""Info query against a single game server."""

from __future__ import annotations

import logging
from typing import Any

from masterq.config import get_game_config
from masterq.master.server import split_host_port
from masterq.protocol.packets import (
    decode_challenge_reply,
    decode_info_reply,
    encode_info_request,
    is_challenge_reply,
)
from masterq.transport.udp_socket import GameServerSocket
from masterq.utils.exceptions import ProtocolError, QueryTimeoutError
from masterq.utils.logging_config import LoggingContext

DEFAULT_GAME_PORT = 27015

# Servers answer with a fresh challenge at most once per request in practice
MAX_CHALLENGES = 3


class GameServer:
    """A game server answering A2S_INFO queries."""

    def __init__(
        self,
        host: str,
        port: int | None = None,
        retries: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize the game server.

        Args:
            host: Hostname or IPv4 address, optionally as ``"host:port"``
            port: Query port, defaults to the port in ``host`` or 27015
            retries: Sends per request before giving up
            timeout: Seconds to wait for each reply

        """
        if port is None:
            host, port = split_host_port(host, DEFAULT_GAME_PORT)
        self.host = host
        self.port = port
        self.retries = retries
        self.timeout = timeout
        self.socket = GameServerSocket(host, port)
        self.challenge: int | None = None
        self.logger = logging.getLogger(__name__)

    def __repr__(self) -> str:
        """Return a short description."""
        return f"GameServer({self.host}:{self.port})"

    async def start(self) -> None:
        """Resolve the host and open the socket."""
        await self.socket.start()

    async def stop(self) -> None:
        """Close the socket."""
        await self.socket.stop()

    async def __aenter__(self) -> GameServer:
        """Start on entering ``async with``."""
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        """Stop on leaving ``async with``."""
        await self.stop()

    async def query_info(self) -> bytes:
        """Send A2S_INFO and return the raw S2A_INFO payload.

        A server that answers with S2C_CHALLENGE is asked again with the
        challenge attached. The last challenge is remembered for later queries.

        Returns:
            The info payload after the kind byte, uninterpreted

        Raises:
            QueryTimeoutError: If no reply arrived within the retry budget
            ProtocolError: If the server keeps answering with challenges or
                sends something other than an info reply

        """
        game = get_game_config() if self.retries is None or self.timeout is None else None
        retries = self.retries if self.retries is not None else game.retries
        timeout = self.timeout if self.timeout is not None else game.timeout

        if self.socket.transport is None:
            await self.socket.start()

        attempts = 0
        challenges = 0
        async with LoggingContext("info query", server=f"{self.host}:{self.port}"):
            while attempts < retries:
                attempts += 1
                await self.socket.send(encode_info_request(self.challenge))
                reply = await self.socket.receive(timeout)
                if reply is None:
                    self.logger.info(
                        "Info query to %s:%d timed out (%d/%d)",
                        self.host,
                        self.port,
                        attempts,
                        retries,
                    )
                    continue

                if is_challenge_reply(reply):
                    challenges += 1
                    if challenges > MAX_CHALLENGES:
                        msg = "Server keeps answering with a challenge"
                        raise ProtocolError(msg, {"server": f"{self.host}:{self.port}"})
                    self.challenge = decode_challenge_reply(reply)
                    self.logger.debug(
                        "Got challenge %#010x from %s:%d",
                        self.challenge,
                        self.host,
                        self.port,
                    )
                    # Answering a challenge is not a retry
                    attempts -= 1
                    continue

                return decode_info_reply(reply)

            msg = f"Game server {self.host}:{self.port} did not answer"
            raise QueryTimeoutError(msg, {"attempts": attempts})
