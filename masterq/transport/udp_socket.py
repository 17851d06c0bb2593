"""Async UDP sockets for master and game server queries.

A socket is bound to one hostname. The hostname is resolved to all of its
IPv4 addresses when the socket starts; requests go to the current address and
:meth:`UDPSocket.rotate_address` moves on to the next one when the current
address stops answering.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any

from masterq.protocol.packets import (
    BatchReply,
    decode_batch_reply,
    frame_single,
    unframe_single,
)
from masterq.utils.exceptions import TransportError

# Error message constants
_ERROR_UDP_TRANSPORT_NOT_INITIALIZED = "UDP transport is not initialized"

# Large enough for any single Source-engine datagram
RECEIVE_QUEUE_SIZE = 64


class UDPQueryProtocol(asyncio.DatagramProtocol):
    """UDP protocol handler forwarding datagrams to its socket."""

    def __init__(self, owner: UDPSocket):
        """Initialize UDP protocol handler."""
        self.owner = owner

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        """Handle incoming UDP datagram."""
        self.owner.handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        """Handle UDP error."""
        self.owner.logger.debug("UDP error: %s", exc)


class UDPSocket:
    """Async UDP socket talking to one (possibly multi-homed) host."""

    def __init__(self, host: str, port: int):
        """Initialize UDP socket.

        Args:
            host: Hostname or IPv4 address of the remote end
            port: Remote port

        """
        self.host = host
        self.port = port

        # Resolved IPv4 addresses of ``host``, in resolver order
        self.addresses: list[str] = []
        self._address_index = 0
        self._rotations = 0

        self.transport: asyncio.DatagramTransport | None = None
        self.protocol: UDPQueryProtocol | None = None
        self._replies: asyncio.Queue[bytes] = asyncio.Queue(RECEIVE_QUEUE_SIZE)

        self.logger = logging.getLogger(__name__)

    @property
    def remote(self) -> tuple[str, int]:
        """Address requests are currently sent to."""
        if not self.addresses:
            raise TransportError(_ERROR_UDP_TRANSPORT_NOT_INITIALIZED)
        return self.addresses[self._address_index], self.port

    async def resolve(self) -> list[str]:
        """Resolve ``host`` to its IPv4 addresses."""
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(
                self.host,
                self.port,
                family=socket.AF_INET,
                type=socket.SOCK_DGRAM,
            )
        except OSError as e:
            msg = f"Could not resolve {self.host}"
            raise TransportError(msg, {"error": str(e)}) from e

        addresses: list[str] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            if sockaddr[0] not in addresses:
                addresses.append(sockaddr[0])
        if not addresses:
            msg = f"No IPv4 address found for {self.host}"
            raise TransportError(msg)

        self.addresses = addresses
        self._address_index = 0
        self._rotations = 0
        self.logger.debug(
            "Resolved %s to %s", self.host, ", ".join(self.addresses)
        )
        return addresses

    async def start(self) -> None:
        """Resolve the host and open the datagram endpoint."""
        if self.transport is not None and not self.transport.is_closing():
            return

        await self.resolve()
        # A queue binds to the first loop that waits on it
        self._replies = asyncio.Queue(RECEIVE_QUEUE_SIZE)
        loop = asyncio.get_running_loop()
        self.transport, self.protocol = await loop.create_datagram_endpoint(
            lambda: UDPQueryProtocol(self),
            local_addr=("0.0.0.0", 0),  # nosec B104 - ephemeral client port
        )
        self.logger.debug("UDP socket for %s:%d started", self.host, self.port)

    async def stop(self) -> None:
        """Close the datagram endpoint."""
        if self.transport is not None:
            self.transport.close()
            self.transport = None
            self.protocol = None
        self._drain()
        self.logger.debug("UDP socket for %s:%d stopped", self.host, self.port)

    async def __aenter__(self) -> UDPSocket:
        """Start the socket on entering ``async with``."""
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        """Stop the socket on leaving ``async with``."""
        await self.stop()

    def rotate_address(self) -> bool:
        """Switch to the next resolved address.

        Returns False once every address has been tried since the last
        reply was received, or if the host resolved to a single address.
        """
        if len(self.addresses) <= 1 or self._rotations >= len(self.addresses) - 1:
            return False
        self._address_index = (self._address_index + 1) % len(self.addresses)
        self._rotations += 1
        self.logger.info(
            "Switching %s to %s:%d", self.host, *self.remote
        )
        return True

    def reset_rotation(self) -> None:
        """Start a new rotation cycle from the current address."""
        self._rotations = 0

    def handle_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        """Queue a datagram received from the current remote address."""
        if self.addresses and addr[0] != self.addresses[self._address_index]:
            self.logger.debug("Ignoring datagram from %s:%d", addr[0], addr[1])
            return
        try:
            self._replies.put_nowait(data)
        except asyncio.QueueFull:
            self.logger.debug("Receive queue full, dropping datagram from %s", addr[0])

    def _drain(self) -> None:
        """Drop replies left over from earlier, abandoned exchanges."""
        while True:
            try:
                self._replies.get_nowait()
            except asyncio.QueueEmpty:
                return

    async def send_raw(self, data: bytes) -> None:
        """Send one datagram to the current remote address."""
        if self.transport is None or self.transport.is_closing():
            raise TransportError(_ERROR_UDP_TRANSPORT_NOT_INITIALIZED)
        self._drain()
        try:
            self.transport.sendto(data, self.remote)
        except OSError as e:
            msg = f"Failed to send to {self.host}"
            raise TransportError(msg, {"error": str(e)}) from e

    async def receive_raw(self, timeout: float) -> bytes | None:
        """Wait up to ``timeout`` seconds for the next datagram."""
        try:
            return await asyncio.wait_for(self._replies.get(), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.debug(
                "Timeout waiting for reply from %s:%d", *self.remote
            )
            return None


class MasterServerSocket(UDPSocket):
    """Socket speaking the master directory protocol."""

    async def send(self, data: bytes) -> None:
        """Send an encoded batch request (sent without framing)."""
        await self.send_raw(data)

    async def receive(self, timeout: float) -> BatchReply | None:
        """Wait for and decode the next page of servers."""
        data = await self.receive_raw(timeout)
        if data is None:
            return None
        reply = decode_batch_reply(unframe_single(data))
        self.reset_rotation()
        return reply


class GameServerSocket(UDPSocket):
    """Socket speaking the single-server query protocol."""

    async def send(self, data: bytes) -> None:
        """Send an encoded request wrapped in the single-packet marker."""
        await self.send_raw(frame_single(data))

    async def receive(self, timeout: float) -> bytes | None:
        """Wait for the next reply and return it without framing."""
        data = await self.receive_raw(timeout)
        if data is None:
            return None
        return unframe_single(data)
