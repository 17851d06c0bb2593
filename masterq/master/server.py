"""Master server facade."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from masterq.address import SENTINEL, Region, ServerAddress, is_decimal
from masterq.master.fetcher import BatchFetcher
from masterq.models import SOURCE_MASTER_SERVER
from masterq.protocol.packets import BatchRequest, build_filter
from masterq.transport.udp_socket import MasterServerSocket
from masterq.utils.exceptions import InvalidArgumentError


def split_host_port(address: str, default_port: int | None = None) -> tuple[str, int]:
    """Split ``"host:port"`` into its parts.

    Args:
        address: Hostname or IPv4 address with an optional ``:port`` suffix
        default_port: Port to use when ``address`` has none

    Returns:
        Tuple of host and port

    """
    host, sep, port_str = address.rpartition(":")
    if not sep:
        host, port_str = address, ""
    if not port_str:
        if default_port is None:
            msg = f"Missing port in server address: {address!r}"
            raise InvalidArgumentError(msg)
        return host, default_port
    if not host or not is_decimal(port_str) or not 0 < int(port_str) <= 0xFFFF:
        msg = f"Invalid server address: {address!r}"
        raise InvalidArgumentError(msg)
    return host, int(port_str)


class MasterServer:
    """A master directory server listing game servers.

    Fetches on one instance run one after another; use separate instances to
    query in parallel.
    """

    def __init__(
        self,
        host: str = SOURCE_MASTER_SERVER,
        port: int | None = None,
        retries: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize the master server.

        Args:
            host: Hostname, optionally as ``"host:port"``
            port: Port, required unless ``host`` carries one
            retries: Send attempts per page, defaults to the configured value
            timeout: Seconds to wait for each reply, defaults to the configured value

        """
        if port is None:
            host, port = split_host_port(host)
        self.host = host
        self.port = port
        self.socket = MasterServerSocket(host, port)
        self.fetcher = BatchFetcher(self.socket, retries=retries, timeout=timeout)
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    def __repr__(self) -> str:
        """Return a short description."""
        return f"MasterServer({self.host}:{self.port})"

    async def start(self) -> None:
        """Resolve the master host and open the socket."""
        await self.socket.start()

    async def stop(self) -> None:
        """Close the socket."""
        await self.socket.stop()

    async def __aenter__(self) -> MasterServer:
        """Start on entering ``async with``."""
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        """Stop on leaving ``async with``."""
        await self.stop()

    async def get_servers(
        self,
        region: Region | int | str = Region.ALL,
        filter_: str | bytes | Mapping[str, str] = "",
        strict: bool = True,
    ) -> set[ServerAddress]:
        """Return every server registered for ``region`` matching ``filter_``.

        Region and filter are checked before the socket is started, which
        happens on first use if it is not open yet.

        Args:
            region: Region code or name
            filter_: Filter string or mapping of filter keys to values
            strict: Raise on an unanswered page instead of returning a partial list

        Returns:
            Set of server addresses

        """
        request = BatchRequest(region, SENTINEL, build_filter(filter_))
        async with self._lock:
            if self.socket.transport is None:
                await self.socket.start()
            self.logger.debug("Requesting servers from %r", self)
            return await self.fetcher.fetch_all(request.region, request.filter, strict)
