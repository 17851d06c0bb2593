"""Unit tests for the asyncio UDP sockets.

Address rotation and datagram filtering are tested on unstarted sockets;
send/receive run against a peer listening on the loopback interface.
"""

from __future__ import annotations

import asyncio
import socket
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from masterq.address import SENTINEL, ServerAddress
from masterq.protocol.packets import BatchReply
from masterq.transport import (
    GameServerSocket,
    MasterServerSocket,
    MasterTransport,
    UDPSocket,
)
from masterq.utils.exceptions import ProtocolError, TransportError

pytestmark = [pytest.mark.unit, pytest.mark.protocols]


class FakePeer(asyncio.DatagramProtocol):
    """Loopback peer recording requests and answering with canned replies."""

    def __init__(self, replies: list[bytes] | None = None):
        self.replies = list(replies or [])
        self.received: list[bytes] = []
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.received.append(data)
        if self.replies:
            self.transport.sendto(self.replies.pop(0), addr)


async def _start_peer(replies: list[bytes] | None = None) -> tuple[FakePeer, int]:
    loop = asyncio.get_running_loop()
    _transport, peer = await loop.create_datagram_endpoint(
        lambda: FakePeer(replies),
        local_addr=("127.0.0.1", 0),
    )
    return peer, peer.transport.get_extra_info("sockname")[1]


@pytest_asyncio.fixture
async def peer_factory():
    """Start loopback peers and close them after the test."""
    peers: list[FakePeer] = []

    async def _factory(replies: list[bytes] | None = None) -> tuple[FakePeer, int]:
        peer, port = await _start_peer(replies)
        peers.append(peer)
        return peer, port

    yield _factory
    for peer in peers:
        peer.transport.close()


def _addrinfo(*ips: str) -> list[tuple]:
    return [
        (socket.AF_INET, socket.SOCK_DGRAM, 17, "", (ip, 27011)) for ip in ips
    ]


class TestRotation:
    """Test switching between resolved addresses."""

    def test_rotates_through_every_address_once(self):
        """Test each alternate address is tried once per cycle."""
        sock = UDPSocket("master.example", 27011)
        sock.addresses = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]

        assert sock.remote == ("10.0.0.1", 27011)
        assert sock.rotate_address() is True
        assert sock.remote == ("10.0.0.2", 27011)
        assert sock.rotate_address() is True
        assert sock.remote == ("10.0.0.3", 27011)
        assert sock.rotate_address() is False
        assert sock.remote == ("10.0.0.3", 27011)

    def test_reply_starts_new_cycle(self):
        """Test rotation is possible again after a reply."""
        sock = UDPSocket("master.example", 27011)
        sock.addresses = ["10.0.0.1", "10.0.0.2"]

        assert sock.rotate_address() is True
        assert sock.rotate_address() is False
        sock.reset_rotation()
        assert sock.rotate_address() is True
        assert sock.remote == ("10.0.0.1", 27011)

    def test_single_address_never_rotates(self):
        """Test a host with one address has nothing to rotate to."""
        sock = UDPSocket("master.example", 27011)
        sock.addresses = ["10.0.0.1"]

        assert sock.rotate_address() is False

    def test_remote_before_resolve(self):
        """Test the remote address needs a resolved host."""
        with pytest.raises(TransportError):
            UDPSocket("master.example", 27011).remote


class TestResolve:
    """Test hostname resolution."""

    @pytest.mark.asyncio
    async def test_resolve_deduplicates(self):
        """Test every IPv4 address is kept once in resolver order."""
        sock = UDPSocket("master.example", 27011)
        loop = asyncio.get_running_loop()
        answer = _addrinfo("10.0.0.2", "10.0.0.1", "10.0.0.2")

        with patch.object(loop, "getaddrinfo", AsyncMock(return_value=answer)):
            addresses = await sock.resolve()

        assert addresses == ["10.0.0.2", "10.0.0.1"]
        assert sock.remote == ("10.0.0.2", 27011)

    @pytest.mark.asyncio
    async def test_resolve_failure(self):
        """Test resolver errors become TransportError."""
        sock = UDPSocket("nowhere.invalid", 27011)
        loop = asyncio.get_running_loop()

        with patch.object(
            loop, "getaddrinfo", AsyncMock(side_effect=socket.gaierror("no such host"))
        ):
            with pytest.raises(TransportError, match="Could not resolve"):
                await sock.resolve()

    @pytest.mark.asyncio
    async def test_resolve_empty(self):
        """Test a host without IPv4 addresses is rejected."""
        sock = UDPSocket("v6only.example", 27011)
        loop = asyncio.get_running_loop()

        with patch.object(loop, "getaddrinfo", AsyncMock(return_value=[])):
            with pytest.raises(TransportError, match="No IPv4 address"):
                await sock.resolve()


class TestDatagrams:
    """Test receiving and filtering datagrams."""

    @pytest.mark.asyncio
    async def test_ignores_other_senders(self):
        """Test datagrams from addresses other than the current one are dropped."""
        sock = UDPSocket("master.example", 27011)
        sock.addresses = ["10.0.0.1", "10.0.0.2"]

        sock.handle_datagram(b"stray", ("10.0.0.2", 27011))
        sock.handle_datagram(b"wanted", ("10.0.0.1", 27011))

        assert await sock.receive_raw(0.1) == b"wanted"
        assert await sock.receive_raw(0.01) is None

    @pytest.mark.asyncio
    async def test_send_before_start(self):
        """Test sending needs an open endpoint."""
        with pytest.raises(TransportError):
            await UDPSocket("127.0.0.1", 27011).send_raw(b"x")

    @pytest.mark.asyncio
    async def test_late_reply_dropped_before_next_send(self, peer_factory):
        """Test a reply left over from an abandoned exchange is not returned."""
        _peer, port = await peer_factory()
        async with UDPSocket("127.0.0.1", port) as sock:
            sock.handle_datagram(b"late", ("127.0.0.1", port))
            await sock.send_raw(b"request")

            assert await sock.receive_raw(0.05) is None


class TestMasterServerSocket:
    """Test the master socket against a loopback peer."""

    def test_satisfies_transport_contract(self):
        """Test the socket can be handed to the fetch engine."""
        assert isinstance(MasterServerSocket("127.0.0.1", 27011), MasterTransport)

    @pytest.mark.asyncio
    async def test_exchange(self, peer_factory):
        """Test the request goes out unframed and the reply is decoded."""
        server = ServerAddress("127.0.0.4", 27015)
        reply = b"\xff\xff\xff\xff" + BatchReply((server, SENTINEL)).to_bytes()
        peer, port = await peer_factory([reply])

        async with MasterServerSocket("127.0.0.1", port) as sock:
            await sock.send(b"1\xff0.0.0.0:0\x00\x00")
            page = await sock.receive(1.0)

        assert peer.received == [b"1\xff0.0.0.0:0\x00\x00"]
        assert page.addresses == (server, SENTINEL)

    @pytest.mark.asyncio
    async def test_timeout(self, peer_factory):
        """Test a silent peer gives None."""
        _peer, port = await peer_factory()

        async with MasterServerSocket("127.0.0.1", port) as sock:
            await sock.send(b"1\xff0.0.0.0:0\x00\x00")
            assert await sock.receive(0.05) is None

    @pytest.mark.asyncio
    async def test_malformed_reply(self, peer_factory):
        """Test a reply without single-packet marker raises ProtocolError."""
        _peer, port = await peer_factory([b"f\n" + bytes(6)])

        async with MasterServerSocket("127.0.0.1", port) as sock:
            await sock.send(b"1\xff0.0.0.0:0\x00\x00")
            with pytest.raises(ProtocolError):
                await sock.receive(1.0)


class TestGameServerSocket:
    """Test the game socket against a loopback peer."""

    @pytest.mark.asyncio
    async def test_framed_exchange(self, peer_factory):
        """Test requests and replies carry the single-packet marker."""
        peer, port = await peer_factory([b"\xff\xff\xff\xffI\x11payload"])

        async with GameServerSocket("127.0.0.1", port) as sock:
            await sock.send(b"TSource Engine Query\x00")
            data = await sock.receive(1.0)

        assert peer.received == [b"\xff\xff\xff\xffTSource Engine Query\x00"]
        assert data == b"I\x11payload"
