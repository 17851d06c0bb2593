"""Wire codec for the master directory and server info queries.

Every message starts with a one-byte message kind followed by its payload.
Replies from master servers, and all traffic with game servers, are
additionally wrapped in the 4-byte ``0xFFFFFFFF`` single-packet marker; the
batch request sent to a master server is not.
"""

from __future__ import annotations

import struct
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from masterq.address import PACKED_ADDRESS_SIZE, SENTINEL, Region, ServerAddress
from masterq.utils.exceptions import InvalidArgumentError, ProtocolError

SINGLE_PACKET_HEADER = b"\xff\xff\xff\xff"
INFO_QUERY_PAYLOAD = b"Source Engine Query\x00"

# Byte following the kind byte in every M2A_SERVER_BATCH reply
SERVER_BATCH_PREFIX = 0x0A

_CHALLENGE = struct.Struct("<I")


class PacketHeader(int, Enum):
    """Message kind bytes."""

    A2S_INFO = 0x54
    S2A_INFO = 0x49
    S2C_CHALLENGE = 0x41
    A2M_GET_SERVERS_BATCH2 = 0x31
    M2A_SERVER_BATCH = 0x66


def frame_single(payload: bytes) -> bytes:
    """Wrap a message in the single-packet marker."""
    return SINGLE_PACKET_HEADER + payload


def unframe_single(data: bytes) -> bytes:
    """Strip the single-packet marker.

    Raises:
        ProtocolError: If the marker is missing

    """
    if data[:4] != SINGLE_PACKET_HEADER:
        msg = "Reply has wrong packet header"
        raise ProtocolError(msg, {"header": data[:4].hex()})
    return data[4:]


def _check_header(data: bytes, expected: PacketHeader) -> bytes:
    if not data:
        msg = f"Empty reply, expected {expected.name}"
        raise ProtocolError(msg)
    if data[0] != expected.value:
        msg = f"Unexpected reply kind {data[0]:#04x}, expected {expected.name}"
        raise ProtocolError(msg, {"kind": data[0]})
    return data[1:]


def _encode_text(value: str | bytes, what: str) -> bytes:
    if isinstance(value, bytes):
        raw = value
    else:
        try:
            raw = value.encode("ascii")
        except UnicodeEncodeError:
            msg = f"{what} must be ASCII: {value!r}"
            raise InvalidArgumentError(msg) from None
    if b"\x00" in raw:
        msg = f"{what} must not contain NUL bytes"
        raise InvalidArgumentError(msg)
    return raw


def build_filter(filter_: str | bytes | Mapping[str, str] | None) -> str | bytes:
    """Render a filter argument in the master server's ``\\key\\value`` syntax.

    Strings and bytes are passed through unchanged. A mapping such as
    ``{"gamedir": "cstrike", "secure": "1"}`` becomes ``\\gamedir\\cstrike\\secure\\1``.
    """
    if filter_ is None:
        return ""
    if isinstance(filter_, (str, bytes)):
        return filter_
    return "".join(f"\\{key}\\{value}" for key, value in filter_.items())


@dataclass(frozen=True)
class InfoRequest:
    """A2S_INFO request, optionally carrying the server's challenge."""

    challenge: int | None = None

    def __post_init__(self) -> None:
        """Validate the challenge range."""
        if self.challenge is not None and (
            isinstance(self.challenge, bool)
            or not isinstance(self.challenge, int)
            or not 0 <= self.challenge <= 0xFFFFFFFF
        ):
            msg = f"Challenge must be a 32-bit unsigned integer: {self.challenge!r}"
            raise InvalidArgumentError(msg)

    def to_bytes(self) -> bytes:
        """Encode kind byte, query string and optional challenge."""
        data = bytes([PacketHeader.A2S_INFO.value]) + INFO_QUERY_PAYLOAD
        if self.challenge is not None:
            # Challenge bytes go back out exactly as the server sent them
            data += _CHALLENGE.pack(self.challenge)
        return data


@dataclass(frozen=True)
class BatchRequest:
    """A2M_GET_SERVERS_BATCH2 request for one page of the server list."""

    region: Region
    seed: ServerAddress = SENTINEL
    filter: str | bytes = ""

    def __post_init__(self) -> None:
        """Validate region and filter before anything is sent."""
        object.__setattr__(self, "region", Region.coerce(self.region))
        if not isinstance(self.seed, ServerAddress):
            object.__setattr__(self, "seed", ServerAddress.parse(self.seed))
        _encode_text(self.filter, "Filter")

    def to_bytes(self) -> bytes:
        """Encode kind byte, region, seed and filter."""
        return b"".join(
            (
                bytes([PacketHeader.A2M_GET_SERVERS_BATCH2.value, self.region.value]),
                _encode_text(str(self.seed), "Seed address"),
                b"\x00",
                _encode_text(self.filter, "Filter"),
                b"\x00",
            )
        )


@dataclass(frozen=True)
class BatchReply:
    """One page of master server results."""

    addresses: tuple[ServerAddress, ...]

    @property
    def is_final(self) -> bool:
        """Whether this page ends with the end-of-list marker."""
        return bool(self.addresses) and self.addresses[-1] == SENTINEL

    @property
    def servers(self) -> tuple[ServerAddress, ...]:
        """Addresses on this page without any end-of-list marker."""
        return tuple(address for address in self.addresses if not address.is_sentinel)

    @property
    def last(self) -> ServerAddress | None:
        """Last address on the page, used as the next seed."""
        return self.addresses[-1] if self.addresses else None

    def to_bytes(self) -> bytes:
        """Encode as an M2A_SERVER_BATCH message (without framing)."""
        return bytes([PacketHeader.M2A_SERVER_BATCH.value, SERVER_BATCH_PREFIX]) + b"".join(
            address.to_bytes() for address in self.addresses
        )


def encode_info_request(challenge: int | None = None) -> bytes:
    """Encode an A2S_INFO request."""
    return InfoRequest(challenge).to_bytes()


def encode_batch_request(
    region: Region | int | str,
    seed: ServerAddress | str = SENTINEL,
    filter_: str | bytes = "",
) -> bytes:
    """Encode an A2M_GET_SERVERS_BATCH2 request."""
    return BatchRequest(region, seed, filter_).to_bytes()


def decode_batch_request(data: bytes) -> BatchRequest:
    """Decode an A2M_GET_SERVERS_BATCH2 request, as a master server would.

    Raises:
        ProtocolError: If the request is not well-formed

    """
    body = _check_header(data, PacketHeader.A2M_GET_SERVERS_BATCH2)
    fields = body[1:].split(b"\x00")
    if not body or len(fields) != 3 or fields[2]:
        msg = "Malformed server list request"
        raise ProtocolError(msg)
    try:
        return BatchRequest(
            Region.coerce(body[0]),
            ServerAddress.parse(fields[0].decode("ascii")),
            fields[1].decode("ascii"),
        )
    except (InvalidArgumentError, UnicodeDecodeError) as e:
        msg = f"Malformed server list request: {e}"
        raise ProtocolError(msg) from e


def decode_batch_reply(data: bytes) -> BatchReply:
    """Decode an M2A_SERVER_BATCH message (without framing).

    Raises:
        ProtocolError: On a wrong kind byte, a missing ``0x0A`` byte or a
            truncated address entry

    """
    body = _check_header(data, PacketHeader.M2A_SERVER_BATCH)
    if not body or body[0] != SERVER_BATCH_PREFIX:
        msg = "Master server reply is missing the 0x0A byte"
        raise ProtocolError(msg)
    body = body[1:]
    if len(body) % PACKED_ADDRESS_SIZE:
        msg = "Master server reply ends with a truncated address"
        raise ProtocolError(msg, {"length": len(body)})

    addresses = tuple(
        ServerAddress.from_bytes(body[i : i + PACKED_ADDRESS_SIZE])
        for i in range(0, len(body), PACKED_ADDRESS_SIZE)
    )
    return BatchReply(addresses)


def decode_challenge_reply(data: bytes) -> int:
    """Decode an S2C_CHALLENGE message (without framing) into its challenge.

    Raises:
        ProtocolError: If the message is not a well-formed challenge

    """
    body = _check_header(data, PacketHeader.S2C_CHALLENGE)
    if len(body) != _CHALLENGE.size:
        msg = "Challenge reply must carry exactly 4 bytes"
        raise ProtocolError(msg, {"length": len(body)})
    return _CHALLENGE.unpack(body)[0]


def is_challenge_reply(data: bytes) -> bool:
    """Whether an unframed message is an S2C_CHALLENGE."""
    return bool(data) and data[0] == PacketHeader.S2C_CHALLENGE.value


def decode_info_reply(data: bytes) -> bytes:
    """Return the raw payload of an S2A_INFO message (without framing).

    The payload is handed back uninterpreted.
    """
    return _check_header(data, PacketHeader.S2A_INFO)
