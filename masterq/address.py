"""Server addresses and region codes used by the master directory protocol."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum

from masterq.utils.exceptions import InvalidArgumentError

_PACKED_ADDRESS = struct.Struct("!4BH")


def is_decimal(text: str) -> bool:
    """Whether ``text`` is a non-empty run of ASCII digits 0-9."""
    return text.isascii() and text.isdecimal()


class Region(int, Enum):
    """Master server region codes."""

    US_EAST = 0x00
    US_WEST = 0x01
    SOUTH_AMERICA = 0x02
    EUROPE = 0x03
    ASIA = 0x04
    AUSTRALIA = 0x05
    MIDDLE_EAST = 0x06
    AFRICA = 0x07
    ALL = 0xFF

    @classmethod
    def coerce(cls, value: Region | int | str) -> Region:
        """Return the region for a code or name.

        Raises:
            InvalidArgumentError: If the value is not one of the known regions

        """
        if isinstance(value, Region):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                msg = f"Unknown region: {value!r}"
                raise InvalidArgumentError(msg) from None
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"Unknown region: {value!r}"
            raise InvalidArgumentError(msg)
        try:
            return cls(value)
        except ValueError:
            msg = f"Unknown region code: {value:#04x}"
            raise InvalidArgumentError(msg) from None


@dataclass(frozen=True, order=True)
class ServerAddress:
    """An IPv4 address and port of a game server."""

    host: str
    port: int

    def __post_init__(self) -> None:
        """Validate the dotted-quad host and port range."""
        octets = self.host.split(".") if isinstance(self.host, str) else []
        if len(octets) != 4 or not all(
            is_decimal(o) and len(o) <= 3 and int(o) <= 255 for o in octets
        ):
            msg = f"Invalid IPv4 address: {self.host!r}"
            raise InvalidArgumentError(msg)
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            msg = f"Invalid port: {self.port!r}"
            raise InvalidArgumentError(msg)
        if not 0 <= self.port <= 0xFFFF:
            msg = f"Port out of range: {self.port}"
            raise InvalidArgumentError(msg)
        # Normalize "010.0.0.1" style octets so equality is by value
        object.__setattr__(self, "host", ".".join(str(int(o)) for o in octets))

    @classmethod
    def parse(cls, text: str) -> ServerAddress:
        """Parse ``"a.b.c.d:port"``.

        Raises:
            InvalidArgumentError: If the text is not a valid address

        """
        if not isinstance(text, str) or text.count(":") != 1:
            msg = f"Invalid server address: {text!r}"
            raise InvalidArgumentError(msg)
        host, port_str = text.split(":")
        if not is_decimal(port_str):
            msg = f"Invalid server address: {text!r}"
            raise InvalidArgumentError(msg)
        return cls(host, int(port_str))

    @classmethod
    def from_bytes(cls, data: bytes) -> ServerAddress:
        """Decode 4 IPv4 octets followed by a big-endian port."""
        if len(data) != _PACKED_ADDRESS.size:
            msg = f"Packed address must be {_PACKED_ADDRESS.size} bytes, got {len(data)}"
            raise InvalidArgumentError(msg)
        a, b, c, d, port = _PACKED_ADDRESS.unpack(data)
        return cls(f"{a}.{b}.{c}.{d}", port)

    def to_bytes(self) -> bytes:
        """Encode as 4 IPv4 octets followed by a big-endian port."""
        octets = (int(o) for o in self.host.split("."))
        return _PACKED_ADDRESS.pack(*octets, self.port)

    @property
    def is_sentinel(self) -> bool:
        """Whether this is the end-of-list marker."""
        return self == SENTINEL

    def __str__(self) -> str:
        """Return the ``a.b.c.d:port`` form."""
        return f"{self.host}:{self.port}"


PACKED_ADDRESS_SIZE = _PACKED_ADDRESS.size

SENTINEL = ServerAddress("0.0.0.0", 0)  # nosec B104 - end-of-list marker, never bound
