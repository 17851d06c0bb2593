"""Transport contract used by the master server fetch engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from masterq.protocol.packets import BatchReply


@runtime_checkable
class MasterTransport(Protocol):
    """What the fetch engine needs from a master server connection.

    ``receive`` returns ``None`` when no reply arrived in time and never a
    partially decoded reply. ``rotate_address`` switches to another resolved
    address of the same master host and reports whether it did.
    """

    async def send(self, data: bytes) -> None:
        """Send one encoded request."""
        ...

    async def receive(self, timeout: float) -> BatchReply | None:
        """Wait up to ``timeout`` seconds for the next reply."""
        ...

    def rotate_address(self) -> bool:
        """Switch to an alternate address if one is left."""
        ...
