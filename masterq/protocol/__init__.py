"""Wire codec for master directory and server info queries."""

from __future__ import annotations

from masterq.protocol.packets import (
    BatchReply,
    BatchRequest,
    InfoRequest,
    PacketHeader,
    build_filter,
    decode_batch_reply,
    decode_batch_request,
    decode_challenge_reply,
    decode_info_reply,
    encode_batch_request,
    encode_info_request,
    frame_single,
    unframe_single,
)

__all__ = [
    "BatchReply",
    "BatchRequest",
    "InfoRequest",
    "PacketHeader",
    "build_filter",
    "decode_batch_reply",
    "decode_batch_request",
    "decode_challenge_reply",
    "decode_info_reply",
    "encode_batch_request",
    "encode_info_request",
    "frame_single",
    "unframe_single",
]
