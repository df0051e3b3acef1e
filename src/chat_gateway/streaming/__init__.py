"""
Stream framing and the sideband token protocol.
"""

from .frames import FrameDecoder, SSEFrameDecoder, NDJSONFrameDecoder, iter_frames
from .sideband import (
    SidebandCodec,
    usage_from_payload,
    usage_to_payload,
    LMSTUDIO_SENTINEL,
    OLLAMA_SENTINEL,
    BEDROCK_SENTINEL,
    MANTLE_SENTINEL,
    HOSTED_SENTINEL,
)

__all__ = [
    "FrameDecoder",
    "SSEFrameDecoder",
    "NDJSONFrameDecoder",
    "iter_frames",
    "SidebandCodec",
    "usage_from_payload",
    "usage_to_payload",
    "LMSTUDIO_SENTINEL",
    "OLLAMA_SENTINEL",
    "BEDROCK_SENTINEL",
    "MANTLE_SENTINEL",
    "HOSTED_SENTINEL",
]
