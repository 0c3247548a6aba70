"""Push channel: SSE decoding, transports and the per-consumer Channel Manager."""

from .manager import Channel, ChannelManager
from .sse import SseDecoder, decode_event, encode_event
from .transport import BasePushTransport, InMemoryPushHub, InMemoryPushTransport, SseTransport

__all__ = [
    "BasePushTransport",
    "Channel",
    "ChannelManager",
    "InMemoryPushHub",
    "InMemoryPushTransport",
    "SseDecoder",
    "SseTransport",
    "decode_event",
    "encode_event",
]
