"""aiortpuri: asyncio RTP/RTCP sessions configured from ``rtp://`` URIs."""

__version__ = "0.1.0"

from .builder import BuildConfig, EndpointBuilder, EndpointGraph, SessionRole
from .caps import RTCP_CAPS, RTP_CAPS, Caps
from .codecs import (
    CodecDescriptor,
    register_payload,
    resolve_by_encoding_name,
    resolve_by_payload_type,
    resolve_payload,
)
from .errors import CollisionWarning, InvalidURI, LinkFailure, MissingCapability, RtpUriError
from .multicast import is_multicast
from .mux import RtpMux, SessionMultiplexer
from .pads import MuxPad, PadDirection, StreamPad
from .port_allocator import PortAllocator
from .session import RtpSink, RtpSource, RtpUriSession, SessionState
from .transport import EndpointDescriptor, UdpEndpoint
from .uri import SessionURI, apply_query_overlay, resolve

__all__ = [
    "__version__",
    "BuildConfig",
    "Caps",
    "CodecDescriptor",
    "CollisionWarning",
    "EndpointBuilder",
    "EndpointDescriptor",
    "EndpointGraph",
    "InvalidURI",
    "LinkFailure",
    "MissingCapability",
    "MuxPad",
    "PadDirection",
    "PortAllocator",
    "RTCP_CAPS",
    "RTP_CAPS",
    "RtpMux",
    "RtpSink",
    "RtpSource",
    "RtpUriError",
    "RtpUriSession",
    "SessionMultiplexer",
    "SessionRole",
    "SessionState",
    "SessionURI",
    "StreamPad",
    "UdpEndpoint",
    "apply_query_overlay",
    "is_multicast",
    "register_payload",
    "resolve",
    "resolve_by_encoding_name",
    "resolve_by_payload_type",
    "resolve_payload",
]
