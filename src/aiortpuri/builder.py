"""Builds and links the transport endpoints of one RTP session.

A sender needs RTP-send, RTCP-send and RTCP-receive endpoints, a receiver
needs RTP-receive, RTCP-receive and RTCP-send. RTCP always uses the data
port + 1, and its send endpoint reuses the socket bound by its receive
endpoint, so the receive side is opened first.
"""

import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .caps import RTCP_CAPS, Caps
from .errors import LinkFailure, MissingCapability
from .multicast import is_multicast, wildcard_address
from .mux import DEFAULT_LATENCY, RtpMux, SessionMultiplexer
from .pads import MuxPad, PadDirection
from .transport import (
    DEFAULT_TTL,
    DEFAULT_TTL_MC,
    Direction,
    EndpointDescriptor,
    Role,
    UdpEndpoint,
)

logger = logging.getLogger(__name__)

# Payload type used to compute the caps the RTP receive endpoint expects
EXPECTED_PAYLOAD_TYPE = 96

MAX_PORT = 65535

MultiplexerFactory = Callable[[], Optional[SessionMultiplexer]]
EndpointFactory = Callable[[EndpointDescriptor], Optional[UdpEndpoint]]


class SessionRole(Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


@dataclass
class BuildConfig:
    role: SessionRole
    host: str
    port: int
    ttl: int = DEFAULT_TTL
    ttl_mc: int = DEFAULT_TTL_MC
    multicast_iface: Optional[str] = None
    latency: int = DEFAULT_LATENCY
    caps: Optional[Caps] = None

    @property
    def rtcp_port(self) -> int:
        return self.port + 1


class EndpointGraph:
    """The multiplexer and endpoints of a built session."""

    def __init__(
        self,
        role: SessionRole,
        mux: SessionMultiplexer,
        endpoints: dict[str, UdpEndpoint],
    ) -> None:
        self.role = role
        self.mux = mux
        self.endpoints = endpoints
        self.links: list[str] = []
        self._closed = False

    def get(self, role: Role, direction: Direction) -> Optional[UdpEndpoint]:
        return self.endpoints.get(f"{role.value}-{direction.value}")

    @property
    def rtp_send(self) -> Optional[UdpEndpoint]:
        return self.get(Role.RTP, Direction.SEND)

    @property
    def rtp_receive(self) -> Optional[UdpEndpoint]:
        return self.get(Role.RTP, Direction.RECEIVE)

    @property
    def rtcp_send(self) -> Optional[UdpEndpoint]:
        return self.get(Role.RTCP, Direction.SEND)

    @property
    def rtcp_receive(self) -> Optional[UdpEndpoint]:
        return self.get(Role.RTCP, Direction.RECEIVE)

    @property
    def closed(self) -> bool:
        return self._closed

    def set_running(self, running: bool) -> None:
        if running:
            for endpoint in self.endpoints.values():
                endpoint.set_running(True)
            self.mux.start()
        else:
            # Stop the multiplexer first so its goodbyes still go out
            self.mux.stop()
            for endpoint in self.endpoints.values():
                endpoint.set_running(False)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.set_running(False)
        for pad_name in reversed(self.links):
            self.mux.unlink(pad_name)
        self.links.clear()
        # Borrowing endpoints go before the receive endpoint owning the socket
        ordered = sorted(
            self.endpoints.values(),
            key=lambda e: e.descriptor.direction is Direction.RECEIVE,
        )
        for endpoint in ordered:
            endpoint.close()
        logger.info("Released %d endpoints", len(ordered))


class EndpointBuilder:
    def __init__(
        self,
        config: BuildConfig,
        multiplexer_factory: MultiplexerFactory = RtpMux,
        endpoint_factory: EndpointFactory = UdpEndpoint,
        on_stream_added: Optional[Callable[[MuxPad], None]] = None,
        on_stream_removed: Optional[Callable[[MuxPad], None]] = None,
        request_pt_map: Optional[Callable[[int, int], Optional[Caps]]] = None,
        on_new_ssrc: Optional[Callable[[int], None]] = None,
        on_ssrc_collision: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.config = config
        self._multiplexer_factory = multiplexer_factory
        self._endpoint_factory = endpoint_factory
        self._on_stream_added = on_stream_added
        self._on_stream_removed = on_stream_removed
        self._request_pt_map = request_pt_map
        self._on_new_ssrc = on_new_ssrc
        self._on_ssrc_collision = on_ssrc_collision
        self._graph: Optional[EndpointGraph] = None

    def descriptors(self) -> list[EndpointDescriptor]:
        """The endpoints this session role needs, in construction order."""
        c = self.config
        multicast = is_multicast(c.host)
        common: dict[str, Any] = {
            "ttl": c.ttl,
            "ttl_mc": c.ttl_mc,
            "is_multicast": multicast,
            "multicast_iface": c.multicast_iface,
        }
        if c.role is SessionRole.RECEIVER:
            rtp = EndpointDescriptor(Role.RTP, Direction.RECEIVE, c.host, c.port, **common)
            rtcp_bind = c.host
        else:
            rtp = EndpointDescriptor(Role.RTP, Direction.SEND, c.host, c.port, **common)
            rtcp_bind = c.host if multicast else wildcard_address(c.host)
        return [
            rtp,
            EndpointDescriptor(Role.RTCP, Direction.RECEIVE, rtcp_bind, c.rtcp_port, **common),
            EndpointDescriptor(Role.RTCP, Direction.SEND, c.host, c.rtcp_port, **common),
        ]

    def _instantiate(self) -> tuple[SessionMultiplexer, dict[str, UdpEndpoint]]:
        mux = _make(self._multiplexer_factory, "multiplexer")
        endpoints: dict[str, UdpEndpoint] = {}
        for descriptor in self.descriptors():
            endpoints[descriptor.name] = _make(
                lambda: self._endpoint_factory(descriptor), f"{descriptor.name} endpoint"
            )
        return mux, endpoints

    async def build(self) -> EndpointGraph:
        """Create, open and link every endpoint, or nothing at all.

        Raises :class:`MissingCapability` before any socket is opened if a
        collaborator cannot be created, and :class:`LinkFailure` if opening
        or linking fails; in both cases everything already created is
        released before the error propagates.
        """
        if not 0 <= self.config.port < MAX_PORT:
            raise LinkFailure(
                f"Port {self.config.port} leaves no room for RTCP on port + 1"
            )
        mux, endpoints = self._instantiate()
        graph = EndpointGraph(self.config.role, mux, endpoints)
        self._graph = graph
        try:
            self._configure_mux(mux)
            if self.config.role is SessionRole.RECEIVER:
                await self._build_receiver(graph)
            else:
                await self._build_sender(graph)
        except BaseException:
            graph.close()
            self._graph = None
            raise
        logger.info(
            "Built %s endpoints for %s:%d", self.config.role.value, self.config.host, self.config.port
        )
        return graph

    def _configure_mux(self, mux: SessionMultiplexer) -> None:
        mux.latency = self.config.latency
        mux.request_pt_map = self._request_pt_map
        mux.on_element_added = self._element_added
        mux.on_pad_added = self._pad_added
        mux.on_pad_removed = self._pad_removed
        mux.on_new_ssrc = self._on_new_ssrc
        mux.on_ssrc_collision = self._on_ssrc_collision

    async def _build_sender(self, graph: EndpointGraph) -> None:
        rtp = _require(graph.rtp_send)
        await _open(rtp)
        self._link(graph, "send_rtp_src_0", rtp)
        await self._open_rtcp(graph)
        self._link(graph, "send_rtcp_src_0", _require(graph.rtcp_send))
        self._link(graph, "recv_rtcp_sink_0", _require(graph.rtcp_receive))

    async def _build_receiver(self, graph: EndpointGraph) -> None:
        rtp = _require(graph.rtp_receive)
        if self.config.caps is not None:
            rtp.caps = self.config.caps
        elif self._request_pt_map is not None:
            rtp.caps = self._request_pt_map(0, EXPECTED_PAYLOAD_TYPE)
        await _open(rtp)
        self._link(graph, "recv_rtp_sink_0", rtp)
        await self._open_rtcp(graph)
        self._link(graph, "recv_rtcp_sink_0", _require(graph.rtcp_receive))
        self._link(graph, "send_rtcp_src_0", _require(graph.rtcp_send))

    async def _open_rtcp(self, graph: EndpointGraph) -> None:
        receive = _require(graph.rtcp_receive)
        send = _require(graph.rtcp_send)
        await _open(receive)
        sock = receive.used_socket
        if sock is None:
            raise LinkFailure(f"{receive!r} did not export a socket")
        # The socket already joined any multicast group
        await _open(send, sock=sock, auto_multicast=False)

    def _link(self, graph: EndpointGraph, pad_name: str, endpoint: UdpEndpoint) -> None:
        if not graph.mux.link(pad_name, endpoint):
            raise LinkFailure(f"Could not link {pad_name} to {endpoint!r}", pad_name=pad_name)
        graph.links.append(pad_name)

    def _element_added(self, name: str) -> None:
        logger.info("Multiplexer added element %s", name)

    def _pad_added(self, pad: MuxPad) -> None:
        logger.info("Multiplexer added pad %s", pad.name)
        if pad.direction is PadDirection.SINK:
            return
        if pad.caps is not None and pad.caps.can_intersect(RTCP_CAPS):
            return

        if self.config.role is SessionRole.SENDER:
            self._link_send_pad(pad)
            return

        if self._on_stream_added is not None:
            self._on_stream_added(pad)

    def _link_send_pad(self, pad: MuxPad) -> None:
        graph = self._graph
        if graph is None or graph.rtp_send is None:
            return
        if pad.name.startswith("send_rtp_src_") and pad.name not in graph.links:
            self._link(graph, pad.name, graph.rtp_send)

    def _pad_removed(self, pad: MuxPad) -> None:
        logger.info("Multiplexer removed pad %s", pad.name)
        if pad.direction is PadDirection.SINK:
            return
        if self.config.role is SessionRole.SENDER:
            graph = self._graph
            if graph is not None and pad.name in graph.links and pad.name != "send_rtp_src_0":
                graph.mux.unlink(pad.name)
                graph.links.remove(pad.name)
            return
        if self._on_stream_removed is not None:
            self._on_stream_removed(pad)


def _make(factory: Callable[[], Any], capability: str) -> Any:
    try:
        instance = factory()
    except ImportError as exc:
        raise MissingCapability(capability) from exc
    if instance is None:
        raise MissingCapability(capability)
    return instance


def _require(endpoint: Optional[UdpEndpoint]) -> UdpEndpoint:
    if endpoint is None:
        raise MissingCapability("endpoint")
    return endpoint


async def _open(
    endpoint: UdpEndpoint,
    sock: Optional[socket.socket] = None,
    auto_multicast: bool = True,
) -> None:
    try:
        await endpoint.open(sock=sock, auto_multicast=auto_multicast)
    except (OSError, OverflowError) as exc:
        raise LinkFailure(f"Cannot open {endpoint!r}: {exc}") from exc
