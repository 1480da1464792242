import asyncio
import logging
import socket
import struct
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .caps import Caps
from .multicast import address_family, wildcard_address

logger = logging.getLogger(__name__)

DEFAULT_TTL = 64
DEFAULT_TTL_MC = 1


class Role(Enum):
    RTP = "rtp"
    RTCP = "rtcp"


class Direction(Enum):
    SEND = "send"
    RECEIVE = "receive"


@dataclass(frozen=True)
class EndpointDescriptor:
    """Where an endpoint binds (receive) or sends to (send)."""

    role: Role
    direction: Direction
    host: str
    port: int
    ttl: int = DEFAULT_TTL
    ttl_mc: int = DEFAULT_TTL_MC
    is_multicast: bool = False
    multicast_iface: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.role.value}-{self.direction.value}"


class UdpEndpoint(asyncio.DatagramProtocol):
    """A bound UDP socket sending to or receiving from one host/port.

    Receive endpoints own their socket. A send endpoint may borrow the socket
    of a receive endpoint (RTCP uses one socket for both directions); it then
    never closes it and does not register a second transport on it.
    """

    def __init__(self, descriptor: EndpointDescriptor) -> None:
        self.descriptor = descriptor
        self.caps: Optional[Caps] = None
        self.on_datagram: Optional[Callable[[bytes, tuple[str, int]], None]] = None
        self.auto_multicast = True
        self._socket: Optional[socket.socket] = None
        self._owns_socket = True
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._running = False
        self.packets_sent = 0
        self.packets_received = 0

    def __repr__(self) -> str:
        d = self.descriptor
        return f"<UdpEndpoint {d.name} {d.host}:{d.port}>"

    @property
    def used_socket(self) -> Optional[socket.socket]:
        return self._socket

    @property
    def owns_socket(self) -> bool:
        return self._owns_socket

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    @property
    def local_port(self) -> Optional[int]:
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    @property
    def running(self) -> bool:
        return self._running

    def set_running(self, running: bool) -> None:
        self._running = running

    async def open(
        self, sock: Optional[socket.socket] = None, auto_multicast: bool = True
    ) -> None:
        """Create (or adopt) the socket and start the datagram transport.

        *sock* may only be given to send endpoints. With *auto_multicast*,
        endpoints that receive on a multicast address join the group.
        """
        if self._socket is not None:
            raise RuntimeError(f"{self!r} is already open")
        self.auto_multicast = auto_multicast
        d = self.descriptor

        if sock is not None:
            if d.direction is Direction.RECEIVE:
                raise ValueError("Receive endpoints cannot reuse a socket")
            self._owns_socket = False
            self._apply_ttl(sock)
            if d.is_multicast and auto_multicast:
                self._join_group(sock)
            self._socket = sock
            logger.debug("%r reusing socket bound to port %s", self, self.local_port)
            return

        if d.direction is Direction.RECEIVE:
            new_sock = self._create_receive_socket()
        else:
            new_sock = self._create_send_socket()

        loop = asyncio.get_running_loop()
        try:
            await loop.create_datagram_endpoint(lambda: self, sock=new_sock)
        except BaseException:
            new_sock.close()
            raise
        self._socket = new_sock
        logger.debug("%r opened on local port %s", self, self.local_port)

    def _create_receive_socket(self) -> socket.socket:
        d = self.descriptor
        sock = socket.socket(address_family(d.host), socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((d.host, d.port))
            if d.is_multicast and self.auto_multicast:
                self._join_group(sock)
            self._apply_ttl(sock)
            sock.setblocking(False)
        except BaseException:
            sock.close()
            raise
        return sock

    def _create_send_socket(self) -> socket.socket:
        d = self.descriptor
        sock = socket.socket(address_family(d.host), socket.SOCK_DGRAM)
        try:
            sock.bind((wildcard_address(d.host), 0))
            self._apply_ttl(sock)
            sock.setblocking(False)
        except BaseException:
            sock.close()
            raise
        return sock

    def _join_group(self, sock: socket.socket) -> None:
        d = self.descriptor
        ifindex = socket.if_nametoindex(d.multicast_iface) if d.multicast_iface else 0
        if sock.family == socket.AF_INET6:
            mreq = socket.inet_pton(socket.AF_INET6, d.host) + struct.pack("@I", ifindex)
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP, mreq)
        elif ifindex:
            # struct ip_mreqn: group, local address, interface index
            mreq = socket.inet_aton(d.host) + struct.pack("=Ii", socket.INADDR_ANY, ifindex)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        else:
            mreq = socket.inet_aton(d.host) + struct.pack("=I", socket.INADDR_ANY)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        logger.info("%r joined multicast group %s", self, d.host)

    def _apply_ttl(self, sock: socket.socket) -> None:
        d = self.descriptor
        if sock.family == socket.AF_INET6:
            if d.is_multicast:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, d.ttl_mc)
            else:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS, d.ttl)
        elif d.is_multicast:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, d.ttl_mc)
        elif d.ttl > 0:
            # IP_TTL rejects 0
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, d.ttl)

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._running:
            return
        self.packets_received += 1
        if self.on_datagram is not None:
            self.on_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning("Transport error on %r: %s", self, exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._transport = None

    def send(self, data: bytes) -> None:
        if not self._running or self._socket is None:
            return
        target = (self.descriptor.host, self.descriptor.port)
        if self._transport is not None:
            self._transport.sendto(data, target)
        else:
            try:
                self._socket.sendto(data, target)
            except OSError as exc:
                logger.warning("Send error on %r: %s", self, exc)
                return
        self.packets_sent += 1

    def close(self) -> None:
        """Release the endpoint; borrowed sockets are left open."""
        self._running = False
        self.on_datagram = None
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        elif self._socket is not None and self._owns_socket:
            self._socket.close()
        self._socket = None
