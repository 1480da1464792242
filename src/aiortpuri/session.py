"""RtpSource and RtpSink, RTP sessions configured from a single ``rtp://`` URI."""

import asyncio
import logging
import queue
import threading
import warnings
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from .builder import (
    EXPECTED_PAYLOAD_TYPE,
    BuildConfig,
    EndpointBuilder,
    EndpointFactory,
    EndpointGraph,
    MultiplexerFactory,
    SessionRole,
)
from .caps import Caps
from .codecs import DEFAULT_ENCODING_NAME, resolve_payload
from .errors import CollisionWarning, LinkFailure
from .mux import DEFAULT_LATENCY, RtpMux
from .pads import MuxPad, PadDirection, StreamPad
from .port_allocator import PortAllocator, default_allocator
from .transport import DEFAULT_TTL, DEFAULT_TTL_MC, UdpEndpoint
from .uri import Field, FieldKind, FieldRegistry, SessionURI, apply_query_overlay, resolve

logger = logging.getLogger(__name__)

DEFAULT_URI = "rtp://0.0.0.0:5004"

# Pending stream announcements from the multiplexer
EVENT_QUEUE_SIZE = 64


class SessionState(Enum):
    IDLE = "idle"
    ENDPOINTS_READY = "endpoints-ready"
    ACTIVE = "active"


_STATE_ORDER = (SessionState.IDLE, SessionState.ENDPOINTS_READY, SessionState.ACTIVE)


@dataclass
class _StreamEvent:
    added: bool
    pad: MuxPad


def _check_byte(name: str, value: int) -> int:
    if not 0 <= value <= 255:
        raise ValueError(f"{name} must be in range 0-255, got {value}")
    return value


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class RtpUriSession:
    role: SessionRole = SessionRole.RECEIVER

    # Encoding assumed when neither the payload type nor encoding-name
    # identifies the stream; set to None to drop such streams instead.
    default_encoding_name: Optional[str] = DEFAULT_ENCODING_NAME

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        ttl: int = DEFAULT_TTL,
        ttl_mc: int = DEFAULT_TTL_MC,
        encoding_name: Optional[str] = None,
        latency: int = DEFAULT_LATENCY,
        multicast_iface: Optional[str] = None,
        multiplexer_factory: MultiplexerFactory = RtpMux,
        endpoint_factory: EndpointFactory = UdpEndpoint,
        port_allocator: Optional[PortAllocator] = None,
    ) -> None:
        self._uri: SessionURI = resolve(DEFAULT_URI)
        self._ttl = _check_byte("ttl", ttl)
        self._ttl_mc = _check_byte("ttl-mc", ttl_mc)
        self._encoding_name = encoding_name
        self._latency = latency
        self._multicast_iface = multicast_iface
        self._caps: Optional[Caps] = None

        self._multiplexer_factory = multiplexer_factory
        self._endpoint_factory = endpoint_factory
        self._port_allocator = port_allocator or default_allocator
        self._allocated_port: Optional[int] = None

        # Pad bookkeeping, guarded by _lock
        self._lock = threading.Lock()
        self._events: "queue.Queue[_StreamEvent]" = queue.Queue(maxsize=EVENT_QUEUE_SIZE)
        self._pads: dict[str, StreamPad] = {}
        self._pads_by_target: dict[str, StreamPad] = {}
        self._npads = 0
        self._next_pad_id = 0

        # Lifecycle
        self._state = SessionState.IDLE
        self._state_lock = asyncio.Lock()
        self._graph: Optional[EndpointGraph] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Callbacks
        self.on_pad_added: Optional[Callable[[StreamPad], None]] = None
        self.on_pad_removed: Optional[Callable[[StreamPad], None]] = None
        self.on_new_ssrc: Optional[Callable[[int], None]] = None
        self.on_ssrc_collision: Optional[Callable[[int], None]] = None

        self._fields = self._build_fields()

        # Query parameters in the URI override the keyword arguments
        self.uri = uri

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.uri} {self._state.value}>"

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def _build_fields(self) -> FieldRegistry:
        def prop(name: str, kind: FieldKind, attr: str) -> Field:
            return Field(
                name,
                kind,
                setter=lambda value: setattr(self, attr, value),
                getter=lambda: getattr(self, attr),
            )

        return {
            "uri": prop("uri", FieldKind.STRING, "uri"),
            "address": prop("address", FieldKind.STRING, "address"),
            "port": prop("port", FieldKind.UINT, "port"),
            "ttl": prop("ttl", FieldKind.UINT8, "ttl"),
            "ttl-mc": prop("ttl-mc", FieldKind.UINT8, "ttl_mc"),
            "encoding-name": prop("encoding-name", FieldKind.STRING, "encoding_name"),
            "latency": prop("latency", FieldKind.UINT, "latency"),
            "multicast-iface": prop("multicast-iface", FieldKind.STRING, "multicast_iface"),
        }

    @property
    def fields(self) -> Mapping[str, Field]:
        return self._fields

    def set_property(self, name: str, value: Any) -> None:
        field = self._fields.get(name)
        if field is None:
            raise KeyError(f"{type(self).__name__} has no property {name!r}")
        field.setter(value)

    def get_property(self, name: str) -> Any:
        field = self._fields.get(name)
        if field is None or field.getter is None:
            raise KeyError(f"{type(self).__name__} has no property {name!r}")
        return field.getter()

    @property
    def uri(self) -> str:
        return self._uri.to_string()

    @uri.setter
    def uri(self, value: str) -> None:
        parsed = resolve(value)
        if self._state is not SessionState.IDLE:
            logger.warning("URI changed while %s, applies on next activation", self._state.value)
        self._uri = parsed
        apply_query_overlay(self, parsed.params)

    @property
    def address(self) -> str:
        return self._uri.host

    @address.setter
    def address(self, value: str) -> None:
        if not value:
            raise ValueError("address must not be empty")
        self._uri = self._uri.with_host(value)

    @property
    def port(self) -> int:
        return self._uri.port

    @port.setter
    def port(self, value: int) -> None:
        if not 0 <= value <= 65535:
            raise ValueError(f"port must be in range 0-65535, got {value}")
        self._uri = self._uri.with_port(value)

    @property
    def ttl(self) -> int:
        return self._ttl

    @ttl.setter
    def ttl(self, value: int) -> None:
        self._ttl = _check_byte("ttl", value)

    @property
    def ttl_mc(self) -> int:
        return self._ttl_mc

    @ttl_mc.setter
    def ttl_mc(self, value: int) -> None:
        self._ttl_mc = _check_byte("ttl-mc", value)

    @property
    def encoding_name(self) -> Optional[str]:
        return self._encoding_name

    @encoding_name.setter
    def encoding_name(self, value: Optional[str]) -> None:
        self._encoding_name = value or None
        graph = self._graph
        if graph is not None and graph.rtp_receive is not None:
            graph.rtp_receive.caps = self._request_pt_map(0, EXPECTED_PAYLOAD_TYPE)
            logger.info("Receive caps updated to %s", graph.rtp_receive.caps)

    @property
    def latency(self) -> int:
        return self._latency

    @latency.setter
    def latency(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"latency must not be negative, got {value}")
        self._latency = value
        if self._graph is not None:
            self._graph.mux.latency = value

    @property
    def multicast_iface(self) -> Optional[str]:
        return self._multicast_iface

    @multicast_iface.setter
    def multicast_iface(self, value: Optional[str]) -> None:
        self._multicast_iface = value or None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def endpoints(self) -> dict[str, UdpEndpoint]:
        return dict(self._graph.endpoints) if self._graph is not None else {}

    @property
    def graph(self) -> Optional[EndpointGraph]:
        return self._graph

    @property
    def pads(self) -> list[StreamPad]:
        with self._lock:
            return list(self._pads.values())

    @property
    def npads(self) -> int:
        return self._npads

    async def set_state(self, target: SessionState) -> None:
        """Move one transition at a time until *target* is reached."""
        async with self._state_lock:
            while self._state is not target:
                if _STATE_ORDER.index(target) > _STATE_ORDER.index(self._state):
                    await self._step_up()
                else:
                    await self._step_down()

    async def prepare(self) -> None:
        await self.set_state(SessionState.ENDPOINTS_READY)

    async def activate(self) -> None:
        await self.set_state(SessionState.ACTIVE)

    async def pause(self) -> None:
        if self._state is SessionState.ACTIVE:
            await self.set_state(SessionState.ENDPOINTS_READY)

    async def deactivate(self) -> None:
        await self.set_state(SessionState.IDLE)

    async def __aenter__(self) -> "RtpUriSession":
        await self.activate()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.deactivate()

    async def _step_up(self) -> None:
        previous = self._state
        if self._state is SessionState.IDLE:
            await self._build()
            self._state = SessionState.ENDPOINTS_READY
        else:
            self._require_graph().set_running(True)
            self._state = SessionState.ACTIVE
        logger.debug("%s: %s => %s", self, previous.value, self._state.value)

    async def _step_down(self) -> None:
        previous = self._state
        if self._state is SessionState.ACTIVE:
            self._require_graph().set_running(False)
            self._state = SessionState.ENDPOINTS_READY
        else:
            await self._teardown()
            self._state = SessionState.IDLE
        logger.debug("%s: %s => %s", self, previous.value, self._state.value)

    def _require_graph(self) -> EndpointGraph:
        if self._graph is None:
            raise RuntimeError(f"{self!r} has no endpoints")
        return self._graph

    async def _build(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self.role is SessionRole.RECEIVER and self._uri.port == 0:
            port, _ = await self._port_allocator.allocate(self._uri.host)
            self._allocated_port = port
            self._uri = self._uri.with_port(port)

        builder = EndpointBuilder(
            BuildConfig(
                role=self.role,
                host=self._uri.host,
                port=self._uri.port,
                ttl=self._ttl,
                ttl_mc=self._ttl_mc,
                multicast_iface=self._multicast_iface,
                latency=self._latency,
                caps=self._caps,
            ),
            multiplexer_factory=self._multiplexer_factory,
            endpoint_factory=self._endpoint_factory,
            on_stream_added=lambda pad: self._post(_StreamEvent(True, pad)),
            on_stream_removed=lambda pad: self._post(_StreamEvent(False, pad)),
            request_pt_map=self._request_pt_map,
            on_new_ssrc=self._handle_new_ssrc,
            on_ssrc_collision=self._handle_ssrc_collision,
        )
        try:
            self._graph = await builder.build()
        except BaseException:
            await self._release_port()
            raise

    async def _teardown(self) -> None:
        graph, self._graph = self._graph, None
        if graph is not None:
            graph.close()

        with self._lock:
            while True:
                try:
                    self._events.get_nowait()
                except queue.Empty:
                    break
            removed = list(self._pads.values())
            self._pads.clear()
            self._pads_by_target.clear()
            self._npads = 0
        for pad in removed:
            pad.unlink()
            self._notify(self.on_pad_removed, pad)

        await self._release_port()

    async def _release_port(self) -> None:
        if self._allocated_port is None:
            return
        await self._port_allocator.release(self._allocated_port)
        self._allocated_port = None
        self._uri = self._uri.with_port(0)

    # -------------------------------------------------------------------------
    # Multiplexer callbacks
    # -------------------------------------------------------------------------

    def _request_pt_map(self, ssrc: int, pt: int) -> Optional[Caps]:
        if self._caps is not None and self._caps.is_fixed():
            return self._caps
        descriptor = resolve_payload(
            pt, self._encoding_name, fallback=self.default_encoding_name
        )
        if descriptor is None:
            return None
        return descriptor.to_caps(pt)

    def _handle_new_ssrc(self, ssrc: int) -> None:
        logger.info("New source %d", ssrc)
        if self.on_new_ssrc is not None:
            self.on_new_ssrc(ssrc)

    def _handle_ssrc_collision(self, ssrc: int) -> None:
        warnings.warn(f"SSRC collision on {ssrc}", CollisionWarning, stacklevel=2)
        if self.on_ssrc_collision is not None:
            self.on_ssrc_collision(ssrc)

    def _post(self, event: _StreamEvent) -> None:
        """Queue a stream announcement; may run on any thread."""
        try:
            self._events.put_nowait(event)
        except queue.Full:
            self._drain_events()
            self._events.put(event)

        loop = self._loop
        if loop is None or loop.is_closed() or _running_loop() is loop:
            # Expose the pad before the multiplexer pushes its first packet
            self._drain_events()
        else:
            loop.call_soon_threadsafe(self._drain_events)

    def _drain_events(self) -> None:
        added: list[StreamPad] = []
        removed: list[StreamPad] = []
        with self._lock:
            while True:
                try:
                    event = self._events.get_nowait()
                except queue.Empty:
                    break
                if event.added:
                    pad = self._expose(event.pad)
                    if pad is not None:
                        added.append(pad)
                else:
                    pad = self._unexpose(event.pad)
                    if pad is not None:
                        removed.append(pad)

        for pad in added:
            self._notify(self.on_pad_added, pad)
            pad.begin_delivery()
        for pad in removed:
            self._notify(self.on_pad_removed, pad)

    def _expose(self, target: MuxPad) -> Optional[StreamPad]:
        if self._graph is None or target.name in self._pads_by_target:
            return None
        pad_id = self._next_pad_id
        self._next_pad_id += 1
        pad = StreamPad(pad_id, f"src_{pad_id}", PadDirection.SRC, target)
        pad.set_active(True)
        self._register(pad, target)
        logger.info("Exposed %s for %s", pad.name, target.name)
        return pad

    def _unexpose(self, target: MuxPad) -> Optional[StreamPad]:
        pad = self._pads_by_target.get(target.name)
        if pad is None:
            return None
        self._unregister(pad)
        pad.unlink()
        logger.info("Removed %s", pad.name)
        return pad

    def _register(self, pad: StreamPad, target: MuxPad) -> None:
        self._pads[pad.name] = pad
        self._pads_by_target[target.name] = pad
        self._npads += 1

    def _unregister(self, pad: StreamPad) -> None:
        self._pads.pop(pad.name, None)
        if pad.target is not None:
            self._pads_by_target.pop(pad.target.name, None)
        self._npads -= 1

    def _notify(self, callback: Optional[Callable[[StreamPad], None]], pad: StreamPad) -> None:
        if callback is not None:
            callback(pad)


class RtpSource(RtpUriSession):
    """Receives RTP streams announced on ``rtp://address:port``.

    Each new (SSRC, payload type) becomes a :class:`StreamPad` reported via
    :attr:`on_pad_added`. Port 0 picks a free even port pair on activation.
    """

    role = SessionRole.RECEIVER

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        caps: Union[Caps, str, None] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(uri, **kwargs)
        if caps is not None and self._caps is None:
            self.caps = caps

    def _build_fields(self) -> FieldRegistry:
        fields = super()._build_fields()
        fields["caps"] = Field(
            "caps",
            FieldKind.CAPS,
            setter=lambda value: setattr(self, "caps", value),
            getter=lambda: self.caps,
        )
        return fields

    @property
    def caps(self) -> Optional[Caps]:
        return self._caps

    @caps.setter
    def caps(self, value: Union[Caps, str, None]) -> None:
        if isinstance(value, str):
            value = Caps.from_string(value)
        self._caps = value


class RtpSink(RtpUriSession):
    """Sends RTP to ``rtp://host:port``.

    Outgoing streams are added with :meth:`request_pad` once the session has
    endpoints, and removed with :meth:`release_pad`.
    """

    role = SessionRole.SENDER

    def request_pad(self) -> StreamPad:
        graph = self._graph
        if graph is None:
            raise RuntimeError("Session has no endpoints; call prepare() or activate() first")

        with self._lock:
            index = self._next_pad_id
            name = f"send_rtp_sink_{index}"
            target = graph.mux.request_pad(name)
            if target is None:
                raise LinkFailure(f"Multiplexer refused to create {name}", pad_name=name)
            self._next_pad_id += 1
            pad = StreamPad(index, f"sink_{index}", PadDirection.SINK, target)
            pad.set_active(True)
            self._register(pad, target)
        logger.info("Requested %s (%d streams)", pad.name, self._npads)
        return pad

    def release_pad(self, pad: StreamPad) -> None:
        with self._lock:
            if self._pads.get(pad.name) is not pad:
                raise ValueError(f"{pad.name} does not belong to this session")
            target = pad.target
            self._unregister(pad)
            if target is not None and self._graph is not None:
                self._graph.mux.release_pad(target)
            pad.unlink()
        logger.info("Released %s (%d streams)", pad.name, self._npads)
