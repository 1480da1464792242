"""The session multiplexer interface and a default in-process implementation.

Pad names follow the usual RTP bin conventions:

- ``send_rtp_sink_<n>`` (request) → ``send_rtp_src_<n>`` (linked to a send endpoint)
- ``send_rtcp_src_<n>`` (linked to a send endpoint)
- ``recv_rtp_sink_<n>`` / ``recv_rtcp_sink_<n>`` (linked to receive endpoints)
- ``recv_rtp_src_<n>_<ssrc>_<pt>`` (announced when a new stream shows up)
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Optional

from .caps import RTP_CAPS, Caps
from .packet import RtpHeader, is_rtcp, parse_rtcp_bye_sources, rtcp_bye
from .pads import MuxPad, PadDirection
from .transport import UdpEndpoint

logger = logging.getLogger(__name__)

DEFAULT_LATENCY = 200

_LINKABLE_PADS = re.compile(r"(send_rtp_src|send_rtcp_src|recv_rtp_sink|recv_rtcp_sink)_(\d+)")
_REQUEST_PADS = re.compile(r"send_rtp_sink_(\d+)")


class SessionMultiplexer(ABC):
    """Multiplexes RTP/RTCP streams over shared transport endpoints.

    Signals are plain callback attributes, invoked on whichever thread the
    multiplexer runs them on.
    """

    def __init__(self) -> None:
        self.latency = DEFAULT_LATENCY
        self.on_element_added: Optional[Callable[[str], None]] = None
        self.on_pad_added: Optional[Callable[[MuxPad], None]] = None
        self.on_pad_removed: Optional[Callable[[MuxPad], None]] = None
        self.request_pt_map: Optional[Callable[[int, int], Optional[Caps]]] = None
        self.on_new_ssrc: Optional[Callable[[int], None]] = None
        self.on_ssrc_collision: Optional[Callable[[int], None]] = None

    @abstractmethod
    def link(self, pad_name: str, endpoint: UdpEndpoint) -> bool:
        """Connect the named pad to *endpoint*; False if it cannot be linked."""

    @abstractmethod
    def unlink(self, pad_name: str) -> None: ...

    @abstractmethod
    def request_pad(self, name: str) -> Optional[MuxPad]: ...

    @abstractmethod
    def release_pad(self, pad: MuxPad) -> None: ...

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...

    def _emit_pad_added(self, pad: MuxPad) -> None:
        if self.on_pad_added is not None:
            self.on_pad_added(pad)

    def _emit_pad_removed(self, pad: MuxPad) -> None:
        if self.on_pad_removed is not None:
            self.on_pad_removed(pad)

    def _emit_element_added(self, name: str) -> None:
        if self.on_element_added is not None:
            self.on_element_added(name)

    def _emit_new_ssrc(self, ssrc: int) -> None:
        if self.on_new_ssrc is not None:
            self.on_new_ssrc(ssrc)

    def _emit_ssrc_collision(self, ssrc: int) -> None:
        if self.on_ssrc_collision is not None:
            self.on_ssrc_collision(ssrc)


class RtpMux(SessionMultiplexer):
    """Routes datagrams between linked endpoints and stream pads.

    Received RTP is demultiplexed by (SSRC, payload type); the first packet
    of each pair asks :attr:`request_pt_map` for caps and announces a
    ``recv_rtp_src`` pad. RTCP BYE removes the pads of the departing source.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._links: dict[str, UdpEndpoint] = {}
        self._send_pads: dict[int, tuple[MuxPad, MuxPad]] = {}
        self._recv_pads: dict[tuple[int, int], MuxPad] = {}
        self._sources: dict[int, tuple[str, int]] = {}
        self._own_ssrcs: set[int] = set()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def links(self) -> dict[str, UdpEndpoint]:
        return dict(self._links)

    def link(self, pad_name: str, endpoint: UdpEndpoint) -> bool:
        match = _LINKABLE_PADS.fullmatch(pad_name)
        if match is None:
            logger.warning("No pad named %s", pad_name)
            return False
        with self._lock:
            if pad_name in self._links:
                logger.warning("Pad %s is already linked", pad_name)
                return False
            self._links[pad_name] = endpoint
        kind = match.group(1)
        if kind == "recv_rtp_sink":
            endpoint.on_datagram = self._receive_rtp
        elif kind == "recv_rtcp_sink":
            endpoint.on_datagram = self._receive_rtcp
        logger.debug("Linked %s to %r", pad_name, endpoint)
        return True

    def unlink(self, pad_name: str) -> None:
        with self._lock:
            endpoint = self._links.pop(pad_name, None)
        if endpoint is not None and pad_name.startswith("recv_"):
            endpoint.on_datagram = None

    def request_pad(self, name: str) -> Optional[MuxPad]:
        match = _REQUEST_PADS.fullmatch(name)
        if match is None:
            logger.warning("Cannot request pad %s", name)
            return None
        index = int(match.group(1))
        with self._lock:
            if index in self._send_pads:
                return None
            sink = MuxPad(name, PadDirection.SINK, RTP_CAPS)
            src = MuxPad(f"send_rtp_src_{index}", PadDirection.SRC, RTP_CAPS)
            sink.on_data = lambda data: self._send_rtp(index, data)
            self._send_pads[index] = (sink, src)
        self._emit_pad_added(sink)
        self._emit_pad_added(src)
        return sink

    def release_pad(self, pad: MuxPad) -> None:
        match = _REQUEST_PADS.fullmatch(pad.name)
        if match is None:
            return
        with self._lock:
            pads = self._send_pads.pop(int(match.group(1)), None)
        if pads is None:
            return
        sink, src = pads
        sink.on_data = None
        self._emit_pad_removed(src)
        self._emit_pad_removed(sink)

    def start(self) -> None:
        self._started = True

    def stop(self) -> None:
        """Say goodbye for the sources we sent and drop received streams."""
        if not self._started:
            return
        rtcp = self._links.get("send_rtcp_src_0")
        with self._lock:
            own = sorted(self._own_ssrcs)[:31]
            self._own_ssrcs.clear()
            removed = list(self._recv_pads.values())
            self._recv_pads.clear()
            self._sources.clear()
        if own and rtcp is not None:
            rtcp.send(rtcp_bye(own))
        self._started = False
        for pad in removed:
            self._emit_pad_removed(pad)

    def _send_rtp(self, index: int, data: bytes) -> None:
        if not self._started:
            return
        try:
            header = RtpHeader.parse(data)
        except ValueError:
            logger.debug("Dropping malformed outgoing RTP packet")
            return
        endpoint = self._links.get(f"send_rtp_src_{index}")
        if endpoint is None:
            logger.debug("send_rtp_src_%d is not linked, dropping packet", index)
            return
        with self._lock:
            self._own_ssrcs.add(header.ssrc)
        endpoint.send(data)

    def _receive_rtp(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._started:
            return
        if is_rtcp(data):
            self._receive_rtcp(data, addr)
            return
        try:
            header = RtpHeader.parse(data)
        except ValueError:
            logger.debug("Dropping malformed RTP packet from %s", addr)
            return

        ssrc = header.ssrc
        with self._lock:
            collided = ssrc in self._own_ssrcs or self._sources.get(ssrc, addr) != addr
            is_new = not collided and ssrc not in self._sources
            if is_new:
                self._sources[ssrc] = addr
            pad = self._recv_pads.get((ssrc, header.payload_type))
        if collided:
            self._emit_ssrc_collision(ssrc)
            return
        if is_new:
            self._emit_new_ssrc(ssrc)
            self._emit_element_added(f"source_{ssrc}")

        if pad is None:
            pad = self._new_stream(ssrc, header.payload_type)
            if pad is None:
                return
        pad.push(data)

    def _new_stream(self, ssrc: int, pt: int) -> Optional[MuxPad]:
        caps = self.request_pt_map(ssrc, pt) if self.request_pt_map is not None else None
        if caps is None:
            logger.debug("No caps for payload type %d, dropping ssrc %d", pt, ssrc)
            return None
        pad = MuxPad(f"recv_rtp_src_0_{ssrc}_{pt}", PadDirection.SRC, caps, ssrc, pt)
        with self._lock:
            existing = self._recv_pads.setdefault((ssrc, pt), pad)
        if existing is not pad:
            return existing
        self._emit_pad_added(pad)
        return pad

    def _receive_rtcp(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._started:
            return
        try:
            sources = parse_rtcp_bye_sources(data)
        except ValueError:
            logger.debug("Dropping malformed RTCP packet from %s", addr)
            return
        for ssrc in sources:
            self._remove_source(ssrc)

    def _remove_source(self, ssrc: int) -> None:
        with self._lock:
            self._sources.pop(ssrc, None)
            keys = [key for key in self._recv_pads if key[0] == ssrc]
            removed = [self._recv_pads.pop(key) for key in keys]
        if removed:
            logger.info("Source %d left the session", ssrc)
        for pad in removed:
            self._emit_pad_removed(pad)
