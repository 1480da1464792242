import unittest
from typing import Optional, TypeVar, cast

from aiortpuri.caps import Caps
from aiortpuri.mux import RtpMux, SessionMultiplexer
from aiortpuri.packet import RtpHeader
from aiortpuri.transport import EndpointDescriptor, UdpEndpoint

T = TypeVar("T")


class TestCase(unittest.TestCase):
    def ensureIsInstance(self, obj: object, cls: type[T]) -> T:
        self.assertIsInstance(obj, cls)
        return cast(T, obj)


def rtp_packet(ssrc: int, payload_type: int = 96, seq: int = 0, payload: bytes = b"\x00" * 20) -> bytes:
    header = RtpHeader(
        payload_type=payload_type, marker=0, sequence_number=seq, timestamp=seq * 3000, ssrc=ssrc
    )
    return header.serialize() + payload


class RecordingEndpoint(UdpEndpoint):
    """UdpEndpoint that remembers the order endpoints were opened and closed in."""

    journal: list[str] = []

    async def open(self, sock=None, auto_multicast=True) -> None:  # type: ignore[no-untyped-def]
        await super().open(sock=sock, auto_multicast=auto_multicast)
        self.journal.append(f"open {self.descriptor.name}")

    def close(self) -> None:
        if self.is_open:
            self.journal.append(f"close {self.descriptor.name}")
        super().close()


class FailingEndpoint(UdpEndpoint):
    """Fails to open when its descriptor name matches ``fail_on``."""

    fail_on = "rtcp-receive"

    async def open(self, sock=None, auto_multicast=True) -> None:  # type: ignore[no-untyped-def]
        if self.descriptor.name == self.fail_on:
            raise OSError("address already in use")
        await super().open(sock=sock, auto_multicast=auto_multicast)


class RefusingMux(RtpMux):
    """Multiplexer that refuses to link one pad."""

    refuse = "recv_rtcp_sink_0"

    def link(self, pad_name: str, endpoint: UdpEndpoint) -> bool:
        if pad_name == self.refuse:
            return False
        return super().link(pad_name, endpoint)


def no_multiplexer() -> Optional[SessionMultiplexer]:
    return None


def no_endpoint(descriptor: EndpointDescriptor) -> Optional[UdpEndpoint]:
    return None


def fixed_caps(ssrc: int, pt: int) -> Caps:
    return Caps("application/x-rtp", media="video", encoding_name="VP8", clock_rate=90000)


class MulticastRecordingEndpoint(UdpEndpoint):
    """Records open() arguments and group joins instead of touching the network."""

    opened: dict[str, tuple[object, bool]] = {}
    joins: list[str] = []

    async def open(self, sock=None, auto_multicast=True) -> None:  # type: ignore[no-untyped-def]
        self.opened[self.descriptor.name] = (sock, auto_multicast)
        await super().open(sock=sock, auto_multicast=auto_multicast)

    def _join_group(self, sock) -> None:  # type: ignore[no-untyped-def]
        self.joins.append(self.descriptor.name)
