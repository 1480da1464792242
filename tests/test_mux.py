from typing import Any, Optional

from aiortpuri.caps import Caps
from aiortpuri.mux import RtpMux
from aiortpuri.packet import parse_rtcp_bye_sources, rtcp_bye
from aiortpuri.pads import MuxPad, PadDirection, StreamPad

from .utils import TestCase, fixed_caps, rtp_packet

PEER = ("10.0.0.2", 5004)


class FakeEndpoint:
    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.on_datagram: Optional[Any] = None

    def send(self, data: bytes) -> None:
        self.sent.append(data)


class RtpMuxTest(TestCase):
    def setUp(self) -> None:
        self.mux = RtpMux()
        self.added: list[MuxPad] = []
        self.removed: list[MuxPad] = []
        self.collisions: list[int] = []
        self.ssrcs: list[int] = []
        self.mux.on_pad_added = self.added.append
        self.mux.on_pad_removed = self.removed.append
        self.mux.on_ssrc_collision = self.collisions.append
        self.mux.on_new_ssrc = self.ssrcs.append
        self.mux.request_pt_map = fixed_caps

    def link_receiver(self) -> tuple[FakeEndpoint, FakeEndpoint]:
        rtp, rtcp = FakeEndpoint(), FakeEndpoint()
        self.assertTrue(self.mux.link("recv_rtp_sink_0", rtp))  # type: ignore[arg-type]
        self.assertTrue(self.mux.link("recv_rtcp_sink_0", rtcp))  # type: ignore[arg-type]
        self.mux.start()
        return rtp, rtcp

    def test_link_rejects_unknown_and_duplicate(self) -> None:
        endpoint = FakeEndpoint()
        self.assertFalse(self.mux.link("bogus_0", endpoint))  # type: ignore[arg-type]
        self.assertTrue(self.mux.link("send_rtp_src_0", endpoint))  # type: ignore[arg-type]
        self.assertFalse(self.mux.link("send_rtp_src_0", endpoint))  # type: ignore[arg-type]

    def test_new_stream_announced_once(self) -> None:
        rtp, _ = self.link_receiver()
        delivered: list[bytes] = []
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42, seq=0), PEER)

        self.assertEqual([pad.name for pad in self.added], ["recv_rtp_src_0_42_96"])
        pad = self.added[0]
        self.assertEqual(pad.direction, PadDirection.SRC)
        self.assertEqual(pad.caps, fixed_caps(42, 96))
        self.assertEqual(self.ssrcs, [42])

        pad.on_data = delivered.append
        rtp.on_datagram(rtp_packet(ssrc=42, seq=1), PEER)
        self.assertEqual(len(self.added), 1)
        self.assertEqual(len(delivered), 1)

    def test_new_payload_type_is_new_stream(self) -> None:
        rtp, _ = self.link_receiver()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42, payload_type=96), PEER)
        rtp.on_datagram(rtp_packet(ssrc=42, payload_type=97), PEER)
        self.assertEqual(
            [pad.name for pad in self.added], ["recv_rtp_src_0_42_96", "recv_rtp_src_0_42_97"]
        )
        self.assertEqual(self.ssrcs, [42])

    def test_no_caps_drops_stream(self) -> None:
        self.mux.request_pt_map = lambda ssrc, pt: None
        rtp, _ = self.link_receiver()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        self.assertEqual(self.added, [])

    def test_stopped_drops_packets(self) -> None:
        rtp, _ = self.link_receiver()
        self.mux.stop()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        self.assertEqual(self.added, [])

    def test_collision_from_other_address(self) -> None:
        rtp, _ = self.link_receiver()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        rtp.on_datagram(rtp_packet(ssrc=42), ("10.0.0.3", 5004))
        self.assertEqual(self.collisions, [42])
        self.assertEqual(len(self.added), 1)

    def test_bye_removes_source(self) -> None:
        rtp, rtcp = self.link_receiver()
        assert rtp.on_datagram is not None and rtcp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        rtp.on_datagram(rtp_packet(ssrc=43), PEER)
        rtcp.on_datagram(rtcp_bye([42]), PEER)
        self.assertEqual([pad.name for pad in self.removed], ["recv_rtp_src_0_42_96"])

    def test_rtcp_on_rtp_port(self) -> None:
        rtp, _ = self.link_receiver()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        rtp.on_datagram(rtcp_bye([42]), PEER)
        self.assertEqual(len(self.removed), 1)

    def test_request_and_release_pad(self) -> None:
        sink = self.mux.request_pad("send_rtp_sink_1")
        assert sink is not None
        self.assertEqual(
            [pad.name for pad in self.added], ["send_rtp_sink_1", "send_rtp_src_1"]
        )
        self.assertIsNone(self.mux.request_pad("send_rtp_sink_1"))
        self.assertIsNone(self.mux.request_pad("recv_rtp_sink_0"))

        self.mux.release_pad(sink)
        self.assertEqual(
            [pad.name for pad in self.removed], ["send_rtp_src_1", "send_rtp_sink_1"]
        )

    def test_send_and_goodbye(self) -> None:
        rtp, rtcp = FakeEndpoint(), FakeEndpoint()
        self.mux.link("send_rtp_src_0", rtp)  # type: ignore[arg-type]
        self.mux.link("send_rtcp_src_0", rtcp)  # type: ignore[arg-type]
        self.mux.start()
        sink = self.mux.request_pad("send_rtp_sink_0")
        assert sink is not None

        sink.push(rtp_packet(ssrc=7))
        sink.push(b"junk")
        self.assertEqual(rtp.sent, [rtp_packet(ssrc=7)])

        self.mux.stop()
        self.assertEqual(len(rtcp.sent), 1)
        self.assertEqual(parse_rtcp_bye_sources(rtcp.sent[0]), [7])

    def test_own_ssrc_collision(self) -> None:
        out = FakeEndpoint()
        self.mux.link("send_rtp_src_0", out)  # type: ignore[arg-type]
        rtp, _ = self.link_receiver()
        sink = self.mux.request_pad("send_rtp_sink_0")
        assert sink is not None and rtp.on_datagram is not None
        sink.push(rtp_packet(ssrc=7))
        rtp.on_datagram(rtp_packet(ssrc=7), PEER)
        self.assertEqual(self.collisions, [7])

    def test_stop_removes_received_streams(self) -> None:
        rtp, _ = self.link_receiver()
        assert rtp.on_datagram is not None
        rtp.on_datagram(rtp_packet(ssrc=42), PEER)
        self.mux.stop()
        self.assertEqual([pad.name for pad in self.removed], ["recv_rtp_src_0_42_96"])

    def test_caps_are_rtp(self) -> None:
        sink = self.mux.request_pad("send_rtp_sink_0")
        assert sink is not None
        assert sink.caps is not None
        self.assertTrue(sink.caps.can_intersect(Caps("application/x-rtp")))


class StreamPadTest(TestCase):
    def test_held_back_packets_delivered_in_order(self) -> None:
        target = MuxPad("recv_rtp_src_0_1_96", PadDirection.SRC, ssrc=1, payload_type=96)
        target.push(b"a")
        target.push(b"b")

        pad = StreamPad(0, "src_0", PadDirection.SRC, target)
        pad.set_active(True)
        delivered: list[bytes] = []
        pad.on_packet = delivered.append
        pad.begin_delivery()
        target.push(b"c")

        self.assertEqual(delivered, [b"a", b"b", b"c"])
        self.assertEqual(len(target.pending), 0)

    def test_unlinked_pad_stops_delivery(self) -> None:
        target = MuxPad("recv_rtp_src_0_1_96", PadDirection.SRC)
        pad = StreamPad(0, "src_0", PadDirection.SRC, target)
        pad.set_active(True)
        delivered: list[bytes] = []
        pad.on_packet = delivered.append
        pad.begin_delivery()
        pad.unlink()
        target.push(b"x")
        self.assertEqual(delivered, [])
        self.assertFalse(pad.linked_remote)
