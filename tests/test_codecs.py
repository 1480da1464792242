from aiortpuri.caps import Caps
from aiortpuri.codecs import (
    CodecDescriptor,
    register_payload,
    resolve_by_encoding_name,
    resolve_by_payload_type,
    resolve_payload,
)

from .utils import TestCase


class PayloadTypeTest(TestCase):
    def test_static(self) -> None:
        pcmu = resolve_by_payload_type(0)
        assert pcmu is not None
        self.assertEqual(pcmu.encoding_name, "PCMU")
        self.assertEqual(pcmu.media, "audio")
        self.assertEqual(pcmu.clock_rate, 8000)

        h263 = resolve_by_payload_type(34)
        assert h263 is not None
        self.assertEqual((h263.encoding_name, h263.media), ("H263", "video"))

    def test_dynamic_and_unassigned(self) -> None:
        self.assertIsNone(resolve_by_payload_type(96))
        self.assertIsNone(resolve_by_payload_type(127))
        self.assertIsNone(resolve_by_payload_type(2))
        self.assertIsNone(resolve_by_payload_type(72))

    def test_register_static(self) -> None:
        register_payload(CodecDescriptor(77, "X-TEST", "audio", 48000))
        descriptor = resolve_by_payload_type(77)
        assert descriptor is not None
        self.assertEqual(descriptor.encoding_name, "X-TEST")

    def test_register_dynamic_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            register_payload(CodecDescriptor(100, "X-TEST", "audio", 48000))


class EncodingNameTest(TestCase):
    def test_video(self) -> None:
        vp8 = resolve_by_encoding_name("VP8")
        assert vp8 is not None
        self.assertEqual((vp8.media, vp8.clock_rate), ("video", 90000))

    def test_case_insensitive(self) -> None:
        h264 = resolve_by_encoding_name("h264")
        assert h264 is not None
        self.assertEqual(h264.encoding_name, "H264")

    def test_static_only_name(self) -> None:
        jpeg = resolve_by_encoding_name("JPEG")
        assert jpeg is not None
        self.assertEqual(jpeg.payload_type, 26)

    def test_dynamic_entry_found_before_static(self) -> None:
        pcma = resolve_by_encoding_name("PCMA")
        assert pcma is not None
        self.assertIsNone(pcma.payload_type)
        self.assertEqual(pcma.media, "audio")

    def test_dynamic_entry_takes_static_clock_rate(self) -> None:
        pcma = resolve_by_encoding_name("PCMA")
        assert pcma is not None
        self.assertEqual(pcma.clock_rate, 8000)
        self.assertEqual(pcma.to_caps(96).get("clock-rate"), 8000)

    def test_preferred_media(self) -> None:
        video = resolve_by_encoding_name("rtx")
        audio = resolve_by_encoding_name("rtx", preferred_media="audio")
        assert video is not None and audio is not None
        self.assertEqual(video.media, "video")
        self.assertEqual(audio.media, "audio")

    def test_unknown(self) -> None:
        self.assertIsNone(resolve_by_encoding_name("NOPE"))


class ResolvePayloadTest(TestCase):
    def test_static_wins(self) -> None:
        descriptor = resolve_payload(8, "VP8")
        assert descriptor is not None
        self.assertEqual(descriptor.encoding_name, "PCMA")

    def test_configured_name(self) -> None:
        descriptor = resolve_payload(96, "VP8")
        assert descriptor is not None
        self.assertEqual(descriptor.encoding_name, "VP8")

    def test_fallback(self) -> None:
        with self.assertLogs("aiortpuri.codecs", level="WARNING"):
            descriptor = resolve_payload(96)
        assert descriptor is not None
        self.assertEqual(descriptor.encoding_name, "H264")

    def test_unknown_name_falls_back(self) -> None:
        descriptor = resolve_payload(96, "NOPE")
        assert descriptor is not None
        self.assertEqual(descriptor.encoding_name, "H264")

    def test_no_fallback(self) -> None:
        self.assertIsNone(resolve_payload(96, fallback=None))

    def test_caps(self) -> None:
        descriptor = resolve_payload(96, "VP8")
        assert descriptor is not None
        self.assertEqual(
            descriptor.to_caps(96),
            Caps(
                "application/x-rtp",
                media="video",
                encoding_name="VP8",
                clock_rate=90000,
                payload=96,
            ),
        )

    def test_caps_without_clock_rate(self) -> None:
        descriptor = resolve_by_encoding_name("DAT12")
        assert descriptor is not None
        self.assertIsNone(descriptor.to_caps().get("clock-rate"))
