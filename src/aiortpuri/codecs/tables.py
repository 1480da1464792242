"""RTP payload tables.

``STATIC_PAYLOADS`` follows RFC 3551 section 6. ``DYNAMIC_PAYLOADS`` lists
encodings whose payload type is negotiated out of band; a clock rate of 0
means the rate must be signalled too.
"""

from .base import CodecDescriptor

STATIC_PAYLOADS: tuple[CodecDescriptor, ...] = (
    CodecDescriptor(0, "PCMU", "audio", 8000),
    CodecDescriptor(3, "GSM", "audio", 8000),
    CodecDescriptor(4, "G723", "audio", 8000),
    CodecDescriptor(5, "DVI4", "audio", 8000),
    CodecDescriptor(6, "DVI4", "audio", 16000),
    CodecDescriptor(7, "LPC", "audio", 8000),
    CodecDescriptor(8, "PCMA", "audio", 8000),
    CodecDescriptor(9, "G722", "audio", 8000),
    CodecDescriptor(10, "L16", "audio", 44100),
    CodecDescriptor(11, "L16", "audio", 44100),
    CodecDescriptor(12, "QCELP", "audio", 8000),
    CodecDescriptor(13, "CN", "audio", 8000),
    CodecDescriptor(14, "MPA", "audio", 90000),
    CodecDescriptor(15, "G728", "audio", 8000),
    CodecDescriptor(16, "DVI4", "audio", 11025),
    CodecDescriptor(17, "DVI4", "audio", 22050),
    CodecDescriptor(18, "G729", "audio", 8000),
    CodecDescriptor(25, "CelB", "video", 90000),
    CodecDescriptor(26, "JPEG", "video", 90000),
    CodecDescriptor(28, "nv", "video", 90000),
    CodecDescriptor(31, "H261", "video", 90000),
    CodecDescriptor(32, "MPV", "video", 90000),
    CodecDescriptor(33, "MP2T", "video", 90000),
    CodecDescriptor(34, "H263", "video", 90000),
)


def _dynamic(name: str, media: str, clock_rate: int) -> CodecDescriptor:
    return CodecDescriptor(None, name, media, clock_rate)


DYNAMIC_PAYLOADS: tuple[CodecDescriptor, ...] = (
    _dynamic("MP4V-ES", "video", 90000),
    _dynamic("H264", "video", 90000),
    _dynamic("H265", "video", 90000),
    _dynamic("MP2P", "video", 90000),
    _dynamic("H263-1998", "video", 90000),
    _dynamic("H263-2000", "video", 90000),
    _dynamic("MP1S", "video", 90000),
    _dynamic("AMR", "audio", 8000),
    _dynamic("AMR-WB", "audio", 16000),
    _dynamic("DAT12", "audio", 0),
    _dynamic("dsr-es201108", "audio", 0),
    _dynamic("EVRC", "audio", 8000),
    _dynamic("EVRC0", "audio", 8000),
    _dynamic("EVRC1", "audio", 8000),
    _dynamic("EVRCB", "audio", 8000),
    _dynamic("EVRCB0", "audio", 8000),
    _dynamic("EVRCB1", "audio", 8000),
    _dynamic("EVRCWB", "audio", 0),
    _dynamic("EVRCWB0", "audio", 0),
    _dynamic("EVRCWB1", "audio", 0),
    _dynamic("G7221", "audio", 16000),
    _dynamic("G726-16", "audio", 8000),
    _dynamic("G726-24", "audio", 8000),
    _dynamic("G726-32", "audio", 8000),
    _dynamic("G726-40", "audio", 8000),
    _dynamic("G729D", "audio", 8000),
    _dynamic("G729E", "audio", 8000),
    _dynamic("GSM-EFR", "audio", 8000),
    _dynamic("L8", "audio", 0),
    _dynamic("RED", "audio", 0),
    _dynamic("rtx", "audio", 0),
    _dynamic("VDVI", "audio", 0),
    _dynamic("L20", "audio", 0),
    _dynamic("L24", "audio", 0),
    _dynamic("MP4A-LATM", "audio", 48000),
    _dynamic("mpa-robust", "audio", 90000),
    _dynamic("parityfec", "audio", 0),
    _dynamic("SMV", "audio", 8000),
    _dynamic("SMV0", "audio", 8000),
    _dynamic("t140c", "audio", 0),
    _dynamic("t38", "audio", 0),
    _dynamic("telephone-event", "audio", 0),
    _dynamic("tone", "audio", 0),
    _dynamic("DVI4", "audio", 0),
    _dynamic("G722", "audio", 0),
    _dynamic("G723", "audio", 0),
    _dynamic("G728", "audio", 0),
    _dynamic("G729", "audio", 0),
    _dynamic("GSM", "audio", 0),
    _dynamic("L16", "audio", 48000),
    _dynamic("LPC", "audio", 0),
    _dynamic("PCMA", "audio", 0),
    _dynamic("PCMU", "audio", 0),
    _dynamic("OPUS", "audio", 48000),
    _dynamic("BMPEG", "video", 90000),
    _dynamic("BT656", "video", 90000),
    _dynamic("DV", "video", 90000),
    _dynamic("parityfec", "video", 0),
    _dynamic("pointer", "video", 90000),
    _dynamic("raw", "video", 90000),
    _dynamic("rtx", "video", 0),
    _dynamic("SMPTE292M", "video", 0),
    _dynamic("vc1", "video", 90000),
    _dynamic("THEORA", "video", 90000),
    _dynamic("VP8", "video", 90000),
    _dynamic("VP8-DRAFT-IETF-01", "video", 90000),
    _dynamic("VP9", "video", 90000),
    _dynamic("VP9-DRAFT-IETF-01", "video", 90000),
    _dynamic("X-GST", "media", 90000),
)
