"""Minimal RTP/RTCP header handling needed for stream demultiplexing."""

import struct
from dataclasses import dataclass

RTP_VERSION = 2
RTP_HEADER_LENGTH = 12

RTCP_SR = 200
RTCP_RR = 201
RTCP_SDES = 202
RTCP_BYE = 203


def is_rtcp(msg: bytes) -> bool:
    return len(msg) >= 2 and msg[1] >= 192 and msg[1] <= 208


@dataclass
class RtpHeader:
    payload_type: int
    marker: int
    sequence_number: int
    timestamp: int
    ssrc: int

    @classmethod
    def parse(cls, data: bytes) -> "RtpHeader":
        if len(data) < RTP_HEADER_LENGTH:
            raise ValueError("RTP packet length is less than 12 bytes")
        first, second, sequence_number, timestamp, ssrc = struct.unpack(
            "!BBHLL", data[:RTP_HEADER_LENGTH]
        )
        if first >> 6 != RTP_VERSION:
            raise ValueError("RTP packet has invalid version")
        return cls(
            payload_type=second & 0x7F,
            marker=second >> 7,
            sequence_number=sequence_number,
            timestamp=timestamp,
            ssrc=ssrc,
        )

    def serialize(self) -> bytes:
        return struct.pack(
            "!BBHLL",
            RTP_VERSION << 6,
            (self.marker << 7) | self.payload_type,
            self.sequence_number,
            self.timestamp,
            self.ssrc,
        )


def rtcp_bye(sources: list[int]) -> bytes:
    """Serialize an RTCP BYE for *sources* (at most 31)."""
    if len(sources) > 31:
        raise ValueError("RTCP BYE carries at most 31 sources")
    payload = b"".join(struct.pack("!L", ssrc) for ssrc in sources)
    header = struct.pack(
        "!BBH", (RTP_VERSION << 6) | len(sources), RTCP_BYE, len(payload) // 4
    )
    return header + payload


def parse_rtcp_bye_sources(data: bytes) -> list[int]:
    """Collect the sources of every BYE in a compound RTCP packet."""
    sources: list[int] = []
    pos = 0
    while pos + 4 <= len(data):
        first, packet_type, length = struct.unpack("!BBH", data[pos : pos + 4])
        if first >> 6 != RTP_VERSION:
            raise ValueError("RTCP packet has invalid version")
        end = pos + 4 + length * 4
        if end > len(data):
            raise ValueError("RTCP packet length is invalid")
        if packet_type == RTCP_BYE:
            count = first & 0x1F
            if 4 + count * 4 > end - pos:
                raise ValueError("RTCP bye length is invalid")
            for i in range(count):
                sources.append(struct.unpack("!L", data[pos + 4 + i * 4 : pos + 8 + i * 4])[0])
        pos = end
    return sources
