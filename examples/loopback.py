"""
Loopback example: an RtpSink sends VP8-labelled RTP to an RtpSource on localhost.

Demonstrates:
  - Configuring both sessions from rtp:// URIs (query parameters set properties)
  - Requesting a send pad on the sink and pushing RTP packets into it
  - Receiving the stream through the pad the source exposes for it
  - Graceful shutdown (the sink says RTCP BYE, the source drops the stream)
"""

import asyncio
import logging
import struct

from aiortpuri import RtpSink, RtpSource, StreamPad

URI = "rtp://127.0.0.1:5004?encoding-name=VP8&latency=100"
SSRC = 0x1234ABCD


def rtp_packet(seq: int, payload: bytes) -> bytes:
    """A bare RTP packet with payload type 96 and a 90 kHz timestamp."""
    return struct.pack("!BBHLL", 0x80, 96, seq, seq * 3000, SSRC) + payload


async def main() -> None:
    received = 0
    done = asyncio.Event()

    source = RtpSource(URI)
    sink = RtpSink(URI)

    # --- Receive side: every new stream shows up as a source pad ---
    def on_pad_added(pad: StreamPad) -> None:
        print(f"Source exposed {pad.name}: ssrc={pad.ssrc:#x} caps={pad.caps}")

        def on_packet(data: bytes) -> None:
            nonlocal received
            received += 1
            if received >= 20:
                done.set()

        pad.on_packet = on_packet

    source.on_pad_added = on_pad_added
    source.on_pad_removed = lambda pad: print(f"Source removed {pad.name}")

    async with source, sink:
        print(f"Source listening on {source.uri}")
        print(f"Sink sending to {sink.uri} (ttl={sink.ttl}, ttl-mc={sink.ttl_mc})")

        # --- Send side: 100 packets, 10 ms apart ---
        pad = sink.request_pad()
        for seq in range(100):
            pad.push(rtp_packet(seq, bytes(100)))
            await asyncio.sleep(0.01)
            if done.is_set():
                break

        print(f"Packets received by source: {received}")

    print("Both sessions closed.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
