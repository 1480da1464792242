import asyncio
import socket

from .multicast import address_family


class PortAllocator:
    def __init__(self, port_range: tuple[int, int] = (10000, 20000)) -> None:
        self._min_port = port_range[0]
        self._max_port = port_range[1]
        # Ensure min_port is even
        if self._min_port % 2 != 0:
            self._min_port += 1
        self._allocated: set[int] = set()
        self._lock = asyncio.Lock()

    @property
    def allocated(self) -> frozenset[int]:
        return frozenset(self._allocated)

    async def allocate(self, host: str = "0.0.0.0") -> tuple[int, int]:
        """
        Allocate an even/odd port pair for RTP/RTCP on *host*.
        Returns (rtp_port, rtcp_port) where rtcp_port = rtp_port + 1.
        """
        family = address_family(host)
        async with self._lock:
            for port in range(self._min_port, self._max_port, 2):
                if port in self._allocated:
                    continue
                # Try to bind both ports
                rtp_sock = socket.socket(family, socket.SOCK_DGRAM)
                rtcp_sock = socket.socket(family, socket.SOCK_DGRAM)
                try:
                    rtp_sock.bind((host, port))
                    rtcp_sock.bind((host, port + 1))
                except OSError:
                    continue
                finally:
                    rtp_sock.close()
                    rtcp_sock.close()
                self._allocated.add(port)
                return port, port + 1
            raise RuntimeError("No available port pair in range")

    async def release(self, rtp_port: int) -> None:
        """Release a previously allocated port pair."""
        async with self._lock:
            self._allocated.discard(rtp_port)


default_allocator = PortAllocator()
