import socket

import pytest

from aiortpuri.port_allocator import PortAllocator


@pytest.mark.asyncio
async def test_allocates_even_pair() -> None:
    allocator = PortAllocator((20001, 21000))
    rtp, rtcp = await allocator.allocate("127.0.0.1")
    assert rtp % 2 == 0
    assert rtcp == rtp + 1
    assert rtp >= 20002
    assert rtp in allocator.allocated
    await allocator.release(rtp)
    assert rtp not in allocator.allocated


@pytest.mark.asyncio
async def test_skips_allocated_and_busy_ports() -> None:
    allocator = PortAllocator((22000, 22100))
    first, _ = await allocator.allocate("127.0.0.1")

    busy = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    busy.bind(("127.0.0.1", first + 3))
    try:
        second, _ = await allocator.allocate("127.0.0.1")
    finally:
        busy.close()
    assert second != first
    assert second != first + 2


@pytest.mark.asyncio
async def test_exhausted() -> None:
    allocator = PortAllocator((23000, 23002))
    await allocator.allocate("127.0.0.1")
    with pytest.raises(RuntimeError):
        await allocator.allocate("127.0.0.1")
