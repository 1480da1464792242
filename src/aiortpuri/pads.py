from collections import deque
from collections.abc import Callable
from enum import Enum
from typing import Optional

from .caps import Caps

# Packets a pad holds while nothing consumes them yet
PENDING_PACKETS = 64


class PadDirection(Enum):
    SRC = "src"
    SINK = "sink"


class MuxPad:
    """A connection point on the session multiplexer."""

    def __init__(
        self,
        name: str,
        direction: PadDirection,
        caps: Optional[Caps] = None,
        ssrc: Optional[int] = None,
        payload_type: Optional[int] = None,
    ) -> None:
        self.name = name
        self.direction = direction
        self.caps = caps
        self.ssrc = ssrc
        self.payload_type = payload_type
        self.on_data: Optional[Callable[[bytes], None]] = None
        self.pending: deque[bytes] = deque(maxlen=PENDING_PACKETS)

    def __repr__(self) -> str:
        return f"<MuxPad {self.name}>"

    def push(self, data: bytes) -> None:
        if self.on_data is not None:
            self.on_data(data)
        else:
            self.pending.append(data)


class StreamPad:
    """Externally visible sub-stream wrapping a multiplexer pad.

    Source pads deliver received RTP packets through :attr:`on_packet`;
    sink pads accept outgoing RTP packets through :meth:`push`.
    """

    def __init__(
        self, pad_id: int, name: str, direction: PadDirection, target: MuxPad
    ) -> None:
        self.id = pad_id
        self.name = name
        self.direction = direction
        self.active = False
        self.on_packet: Optional[Callable[[bytes], None]] = None
        self._target: Optional[MuxPad] = target

    def __repr__(self) -> str:
        return f"<StreamPad {self.name} -> {self._target!r}>"

    @property
    def target(self) -> Optional[MuxPad]:
        return self._target

    @property
    def linked_remote(self) -> bool:
        return self._target is not None

    @property
    def caps(self) -> Optional[Caps]:
        return self._target.caps if self._target is not None else None

    @property
    def ssrc(self) -> Optional[int]:
        return self._target.ssrc if self._target is not None else None

    def set_active(self, active: bool) -> None:
        self.active = active

    def push(self, data: bytes) -> None:
        if self.direction is not PadDirection.SINK:
            raise ValueError(f"Cannot push into source pad {self.name}")
        if not self.active or self._target is None:
            return
        self._target.push(data)

    def begin_delivery(self) -> None:
        """Start forwarding packets, beginning with any the target held back."""
        target = self._target
        if self.direction is not PadDirection.SRC or target is None:
            return
        target.on_data = self._deliver
        while target.pending:
            self._deliver(target.pending.popleft())

    def _deliver(self, data: bytes) -> None:
        if self.active and self.on_packet is not None:
            self.on_packet(data)

    def unlink(self) -> None:
        if self._target is not None and self.direction is PadDirection.SRC:
            self._target.on_data = None
        self._target = None
        self.active = False
